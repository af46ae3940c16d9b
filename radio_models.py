# radio_models.py
"""Record types crossing the session boundary: connection parameters and radio snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from config_validation import ConfigValidationError


def _opt_int(value: Any, label: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"{label} must be an integer, got {value!r}")


@dataclass(frozen=True)
class RadioConnectionConfig:
    """Immutable per-connection parameters, supplied once at connect time."""

    type: str
    host: Optional[str] = None
    port: Optional[int] = None
    serial_port: Optional[str] = None
    baud_rate: Optional[int] = None
    model: str = ""

    def __post_init__(self):
        if not self.type or not str(self.type).strip():
            raise ConfigValidationError("Radio type is required")
        if self.port is not None and not (1 <= self.port <= 65535):
            raise ConfigValidationError(f"Radio port must be in 1..65535, got {self.port}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RadioConnectionConfig":
        """
        Build from either the nested UI shape
          {"type": "flexradio", "connection": {"host": .., "port": ..}, "model": ".."}
        or a flat one
          {"type": "flexradio", "host": .., "port": ..}.
        """
        if not isinstance(data, Mapping):
            raise ConfigValidationError("Radio config must be a mapping")
        conn = data.get("connection") or {}
        if not isinstance(conn, Mapping):
            raise ConfigValidationError("'connection' must be a mapping")

        def pick(*keys):
            for k in keys:
                if conn.get(k) not in (None, ""):
                    return conn.get(k)
                if data.get(k) not in (None, ""):
                    return data.get(k)
            return None

        host = pick("host")
        return cls(
            type=str(data.get("type") or "").strip().lower(),
            host=str(host) if host is not None else None,
            port=_opt_int(pick("port"), "port"),
            serial_port=pick("serial_port", "serialPort"),
            baud_rate=_opt_int(pick("baud_rate", "baudRate"), "baud_rate"),
            model=str(data.get("model") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "connection": {
                "host": self.host,
                "port": self.port,
                "serialPort": self.serial_port,
                "baudRate": self.baud_rate,
            },
            "model": self.model,
        }


@dataclass(frozen=True)
class RadioData:
    """Flattened snapshot of the active slice plus transmit state, built fresh per poll."""

    frequency: int
    mode: str
    power: int
    band: str
    transmitting: bool
    vswr: float = 1.0
    split: bool = False
    rit_frequency: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "frequency": self.frequency,
            "mode": self.mode,
            "power": self.power,
            "vswr": self.vswr,
            "band": self.band,
            "split": self.split,
            "transmitting": self.transmitting,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.rit_frequency is not None:
            out["ritFrequency"] = self.rit_frequency
        return out
