"""Configuration validation helpers for NEXTLOG-COMPANION."""
from typing import Any, Dict, Mapping


class ConfigValidationError(Exception):
    pass


def _check_port(value: Any, label: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"Configuration error: '{label}' must be an integer, got {value!r}")
    if not (1 <= port <= 65535):
        raise ConfigValidationError(f"Configuration error: '{label}' must be in 1..65535, got {port}")
    return port


def validate_radio_settings(radio: Mapping[str, Any]) -> None:
    """Validate the 'radio' section early and loudly.

    - Known radio type (must have a registered driver).
    - Port in range, poll interval positive.
    """
    from radio_registry import RADIO_DRIVERS

    radio_type = (radio.get("last_connected_type") or "").lower()
    if radio_type and radio_type not in RADIO_DRIVERS:
        raise ConfigValidationError(
            f"Configuration error: radio type '{radio_type}' is not supported.\n"
            f"→ Valid options: {', '.join(RADIO_DRIVERS.keys())}"
        )

    if radio.get("last_connected_port") not in (None, ""):
        _check_port(radio.get("last_connected_port"), "radio.last_connected_port")

    interval = radio.get("poll_interval")
    if interval is not None:
        try:
            interval = int(interval)
        except (TypeError, ValueError):
            raise ConfigValidationError(f"Configuration error: 'radio.poll_interval' must be an integer (ms), got {interval!r}")
        if interval <= 0:
            raise ConfigValidationError(
                "Configuration error: 'radio.poll_interval' must be > 0 ms.\n"
                "→ Example: poll_interval: 500"
            )


def validate_nextlog_settings(nextlog: Mapping[str, Any]) -> None:
    url = (nextlog.get("api_url") or "").strip()
    if url and not (url.startswith("http://") or url.startswith("https://")):
        raise ConfigValidationError(
            f"Configuration error: 'nextlog.api_url' must start with http:// or https://, got {url!r}"
        )
    if nextlog.get("auto_submit") and not url:
        raise ConfigValidationError("Configuration error: 'nextlog.auto_submit' requires 'nextlog.api_url'")


def validate_wsjtx_settings(wsjtx: Mapping[str, Any]) -> None:
    if wsjtx.get("udp_port") is not None:
        _check_port(wsjtx.get("udp_port"), "wsjtx.udp_port")


def validate_settings(settings: Dict[str, Any], logger=None) -> None:
    """Validate all sections; log the first problem (if a logger is given) and raise."""
    try:
        validate_radio_settings(settings.get("radio") or {})
        validate_nextlog_settings(settings.get("nextlog") or {})
        validate_wsjtx_settings(settings.get("wsjtx") or {})
    except ConfigValidationError as e:
        if logger:
            logger.error(str(e))
        raise
