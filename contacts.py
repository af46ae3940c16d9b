# contacts.py
"""
Contact records forwarded to the Nextlog logging service.

A Contact is built from a WSJT-X "QSO Logged" message (or by hand) and turned
into the service payload with to_payload(). Field names on the wire follow
ADIF spelling (call, rst_rcvd, gridsquare, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from band_math import frequency_to_band


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    # WSJT-X sends UTC; naive values are taken as UTC too.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_power(text: str) -> Optional[float]:
    """'100', '100W' or '5 w' -> watts; anything else -> None."""
    cleaned = (text or "").strip().upper().rstrip("W").strip()
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


@dataclass
class Contact:
    callsign: str
    frequency: int
    mode: str
    rst_sent: str
    rst_received: str
    datetime: datetime = field(default_factory=_utc_now)
    band: str = ""
    power: Optional[float] = None
    name: Optional[str] = None
    qth: Optional[str] = None
    grid: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None
    iota: Optional[str] = None
    sota: Optional[str] = None
    wwff: Optional[str] = None
    pota: Optional[str] = None
    comment: Optional[str] = None

    def __post_init__(self):
        self.callsign = (self.callsign or "").strip().upper()
        self.frequency = int(self.frequency)
        self.datetime = _as_utc(self.datetime)
        if not self.band:
            self.band = frequency_to_band(self.frequency)

    @classmethod
    def from_qso_logged(cls, msg) -> "Contact":
        """Normalise a wsjtx QSOLogged message. Empty strings become None."""
        when = msg.date_time_on or msg.date_time_off or _utc_now()
        return cls(
            callsign=msg.dx_call,
            frequency=msg.tx_frequency,
            mode=(msg.mode or "").upper(),
            rst_sent=msg.report_sent,
            rst_received=msg.report_received,
            datetime=when,
            power=_parse_power(msg.tx_power),
            name=msg.name or None,
            grid=msg.dx_grid or None,
            comment=msg.comments or None,
        )

    @property
    def qso_date(self) -> str:
        return self.datetime.strftime("%Y-%m-%d")

    @property
    def time_on(self) -> str:
        return self.datetime.strftime("%H:%M:%S")

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "call": self.callsign,
            "freq": self.frequency,
            "mode": self.mode,
            "rst_sent": self.rst_sent,
            "rst_rcvd": self.rst_received,
            "qso_date": self.qso_date,
            "time_on": self.time_on,
            "band": self.band,
            "tx_pwr": self.power,
            "name": self.name,
            "qth": self.qth,
            "gridsquare": self.grid,
            "country": self.country,
            "state": self.state,
            "cnty": self.county,
            "iota": self.iota,
            "sota_ref": self.sota,
            "wwff_ref": self.wwff,
            "pota_ref": self.pota,
            "comment": self.comment,
        }
        return {k: v for k, v in payload.items() if v is not None}

    def csv_row(self, submitted: bool) -> str:
        """One line for the contacts journal (see loghandler.CONTACT_CSV_HEADER)."""
        return (
            f"{self.qso_date},{self.time_on},{self.callsign},{self.band},{self.frequency},"
            f"{self.mode},{self.rst_sent},{self.rst_received},{'yes' if submitted else 'no'}"
        )
