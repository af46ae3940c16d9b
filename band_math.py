# band_math.py
# Amateur band lookup for the frequencies reported by the radio.

from typing import List, Optional, Tuple

UNKNOWN_BAND = "Unknown"

# (low MHz, high MHz, band name); both bounds inclusive.
BAND_TABLE: List[Tuple[float, float, str]] = [
    (1.8, 2.0, "160m"),
    (3.5, 4.0, "80m"),
    (5.3, 5.4, "60m"),
    (7.0, 7.3, "40m"),
    (10.1, 10.15, "30m"),
    (14.0, 14.35, "20m"),
    (18.068, 18.168, "17m"),
    (21.0, 21.45, "15m"),
    (24.89, 24.99, "12m"),
    (28.0, 29.7, "10m"),
    (50.0, 54.0, "6m"),
    (144.0, 148.0, "2m"),
    (420.0, 450.0, "70cm"),
]

# Same table in integer Hz so edge values like 2_000_000 compare exactly.
_BAND_TABLE_HZ: List[Tuple[int, int, str]] = [
    (int(round(lo * 1_000_000)), int(round(hi * 1_000_000)), name)
    for lo, hi, name in BAND_TABLE
]


def frequency_to_band(frequency_hz: int) -> str:
    """Return the band name ('20m', '70cm', ...) for a frequency in Hz, or 'Unknown'."""
    try:
        hz = int(frequency_hz)
    except (TypeError, ValueError):
        return UNKNOWN_BAND

    for lo, hi, name in _BAND_TABLE_HZ:
        if lo <= hz <= hi:
            return name
    return UNKNOWN_BAND


def band_edges_hz(band: str) -> Optional[Tuple[int, int]]:
    """Inclusive (low, high) edges in Hz for a band name, or None if not in the table."""
    for lo, hi, name in _BAND_TABLE_HZ:
        if name == band:
            return lo, hi
    return None


def mhz_to_hz(value_mhz: float) -> int:
    """Convert a MHz decimal (as sent on the wire) to integer Hz without float drift."""
    return int(round(float(value_mhz) * 1_000_000))
