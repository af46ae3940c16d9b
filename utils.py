# utils.py
# Small formatting helpers for the terminal UI.

from __future__ import annotations


def fmt_hz(hz: int) -> str:
    """14074000 -> '14.074.000' (dotted MHz.kHz.Hz triplets)."""
    hz = int(hz)
    sign = "-" if hz < 0 else ""
    digits = f"{abs(hz):,}".replace(",", ".")
    return sign + digits


def pretty_duration(seconds: float, style: str = "auto") -> str:
    """Format duration as '1h 02m 05s' / '22m 03s' / '3.40 s' / '850 ms' or 'HH:MM:SS'."""
    if seconds < 0:
        seconds = 0.0

    total = int(round(seconds))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)

    if style == "clock":
        return f"{h:02d}:{m:02d}:{s:02d}"

    if seconds < 0.001:
        return "0 ms"
    if seconds < 1.0:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60.0:
        return f"{seconds:.2f} s"
    if h > 0:
        return f"{h}h {m:02d}m {s:02d}s"
    return f"{m}m {s:02d}s"
