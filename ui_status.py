# ui_status.py
# One-line live radio status bar with optional ANSI colors.
# Redraws in place with CR; never clears the rest of the screen.

from typing import Optional
import os
import re
import sys

from utils import fmt_hz

# ANSI sequences
RESET = "\033[0m"
BOLD = "\033[1m"
BG_RED = "\033[41m"
BG_GREEN = "\033[42m"
BG_BLUE = "\033[44m"

__all__ = ["status_show", "status_clear", "format_radio_line", "show_radio_data", "BG_RED", "BG_GREEN", "BG_BLUE"]

_status_active = False
_status_width = 0

# NO_ANSI=1 turns colors off (CI, legacy consoles)
_DISABLE_COLOR = os.getenv("NO_ANSI") == "1"


def _strip_ansi(s: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", s)


def _pad(s: str, width: int) -> str:
    """Right-pad so a shorter line fully overwrites the previous one."""
    raw_len = len(_strip_ansi(s))
    if raw_len < width:
        return s + (" " * (width - raw_len))
    return s


def _supports_color() -> bool:
    if _DISABLE_COLOR:
        return False
    return sys.stdout.isatty()


def status_show(text: str, bg_color: str) -> None:
    global _status_active, _status_width
    if _supports_color():
        msg = f"{bg_color}{BOLD} {text} {RESET}"
    else:
        msg = f" {text} "
    _status_width = max(_status_width, len(_strip_ansi(msg)))
    print("\r" + _pad(msg, _status_width), end="", flush=True)
    _status_active = True


def status_clear() -> None:
    global _status_active, _status_width
    if _status_active:
        print("\r" + (" " * _status_width) + "\r", end="", flush=True)
        _status_active = False


def format_radio_line(data, wsjtx_mode: Optional[str] = None) -> str:
    """
    Example:
        14.074.000 Hz  20m  USB  100 W  RX
    """
    parts = [
        f"{fmt_hz(data.frequency)} Hz",
        data.band,
        data.mode or "?",
        f"{data.power} W",
        "TX" if data.transmitting else "RX",
    ]
    if wsjtx_mode:
        parts.append(f"WSJT-X {wsjtx_mode}")
    return "  ".join(parts)


def show_radio_data(data, wsjtx_mode: Optional[str] = None) -> None:
    """Red while transmitting, green otherwise."""
    status_show(format_radio_line(data, wsjtx_mode), BG_RED if data.transmitting else BG_GREEN)
