# radio_registry.py
"""
Registry of available radio drivers for NEXTLOG-COMPANION.
"""

from typing import Any, Dict, Optional

from radio_interface import BaseRadioDriver, UnsupportedRadioTypeError
from radios.flexradio import DEFAULT_FLEXRADIO_HOST, DEFAULT_FLEXRADIO_PORT, FlexRadioDriver

RADIO_DRIVERS: Dict[str, Dict[str, Any]] = {
    "flexradio": {
        "label": "FlexRadio",
        "class": FlexRadioDriver,
        "description": "FlexRadio 6000 series (SmartSDR TCP/IP API)",
        "default_host": DEFAULT_FLEXRADIO_HOST,
        "default_port": DEFAULT_FLEXRADIO_PORT,
    },
}


def get_driver_entry(radio_type: Optional[str]) -> Dict[str, Any]:
    key = (radio_type or "").strip().lower()
    entry = RADIO_DRIVERS.get(key)
    if entry is None:
        raise UnsupportedRadioTypeError(
            f"Unsupported radio type: {radio_type!r}. Valid options: {', '.join(RADIO_DRIVERS.keys())}"
        )
    return entry


def create_driver(radio_type: Optional[str], **kwargs) -> BaseRadioDriver:
    """Instantiate a fresh driver for radio_type; kwargs go to the driver constructor."""
    return get_driver_entry(radio_type)["class"](**kwargs)


__all__ = ["RADIO_DRIVERS", "get_driver_entry", "create_driver"]
