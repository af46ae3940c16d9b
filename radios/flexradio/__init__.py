# radios/flexradio/__init__.py
"""
FlexRadio SmartSDR driver package.

Exports:
- FlexRadioDriver   (driver facade: lifecycle state machine + polling)
- FlexRadioParser   (line classifier for SmartSDR messages)
- LineFramer        (byte stream -> lines)
- FlexRadioTransport (TCP transport with command sequencing)
- RadioStatus, Slice (status model)
"""

from .driver import (
    DEFAULT_FLEXRADIO_HOST,
    DEFAULT_FLEXRADIO_PORT,
    DriverState,
    FlexRadioDriver,
)
from .parser import FlexParser as FlexRadioParser, LineFramer, MessageKind
from .status import RadioStatus, Slice
from .transport import FlexTransport as FlexRadioTransport

__version__ = "1.0.0"

__all__ = [
    "FlexRadioDriver",
    "FlexRadioParser",
    "FlexRadioTransport",
    "LineFramer",
    "MessageKind",
    "DriverState",
    "RadioStatus",
    "Slice",
    "DEFAULT_FLEXRADIO_HOST",
    "DEFAULT_FLEXRADIO_PORT",
    "__version__",
]
