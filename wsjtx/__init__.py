# wsjtx/__init__.py
"""
WSJT-X decoder-ingest package.

Exports:
- WsjtxListener   (UDP listener publishing decoded messages)
- decode_message  (datagram -> message record)
- message records: Heartbeat, Status, Decode, QSOLogged, Close, LoggedADIF
"""

from .codec import (
    Close,
    Decode,
    Heartbeat,
    LoggedADIF,
    MessageType,
    MessageWriter,
    QSOLogged,
    Status,
    WsjtxDecodeError,
    decode_message,
)
from .listener import DEFAULT_WSJTX_PORT, WsjtxListener

__all__ = [
    "WsjtxListener",
    "DEFAULT_WSJTX_PORT",
    "decode_message",
    "MessageType",
    "MessageWriter",
    "WsjtxDecodeError",
    "Heartbeat",
    "Status",
    "Decode",
    "QSOLogged",
    "Close",
    "LoggedADIF",
]
