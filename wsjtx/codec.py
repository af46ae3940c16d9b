# wsjtx/codec.py
"""
WSJT-X UDP message codec.

WSJT-X serialises its network messages with Qt's QDataStream: big-endian
integers, 'utf8' strings as a quint32 byte length (0xFFFFFFFF = null) followed
by the bytes, doubles as IEEE-754 binary64, QTime as milliseconds since
midnight and QDateTime as (Julian day, QTime, timespec[, offset]).

Every datagram starts with the header
    magic quint32 (0xADBCCBDA) | schema quint32 | type quint32 | id utf8
"""

import struct
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import IntEnum
from typing import Optional, Union

MAGIC = 0xADBCCBDA
SCHEMA_VERSION = 2
NULL_LENGTH = 0xFFFFFFFF

# date(1970, 1, 1).toordinal() == 2440588 - JULIAN_DAY_OFFSET
JULIAN_DAY_OFFSET = 1721425


class WsjtxDecodeError(ValueError):
    """Datagram is truncated, has a bad magic number or an invalid field."""
    pass


class MessageType(IntEnum):
    HEARTBEAT = 0
    STATUS = 1
    DECODE = 2
    CLEAR = 3
    REPLY = 4
    QSO_LOGGED = 5
    CLOSE = 6
    REPLAY = 7
    HALT_TX = 8
    FREE_TEXT = 9
    WSPR_DECODE = 10
    LOCATION = 11
    LOGGED_ADIF = 12


# ---------- Message records ----------

@dataclass(frozen=True)
class Heartbeat:
    id: str
    max_schema: int
    version: str
    revision: str


@dataclass(frozen=True)
class Status:
    id: str
    dial_frequency: int
    mode: str
    dx_call: str
    report: str
    tx_mode: str
    tx_enabled: bool
    transmitting: bool
    decoding: bool
    rx_df: int
    tx_df: int
    de_call: str
    de_grid: str
    dx_grid: str = ""
    tx_watchdog: bool = False
    sub_mode: str = ""
    fast_mode: bool = False


@dataclass(frozen=True)
class Decode:
    id: str
    new: bool
    time: Optional[time]
    snr: int
    delta_time: float
    delta_frequency: int
    mode: str
    message: str
    low_confidence: bool
    off_air: bool


@dataclass(frozen=True)
class QSOLogged:
    id: str
    date_time_off: Optional[datetime]
    dx_call: str
    dx_grid: str
    tx_frequency: int
    mode: str
    report_sent: str
    report_received: str
    tx_power: str
    comments: str
    name: str
    date_time_on: Optional[datetime]
    operator_call: str
    my_call: str
    my_grid: str
    exchange_sent: str
    exchange_received: str
    adif_propagation_mode: str


@dataclass(frozen=True)
class Close:
    id: str


@dataclass(frozen=True)
class LoggedADIF:
    id: str
    adif: str


@dataclass(frozen=True)
class UnhandledMessage:
    id: str
    type: int


Message = Union[Heartbeat, Status, Decode, QSOLogged, Close, LoggedADIF, UnhandledMessage]


# ---------- QDataStream reader/writer ----------

class MessageReader:
    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def _take(self, fmt: str):
        size = struct.calcsize(fmt)
        if self.remaining < size:
            raise WsjtxDecodeError(f"Truncated datagram: need {size} bytes at offset {self.pos}")
        (value,) = struct.unpack_from(fmt, self.data, self.pos)
        self.pos += size
        return value

    def u8(self) -> int:
        return self._take(">B")

    def boolean(self) -> bool:
        return self._take(">B") != 0

    def u32(self) -> int:
        return self._take(">I")

    def i32(self) -> int:
        return self._take(">i")

    def u64(self) -> int:
        return self._take(">Q")

    def i64(self) -> int:
        return self._take(">q")

    def double(self) -> float:
        return self._take(">d")

    def utf8(self) -> str:
        length = self.u32()
        if length == NULL_LENGTH:
            return ""
        if self.remaining < length:
            raise WsjtxDecodeError(f"Truncated string: need {length} bytes at offset {self.pos}")
        raw = self.data[self.pos:self.pos + length]
        self.pos += length
        return raw.decode("utf-8", errors="replace")

    def qtime(self) -> Optional[time]:
        ms = self.u32()
        if ms == NULL_LENGTH:
            return None
        ms %= 86_400_000
        return time(ms // 3_600_000, (ms // 60_000) % 60, (ms // 1000) % 60, (ms % 1000) * 1000)

    def qdatetime(self) -> Optional[datetime]:
        julian_day = self.i64()
        t = self.qtime()
        timespec = self.u8()
        tz = None
        if timespec == 1:
            tz = timezone.utc
        elif timespec == 2:
            offset = self.i32()
            try:
                tz = timezone(timedelta(seconds=offset))
            except (ValueError, OverflowError) as e:
                raise WsjtxDecodeError(f"Invalid UTC offset {offset}s") from e
        elif timespec == 3:
            # Named time zone (QByteArray); the name is not needed here.
            self.utf8()
            tz = timezone.utc
        if julian_day <= 0 or t is None:
            return None
        try:
            d = date.fromordinal(julian_day - JULIAN_DAY_OFFSET)
        except (ValueError, OverflowError) as e:
            raise WsjtxDecodeError(f"Invalid Julian day {julian_day}") from e
        return datetime.combine(d, t, tzinfo=tz)


class MessageWriter:
    """QDataStream-compatible writer; used for outgoing datagrams."""

    def __init__(self, message_type: int, client_id: str, schema: int = SCHEMA_VERSION):
        self.buf = bytearray()
        self.u32(MAGIC)
        self.u32(schema)
        self.u32(int(message_type))
        self.utf8(client_id)

    def u8(self, v: int):
        self.buf += struct.pack(">B", v)
        return self

    def boolean(self, v: bool):
        return self.u8(1 if v else 0)

    def u32(self, v: int):
        self.buf += struct.pack(">I", v)
        return self

    def i32(self, v: int):
        self.buf += struct.pack(">i", v)
        return self

    def u64(self, v: int):
        self.buf += struct.pack(">Q", v)
        return self

    def i64(self, v: int):
        self.buf += struct.pack(">q", v)
        return self

    def double(self, v: float):
        self.buf += struct.pack(">d", v)
        return self

    def utf8(self, v: Optional[str]):
        if v is None:
            return self.u32(NULL_LENGTH)
        raw = v.encode("utf-8")
        self.u32(len(raw))
        self.buf += raw
        return self

    def qtime(self, t: Optional[time]):
        if t is None:
            return self.u32(NULL_LENGTH)
        ms = ((t.hour * 60 + t.minute) * 60 + t.second) * 1000 + t.microsecond // 1000
        return self.u32(ms)

    def qdatetime(self, dt: Optional[datetime]):
        if dt is None:
            return self.i64(0).qtime(None).u8(1)
        dt = dt.astimezone(timezone.utc) if dt.tzinfo else dt
        self.i64(dt.date().toordinal() + JULIAN_DAY_OFFSET)
        self.qtime(dt.time())
        return self.u8(1 if dt.tzinfo else 0)

    def to_bytes(self) -> bytes:
        return bytes(self.buf)


# ---------- Decoding ----------

def decode_message(data: bytes) -> Message:
    """Decode one datagram. Raises WsjtxDecodeError on malformed input."""
    r = MessageReader(data)
    magic = r.u32()
    if magic != MAGIC:
        raise WsjtxDecodeError(f"Bad magic 0x{magic:08X}")
    r.u32()  # schema
    msg_type = r.u32()
    client_id = r.utf8()

    if msg_type == MessageType.HEARTBEAT:
        return Heartbeat(id=client_id, max_schema=r.u32(), version=r.utf8(), revision=r.utf8())

    if msg_type == MessageType.STATUS:
        fields = dict(
            id=client_id,
            dial_frequency=r.u64(),
            mode=r.utf8(),
            dx_call=r.utf8(),
            report=r.utf8(),
            tx_mode=r.utf8(),
            tx_enabled=r.boolean(),
            transmitting=r.boolean(),
            decoding=r.boolean(),
            rx_df=r.u32(),
            tx_df=r.u32(),
            de_call=r.utf8(),
            de_grid=r.utf8(),
        )
        # Older WSJT-X versions stop here.
        if r.remaining:
            fields["dx_grid"] = r.utf8()
        if r.remaining:
            fields["tx_watchdog"] = r.boolean()
        if r.remaining:
            fields["sub_mode"] = r.utf8()
        if r.remaining:
            fields["fast_mode"] = r.boolean()
        return Status(**fields)

    if msg_type == MessageType.DECODE:
        return Decode(
            id=client_id,
            new=r.boolean(),
            time=r.qtime(),
            snr=r.i32(),
            delta_time=r.double(),
            delta_frequency=r.u32(),
            mode=r.utf8(),
            message=r.utf8(),
            low_confidence=r.boolean(),
            off_air=r.boolean(),
        )

    if msg_type == MessageType.QSO_LOGGED:
        return QSOLogged(
            id=client_id,
            date_time_off=r.qdatetime(),
            dx_call=r.utf8(),
            dx_grid=r.utf8(),
            tx_frequency=r.u64(),
            mode=r.utf8(),
            report_sent=r.utf8(),
            report_received=r.utf8(),
            tx_power=r.utf8(),
            comments=r.utf8(),
            name=r.utf8(),
            date_time_on=r.qdatetime(),
            operator_call=r.utf8(),
            my_call=r.utf8(),
            my_grid=r.utf8(),
            exchange_sent=r.utf8(),
            exchange_received=r.utf8(),
            adif_propagation_mode=r.utf8() if r.remaining else "",
        )

    if msg_type == MessageType.CLOSE:
        return Close(id=client_id)

    if msg_type == MessageType.LOGGED_ADIF:
        return LoggedADIF(id=client_id, adif=r.utf8())

    return UnhandledMessage(id=client_id, type=msg_type)


def encode_heartbeat(client_id: str, version: str, revision: str = "", max_schema: int = 3) -> bytes:
    return MessageWriter(MessageType.HEARTBEAT, client_id).u32(max_schema).utf8(version).utf8(revision).to_bytes()
