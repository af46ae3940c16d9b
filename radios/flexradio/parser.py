# radios/flexradio/parser.py
import re
from enum import Enum
from typing import Callable, Dict, List, Optional

from band_math import mhz_to_hz
from loghandler import get_logger


class MessageKind(str, Enum):
    RESPONSE = "response"
    STATUS = "status"
    OTHER = "other"
    MALFORMED = "malformed"


class LineFramer:
    """
    Splits the raw TCP byte stream into text lines.

    Bytes are buffered until a '\\n' is seen, so a line split across several
    recv() calls is reassembled before anyone looks at it. '\\r\\n' endings are
    accepted. Blank lines are dropped.
    """

    def __init__(self, max_buffer: int = 65536):
        self.max_buffer = int(max_buffer)
        self._buffer = b""

    @property
    def pending(self) -> bytes:
        return self._buffer

    def feed(self, chunk: bytes) -> List[str]:
        if not chunk:
            return []
        self._buffer += chunk

        lines: List[str] = []
        while b"\n" in self._buffer:
            raw, self._buffer = self._buffer.split(b"\n", 1)
            line = raw.decode(errors="replace").strip()
            if line:
                lines.append(line)

        # A peer that never sends a terminator must not grow the buffer forever.
        if len(self._buffer) > self.max_buffer:
            get_logger().warning(
                f"[PARSER] Dropping {len(self._buffer)} unterminated bytes (no newline within {self.max_buffer})"
            )
            self._buffer = b""
        return lines

    def reset(self) -> None:
        self._buffer = b""


# key=value or key="quoted value"; pairs separated by spaces or commas.
_KV_RE = re.compile(r'([A-Za-z_][\w\-]*)=(?:"([^"]*)"|([^\s,#"]*))')
_RC_RE = re.compile(r"^[0-9A-Fa-f]{1,8}$")
_STATUS_OBJECT_RE = re.compile(r"\b(slice|transmit|interlock|radio)\b")
_SLICE_ID_RE = re.compile(r"\bslice\s+(\d+)\b")
_BARE_MODEL_RE = re.compile(r'\bmodel\s+"?([^\s",=]+)')
_BARE_VERSION_RE = re.compile(r'\bversion\s+"?([^\s",=]+)')


def parse_key_values(text: str) -> Dict[str, str]:
    """Collect key=value pairs from a SmartSDR payload; later keys win."""
    return {m.group(1): (m.group(2) if m.group(2) is not None else m.group(3)) for m in _KV_RE.finditer(text)}


def _flag(value: str) -> Optional[bool]:
    if value in ("1", "true", "True", "on"):
        return True
    if value in ("0", "false", "False", "off"):
        return False
    return None


def _mhz(value: str) -> Optional[int]:
    try:
        hz = mhz_to_hz(float(value))
    except (ValueError, OverflowError):
        return None
    return hz if hz >= 0 else None


def _int(value: str) -> Optional[int]:
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return None


class FlexParser:
    """
    Line classifier for SmartSDR 'R' (Response) and 'S' (Status) messages.

    Each complete line goes through feed() exactly once. Structured updates
    are reported through callbacks; the parser holds no radio state itself.

      - Response:  'R<seq>|<rc>|<message>'  (or 'R<seq>|<payload>')
                   -> on_response(seq, rc, payload), plus on_identity(fields)
                      when the payload carries model/version/serial/callsign
                      and rc is absent or zero.
      - Status:    'S<handle>|<object> key=value ...'
                   object 'slice'     -> on_slice(slice_id or None, data)
                   object 'transmit'  -> on_transmit(data)
                   object 'interlock' -> on_interlock(state, reason)
                   object 'radio'     -> on_identity(fields)

    Anything else (V/H/M lines, garbage) is classified OTHER. Lines with fewer
    than two '|' separated fields are MALFORMED and dropped. Nothing in here
    raises on bad input: at worst a line is dropped.
    """

    def __init__(
        self,
        on_response: Optional[Callable[[Optional[int], Optional[int], str], None]] = None,
        on_identity: Optional[Callable[[Dict[str, str]], None]] = None,
        on_slice: Optional[Callable[[Optional[int], dict], None]] = None,
        on_transmit: Optional[Callable[[dict], None]] = None,
        on_interlock: Optional[Callable[[Optional[str], Optional[str]], None]] = None,
    ):
        self._on_response = on_response
        self._on_identity = on_identity
        self._on_slice = on_slice
        self._on_transmit = on_transmit
        self._on_interlock = on_interlock
        self._logger = get_logger()

    # Public entry point
    def feed(self, line: str) -> MessageKind:
        line = (line or "").strip()
        if line.startswith("R"):
            return self._parse_response(line)
        if line.startswith("S"):
            return self._parse_status(line)
        if line:
            self._logger.debug(f"[PARSER] Unclassified line: {line}")
        return MessageKind.OTHER

    # ----------- Responses -----------

    def _parse_response(self, line: str) -> MessageKind:
        parts = line.split("|")
        if len(parts) < 2:
            self._logger.debug(f"[PARSER] Malformed response dropped: {line}")
            return MessageKind.MALFORMED

        token = parts[0]
        seq = int(token[1:]) if token[1:].isdecimal() else None

        rc: Optional[int] = None
        payload = parts[1]
        if len(parts) >= 3 and _RC_RE.match(parts[1]):
            rc = int(parts[1], 16)
            payload = parts[2]

        if self._on_response:
            self._on_response(seq, rc, payload)

        if rc in (None, 0):
            identity = self.parse_identity(payload)
            if identity and self._on_identity:
                self._on_identity(identity)
        return MessageKind.RESPONSE

    @staticmethod
    def parse_identity(payload: str) -> Dict[str, str]:
        """
        Pull identity fields out of a response/status payload:
          'model="FLEX-6400",chassis_serial="1234-5678",callsign=W1AW'
          'SmartSDR-MB=3.4.23.7542#PSoC-MBTRX=...'
          'model info'  (bare keyword followed by a word)
        """
        kv = parse_key_values(payload)
        out: Dict[str, str] = {}

        if kv.get("model"):
            out["model"] = kv["model"]
        else:
            m = _BARE_MODEL_RE.search(payload)
            if m:
                out["model"] = m.group(1)

        version = kv.get("version") or kv.get("SmartSDR-MB")
        if version:
            out["version"] = version
        else:
            m = _BARE_VERSION_RE.search(payload)
            if m:
                out["version"] = m.group(1)

        serial = kv.get("chassis_serial") or kv.get("serial")
        if serial:
            out["serial"] = serial
        if kv.get("callsign"):
            out["callsign"] = kv["callsign"]
        if kv.get("nickname"):
            out["nickname"] = kv["nickname"]
        return out

    # ----------- Status -----------

    def _parse_status(self, line: str) -> MessageKind:
        parts = line.split("|")
        if len(parts) < 2:
            self._logger.debug(f"[PARSER] Malformed status dropped: {line}")
            return MessageKind.MALFORMED

        payload = parts[1]
        m = _STATUS_OBJECT_RE.search(payload)
        if not m:
            self._logger.debug(f"[PARSER] Status ignored: {payload}")
            return MessageKind.STATUS

        obj = m.group(1)
        if obj == "slice":
            self._parse_slice(payload)
        elif obj == "transmit":
            if self._on_transmit:
                data = self.parse_transmit_fields(payload)
                if data:
                    self._on_transmit(data)
        elif obj == "interlock":
            self._parse_interlock(payload)
        elif obj == "radio":
            identity = self.parse_identity(payload)
            if identity and self._on_identity:
                self._on_identity(identity)
        return MessageKind.STATUS

    def _parse_slice(self, payload: str):
        """
        Matches slice updates like:
          'slice 0 RF_frequency=14.074000 mode=DIGU active=1 rxant=ANT1 txant=ANT1 wide=0 lock=0'
        A slice line without an id applies to the current slice.
        """
        m_id = _SLICE_ID_RE.search(payload)
        sid = int(m_id.group(1)) if m_id else None
        kv = parse_key_values(payload)
        data = {}

        # Frequency can be 'RF_frequency' (MHz) or occasionally 'freq'
        freq = kv.get("RF_frequency") or kv.get("freq")
        if freq:
            hz = _mhz(freq)
            if hz is not None:
                data["frequency"] = hz
        if kv.get("mode"):
            data["mode"] = kv["mode"].upper()
        for key, field_name in (("active", "active"), ("wide", "wide"), ("lock", "locked"), ("in_use", "in_use")):
            if key in kv:
                flag = _flag(kv[key])
                if flag is not None:
                    data[field_name] = flag
        if kv.get("rxant"):
            data["rxant"] = kv["rxant"]
        if kv.get("txant"):
            data["txant"] = kv["txant"]

        if self._on_slice:
            self._on_slice(sid, data)

    @staticmethod
    def parse_transmit_fields(payload: str) -> dict:
        """
        Matches transmit lines like:
          'transmit freq=14.074000 rfpower=100 tunepower=10 tune=0 mox=0'
        """
        kv = parse_key_values(payload)
        data = {}
        if kv.get("freq"):
            hz = _mhz(kv["freq"])
            if hz is not None:
                data["frequency"] = hz
        if kv.get("rfpower"):
            power = _int(kv["rfpower"])
            if power is not None:
                data["power"] = power
        for key in ("tune", "mox"):
            if key in kv:
                flag = _flag(kv[key])
                if flag is not None:
                    data[key] = flag
        return data

    def _parse_interlock(self, payload: str):
        """
        Matches interlock lines like:
          'interlock state=READY reason='
          'interlock state=TRANSMITTING source=TUNE'
        """
        kv = parse_key_values(payload)
        state = kv.get("state") or None
        reason = kv.get("reason") if "reason" in kv else None
        if (state is not None or reason is not None) and self._on_interlock:
            self._on_interlock(state, reason)
