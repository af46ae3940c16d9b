import socket
import threading
import time
from typing import Optional, Tuple

from events import EventBus
from loghandler import get_logger

from .codec import (
    Close,
    Decode,
    Heartbeat,
    LoggedADIF,
    QSOLogged,
    Status,
    WsjtxDecodeError,
    decode_message,
    encode_heartbeat,
)

DEFAULT_WSJTX_PORT: int = 2237
CLIENT_ID = "nextlog-companion"

# WSJT-X sends a heartbeat every 15 s.
RUNNING_WINDOW_S = 30.0


class WsjtxListener:
    """
    UDP listener for WSJT-X network messages.

    Publishes on self.events:
      - "heartbeat"      Heartbeat
      - "status-update"  Status
      - "decode"         Decode
      - "contact-logged" QSOLogged
      - "adif-logged"    LoggedADIF
      - "close"          Close
      - "error"          OSError from the socket (listener stops)

    Undecodable datagrams are logged and dropped; they never stop the loop.
    """

    def __init__(
        self,
        port: int = DEFAULT_WSJTX_PORT,
        host: str = "0.0.0.0",
        *,
        events: Optional[EventBus] = None,
        recv_timeout: float = 0.5,
    ):
        self.logger = get_logger()
        self.host = host
        self.port = int(port)
        self.recv_timeout = float(recv_timeout)
        self.events = events or EventBus(name="wsjtx")

        self._sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()

        self._status: Optional[Status] = None
        self._peer: Optional[Tuple[str, int]] = None
        self._last_seen: Optional[float] = None

    # ---------- Lifecycle ----------

    @property
    def bound_port(self) -> Optional[int]:
        """Actual UDP port (useful when constructed with port=0)."""
        s = self._sock
        return s.getsockname()[1] if s else None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((self.host, self.port))
        except OSError:
            s.close()
            self.logger.error(f"[WSJTX] Could not bind UDP {self.host}:{self.port}")
            raise
        s.settimeout(self.recv_timeout)
        self._sock = s
        self._stop_evt.clear()
        self._thread = threading.Thread(target=self._loop, name="wsjtx-listener", daemon=True)
        self._thread.start()
        self.logger.info(f"[WSJTX] UDP listener started on port {self.bound_port}")

    def stop(self):
        self._stop_evt.set()
        thread, self._thread = self._thread, None
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        s, self._sock = self._sock, None
        if s:
            s.close()

    destroy = stop

    # ---------- Receive ----------

    def _loop(self):
        while not self._stop_evt.is_set():
            s = self._sock
            if s is None:
                break
            try:
                data, addr = s.recvfrom(65535)
            except socket.timeout:
                continue
            except OSError as e:
                if not self._stop_evt.is_set():
                    self.logger.error(f"[WSJTX] UDP socket error: {e}")
                    self.events.emit("error", e)
                break
            self.handle_datagram(data, addr)

    def handle_datagram(self, data: bytes, addr: Optional[Tuple[str, int]] = None):
        try:
            msg = decode_message(data)
        except WsjtxDecodeError as e:
            self.logger.warning(f"[WSJTX] Dropping datagram from {addr}: {e}")
            return

        self._peer = addr or self._peer
        self._last_seen = time.monotonic()

        if isinstance(msg, Heartbeat):
            self.logger.debug(f"[WSJTX] Heartbeat from {msg.id} v{msg.version}")
            self.events.emit("heartbeat", msg)
        elif isinstance(msg, Status):
            self._status = msg
            self.events.emit("status-update", msg)
        elif isinstance(msg, Decode):
            self.events.emit("decode", msg)
        elif isinstance(msg, QSOLogged):
            self.logger.info(f"[WSJTX] QSO logged: {msg.dx_call} {msg.mode} {msg.tx_frequency} Hz")
            self.events.emit("contact-logged", msg)
        elif isinstance(msg, LoggedADIF):
            self.logger.debug("[WSJTX] ADIF logged message received")
            self.events.emit("adif-logged", msg)
        elif isinstance(msg, Close):
            self.logger.info(f"[WSJTX] {msg.id} closed")
            self._status = None
            self._last_seen = None
            self.events.emit("close", msg)
        else:
            self.logger.debug(f"[WSJTX] Unhandled message type {msg.type} from {msg.id}")

    # ---------- Queries / outgoing ----------

    def get_status(self) -> Optional[Status]:
        return self._status

    def is_wsjtx_running(self) -> bool:
        return self._last_seen is not None and (time.monotonic() - self._last_seen) < RUNNING_WINDOW_S

    def send_heartbeat(self, version: str = "1.0.0") -> bool:
        """Answer WSJT-X with our own heartbeat; False if no peer is known yet."""
        s, peer = self._sock, self._peer
        if s is None or peer is None:
            return False
        try:
            s.sendto(encode_heartbeat(CLIENT_ID, version), peer)
        except OSError as e:
            self.logger.warning(f"[WSJTX] Heartbeat to {peer} failed: {e}")
            return False
        return True
