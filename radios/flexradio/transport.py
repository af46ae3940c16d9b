import socket
import threading
from typing import Callable, Dict, Optional

from loghandler import get_logger
from radio_interface import ConnectTimeoutError, RadioConnectionError

from .parser import LineFramer


class FlexTransport:
    """
    TCP transport for Flex SmartSDR's ASCII line-based API.

    Responsibilities:
      - Open/close the TCP socket with low-latency options.
      - Background listener that frames '\\n'-terminated lines and hands each
        one, in arrival order, to the line callback.
      - Number outgoing commands ('C<seq>|<command>') and remember which
        command each sequence number belongs to, so replies can be correlated.
      - Report a peer close (on_close(None)) or a socket failure
        (on_close(exc)) exactly once. A local disconnect() reports nothing.

    This class is intentionally stateless regarding radio logic; it only
    knows sequences and networking.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        connect_timeout: float = 10.0,
        recv_timeout: float = 0.5,
        debug: bool = False,
        line_callback: Optional[Callable[[str], None]] = None,
        on_close: Optional[Callable[[Optional[Exception]], None]] = None,
    ):
        self.host = host
        self.port = int(port)
        self.connect_timeout = float(connect_timeout)
        self.recv_timeout = float(recv_timeout)
        self.debug = debug

        self._logger = get_logger()
        self._sock: Optional[socket.socket] = None
        self._sock_lock = threading.Lock()
        self._connected = False

        self._seq = 1
        self._seq_lock = threading.Lock()
        self._pending: Dict[int, str] = {}

        self._framer = LineFramer()

        self._listener: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()

        # Called for every received line (R/S/V/H/...)
        self._line_cb = line_callback
        self._close_cb = on_close

    # ---------- Public properties ----------

    @property
    def connected(self) -> bool:
        return self._connected

    # ---------- TCP setup ----------

    def _apply_tcp_options(self, s: socket.socket):
        """Best-effort low-latency + keepalive socket options."""
        try:
            s.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass
        try:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        except OSError:
            pass
        for opt, val in (("TCP_KEEPIDLE", 30), ("TCP_KEEPINTVL", 10), ("TCP_KEEPCNT", 3)):
            if hasattr(socket, opt):
                try:
                    s.setsockopt(socket.IPPROTO_TCP, getattr(socket, opt), val)
                except OSError:
                    pass

    def connect(self):
        """Open the socket, start the listener thread."""
        s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._apply_tcp_options(s)
        s.settimeout(self.connect_timeout)
        try:
            s.connect((self.host, self.port))
        except socket.timeout as e:
            s.close()
            self._logger.error(
                f"[NET] Connect timeout after {self.connect_timeout:.1f}s to {self.host}:{self.port}."
            )
            raise ConnectTimeoutError(f"Connection timeout to {self.host}:{self.port}") from e
        except OSError as e:
            s.close()
            self._logger.error(f"[NET] Connect error to {self.host}:{self.port}: {e}")
            raise RadioConnectionError(f"Could not connect to {self.host}:{self.port}: {e}") from e

        # Shorter read timeout for responsive listener.
        s.settimeout(self.recv_timeout)
        with self._sock_lock:
            self._sock = s
        self._connected = True

        self._stop_evt.clear()
        self._framer.reset()
        self._listener = threading.Thread(target=self._listener_loop, name="flex-transport", daemon=True)
        self._listener.start()

    def disconnect(self):
        """Stop the listener and close the socket. Safe to call repeatedly."""
        self._stop_evt.set()
        self._close_socket()
        if (
            self._listener
            and self._listener.is_alive()
            and self._listener is not threading.current_thread()
        ):
            self._listener.join(timeout=1.0)
        self._listener = None

    close = disconnect

    def _close_socket(self):
        with self._sock_lock:
            try:
                if self._sock:
                    try:
                        self._sock.shutdown(socket.SHUT_RDWR)
                    except OSError:
                        pass
                    self._sock.close()
            finally:
                self._sock = None
                self._connected = False

    # ---------- Receive ----------

    def _listener_loop(self):
        """Read chunks, frame them, dispatch every complete line."""
        failure: Optional[Exception] = None
        peer_closed = False
        try:
            while not self._stop_evt.is_set():
                s = self._sock
                if s is None:
                    break
                try:
                    chunk = s.recv(4096)
                except socket.timeout:
                    continue
                except OSError as e:
                    if not self._stop_evt.is_set():
                        self._logger.error(f"[NET] Listener error: {e}. Closing connection.")
                        failure = RadioConnectionError(f"Socket recv failed: {e}")
                    break

                if not chunk:
                    if not self._stop_evt.is_set():
                        self._logger.info(f"[NET] Connection closed by {self.host}:{self.port}")
                        peer_closed = True
                    break

                for line in self._framer.feed(chunk):
                    if self._stop_evt.is_set():
                        break
                    if self.debug:
                        self._logger.debug(f"[RECV] {line}")
                    if self._line_cb:
                        try:
                            self._line_cb(line)
                        except Exception as e:
                            # Parser bugs should not kill the network loop.
                            self._logger.error(f"[PARSER] callback failed: {e}")
        finally:
            self._close_socket()

        if (failure is not None or peer_closed) and not self._stop_evt.is_set() and self._close_cb:
            self._close_cb(failure)

    # ---------- Commands ----------

    def _next_seq(self) -> int:
        with self._seq_lock:
            s = self._seq
            self._seq += 1
            return s

    def send_command(self, command: str) -> int:
        """
        Send 'C<seq>|<command>' without waiting for the reply.

        Returns the sequence number; the matching 'R<seq>|...' line arrives
        through the line callback and command_for(seq) tells what it answers.
        """
        if not self.connected or not self._sock:
            raise RadioConnectionError("Transport is not connected")

        seq = self._next_seq()
        full = f"C{seq}|{command}\n"

        # Registered before sending: the reply may beat sendall() back.
        with self._seq_lock:
            self._pending[seq] = command

        failure: Optional[str] = None
        with self._sock_lock:
            s = self._sock
            if s is None:
                failure = "socket is closed"
            else:
                if self.debug:
                    self._logger.debug(f"[SEND] {full.strip()}")
                try:
                    s.sendall(full.encode())
                except OSError as e:
                    self._logger.error(f"[NET] Failed to send command '{command}': {e}")
                    failure = str(e)

        if failure is not None:
            self.command_for(seq)
            raise RadioConnectionError(f"Failed to send '{command}': {failure}")
        return seq

    def command_for(self, seq: Optional[int]) -> Optional[str]:
        """Pop the command text a reply sequence number belongs to (None if unknown)."""
        if seq is None:
            return None
        with self._seq_lock:
            return self._pending.pop(seq, None)
