import socket
import threading
import time

import pytest

from radio_models import RadioConnectionConfig

READY_SCRIPT = {
    "version": ["R{seq}|0|SmartSDR-MB=3.4.23.7542"],
    "info": ['R{seq}|0|model="FLEX-6400",chassis_serial="1234-5678",callsign=N0CALL,nickname="Shack"'],
    "slice list": [
        "R{seq}|0|0",
        "S1|slice 0 RF_frequency=14.074000 mode=digu active=1 rxant=ANT1 txant=ANT1 wide=0 lock=0",
    ],
    "transmit info": ["R{seq}|0|freq=14.074000 rfpower=100 tunepower=10 tune=0"],
}


def wait_until(predicate, timeout=2.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def free_port() -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


class FakeRadioServer:
    """
    Loopback SmartSDR stand-in.

    Accepts one client at a time, records every command it receives and
    answers from `script` (command -> reply lines, '{seq}' filled in).
    Commands missing from the script get 'R<seq>|0|' unless silent=True.
    """

    def __init__(self, script=None, greeting=("V1.4.0.0", "H2A3B4C5D"), silent=False):
        self.script = dict(script or {})
        self.greeting = list(greeting)
        self.silent = silent
        self.commands = []

        self._cond = threading.Condition()
        self._send_lock = threading.Lock()
        self._client = None
        self._stop = threading.Event()

        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(1)
        self._sock.settimeout(0.1)
        self.port = self._sock.getsockname()[1]

        self._thread = threading.Thread(target=self._serve, name="fake-radio", daemon=True)
        self._thread.start()

    @property
    def config(self) -> RadioConnectionConfig:
        return RadioConnectionConfig(type="flexradio", host="127.0.0.1", port=self.port)

    def _serve(self):
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(0.1)
            self._client = conn
            for line in self.greeting:
                self.push(line)
            self._read(conn)

    def _read(self, conn):
        buf = b""
        while not self._stop.is_set():
            try:
                chunk = conn.recv(4096)
            except socket.timeout:
                continue
            except OSError:
                return
            if not chunk:
                return
            buf += chunk
            while b"\n" in buf:
                raw, buf = buf.split(b"\n", 1)
                self._handle(raw.decode().strip())

    def _handle(self, line):
        token, _, command = line.partition("|")
        seq = token[1:]
        with self._cond:
            self.commands.append(command)
            self._cond.notify_all()
        if self.silent:
            return
        for reply in self.script.get(command, ["R{seq}|0|"]):
            self.push(reply.format(seq=seq))

    def push(self, line: str):
        conn = self._client
        if conn is None:
            return
        with self._send_lock:
            try:
                conn.sendall((line + "\n").encode())
            except OSError:
                pass

    def wait_for_commands(self, count: int, timeout: float = 2.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: len(self.commands) >= count, timeout)

    def drop_client(self):
        conn, self._client = self._client, None
        if conn is not None:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            conn.close()

    def stop(self):
        self._stop.set()
        self.drop_client()
        self._sock.close()
        self._thread.join(timeout=2.0)


class FakeTransport:
    """
    In-memory transport with FlexTransport's constructor and surface.

    Replies from `replies` are delivered synchronously from send_command(),
    so driver tests need no sockets and no sleeps.
    """

    def __init__(self, host, port, *, connect_timeout=10.0, debug=False,
                 line_callback=None, on_close=None, replies=None, fail_with=None, log=None):
        self.host = host
        self.port = port
        self.line_callback = line_callback
        self.on_close = on_close
        self.replies = READY_SCRIPT if replies is None else replies
        self.fail_with = fail_with
        self.log = log if log is not None else []
        self.sent = []
        self.connected = False
        self._seq = 0
        self._pending = {}

    def connect(self):
        if self.fail_with is not None:
            raise self.fail_with
        self.connected = True
        self.log.append(("connect", id(self)))

    def disconnect(self):
        if self.connected:
            self.log.append(("disconnect", id(self)))
        self.connected = False

    close = disconnect

    def send_command(self, command):
        self._seq += 1
        seq = self._seq
        self._pending[seq] = command
        self.sent.append(command)
        for reply in self.replies.get(command, []):
            self.deliver(reply.format(seq=seq))
        return seq

    def command_for(self, seq):
        if seq is None:
            return None
        return self._pending.pop(seq, None)

    def deliver(self, line):
        if self.line_callback:
            self.line_callback(line)

    def peer_close(self, error=None):
        self.connected = False
        if self.on_close:
            self.on_close(error)


class FakeTransportFactory:
    """Builds FakeTransports and keeps them, plus a shared connect/disconnect log."""

    def __init__(self, replies=None, fail_with=None):
        self.replies = replies
        self.fail_with = fail_with
        self.transports = []
        self.log = []

    def __call__(self, host, port, **kwargs):
        t = FakeTransport(host, port, replies=self.replies, fail_with=self.fail_with, log=self.log, **kwargs)
        self.transports.append(t)
        return t

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


@pytest.fixture
def fake_radio():
    server = FakeRadioServer(READY_SCRIPT)
    yield server
    server.stop()


@pytest.fixture
def silent_radio():
    server = FakeRadioServer(greeting=(), silent=True)
    yield server
    server.stop()


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
def flex_config():
    return RadioConnectionConfig(type="flexradio", host="10.0.0.5", port=4992)
