import copy
import threading
from enum import Enum
from typing import Callable, Dict, List, Optional

from band_math import frequency_to_band
from loghandler import get_logger
from radio_interface import (
    BaseRadioDriver,
    BaseRadioError,
    InitializationTimeoutError,
    NoActiveSliceError,
    NotConnectedError,
    RadioConnectionError,
)
from radio_models import RadioConnectionConfig, RadioData

from .parser import FlexParser
from .status import RadioStatus
from .transport import FlexTransport

DEFAULT_FLEXRADIO_HOST: str = "192.168.1.100"
DEFAULT_FLEXRADIO_PORT: int = 4992

TransportFactory = Callable[..., FlexTransport]


class DriverState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_INIT = "awaiting_init"
    READY = "ready"
    POLLING = "polling"
    DISCONNECTED = "disconnected"


class FlexRadioDriver(BaseRadioDriver):
    """
    FlexRadio 6000-series driver (SmartSDR TCP API).

    Composition:
      - FlexTransport: networking, command sequencing, listener thread.
      - FlexParser: classifies lines and reports updates via callbacks.
      - RadioStatus: last-known state, mutated only from parser callbacks.

    One instance serves one connection:
      IDLE -> CONNECTING -> AWAITING_INIT -> READY -> POLLING -> DISCONNECTED

    Threads: the transport listener mutates the status model, the polling
    thread reads it. Both go through self._cond, which also carries the
    "first slice seen" notification that ends the initialization wait.
    """

    name = "FlexRadio 6400"
    models = ["6400", "6400M", "6500", "6600", "6600M", "6700"]

    BOOTSTRAP_COMMANDS = ("version", "info", "slice list", "transmit info")
    SUBSCRIPTIONS = ("sub slice all", "sub tx all", "sub radio all", "sub interlock all")

    def __init__(
        self,
        events=None,
        *,
        connect_timeout: float = 10.0,
        init_timeout: float = 5.0,
        poll_interval: float = 0.5,
        debug: bool = False,
        transport_factory: Optional[TransportFactory] = None,
    ):
        super().__init__(events)
        self.logger = get_logger()
        self.connect_timeout = float(connect_timeout)
        self.init_timeout = float(init_timeout)
        self.poll_interval = float(poll_interval)
        self.debug = debug
        self._transport_factory = transport_factory or FlexTransport

        self._cond = threading.Condition()
        self._state = DriverState.IDLE
        self._initialized = False
        self._config: Optional[RadioConnectionConfig] = None
        self._status: Optional[RadioStatus] = None
        self._transport: Optional[FlexTransport] = None
        self._close_error: Optional[Exception] = None

        self._poll_thread: Optional[threading.Thread] = None
        self._stop_poll = threading.Event()

        self.parser = FlexParser(
            on_response=self._on_response,
            on_identity=self._on_identity,
            on_slice=self._on_slice,
            on_transmit=self._on_transmit,
            on_interlock=self._on_interlock,
        )

    # ------------- Introspection -------------

    @property
    def state(self) -> DriverState:
        return self._state

    @property
    def config(self) -> Optional[RadioConnectionConfig]:
        return self._config

    def status_snapshot(self) -> Optional[RadioStatus]:
        """Deep copy of the status model (None once disconnected)."""
        with self._cond:
            return copy.deepcopy(self._status)

    # ------------- Connect/Disconnect -------------

    def connect(self, config: RadioConnectionConfig) -> bool:
        with self._cond:
            if self._state is not DriverState.IDLE:
                raise BaseRadioError(f"Driver already used (state={self._state.value}); create a new one")
            self._state = DriverState.CONNECTING
            self._config = config
            self._status = RadioStatus()

        host = config.host or DEFAULT_FLEXRADIO_HOST
        port = config.port or DEFAULT_FLEXRADIO_PORT
        self.logger.info(f"[STATE] Connecting to FlexRadio at {host}:{port}")

        transport = self._transport_factory(
            host,
            port,
            connect_timeout=self.connect_timeout,
            debug=self.debug,
            line_callback=self._on_line,
            on_close=self._on_transport_closed,
        )
        self._transport = transport

        try:
            transport.connect()
        except BaseRadioError:
            with self._cond:
                self._state = DriverState.DISCONNECTED
                self._status = None
            self._transport = None
            raise

        with self._cond:
            if self._state is DriverState.DISCONNECTED:
                cancelled = True
            else:
                cancelled = False
                self._state = DriverState.AWAITING_INIT
        if cancelled:
            transport.disconnect()
            raise RadioConnectionError("Disconnected while connecting")

        self.logger.info(f"[STATE] Connected to FlexRadio at {host}:{port}; sending bootstrap commands")
        for cmd in self.BOOTSTRAP_COMMANDS + self.SUBSCRIPTIONS:
            try:
                transport.send_command(cmd)
            except RadioConnectionError:
                with self._cond:
                    if self._state is DriverState.DISCONNECTED:
                        raise RadioConnectionError("Connection lost during initialization") from self._close_error
                raise

        with self._cond:
            ready = self._cond.wait_for(
                lambda: self._state is DriverState.DISCONNECTED or bool(self._status and self._status.slices),
                timeout=self.init_timeout,
            )
            if self._state is DriverState.DISCONNECTED:
                raise RadioConnectionError("Connection lost during initialization") from self._close_error
            if not ready:
                self.logger.error(f"[STATE] No slice status from {host}:{port} within {self.init_timeout:.1f}s")
                raise InitializationTimeoutError(
                    f"Radio at {host}:{port} did not initialize within {self.init_timeout:.1f}s"
                )
            self._initialized = True
            self._state = DriverState.READY
            self._dump_state("ready")

        self._start_polling()
        self.logger.info("[STATE] Connection to FlexRadio established.")
        return True

    def disconnect(self) -> None:
        with self._cond:
            if self._state is DriverState.DISCONNECTED:
                return
            was = self._state
            self._enter_disconnected()

        self._stop_polling()
        self._release_transport()
        if was is not DriverState.IDLE:
            self.logger.info("[STATE] Disconnected from FlexRadio")

    def is_connected(self) -> bool:
        transport = self._transport
        return (
            self._initialized
            and self._state in (DriverState.READY, DriverState.POLLING)
            and transport is not None
            and transport.connected
        )

    def get_current_data(self) -> RadioData:
        with self._cond:
            if not self._initialized or self._status is None:
                raise NotConnectedError("Not connected to radio")

            sl = self._status.current_slice()
            if sl is None:
                raise NoActiveSliceError("No active slice found")

            tx = self._status.transmit
            return RadioData(
                frequency=sl.frequency,
                mode=sl.mode,
                power=tx.power,
                band=frequency_to_band(sl.frequency),
                transmitting=tx.tune or tx.mox,
            )

    # ------------- Teardown helpers -------------

    def _enter_disconnected(self):
        """Caller holds self._cond."""
        self._state = DriverState.DISCONNECTED
        self._initialized = False
        self._status = None
        self._stop_poll.set()
        self._cond.notify_all()

    def _release_transport(self):
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.disconnect()

    # ------------- Polling -------------

    def _start_polling(self):
        with self._cond:
            if self._state is not DriverState.READY:
                return
            self._state = DriverState.POLLING
            self._stop_poll.clear()
            self._poll_thread = threading.Thread(target=self._poll_loop, name="flex-poll", daemon=True)
            self._poll_thread.start()
        self.logger.debug(f"[POLL] Polling every {self.poll_interval * 1000:.0f} ms")

    def _stop_polling(self):
        self._stop_poll.set()
        thread, self._poll_thread = self._poll_thread, None
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join()

    def _poll_loop(self):
        while not self._stop_poll.wait(self.poll_interval):
            try:
                data = self.get_current_data()
            except BaseRadioError as e:
                self.logger.debug(f"[POLL] Snapshot skipped: {e}")
                continue
            if self._stop_poll.is_set():
                break
            self.events.emit("data-update", data)

    # ------------- Transport callbacks -------------

    def _on_line(self, line: str):
        """Bridges framed lines from the transport into the parser (listener thread)."""
        with self._cond:
            if self._status is None or self._state in (DriverState.IDLE, DriverState.DISCONNECTED):
                return
            self.parser.feed(line)
            if self._status.ensure_default_slice():
                self.logger.debug("[PARSER] No slices reported yet; created default slice 0")
            self._cond.notify_all()

    def _on_transport_closed(self, error: Optional[Exception]):
        with self._cond:
            if self._state in (DriverState.IDLE, DriverState.DISCONNECTED):
                return
            self._close_error = error
            self._enter_disconnected()

        self._stop_polling()
        self._release_transport()
        if error is not None:
            self.logger.error(f"[STATE] FlexRadio connection failed: {error}")
            self.events.emit("error", error)
        else:
            self.logger.warning("[STATE] FlexRadio closed the connection")
            self.events.emit("disconnected", None)

    # ------------- Parser callbacks (self._cond held) -------------

    def _on_response(self, seq: Optional[int], rc: Optional[int], payload: str):
        transport = self._transport
        command = transport.command_for(seq) if transport else None
        if rc not in (None, 0):
            self.logger.warning(f"[ACK] rc=0x{rc:08X} cmd='{command or '?'}' resp='{payload}'")
            return
        if self.debug:
            self.logger.debug(f"[ACK] seq={seq} cmd='{command or '?'}' payload='{payload}'")

        if command == "slice list":
            for token in payload.split():
                if token.isdecimal():
                    self._status.upsert_slice(int(token))
        elif command == "transmit info":
            data = FlexParser.parse_transmit_fields(payload)
            if data:
                self._on_transmit(data)

    def _on_identity(self, fields: Dict[str, str]):
        radio = self._status.radio
        for key, value in fields.items():
            if value and getattr(radio, key, None) != value:
                setattr(radio, key, value)
                self.logger.info(f"[STATE] radio {key}={value}")

    def _on_slice(self, sid: Optional[int], data: dict):
        if sid is not None and data.get("in_use") is False:
            if self._status.remove_slice(sid):
                self.logger.info(f"[SLICE] Slice {sid} removed")
            return

        if sid is None:
            self._status.ensure_default_slice()
            sl = self._status.current_slice()
        else:
            sl = self._status.upsert_slice(sid)

        for key in ("frequency", "mode", "active", "rxant", "txant", "wide", "locked"):
            if key in data:
                setattr(sl, key, data[key])

        if data.get("active"):
            self.logger.debug(f"[SLICE] Active slice now: {sl.id}")

    def _on_transmit(self, data: dict):
        tx = self._status.transmit
        if "frequency" in data:
            tx.frequency = data["frequency"]
        if "power" in data:
            tx.power = data["power"]
        if "tune" in data:
            tx.tune = data["tune"]
        if "mox" in data:
            tx.mox = data["mox"]

    def _on_interlock(self, state: Optional[str], reason: Optional[str]):
        interlock = self._status.interlock
        if state is not None:
            interlock.state = state
        if reason is not None:
            interlock.reason = reason

    # ------------- Utilities -------------

    def _dump_state(self, tag: str):
        st = self._status
        slices: List[str] = [f"{s.id}:{s.frequency}Hz/{s.mode or '-'}{'*' if s.active else ''}" for s in st.slices]
        self.logger.info(
            f"[STATE:{tag}] model={st.radio.model or '?'} version={st.radio.version or '?'} "
            f"slices=[{', '.join(slices)}] power={st.transmit.power}W interlock={st.interlock.state}"
        )
