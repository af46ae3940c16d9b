# companion.py
"""
Application wiring for the Nextlog companion.

CompanionApp is built once by main.run() and owns every long-lived piece:
settings store, radio session, WSJT-X listener, Nextlog client and the
reconnect supervisor. Nothing here is a module-level singleton, so tests can
build as many apps as they like.
"""

import threading
from typing import Any, Mapping, Optional, Tuple, Union

from contacts import Contact
from events import EventBus
from loghandler import get_contact_logger, get_logger, has_contact_logger
from nextlog_client import NextlogClient, NextlogResponse
from radio_models import RadioConnectionConfig, RadioData
from radio_session import RadioSessionManager
from settings_store import SettingsStore
from wsjtx import QSOLogged, WsjtxListener

DEFAULT_RECONNECT_DELAY_S = 5.0


class ReconnectSupervisor:
    """
    Re-establishes a radio session that dropped on its own.

    Only sessions handed to watch() are retried, and only while the radio
    setting auto_reconnect is on. Retries use a fixed delay; stop() or
    forget() cancels them.
    """

    def __init__(self, session: RadioSessionManager, settings: Optional[SettingsStore] = None,
                 delay: float = DEFAULT_RECONNECT_DELAY_S):
        self.logger = get_logger()
        self.session = session
        self.settings = settings
        self.delay = float(delay)

        self._config: Optional[RadioConnectionConfig] = None
        self._stop_evt = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

        session.events.subscribe("disconnected", self._on_session_lost)
        session.events.subscribe("error", self._on_session_lost)

    @property
    def retrying(self) -> bool:
        t = self._thread
        return t is not None and t.is_alive()

    def watch(self, config: RadioConnectionConfig):
        with self._lock:
            self._config = config
            self._stop_evt.clear()

    def forget(self):
        with self._lock:
            self._config = None
        self._stop_evt.set()

    def stop(self):
        self.forget()
        t = self._thread
        if t and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=self.delay + 2.0)
        self.session.events.unsubscribe("disconnected", self._on_session_lost)
        self.session.events.unsubscribe("error", self._on_session_lost)

    def _auto_reconnect_enabled(self) -> bool:
        if self.settings is None:
            return True
        return bool(self.settings.get_radio_settings().get("auto_reconnect", True))

    def _on_session_lost(self, payload=None):
        with self._lock:
            config = self._config
            if config is None or self._stop_evt.is_set():
                return
            if not self._auto_reconnect_enabled():
                self.logger.info("[SESSION] Radio connection lost; auto reconnect is off")
                return
            if self.retrying:
                return
            self.logger.warning(
                f"[SESSION] Radio connection lost ({payload}); retrying every {self.delay:g} s"
            )
            self._thread = threading.Thread(
                target=self._retry_loop, args=(config,), name="radio-reconnect", daemon=True
            )
            self._thread.start()

    def _retry_loop(self, config: RadioConnectionConfig):
        attempt = 0
        while not self._stop_evt.wait(self.delay):
            attempt += 1
            self.logger.info(f"[SESSION] Reconnect attempt {attempt} to {config.host}:{config.port}")
            if self.session.connect(config):
                self.logger.info(f"[SESSION] Reconnected after {attempt} attempt(s)")
                return


class CompanionApp:
    def __init__(
        self,
        settings_path: str = "settings.yml",
        *,
        enable_wsjtx: Optional[bool] = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY_S,
        settings: Optional[SettingsStore] = None,
        session: Optional[RadioSessionManager] = None,
        nextlog: Optional[NextlogClient] = None,
    ):
        self.logger = get_logger()
        self.events = EventBus(name="app")
        self.settings = settings or SettingsStore(settings_path)
        self.session = session or RadioSessionManager(settings=self.settings)
        self.nextlog = nextlog or NextlogClient.from_settings(self.settings.get_nextlog_settings())
        self.reconnect = ReconnectSupervisor(self.session, self.settings, delay=reconnect_delay)

        wsjtx_settings = self.settings.get_wsjtx_settings()
        if enable_wsjtx is None:
            enable_wsjtx = bool(wsjtx_settings.get("enabled", True))
        self.wsjtx: Optional[WsjtxListener] = None
        if enable_wsjtx:
            self.wsjtx = WsjtxListener(port=wsjtx_settings.get("udp_port", 2237))
            self.wsjtx.events.subscribe("contact-logged", self.handle_qso_logged)

        self.settings.events.subscribe("nextlog-settings-changed", self._on_nextlog_settings_changed)

    # ---------- Lifecycle ----------

    def start(self):
        if self.wsjtx is None:
            return
        try:
            self.wsjtx.start()
        except OSError as e:
            self.logger.error(f"[WSJTX] Listener not started: {e}")

    def close(self):
        self.reconnect.stop()
        self.session.disconnect()
        if self.wsjtx is not None:
            self.wsjtx.stop()
        self.logger.info("Companion shut down")

    # ---------- Radio ----------

    def default_radio_config(self) -> RadioConnectionConfig:
        radio = self.settings.get_radio_settings()
        return RadioConnectionConfig.from_dict(
            {
                "type": radio.get("last_connected_type") or "flexradio",
                "host": radio.get("last_connected_host"),
                "port": radio.get("last_connected_port"),
            }
        )

    def connect_radio(self, config: Union[RadioConnectionConfig, Mapping[str, Any], None] = None) -> bool:
        if config is None:
            config = self.default_radio_config()
        elif not isinstance(config, RadioConnectionConfig):
            config = RadioConnectionConfig.from_dict(config)
        self.reconnect.forget()
        ok = self.session.connect(config)
        if ok:
            self.reconnect.watch(config)
        return ok

    def disconnect_radio(self):
        self.reconnect.forget()
        self.session.disconnect()

    def snapshot(self) -> Optional[RadioData]:
        return self.session.get_current_data()

    # ---------- Contacts ----------

    def handle_qso_logged(self, msg: QSOLogged) -> Optional[Tuple[Contact, Optional[NextlogResponse]]]:
        if not self.settings.get_wsjtx_settings().get("auto_log", True):
            self.logger.debug(f"[WSJTX] auto_log off; ignoring QSO with {msg.dx_call}")
            return None

        contact = Contact.from_qso_logged(msg)
        response: Optional[NextlogResponse] = None
        if self.settings.get_nextlog_settings().get("auto_submit", False):
            response = self.nextlog.send_contact(contact)
            if not response.success:
                self.logger.warning(f"[NEXTLOG] Contact {contact.callsign} not submitted: {response.message}")

        submitted = bool(response and response.success)
        if has_contact_logger():
            get_contact_logger().info(contact.csv_row(submitted))
        self.events.emit("contact-processed", (contact, response))
        return contact, response

    def _on_nextlog_settings_changed(self, values):
        self.nextlog.update_config(api_url=values.get("api_url"), api_key=values.get("api_key"))
