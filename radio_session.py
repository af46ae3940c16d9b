# radio_session.py
"""
Radio session manager: owns at most one driver and republishes its events.

The application builds one RadioSessionManager at start-up and hands it to
whatever needs radio access. Drivers never outlive a reconnect: connect()
always tears the previous driver down (polling thread joined) before the next
one is built, and events from a replaced driver are dropped at the relay.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from events import EventBus
from loghandler import get_logger
from radio_interface import BaseRadioDriver, BaseRadioError
from radio_models import RadioConnectionConfig, RadioData
from radio_registry import create_driver, get_driver_entry

RELAYED_EVENTS = ("data-update", "error", "disconnected")


class RadioSessionManager:
    def __init__(
        self,
        settings=None,
        events: Optional[EventBus] = None,
        driver_options: Optional[Dict[str, Any]] = None,
    ):
        self.logger = get_logger()
        self.settings = settings
        self.events = events or EventBus(name="session")
        self._driver_options = dict(driver_options or {})

        self._driver: Optional[BaseRadioDriver] = None
        self._subscriptions: List[Tuple[str, Any]] = []
        self._config: Optional[RadioConnectionConfig] = None
        self.last_error: Optional[BaseRadioError] = None

        # _lock guards the driver reference; _connect_lock serialises connect() calls.
        self._lock = threading.Lock()
        self._connect_lock = threading.Lock()

    # ------------- Public API -------------

    def connect(self, config: Union[RadioConnectionConfig, Mapping[str, Any]]) -> bool:
        """
        Connect to the radio described by config, replacing any active session.

        Returns False (and keeps the error in last_error) when the radio cannot
        be reached or does not initialize. Raises UnsupportedRadioTypeError for
        a radio family with no registered driver.
        """
        if not isinstance(config, RadioConnectionConfig):
            config = RadioConnectionConfig.from_dict(config)
        entry = get_driver_entry(config.type)

        with self._connect_lock:
            self.disconnect()

            options = dict(self._driver_options)
            options.setdefault("poll_interval", self._poll_interval_s())
            driver = create_driver(config.type, events=EventBus(name=entry["label"]), **options)
            with self._lock:
                self._driver = driver
                self._subscribe(driver)

            self.logger.info(
                f"[SESSION] Connecting {entry['label']} at "
                f"{config.host or entry['default_host']}:{config.port or entry['default_port']}"
            )
            try:
                driver.connect(config)
            except BaseRadioError as e:
                self.logger.error(f"[SESSION] Radio connection failed: {e}")
                self.last_error = e
                self._drop_driver(driver)
                return False

            with self._lock:
                if self._driver is not driver:
                    # disconnect() ran while we were initializing
                    self.last_error = None
                    return False
                self._config = config
            self.last_error = None
            self._remember(config, entry)
            return True

    def disconnect(self) -> None:
        with self._lock:
            driver = self._driver
            if driver is None:
                return
            self._unsubscribe(driver)
            self._driver = None
            self._config = None
        driver.disconnect()
        self.logger.info("[SESSION] Radio session closed")

    def get_current_data(self) -> Optional[RadioData]:
        driver = self._driver
        if driver is None or not driver.is_connected():
            return None
        try:
            return driver.get_current_data()
        except BaseRadioError as e:
            self.logger.debug(f"[SESSION] Failed to get radio data: {e}")
            return None

    def is_connected(self) -> bool:
        driver = self._driver
        return bool(driver and driver.is_connected())

    def get_current_config(self) -> Optional[RadioConnectionConfig]:
        return self._config

    def get_status(self):
        """Deep copy of the active driver's status model, or None."""
        driver = self._driver
        if driver is None or not hasattr(driver, "status_snapshot"):
            return None
        return driver.status_snapshot()

    # ------------- Internals -------------

    def _subscribe(self, driver: BaseRadioDriver):
        """Caller holds self._lock."""
        self._subscriptions = []
        for name in RELAYED_EVENTS:
            def relay(payload, _name=name, _driver=driver):
                if self._driver is _driver:
                    self.events.emit(_name, payload)
            driver.events.subscribe(name, relay)
            self._subscriptions.append((name, relay))

    def _unsubscribe(self, driver: BaseRadioDriver):
        """Caller holds self._lock."""
        for name, relay in self._subscriptions:
            driver.events.unsubscribe(name, relay)
        self._subscriptions = []

    def _drop_driver(self, driver: BaseRadioDriver):
        with self._lock:
            if self._driver is driver:
                self._unsubscribe(driver)
                self._driver = None
                self._config = None
        driver.disconnect()

    def _poll_interval_s(self) -> float:
        if self.settings is None:
            return 0.5
        ms = self.settings.get_radio_settings().get("poll_interval") or 500
        return max(1, int(ms)) / 1000.0

    def _remember(self, config: RadioConnectionConfig, entry: Dict[str, Any]):
        if self.settings is None:
            return
        self.settings.update_radio_settings(
            {
                "last_connected_type": config.type,
                "last_connected_host": config.host or entry["default_host"],
                "last_connected_port": config.port or entry["default_port"],
            }
        )
