# settings_store.py
"""
User settings persisted as YAML (settings.yml by default).

Three sections, each a flat mapping: radio, nextlog, wsjtx. Values missing
from the file are filled from DEFAULT_SETTINGS. Every update is written back
immediately and published as '<section>-settings-changed' on self.events.
"""

import copy
import os
import threading
from typing import Any, Dict, Mapping, Optional

import yaml

from config_validation import ConfigValidationError
from events import EventBus
from loghandler import get_logger

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "radio": {
        "last_connected_type": "flexradio",
        "last_connected_host": "192.168.1.100",
        "last_connected_port": 4992,
        "auto_reconnect": True,
        "poll_interval": 500,
    },
    "nextlog": {
        "api_url": "https://nextlog.app/api/v1",
        "api_key": "",
        "auto_submit": False,
    },
    "wsjtx": {
        "udp_port": 2237,
        "auto_log": True,
        "enabled": True,
    },
}


class SettingsStore:
    def __init__(self, path: str = "settings.yml", events: Optional[EventBus] = None):
        self.logger = get_logger()
        self.path = path
        self.events = events or EventBus(name="settings")
        self._lock = threading.Lock()
        self._settings: Dict[str, Dict[str, Any]] = copy.deepcopy(DEFAULT_SETTINGS)
        self._load()
        self.logger.debug(f"[SETTINGS] Settings file location: {self.path}")

    # ---------- Persistence ----------

    def _load(self):
        if not os.path.exists(self.path):
            self.logger.info("[SETTINGS] No settings file yet; using defaults")
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            self.logger.error(f"[SETTINGS] Failed to load {self.path}, using defaults: {e}")
            return
        if not isinstance(loaded, dict):
            self.logger.error(f"[SETTINGS] {self.path} does not hold a mapping; using defaults")
            return

        for section, defaults in DEFAULT_SETTINGS.items():
            values = loaded.get(section) or {}
            if not isinstance(values, dict):
                self.logger.warning(f"[SETTINGS] Section '{section}' is not a mapping; using defaults")
                continue
            merged = dict(defaults)
            merged.update({k: v for k, v in values.items() if k in defaults})
            self._settings[section] = merged
        self.logger.info(f"[SETTINGS] Loaded settings from {self.path}")

    def _save(self):
        """Write the current settings; failures are logged, not raised."""
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                yaml.safe_dump(self._settings, f, default_flow_style=False, sort_keys=True)
        except OSError as e:
            self.logger.error(f"[SETTINGS] Failed to save settings to {self.path}: {e}")

    def is_initialized(self) -> bool:
        return os.path.exists(self.path)

    # ---------- Generic section access ----------

    def get_all_settings(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._settings)

    def get_section(self, section: str) -> Dict[str, Any]:
        with self._lock:
            if section not in self._settings:
                raise ConfigValidationError(f"Unknown settings section: {section}")
            return dict(self._settings[section])

    def update_section(self, section: str, partial: Mapping[str, Any]) -> Dict[str, Any]:
        with self._lock:
            if section not in self._settings:
                raise ConfigValidationError(f"Unknown settings section: {section}")
            unknown = set(partial) - set(DEFAULT_SETTINGS[section])
            if unknown:
                raise ConfigValidationError(
                    f"Unknown {section} setting(s): {', '.join(sorted(unknown))}"
                )
            updated = dict(self._settings[section])
            updated.update(partial)
            self._settings[section] = updated
            self._save()
        self.logger.info(f"[SETTINGS] {section} settings updated: {updated}")
        self.events.emit(f"{section}-settings-changed", dict(updated))
        return dict(updated)

    def reset_section(self, section: str) -> Dict[str, Any]:
        with self._lock:
            if section not in DEFAULT_SETTINGS:
                raise ConfigValidationError(f"Unknown settings section: {section}")
            self._settings[section] = dict(DEFAULT_SETTINGS[section])
            self._save()
            values = dict(self._settings[section])
        self.logger.info(f"[SETTINGS] {section} settings reset to defaults")
        self.events.emit(f"{section}-settings-changed", dict(values))
        return values

    def reset_to_defaults(self) -> None:
        with self._lock:
            self._settings = copy.deepcopy(DEFAULT_SETTINGS)
            self._save()
            snapshot = copy.deepcopy(self._settings)
        self.logger.info("[SETTINGS] All settings reset to defaults")
        self.events.emit("settings-reset", snapshot)

    # ---------- Named sections ----------

    def get_radio_settings(self) -> Dict[str, Any]:
        return self.get_section("radio")

    def update_radio_settings(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        return self.update_section("radio", partial)

    def get_nextlog_settings(self) -> Dict[str, Any]:
        return self.get_section("nextlog")

    def update_nextlog_settings(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        return self.update_section("nextlog", partial)

    def get_wsjtx_settings(self) -> Dict[str, Any]:
        return self.get_section("wsjtx")

    def update_wsjtx_settings(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        return self.update_section("wsjtx", partial)
