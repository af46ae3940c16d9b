import pytest
import yaml

from config_validation import ConfigValidationError
from settings_store import DEFAULT_SETTINGS, SettingsStore


@pytest.fixture
def store(tmp_path):
    return SettingsStore(str(tmp_path / "settings.yml"))


def test_defaults_without_file(store):
    assert not store.is_initialized()
    assert store.get_all_settings() == DEFAULT_SETTINGS
    assert store.get_radio_settings()["poll_interval"] == 500
    assert store.get_nextlog_settings()["api_url"] == "https://nextlog.app/api/v1"
    assert store.get_wsjtx_settings()["udp_port"] == 2237


def test_update_persists_and_reloads(store, tmp_path):
    store.update_nextlog_settings({"api_key": "secret", "auto_submit": True})
    assert store.is_initialized()

    reloaded = SettingsStore(str(tmp_path / "settings.yml"))
    nextlog = reloaded.get_nextlog_settings()
    assert nextlog["api_key"] == "secret"
    assert nextlog["auto_submit"] is True
    assert nextlog["api_url"] == "https://nextlog.app/api/v1"


def test_update_publishes_section_event(store):
    seen = []
    store.events.subscribe("wsjtx-settings-changed", seen.append)
    store.update_wsjtx_settings({"udp_port": 2238})
    assert seen == [{"udp_port": 2238, "auto_log": True, "enabled": True}]


def test_unknown_key_rejected(store):
    with pytest.raises(ConfigValidationError):
        store.update_radio_settings({"baud": 9600})
    assert "baud" not in store.get_radio_settings()


def test_unknown_section_rejected(store):
    with pytest.raises(ConfigValidationError):
        store.get_section("amplifier")


def test_getters_return_copies(store):
    radio = store.get_radio_settings()
    radio["poll_interval"] = 1
    assert store.get_radio_settings()["poll_interval"] == 500

    everything = store.get_all_settings()
    everything["wsjtx"]["udp_port"] = 1
    assert store.get_wsjtx_settings()["udp_port"] == 2237


def test_reset_section_and_reset_all(store):
    store.update_radio_settings({"auto_reconnect": False})
    store.update_wsjtx_settings({"enabled": False})

    store.reset_section("radio")
    assert store.get_radio_settings()["auto_reconnect"] is True
    assert store.get_wsjtx_settings()["enabled"] is False

    reset = []
    store.events.subscribe("settings-reset", reset.append)
    store.reset_to_defaults()
    assert store.get_all_settings() == DEFAULT_SETTINGS
    assert reset == [DEFAULT_SETTINGS]


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text("radio: [unclosed\n", encoding="utf-8")
    assert SettingsStore(str(path)).get_all_settings() == DEFAULT_SETTINGS


def test_partial_file_is_merged_over_defaults(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text(
        yaml.safe_dump({"radio": {"last_connected_host": "10.0.0.2", "bogus": 1}, "wsjtx": "nope"}),
        encoding="utf-8",
    )
    store = SettingsStore(str(path))
    radio = store.get_radio_settings()
    assert radio["last_connected_host"] == "10.0.0.2"
    assert radio["last_connected_port"] == 4992
    assert "bogus" not in radio
    assert store.get_wsjtx_settings() == DEFAULT_SETTINGS["wsjtx"]
