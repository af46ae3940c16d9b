from datetime import datetime, timezone
from unittest import mock

import pytest

import companion
from companion import CompanionApp
from conftest import FakeTransportFactory, wait_until
from events import EventBus
from loghandler import clear_old_logs
from nextlog_client import NextlogResponse
from radio_session import RadioSessionManager
from settings_store import SettingsStore
from ui_status import format_radio_line
from radio_models import RadioData
from utils import fmt_hz, pretty_duration
from wsjtx import QSOLogged

ON = datetime(2024, 5, 1, 18, 30, 5, tzinfo=timezone.utc)


def qso():
    return QSOLogged(
        id="WSJT-X", date_time_off=ON, dx_call="k1abc", dx_grid="FN42", tx_frequency=14_074_000,
        mode="FT8", report_sent="-10", report_received="-12", tx_power="", comments="", name="",
        date_time_on=ON, operator_call="", my_call="N0CALL", my_grid="EM10", exchange_sent="",
        exchange_received="", adif_propagation_mode="",
    )


@pytest.fixture
def settings(tmp_path):
    return SettingsStore(str(tmp_path / "settings.yml"))


@pytest.fixture
def factory():
    return FakeTransportFactory()


@pytest.fixture
def app(settings, factory):
    session = RadioSessionManager(
        settings=settings,
        driver_options={"transport_factory": factory, "init_timeout": 0.3, "poll_interval": 0.02},
    )
    nextlog = mock.Mock()
    nextlog.send_contact.return_value = NextlogResponse(success=True, message="ok", contact_id="1")
    instance = CompanionApp(settings=settings, session=session, nextlog=nextlog,
                            enable_wsjtx=False, reconnect_delay=0.05)
    yield instance
    instance.close()


# ---------- Contacts ----------

def test_contact_journaled_without_submit(app, monkeypatch):
    journal = mock.Mock()
    monkeypatch.setattr(companion, "has_contact_logger", lambda: True)
    monkeypatch.setattr(companion, "get_contact_logger", lambda: journal)

    contact, response = app.handle_qso_logged(qso())

    assert response is None
    app.nextlog.send_contact.assert_not_called()
    journal.info.assert_called_once_with(contact.csv_row(False))


def test_contact_submitted_when_auto_submit(app):
    app.settings.update_nextlog_settings({"auto_submit": True})
    processed = []
    app.events.subscribe("contact-processed", processed.append)

    contact, response = app.handle_qso_logged(qso())

    app.nextlog.send_contact.assert_called_once_with(contact)
    assert response.success
    assert processed == [(contact, response)]


def test_auto_log_off_ignores_contacts(app):
    app.settings.update_wsjtx_settings({"auto_log": False})
    assert app.handle_qso_logged(qso()) is None


def test_nextlog_settings_change_reconfigures_client(app):
    app.settings.update_nextlog_settings({"api_key": "new-key"})
    app.nextlog.update_config.assert_called_with(api_url="https://nextlog.app/api/v1", api_key="new-key")


def test_wsjtx_listener_wired_from_settings(settings, factory):
    settings.update_wsjtx_settings({"udp_port": 2240})
    instance = CompanionApp(settings=settings, nextlog=mock.Mock())
    try:
        assert instance.wsjtx.port == 2240
        assert instance.wsjtx.events.listener_count("contact-logged") == 1
    finally:
        instance.close()


# ---------- Radio + reconnect ----------

def test_connect_radio_uses_last_connected_settings(app, factory):
    app.settings.update_radio_settings({"last_connected_host": "10.9.8.7", "last_connected_port": 4993})
    assert app.connect_radio()
    assert (factory.last.host, factory.last.port) == ("10.9.8.7", 4993)
    assert app.snapshot().frequency == 14_074_000


def test_reconnects_after_radio_drops(app, factory):
    assert app.connect_radio({"type": "flexradio", "host": "10.0.0.5", "port": 4992})
    factory.last.peer_close(None)
    assert not app.session.is_connected()

    assert wait_until(lambda: app.session.is_connected(), timeout=3.0)
    assert len(factory.transports) >= 2


def test_no_reconnect_when_disabled(app, factory):
    app.settings.update_radio_settings({"auto_reconnect": False})
    app.connect_radio({"type": "flexradio", "host": "10.0.0.5", "port": 4992})
    factory.last.peer_close(RuntimeError("boom"))
    assert not wait_until(lambda: app.session.is_connected(), timeout=0.3)
    assert len(factory.transports) == 1


def test_no_reconnect_after_user_disconnect(app, factory):
    app.connect_radio({"type": "flexradio", "host": "10.0.0.5", "port": 4992})
    app.disconnect_radio()
    app.session.events.emit("disconnected", None)
    assert not app.reconnect.retrying
    assert len(factory.transports) == 1


# ---------- Small helpers ----------

def test_event_bus_isolates_failing_subscriber():
    bus = EventBus(name="t")
    seen = []

    def broken(payload):
        raise RuntimeError("subscriber bug")

    bus.subscribe("x", broken)
    bus.subscribe("x", seen.append)
    bus.emit("x", 1)
    assert seen == [1]

    bus.unsubscribe("x", broken)
    bus.unsubscribe("x", broken)
    assert bus.listener_count("x") == 1


def test_formatting_helpers():
    assert fmt_hz(14_074_000) == "14.074.000"
    assert fmt_hz(475) == "475"
    assert pretty_duration(0.85) == "850 ms"
    assert pretty_duration(3.4) == "3.40 s"
    assert pretty_duration(125) == "2m 05s"
    assert pretty_duration(3725) == "1h 02m 05s"
    assert pretty_duration(3725, style="clock") == "01:02:05"

    data = RadioData(frequency=14_074_000, mode="DIGU", power=100, band="20m", transmitting=True)
    assert format_radio_line(data, "FT8") == "14.074.000 Hz  20m  DIGU  100 W  TX  WSJT-X FT8"


def test_clear_old_logs(tmp_path):
    (tmp_path / "a.log").write_text("x")
    (tmp_path / "contacts.csv").write_text("x")
    (tmp_path / "keep.yml").write_text("x")
    clear_old_logs(str(tmp_path))
    assert sorted(p.name for p in tmp_path.iterdir()) == ["keep.yml"]
