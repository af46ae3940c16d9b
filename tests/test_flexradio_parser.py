import pytest

from band_math import UNKNOWN_BAND, band_edges_hz, frequency_to_band, mhz_to_hz
from radios.flexradio import FlexRadioParser, LineFramer, MessageKind, RadioStatus, Slice


class Recorder:
    def __init__(self):
        self.responses = []
        self.identities = []
        self.slices = []
        self.transmits = []
        self.interlocks = []

    def parser(self):
        return FlexRadioParser(
            on_response=lambda seq, rc, payload: self.responses.append((seq, rc, payload)),
            on_identity=self.identities.append,
            on_slice=lambda sid, data: self.slices.append((sid, data)),
            on_transmit=self.transmits.append,
            on_interlock=lambda state, reason: self.interlocks.append((state, reason)),
        )


@pytest.fixture
def rec():
    return Recorder()


# ---------- Framer ----------

def test_framer_reassembles_split_lines():
    framer = LineFramer()
    assert framer.feed(b"R1|0|mod") == []
    assert framer.pending == b"R1|0|mod"
    assert framer.feed(b'el="FLEX-6400"\nS1|slice 0 ') == ['R1|0|model="FLEX-6400"']
    assert framer.feed(b"active=1\n") == ["S1|slice 0 active=1"]
    assert framer.pending == b""


def test_framer_handles_crlf_and_blank_lines():
    framer = LineFramer()
    assert framer.feed(b"V1.4.0.0\r\n\r\n\nH1234\r\n") == ["V1.4.0.0", "H1234"]


def test_framer_drops_oversize_unterminated_buffer():
    framer = LineFramer(max_buffer=16)
    assert framer.feed(b"x" * 32) == []
    assert framer.pending == b""
    assert framer.feed(b"R1|0|\n") == ["R1|0|"]


# ---------- Responses ----------

def test_response_with_return_code(rec):
    kind = rec.parser().feed('R12|0|model="FLEX-6400",chassis_serial="1234-5678",callsign=N0CALL')
    assert kind is MessageKind.RESPONSE
    assert rec.responses == [(12, 0, 'model="FLEX-6400",chassis_serial="1234-5678",callsign=N0CALL')]
    assert rec.identities == [{"model": "FLEX-6400", "serial": "1234-5678", "callsign": "N0CALL"}]


def test_response_error_code_is_hex(rec):
    rec.parser().feed("R3|50000015|Invalid slice")
    assert rec.responses == [(3, 0x50000015, "Invalid slice")]


def test_error_reply_does_not_update_identity(rec):
    rec.parser().feed("R5|50000016|version 3 unsupported")
    assert rec.responses == [(5, 0x50000016, "version 3 unsupported")]
    assert rec.identities == []


def test_response_without_return_code_uses_second_field(rec):
    rec.parser().feed("R1|model info")
    assert rec.responses == [(1, None, "model info")]
    assert rec.identities == [{"model": "info"}]


def test_response_version_keys(rec):
    parser = rec.parser()
    parser.feed("R2|0|SmartSDR-MB=3.4.23.7542#PSoC-MBTRX=3.1")
    parser.feed("R4|0|version 3.5.1")
    assert rec.identities == [{"version": "3.4.23.7542"}, {"version": "3.5.1"}]


def test_response_extra_fields_discarded(rec):
    rec.parser().feed("R5|0|payload|ignored|more")
    assert rec.responses == [(5, 0, "payload")]


@pytest.mark.parametrize("line", ["R1", "S1", "Sgarbage"])
def test_lines_without_fields_are_malformed(rec, line):
    assert rec.parser().feed(line) is MessageKind.MALFORMED
    assert rec.responses == rec.slices == []


def test_response_with_bad_sequence(rec):
    rec.parser().feed("Rx|0|ok")
    assert rec.responses == [(None, 0, "ok")]


# ---------- Status ----------

def test_slice_status(rec):
    kind = rec.parser().feed(
        "S1234ABCD|slice 1 RF_frequency=7.074000 mode=lsb active=1 rxant=ANT2 txant=ANT1 wide=0 lock=1"
    )
    assert kind is MessageKind.STATUS
    assert rec.slices == [
        (1, {"frequency": 7_074_000, "mode": "LSB", "active": True, "wide": False, "locked": True,
             "rxant": "ANT2", "txant": "ANT1"})
    ]


def test_slice_removal_flag(rec):
    rec.parser().feed("S1|slice 3 in_use=0")
    assert rec.slices == [(3, {"in_use": False})]


def test_slice_bad_frequency_ignored(rec):
    rec.parser().feed("S1|slice 0 RF_frequency=abc mode=USB")
    assert rec.slices == [(0, {"mode": "USB"})]


def test_transmit_status(rec):
    rec.parser().feed("S1|transmit freq=14.074000 rfpower=100 tunepower=10 tune=1 mox=0")
    assert rec.transmits == [{"frequency": 14_074_000, "power": 100, "tune": True, "mox": False}]


def test_interlock_status(rec):
    rec.parser().feed("S1|interlock state=TRANSMITTING source=TUNE reason=")
    assert rec.interlocks == [("TRANSMITTING", "")]


def test_radio_status_identity(rec):
    rec.parser().feed('S1|radio callsign=W1AW nickname="Home Shack" model=FLEX-6600')
    assert rec.identities == [{"model": "FLEX-6600", "callsign": "W1AW", "nickname": "Home Shack"}]


def test_unknown_status_object_and_other_lines(rec):
    parser = rec.parser()
    assert parser.feed("S1|meter 1.src=COD-#1.num=1") is MessageKind.STATUS
    assert parser.feed("V1.4.0.0") is MessageKind.OTHER
    assert parser.feed("M10000001|Client connected") is MessageKind.OTHER
    assert rec.slices == rec.transmits == rec.interlocks == []


# ---------- Status model ----------

def test_status_default_slice_and_current():
    status = RadioStatus()
    assert status.current_slice() is None
    assert status.ensure_default_slice() is True
    assert status.ensure_default_slice() is False
    assert status.current_slice() == Slice(id=0)

    status.upsert_slice(2).active = True
    status.upsert_slice(1).active = True
    assert [s.id for s in status.slices] == [0, 1, 2]
    assert status.current_slice().id == 1

    assert status.remove_slice(1) is True
    assert status.remove_slice(1) is False
    assert status.current_slice().id == 2


# ---------- Band table ----------

@pytest.mark.parametrize(
    "hz,band",
    [
        (1_800_000, "160m"),
        (2_000_000, "160m"),
        (2_000_001, UNKNOWN_BAND),
        (7_074_000, "40m"),
        (10_150_000, "30m"),
        (14_074_000, "20m"),
        (18_100_000, "17m"),
        (29_700_000, "10m"),
        (50_313_000, "6m"),
        (144_174_000, "2m"),
        (432_100_000, "70cm"),
        (0, UNKNOWN_BAND),
        (-5, UNKNOWN_BAND),
    ],
)
def test_frequency_to_band(hz, band):
    assert frequency_to_band(hz) == band


def test_band_helpers():
    assert band_edges_hz("20m") == (14_000_000, 14_350_000)
    assert band_edges_hz("11m") is None
    assert mhz_to_hz("14.074") == 14_074_000
    assert mhz_to_hz(18.068) == 18_068_000
