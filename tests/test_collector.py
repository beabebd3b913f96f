"""Test per-device accumulation on top of the stateless decoder.

Run from the repo root:
    python3 tests/test_collector.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "python"))
sys.path.insert(0, os.path.dirname(__file__))

import base64

import numpy as np

from odid.collector import Collector, strip_service_prefix
from odid.messages import AUTH_DATA_SIZE, MessageType

from frames import (
    auth_page0_frame, auth_page_frame, basic_id_frame, location_frame,
    operator_id_frame, pack_frame,
)


def test_counters_per_device():
    """Counters keep increasing per device, including across packs."""
    print("test_counters_per_device...", end="")

    c = Collector()
    c.feed("aa", location_frame(), 1000)
    c.feed("bb", location_frame(), 1001)
    c.feed("aa", pack_frame([basic_id_frame(), operator_id_frame()]), 1002)
    c.feed("aa", location_frame(), 1003)

    aa = c.devices["aa"]
    assert [m.sequence_counter for m in aa.messages] == [0, 1, 2, 3]
    assert [m.observed_at for m in aa.messages] == [1000, 1002, 1002, 1003]
    assert [m.sequence_counter for m in c.devices["bb"].messages] == [0]

    print(" OK")


def test_text_frames():
    print("test_text_frames...", end="")

    c = Collector()
    frame = operator_id_frame()
    assert len(c.feed("d", frame.hex(), 1).messages) == 1
    assert len(c.feed("d", base64.b64encode(frame).decode(), 2).messages) == 1

    result = c.feed("d", "???", 3)
    assert result.messages == []
    assert c.rejected == 1
    assert len(c.devices["d"].messages) == 2

    print(" OK")


def test_text_frame_encoding():
    """Text valid as hex and as base64 decodes the way the caller asks."""
    print("test_text_frame_encoding...", end="")

    # A zeroed BASIC_ID message behind a 2-byte receiver prefix: 27 bytes,
    # whose base64 is 36 "A" characters and also reads as hex.
    text = base64.b64encode(bytes(27)).decode()
    assert text == "A" * 36

    c = Collector()
    assert c.feed("d", text, 1).messages == []
    assert c.rejected == 1

    result = c.feed("d", text, 2, encoding="base64")
    assert [m.header.type for m in result.messages] == [MessageType.BASIC_ID]
    assert c.devices["d"].valid

    padded = base64.b64encode(operator_id_frame()).decode()
    assert c.feed("d", padded, 3, encoding="hex").messages == []
    assert c.rejected == 2
    assert len(c.devices["d"].messages) == 1

    print(" OK")


def test_service_prefix():
    """Two leading receiver bytes are dropped from longer frames."""
    print("test_service_prefix...", end="")

    frame = location_frame()
    prefixed = b"\x0d\x07" + frame
    assert strip_service_prefix(frame) == frame
    assert strip_service_prefix(prefixed) == frame

    pack = pack_frame([frame, frame])
    assert strip_service_prefix(pack) == pack
    assert strip_service_prefix(b"\x0d\x07" + pack) == pack

    # Only pack framing is exempt; a long frame with any other header is
    # still treated as prefixed.
    padded = frame + b"\x00\x00"
    assert strip_service_prefix(padded) == padded[2:]
    bad_size = bytes([0xF2, 24]) + pack[2:]
    assert strip_service_prefix(bad_size) == bad_size[2:]

    c = Collector()
    result = c.feed("d", prefixed, 5)
    assert len(result.messages) == 1
    assert result.messages[0].header.type == MessageType.LOCATION

    print(" OK")


def test_valid_flag_is_sticky():
    print("test_valid_flag_is_sticky...", end="")

    c = Collector()
    c.feed("d", bytes([0x90]) + bytes(24), 1, name="beacon")
    dev = c.devices["d"]
    assert not dev.valid
    assert dev.name == "beacon"

    c.feed("d", basic_id_frame(), 2)
    assert dev.valid
    c.feed("d", bytes([0x90]) + bytes(24), 3)
    assert dev.valid
    assert c.rejected == 2

    print(" OK")


def test_latest_by_type():
    print("test_latest_by_type...", end="")

    c = Collector()
    c.feed("d", location_frame(hspeed=4), 1)
    c.feed("d", basic_id_frame(), 2)
    c.feed("d", location_frame(hspeed=8), 3)

    dev = c.devices["d"]
    latest = dev.latest_by_type()
    assert set(latest) == {MessageType.LOCATION, MessageType.BASIC_ID}
    assert latest[MessageType.LOCATION].payload.speed_horizontal == 8
    assert dev.latest(MessageType.LOCATION).observed_at == 3
    assert dev.latest(MessageType.OPERATOR_ID) is None

    print(" OK")


def test_authentication_merge():
    """Pages from separate frames merge into one aggregate buffer."""
    print("test_authentication_merge...", end="")

    page0 = bytes(range(1, 18))
    page1 = bytes(range(50, 73))

    c = Collector()
    dev = c.track("d")
    assert dev.authentication() is None
    assert not dev.auth_complete()

    c.feed("d", auth_page_frame(1, page1), 1)
    assert not dev.auth_complete()
    c.feed("d", auth_page0_frame(page0, last_page=1), 2)
    assert dev.auth_complete()

    merged = dev.authentication()
    assert len(merged) == AUTH_DATA_SIZE
    assert merged[:17] == page0
    assert merged[17:40] == page1
    assert merged[40:] == bytes(AUTH_DATA_SIZE - 40)

    print(" OK")


def test_location_series():
    print("test_location_series...", end="")

    c = Collector()
    c.feed("d", location_frame(height=2200, hspeed=40), 10)
    c.feed("d", basic_id_frame(), 11)
    c.feed("d", location_frame(height=2400, hspeed=40, mult=1, lat=377800000), 12)

    series = c.devices["d"].locations()
    assert len(series) == 2
    assert series.timestamps.dtype == np.int64
    assert series.timestamps.tolist() == [10, 12]
    np.testing.assert_allclose(series.altitude, [100.0, 200.0])
    np.testing.assert_allclose(series.horizontal_speed, [10.0, 93.75])
    np.testing.assert_allclose(series.latitude, [37.7749, 37.78])

    assert len(c.track("empty").locations()) == 0

    print(" OK")


def test_warnings_use_latest():
    print("test_warnings_use_latest...", end="")

    c = Collector()
    c.feed("d", location_frame(vspeed=200), 1)
    assert len(c.warnings("d")["Location"]) == 1
    c.feed("d", location_frame(vspeed=2), 2)
    assert c.warnings("d")["Location"] == []

    c.feed("d", operator_id_frame(b"UNKNOWN1"), 3)
    assert c.warnings("d")["OperatorID"] == [
        "Operator ID is not in the white list: UNKNOWN1"]
    assert c.warnings("nope") == {}

    print(" OK")


def test_summary():
    print("test_summary...", end="")

    c = Collector()
    c.feed("d", basic_id_frame(b"SERIAL1", ua_type=2), 1, name="drone")
    c.feed("d", location_frame(height=2200, hspeed=40, vspeed=4), 2)
    c.feed("d", operator_id_frame(b"FAA12345"), 3)

    s = c.summary("d")
    assert s["name"] == "drone"
    assert s["valid"] is True
    assert s["messages"] == 3
    assert s["ua_type"] == "Helicopter or Multirotor"
    assert s["uas_id"] == "SERIAL1"
    assert s["latitude"] == "37.7749000"
    assert s["longitude"] == "-122.4194000"
    assert s["altitude"] == "100.00 m"
    assert s["horizontal_speed"] == "10.00 m/s"
    assert s["vertical_speed"] == "2.00 m/s"
    assert s["operator_id"] == "FAA12345"

    print(" OK")


def test_history_limit():
    print("test_history_limit...", end="")

    c = Collector(max_messages=3)
    for i in range(5):
        c.feed("d", location_frame(), i)
    dev = c.devices["d"]
    assert [m.sequence_counter for m in dev.messages] == [2, 3, 4]
    assert dev.next_counter == 5

    print(" OK")


if __name__ == "__main__":
    print("odid collector tests")
    print("====================\n")

    test_counters_per_device()
    test_text_frames()
    test_text_frame_encoding()
    test_service_prefix()
    test_valid_flag_is_sticky()
    test_latest_by_type()
    test_authentication_merge()
    test_location_series()
    test_warnings_use_latest()
    test_summary()
    test_history_limit()

    print("\nAll tests passed.")
