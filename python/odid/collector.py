"""Per-device accumulation of decoded messages.

The decoder keeps no state between calls; this module is the caller side
that groups messages by transmitter, keeps their history, and rebuilds
multi-page authentication data.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .decoder import DecodeResult, decode_header, decode_messages, frame_from_text
from .messages import (
    AUTH_DATA_SIZE, MESSAGE_SIZE, Authentication, BasicId, Location, Message,
    MessageType, OperatorID,
)
from .validation import DEFAULT_CONFIG, ValidationConfig, validate_messages

logger = logging.getLogger(__name__)

# Some receivers prepend an app code and a counter byte to the service data.
SERVICE_PREFIX_SIZE = 2


def strip_service_prefix(frame: bytes) -> bytes:
    """Drop the 2-byte receiver prefix from frames longer than one message.

    A frame that already starts with message pack framing is kept whole.
    """
    if len(frame) <= MESSAGE_SIZE:
        return frame
    header = decode_header(frame)
    if (header is not None and header.type == MessageType.MESSAGE_PACK
            and frame[1] == MESSAGE_SIZE):
        return frame
    return frame[SERVICE_PREFIX_SIZE:]


@dataclass
class LocationSeries:
    """Location history as parallel arrays, one element per Location message."""

    timestamps: np.ndarray  # int64, observed_at
    latitude: np.ndarray
    longitude: np.ndarray
    altitude: np.ndarray
    horizontal_speed: np.ndarray
    vertical_speed: np.ndarray

    def __len__(self) -> int:
        return len(self.timestamps)


@dataclass
class DeviceTrack:
    device_id: str
    name: str | None = None
    valid: bool = False
    messages: list[Message] = field(default_factory=list)
    next_counter: int = 0

    def latest(self, msg_type: MessageType) -> Message | None:
        for msg in reversed(self.messages):
            if msg.header.type == msg_type:
                return msg
        return None

    def latest_by_type(self) -> dict[MessageType, Message]:
        latest: dict[MessageType, Message] = {}
        for msg in self.messages:
            latest[msg.header.type] = msg
        return latest

    def authentication(self) -> bytes | None:
        """Merge every authentication page seen so far into one buffer.

        Later pages overwrite earlier copies of the same page.  Returns the
        full AUTH_DATA_SIZE buffer, or None if no page was received.
        """
        pages = [m.payload for m in self.messages
                 if isinstance(m.payload, Authentication)]
        if not pages:
            return None
        merged = bytearray(AUTH_DATA_SIZE)
        for page in pages:
            start, end = page.page_span
            merged[start:end] = page.data[start:end]
        return bytes(merged)

    def auth_complete(self) -> bool:
        """True once page 0 and every page up to its last_page_index arrived."""
        pages = {m.payload.page_index: m.payload for m in self.messages
                 if isinstance(m.payload, Authentication)}
        first = pages.get(0)
        if first is None:
            return False
        return all(i in pages for i in range(first.last_page_index + 1))

    def locations(self) -> LocationSeries:
        locs = [(m.observed_at, m.payload) for m in self.messages
                if isinstance(m.payload, Location)]
        n = len(locs)
        series = LocationSeries(
            timestamps=np.empty(n, dtype=np.int64),
            latitude=np.empty(n, dtype=np.float64),
            longitude=np.empty(n, dtype=np.float64),
            altitude=np.empty(n, dtype=np.float64),
            horizontal_speed=np.empty(n, dtype=np.float64),
            vertical_speed=np.empty(n, dtype=np.float64),
        )
        for i, (ts, loc) in enumerate(locs):
            series.timestamps[i] = ts
            series.latitude[i] = loc.latitude
            series.longitude[i] = loc.longitude
            series.altitude[i] = loc.altitude
            series.horizontal_speed[i] = loc.horizontal_speed
            series.vertical_speed[i] = loc.vertical_speed
        return series


class Collector:
    """Feeds service-data frames through the decoder and keeps per-device history.

    Sequence counters are per device and keep increasing across frames, so
    every stored message has a unique (device_id, sequence_counter).
    """

    def __init__(self, config: ValidationConfig = DEFAULT_CONFIG,
                 max_messages: int | None = None):
        self.config = config
        self.max_messages = max_messages
        self.devices: dict[str, DeviceTrack] = {}
        self.rejected: int = 0

    def track(self, device_id: str, name: str | None = None) -> DeviceTrack:
        dev = self.devices.get(device_id)
        if dev is None:
            dev = DeviceTrack(device_id, name)
            self.devices[device_id] = dev
        elif name and not dev.name:
            dev.name = name
        return dev

    def feed(self, device_id: str, frame: bytes | str,
             observed_at: int | None = None,
             name: str | None = None,
             encoding: str = "auto") -> DecodeResult:
        """Decode one frame from *device_id* and append what decoded.

        *frame* may be raw bytes or hex/base64 text, read according to
        *encoding* (see ``frame_from_text``).  Undecodable text is logged and
        counted in ``rejected``.
        """
        if isinstance(frame, str):
            try:
                frame = frame_from_text(frame, encoding)
            except ValueError as e:
                logger.warning("device %s: %s", device_id, e)
                self.rejected += 1
                return DecodeResult()

        if observed_at is None:
            observed_at = time.time_ns()

        dev = self.track(device_id, name)
        payload = strip_service_prefix(frame)
        dev.valid = dev.valid or decode_header(payload) is not None

        result = decode_messages(payload, observed_at, dev.next_counter)
        if not result.messages:
            self.rejected += 1
        for diag in result.diagnostics:
            logger.debug("device %s: %s", device_id, diag)

        dev.messages.extend(result.messages)
        if result.messages:
            dev.next_counter = result.messages[-1].sequence_counter + 1
        if self.max_messages is not None and len(dev.messages) > self.max_messages:
            del dev.messages[:len(dev.messages) - self.max_messages]
        return result

    def warnings(self, device_id: str) -> dict[str, list[str]]:
        """Advisory warnings for the device's latest Location/BasicId/OperatorID."""
        dev = self.devices.get(device_id)
        if dev is None:
            return {}
        latest = dev.latest_by_type().values()
        return validate_messages(latest, self.config)

    def summary(self, device_id: str) -> dict[str, Any]:
        """Flat presentation view of the latest known state of a device."""
        dev = self.devices[device_id]
        out: dict[str, Any] = {
            "device_id": dev.device_id,
            "name": dev.name or "No Name",
            "valid": dev.valid,
            "messages": len(dev.messages),
        }

        basic = dev.latest(MessageType.BASIC_ID)
        if basic is not None and isinstance(basic.payload, BasicId):
            out["id_type"] = basic.payload.id_type
            out["ua_type"] = basic.payload.ua_type_label
            out["uas_id"] = basic.payload.uas_id_text

        loc = dev.latest(MessageType.LOCATION)
        if loc is not None and isinstance(loc.payload, Location):
            p = loc.payload
            out["status"] = p.status
            out["latitude"] = f"{p.latitude:.7f}"
            out["longitude"] = f"{p.longitude:.7f}"
            out["altitude"] = f"{p.altitude:.2f} m"
            out["horizontal_speed"] = f"{p.horizontal_speed:.2f} m/s"
            out["vertical_speed"] = f"{p.vertical_speed:.2f} m/s"

        op = dev.latest(MessageType.OPERATOR_ID)
        if op is not None and isinstance(op.payload, OperatorID):
            out["operator_id"] = op.payload.operator_id_text

        return out
