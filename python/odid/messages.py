"""Message types, payload records and wire constants."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Union

# Wire format constants
MESSAGE_SIZE = 25
MAX_MESSAGES_IN_PACK = 9

ID_SIZE = 20
STRING_SIZE = 23

AUTH_MAX_PAGES = 16
AUTH_PAGE_ZERO_SIZE = 17
AUTH_PAGE_SIZE = 23
AUTH_DATA_SIZE = AUTH_PAGE_ZERO_SIZE + (AUTH_MAX_PAGES - 1) * AUTH_PAGE_SIZE  # 362

DELIM = ","

LATLON_SCALE = 1e-7


class MessageType(IntEnum):
    BASIC_ID = 0
    LOCATION = 1
    AUTH = 2
    SELF_ID = 3
    SYSTEM = 4
    OPERATOR_ID = 5
    MESSAGE_PACK = 0xF


UA_TYPE_LABELS = {
    0: "No UA type defined",
    1: "Aeroplane/Airplane (Fixed wing)",
    2: "Helicopter or Multirotor",
    3: "Gyroplane",
    4: "VTOL (Vertical Take-Off and Landing)",
    5: "Ornithopter",
    6: "Glider",
    7: "Kite",
    8: "Free Balloon",
    9: "Captive Balloon",
    10: "Airship (Blimp)",
    11: "Free Fall/Parachute",
    12: "Rocket",
    13: "Tethered powered aircraft",
    14: "Ground Obstacle",
    15: "Other type",
}


def _csv(*values) -> str:
    return "".join(f"{v}{DELIM}" for v in values)


def unpack_text(raw: bytes) -> str:
    """Decode a null-padded fixed-size ASCII field."""
    return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def decode_horizontal_speed(raw: int, multiplier: int) -> float:
    """Scale the encoded horizontal speed to m/s.

    Multiplier 0 covers 0..63.75 m/s in 0.25 steps; multiplier 1 covers
    the rest of the range in 0.75 steps starting at 63.75.
    """
    if multiplier == 0:
        return raw * 0.25
    return raw * 0.75 + 255 * 0.25


def decode_vertical_speed(raw: int) -> float:
    return raw * 0.5


def decode_altitude(raw: int) -> float:
    return raw / 2 - 1000


@dataclass(frozen=True)
class Header:
    type: MessageType
    version: int


@dataclass(frozen=True)
class BasicId:
    id_type: int
    ua_type: int
    uas_id: bytes

    @property
    def uas_id_text(self) -> str:
        return unpack_text(self.uas_id)

    @property
    def ua_type_label(self) -> str:
        return UA_TYPE_LABELS.get(self.ua_type, f"Unknown ({self.ua_type})")

    def to_csv(self) -> str:
        return _csv(self.id_type, self.ua_type, self.uas_id_text)


@dataclass(frozen=True)
class Location:
    status: int
    height_type: int
    ew_direction: int
    speed_multiplier: int
    direction: int
    speed_horizontal: int
    speed_vertical: int
    latitude_raw: int
    longitude_raw: int
    altitude_pressure: int
    altitude_geodetic: int
    height: int
    horizontal_accuracy: int
    vertical_accuracy: int
    baro_accuracy: int
    speed_accuracy: int
    timestamp: int
    time_accuracy: int
    # Never filled in by the decoder.
    distance: int = 0

    @property
    def latitude(self) -> float:
        return self.latitude_raw * LATLON_SCALE

    @property
    def longitude(self) -> float:
        return self.longitude_raw * LATLON_SCALE

    @property
    def altitude(self) -> float:
        return decode_altitude(self.height)

    @property
    def horizontal_speed(self) -> float:
        return decode_horizontal_speed(self.speed_horizontal, self.speed_multiplier)

    @property
    def vertical_speed(self) -> float:
        return decode_vertical_speed(self.speed_vertical)

    def to_csv(self) -> str:
        return _csv(
            self.status, self.height_type, self.ew_direction,
            self.speed_multiplier, self.direction, self.speed_horizontal,
            self.speed_vertical, self.latitude_raw, self.longitude_raw,
            self.altitude_pressure, self.altitude_geodetic, self.height,
            self.horizontal_accuracy, self.vertical_accuracy,
            self.baro_accuracy, self.speed_accuracy, self.timestamp,
            self.time_accuracy, self.distance,
        )


@dataclass(frozen=True)
class Authentication:
    """One authentication page placed at its offset in the aggregate buffer.

    Only page 0 carries last_page_index, length and timestamp; on other
    pages those stay 0.  ``data`` is always AUTH_DATA_SIZE bytes with only
    this page's slice filled.
    """

    auth_type: int
    page_index: int
    last_page_index: int
    length: int
    timestamp: int
    data: bytes

    @property
    def page_span(self) -> tuple[int, int]:
        """(start, end) of this page's bytes within ``data``."""
        if self.page_index == 0:
            return 0, AUTH_PAGE_ZERO_SIZE
        start = AUTH_PAGE_ZERO_SIZE + (self.page_index - 1) * AUTH_PAGE_SIZE
        return start, start + AUTH_PAGE_SIZE

    def to_csv(self) -> str:
        return _csv(self.auth_type, self.page_index, self.last_page_index,
                    self.length, self.timestamp, self.data.hex())


@dataclass(frozen=True)
class SelfID:
    description_type: int
    description: bytes

    @property
    def description_text(self) -> str:
        return unpack_text(self.description)

    def to_csv(self) -> str:
        return _csv(self.description_type, self.description_text)


@dataclass(frozen=True)
class SystemMsg:
    operator_location_type: int
    classification_type: int
    operator_latitude_raw: int
    operator_longitude_raw: int
    area_count: int
    area_radius: int
    area_ceiling: int
    area_floor: int
    category: int
    class_value: int
    operator_altitude_geo: int
    system_timestamp: int

    @property
    def operator_latitude(self) -> float:
        return self.operator_latitude_raw * LATLON_SCALE

    @property
    def operator_longitude(self) -> float:
        return self.operator_longitude_raw * LATLON_SCALE

    def to_csv(self) -> str:
        return _csv(
            self.operator_location_type, self.classification_type,
            self.operator_latitude_raw, self.operator_longitude_raw,
            self.area_count, self.area_radius, self.area_ceiling,
            self.area_floor, self.category, self.class_value,
            self.operator_altitude_geo, self.system_timestamp,
        )


@dataclass(frozen=True)
class OperatorID:
    operator_id_type: int
    operator_id: bytes

    @property
    def operator_id_text(self) -> str:
        return unpack_text(self.operator_id)

    def to_csv(self) -> str:
        return _csv(self.operator_id_type, self.operator_id_text)


@dataclass(frozen=True)
class MessagePack:
    message_size: int
    messages_in_pack: int
    messages: bytes

    def chunks(self) -> list[bytes]:
        """Split the pack payload into its single-message buffers."""
        size = self.message_size
        return [self.messages[i * size:(i + 1) * size]
                for i in range(self.messages_in_pack)]

    def to_csv(self) -> str:
        return _csv(self.message_size, self.messages_in_pack,
                    self.messages.hex())


Payload = Union[BasicId, Location, Authentication, SelfID, SystemMsg,
                OperatorID, MessagePack]


@dataclass(frozen=True)
class Message:
    sequence_counter: int
    observed_at: int
    header: Header
    payload: Payload

    @property
    def type(self) -> MessageType:
        return self.header.type

    def to_csv(self) -> str:
        """Full export line: counter, timestamp, type, version, payload fields."""
        return _csv(self.sequence_counter, self.observed_at,
                    self.header.type.name, self.header.version) + self.payload.to_csv()
