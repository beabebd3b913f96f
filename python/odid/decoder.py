"""Stateless decoder for remote-ID broadcast frames.

Frame layout:
  [header(1): type << 4 | version][payload(24)]             single message
  [header(1)][message_size(1)][count(1)][message(25) × count]  message pack

Every function here is a pure function of its arguments.  Failures never
raise out of decode_message()/decode_messages(); they come back as None or
as Diagnostic records in the DecodeResult.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Callable

from .cursor import ByteCursor, DecodeError, PackFramingInvalid, Truncated, UnrecognizedType
from .messages import (
    AUTH_DATA_SIZE, AUTH_PAGE_SIZE, AUTH_PAGE_ZERO_SIZE, ID_SIZE,
    MAX_MESSAGES_IN_PACK, MESSAGE_SIZE, STRING_SIZE,
    Authentication, BasicId, Header, Location, Message, MessagePack,
    MessageType, OperatorID, Payload, SelfID, SystemMsg,
)

logger = logging.getLogger(__name__)

_VALID_TYPES = frozenset(int(t) for t in MessageType)


@dataclass
class Diagnostic:
    """Why a message (or a sub-message of a pack) produced no record."""

    offset: int
    reason: str
    index: int | None = None  # sub-message index within a pack

    def __str__(self) -> str:
        where = f"offset {self.offset}"
        if self.index is not None:
            where += f", pack index {self.index}"
        return f"{where}: {self.reason}"


@dataclass
class DecodeResult:
    messages: list[Message] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.messages)


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

def decode_header(data: bytes, offset: int = 0) -> Header | None:
    """Split the first byte into (type, version), or None if not a known type."""
    if len(data) <= offset:
        return None
    b = data[offset]
    msg_type = (b & 0xF0) >> 4
    if msg_type not in _VALID_TYPES:
        return None
    return Header(MessageType(msg_type), b & 0x0F)


TEXT_ENCODINGS = ("auto", "hex", "base64")


def _from_base64(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as e:
        raise ValueError(f"not base64 frame data: {text!r}") from e


def frame_from_text(text: str, encoding: str = "auto") -> bytes:
    """Turn hex or base64 service data into bytes.

    With ``encoding="auto"`` hex is tried first and an odd-length or non-hex
    string falls through to base64.  Some strings are valid in both
    alphabets (``"AAAA"``, ``"deadbeef"``) and are always read as hex in
    auto mode; pass ``"hex"`` or ``"base64"`` when the receiver's encoding
    is known.  Raises ValueError when the text does not decode.
    """
    if encoding not in TEXT_ENCODINGS:
        raise ValueError(f"unknown frame encoding: {encoding!r}")
    text = text.strip()
    if encoding == "base64":
        return _from_base64(text)
    try:
        return bytes.fromhex(text)
    except ValueError:
        if encoding == "hex":
            raise ValueError(f"not hex frame data: {text!r}") from None
    try:
        return _from_base64(text)
    except ValueError:
        raise ValueError(f"not hex or base64 frame data: {text!r}") from None


def is_valid_frame(frame: bytes | str, encoding: str = "auto") -> bool:
    """True if *frame* starts with a recognizable message header."""
    if isinstance(frame, str):
        try:
            frame = frame_from_text(frame, encoding)
        except ValueError:
            return False
    return decode_header(frame) is not None


# ---------------------------------------------------------------------------
# Payload decoders
#
# Each reads exactly its footprint starting just past the header byte.
# Length has been checked by the caller.
# ---------------------------------------------------------------------------

def decode_basic_id(cur: ByteCursor) -> BasicId:
    b = cur.u8()
    return BasicId(
        id_type=(b & 0xF0) >> 4,
        ua_type=b & 0x0F,
        uas_id=cur.raw(ID_SIZE),
    )


def decode_location(cur: ByteCursor) -> Location:
    b = cur.u8()
    status = (b & 0xF0) >> 4
    height_type = (b & 0x04) >> 2
    ew_direction = (b & 0x02) >> 1
    speed_multiplier = b & 0x01

    direction = cur.u8()
    speed_horizontal = cur.u8()
    speed_vertical = cur.u8()
    latitude_raw = cur.i32()
    longitude_raw = cur.i32()
    altitude_pressure = cur.u16()
    altitude_geodetic = cur.u16()
    height = cur.u16()

    acc = cur.u8()
    horizontal_accuracy = acc & 0x0F
    vertical_accuracy = (acc & 0xF0) >> 4
    acc = cur.u8()
    baro_accuracy = (acc & 0xF0) >> 4
    speed_accuracy = acc & 0x0F

    timestamp = cur.u16()
    time_accuracy = cur.u8() & 0x0F

    return Location(
        status=status,
        height_type=height_type,
        ew_direction=ew_direction,
        speed_multiplier=speed_multiplier,
        direction=direction,
        speed_horizontal=speed_horizontal,
        speed_vertical=speed_vertical,
        latitude_raw=latitude_raw,
        longitude_raw=longitude_raw,
        altitude_pressure=altitude_pressure,
        altitude_geodetic=altitude_geodetic,
        height=height,
        horizontal_accuracy=horizontal_accuracy,
        vertical_accuracy=vertical_accuracy,
        baro_accuracy=baro_accuracy,
        speed_accuracy=speed_accuracy,
        timestamp=timestamp,
        time_accuracy=time_accuracy,
    )


def decode_authentication(cur: ByteCursor) -> Authentication:
    b = cur.u8()
    auth_type = (b & 0xF0) >> 4
    page_index = b & 0x0F

    last_page_index = length = timestamp = 0
    if page_index == 0:
        last_page_index = cur.u8()
        length = cur.u8()
        timestamp = cur.u32()
        start, amount = 0, AUTH_PAGE_ZERO_SIZE
    else:
        start = AUTH_PAGE_ZERO_SIZE + (page_index - 1) * AUTH_PAGE_SIZE
        amount = AUTH_PAGE_SIZE

    data = bytearray(AUTH_DATA_SIZE)
    data[start:start + amount] = cur.raw(amount)

    return Authentication(
        auth_type=auth_type,
        page_index=page_index,
        last_page_index=last_page_index,
        length=length,
        timestamp=timestamp,
        data=bytes(data),
    )


def decode_self_id(cur: ByteCursor) -> SelfID:
    description_type = cur.u8()
    return SelfID(description_type, cur.raw(STRING_SIZE))


def decode_system(cur: ByteCursor) -> SystemMsg:
    b = cur.u8()
    operator_location_type = b & 0x03
    classification_type = (b & 0x1C) >> 2
    operator_latitude_raw = cur.i32()
    operator_longitude_raw = cur.i32()
    area_count = cur.u16()
    area_radius = cur.u8()
    area_ceiling = cur.u16()
    area_floor = cur.u16()
    b = cur.u8()
    category = (b & 0xF0) >> 4
    class_value = b & 0x0F
    operator_altitude_geo = cur.u16()
    system_timestamp = cur.u32()

    return SystemMsg(
        operator_location_type=operator_location_type,
        classification_type=classification_type,
        operator_latitude_raw=operator_latitude_raw,
        operator_longitude_raw=operator_longitude_raw,
        area_count=area_count,
        area_radius=area_radius,
        area_ceiling=area_ceiling,
        area_floor=area_floor,
        category=category,
        class_value=class_value,
        operator_altitude_geo=operator_altitude_geo,
        system_timestamp=system_timestamp,
    )


def decode_operator_id(cur: ByteCursor) -> OperatorID:
    operator_id_type = cur.u8()
    return OperatorID(operator_id_type, cur.raw(ID_SIZE))


def decode_message_pack(cur: ByteCursor) -> MessagePack:
    """Read and validate pack framing; the cursor must sit on the header byte.

    The pack is rejected as a whole if the message size is not 25, the
    count is outside 1..9, or fewer than size × count bytes follow.
    """
    cur.skip(1)
    message_size = cur.u8()
    messages_in_pack = cur.u8()

    if message_size != MESSAGE_SIZE:
        raise PackFramingInvalid(
            f"message size {message_size}, expected {MESSAGE_SIZE}")
    if not 1 <= messages_in_pack <= MAX_MESSAGES_IN_PACK:
        raise PackFramingInvalid(
            f"{messages_in_pack} messages in pack, expected 1..{MAX_MESSAGES_IN_PACK}")
    expected = message_size * messages_in_pack
    if cur.remaining < expected:
        raise PackFramingInvalid(
            f"pack needs {expected} bytes of messages, {cur.remaining} present")

    return MessagePack(message_size, messages_in_pack, cur.raw(expected))


_PAYLOAD_DECODERS: dict[MessageType, Callable[[ByteCursor], Payload]] = {
    MessageType.BASIC_ID: decode_basic_id,
    MessageType.LOCATION: decode_location,
    MessageType.AUTH: decode_authentication,
    MessageType.SELF_ID: decode_self_id,
    MessageType.SYSTEM: decode_system,
    MessageType.OPERATOR_ID: decode_operator_id,
}


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------

def _decode_one(data: bytes, offset: int, observed_at: int,
                sequence_counter: int, allow_pack: bool) -> Message:
    if len(data) - offset < MESSAGE_SIZE:
        raise Truncated(
            f"{max(len(data) - offset, 0)} bytes, a message needs {MESSAGE_SIZE}")

    header = decode_header(data, offset)
    if header is None:
        raise UnrecognizedType(f"header type {(data[offset] & 0xF0) >> 4}")

    if header.type == MessageType.MESSAGE_PACK:
        if not allow_pack:
            raise UnrecognizedType("message pack nested inside a pack")
        payload: Payload = decode_message_pack(ByteCursor(data, offset))
    else:
        payload_decoder = _PAYLOAD_DECODERS.get(header.type)
        if payload_decoder is None:
            logger.debug("unhandled message type %s", header.type)
            raise UnrecognizedType(f"unhandled message type {header.type.name}")
        payload = payload_decoder(ByteCursor(data, offset + 1))

    return Message(sequence_counter, observed_at, header, payload)


def decode_message(data: bytes, observed_at: int, sequence_counter: int = 0,
                   offset: int = 0) -> Message | None:
    """Decode one message at *offset* without expanding packs.

    Returns None when fewer than 25 bytes remain, the header type is not
    recognized, or (for a pack) the framing is invalid.
    """
    try:
        return _decode_one(data, offset, observed_at, sequence_counter, True)
    except DecodeError as e:
        logger.debug("no message at offset %d: %s", offset, e)
        return None


def expand_pack(pack: MessagePack, observed_at: int, sequence_counter: int,
                result: DecodeResult, offset: int = 0) -> None:
    """Decode each sub-message of *pack* into *result*.

    Sub-message i gets counter sequence_counter + i.  Sub-messages that fail
    are recorded as diagnostics and skipped.
    """
    for i, chunk in enumerate(pack.chunks()):
        try:
            result.messages.append(_decode_one(
                chunk, 0, observed_at, sequence_counter + i, False))
        except DecodeError as e:
            logger.debug("skipping pack sub-message %d: %s", i, e)
            result.diagnostics.append(Diagnostic(offset, str(e), index=i))


def decode_messages(data: bytes, observed_at: int, sequence_counter: int = 0,
                    offset: int = 0) -> DecodeResult:
    """Decode a frame into a flat list of messages.

    A single message yields one record.  A message pack yields one record
    per sub-message that decodes, in pack order; packs are expanded one
    level only.
    """
    result = DecodeResult()
    try:
        msg = _decode_one(data, offset, observed_at, sequence_counter, True)
    except DecodeError as e:
        logger.debug("no message at offset %d: %s", offset, e)
        result.diagnostics.append(Diagnostic(offset, str(e)))
        return result

    if isinstance(msg.payload, MessagePack):
        expand_pack(msg.payload, observed_at, sequence_counter, result, offset)
    else:
        result.messages.append(msg)
    return result
