"""odid - Remote ID broadcast decoder and tooling."""

from .cursor import ByteCursor, DecodeError, Truncated, UnrecognizedType, PackFramingInvalid
from .messages import (
    MessageType, Header, Message, BasicId, Location, Authentication, SelfID,
    SystemMsg, OperatorID, MessagePack,
)
from .decoder import (
    Diagnostic, DecodeResult, decode_header, decode_message, decode_messages,
    is_valid_frame, frame_from_text,
)
from .validation import (
    ValidationConfig, validate_location, validate_basic_id,
    validate_operator_id, validate_messages,
)
from .collector import Collector, DeviceTrack, LocationSeries
from .storage import CaptureReader, CaptureWriter, CsvExporter

__all__ = [
    "ByteCursor", "DecodeError", "Truncated", "UnrecognizedType", "PackFramingInvalid",
    "MessageType", "Header", "Message", "BasicId", "Location", "Authentication",
    "SelfID", "SystemMsg", "OperatorID", "MessagePack",
    "Diagnostic", "DecodeResult", "decode_header", "decode_message",
    "decode_messages", "is_valid_frame", "frame_from_text",
    "ValidationConfig", "validate_location", "validate_basic_id",
    "validate_operator_id", "validate_messages",
    "Collector", "DeviceTrack", "LocationSeries",
    "CaptureReader", "CaptureWriter", "CsvExporter",
]
