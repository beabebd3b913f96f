"""Bounds-checked sequential reader and decode errors."""

from __future__ import annotations

import struct

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_I32 = struct.Struct("<i")


class DecodeError(Exception):
    """Base class for everything that stops a message from decoding."""


class Truncated(DecodeError):
    """Fewer bytes available than the current read needs."""


class UnrecognizedType(DecodeError):
    """Header type nibble outside the known message set."""


class PackFramingInvalid(UnrecognizedType):
    """Message pack size/count fields do not describe a usable pack."""


class ByteCursor:
    """Reads fixed-width little-endian values from a buffer, advancing a position.

    Every read checks the remaining length first and raises Truncated
    instead of touching bytes outside the buffer.
    """

    __slots__ = ("_data", "_pos")

    def __init__(self, data: bytes, offset: int = 0):
        if offset < 0 or offset > len(data):
            raise Truncated(f"offset {offset} outside buffer of {len(data)} bytes")
        self._data = memoryview(data)
        self._pos = offset

    @property
    def offset(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def _take(self, n: int) -> int:
        if n > self.remaining:
            raise Truncated(
                f"need {n} bytes at offset {self._pos}, {self.remaining} left")
        start = self._pos
        self._pos += n
        return start

    def u8(self) -> int:
        return self._data[self._take(1)]

    def u16(self) -> int:
        return _U16.unpack_from(self._data, self._take(2))[0]

    def u32(self) -> int:
        return _U32.unpack_from(self._data, self._take(4))[0]

    def i32(self) -> int:
        return _I32.unpack_from(self._data, self._take(4))[0]

    def raw(self, n: int) -> bytes:
        start = self._take(n)
        return bytes(self._data[start:start + n])

    def skip(self, n: int) -> None:
        self._take(n)
