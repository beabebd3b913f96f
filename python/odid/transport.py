"""Transport adapters for receivers that forward remote-ID service data.

A receiver sends one frame per line, either ``<hex|base64>`` or
``<device_id>,<hex|base64>``.  FrameReader turns the raw byte stream from
any Transport into (device_id, frame) pairs.
"""

from __future__ import annotations

import logging
import socket
from typing import Iterator, Protocol

from .decoder import frame_from_text

logger = logging.getLogger(__name__)

DEFAULT_DEVICE = "receiver"


class Transport(Protocol):
    """Abstract transport interface."""

    def read(self, n: int) -> bytes: ...
    def close(self) -> None: ...


class SerialTransport:
    """UART / serial port transport (requires pyserial)."""

    def __init__(self, port: str, baudrate: int = 115200, timeout: float = 1.0):
        import serial
        self._ser = serial.Serial(port, baudrate, timeout=timeout)

    def read(self, n: int) -> bytes:
        return self._ser.read(n)

    def close(self) -> None:
        self._ser.close()


class UDPTransport:
    """UDP datagram transport; each datagram holds one or more lines."""

    def __init__(self, host: str = "0.0.0.0", port: int = 4210):
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.bind((host, port))
        self._sock.settimeout(1.0)

    def read(self, n: int) -> bytes:
        try:
            data, _addr = self._sock.recvfrom(n)
            # Datagrams are self-contained; terminate the last line.
            return data if data.endswith(b"\n") else data + b"\n"
        except socket.timeout:
            return b""

    def close(self) -> None:
        self._sock.close()


class FileTransport:
    """Read from a file of frame lines (for replay)."""

    def __init__(self, path: str):
        self._f = open(path, "rb")
        self.eof = False

    def read(self, n: int) -> bytes:
        data = self._f.read(n)
        if not data:
            self.eof = True
        return data or b""

    def close(self) -> None:
        self._f.close()


def parse_frame_line(line: str, default_device: str = DEFAULT_DEVICE,
                     encoding: str = "auto") -> tuple[str, bytes]:
    """Split a receiver line into (device_id, frame).  Raises ValueError."""
    device_id, sep, text = line.strip().rpartition(",")
    if not sep:
        device_id = default_device
    return device_id or default_device, frame_from_text(text, encoding)


class FrameReader:
    """Line splitter over a transport byte stream."""

    def __init__(self, default_device: str = DEFAULT_DEVICE,
                 max_line: int = 4096, encoding: str = "auto"):
        self.default_device = default_device
        self.encoding = encoding
        self.max_line = max_line
        self.rejected = 0
        self._buf = bytearray()

    def _parse(self, raw: bytes, frames: list[tuple[str, bytes]]) -> None:
        line = raw.decode("ascii", errors="replace").strip()
        if not line or line.startswith("#"):
            return
        try:
            frames.append(parse_frame_line(line, self.default_device,
                                           self.encoding))
        except ValueError as e:
            logger.warning("dropping line: %s", e)
            self.rejected += 1

    def feed(self, data: bytes) -> list[tuple[str, bytes]]:
        """Feed raw bytes, return every complete (device_id, frame)."""
        self._buf.extend(data)
        frames: list[tuple[str, bytes]] = []

        while True:
            nl = self._buf.find(b"\n")
            if nl < 0:
                if len(self._buf) > self.max_line:
                    logger.warning(
                        "line exceeds max_line %d, clearing buffer", self.max_line)
                    self._buf.clear()
                break

            raw = bytes(self._buf[:nl])
            del self._buf[:nl + 1]
            self._parse(raw, frames)

        return frames

    def flush(self) -> list[tuple[str, bytes]]:
        """Parse whatever is buffered as a final, unterminated line."""
        frames: list[tuple[str, bytes]] = []
        if self._buf:
            raw = bytes(self._buf)
            self._buf.clear()
            self._parse(raw, frames)
        return frames

    def read_frames(self, transport: Transport,
                    chunk: int = 4096) -> Iterator[tuple[str, bytes]]:
        """Drain *transport* until it returns no data, then flush."""
        while True:
            data = transport.read(chunk)
            if not data:
                break
            yield from self.feed(data)
        yield from self.flush()

    def reset(self):
        """Clear internal buffer."""
        self._buf.clear()
