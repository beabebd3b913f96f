"""Capture files and CSV export.

Capture file format (text, one frame per line):
  # comment
  <observed_at_ns>,<device_id>,<frame hex>

Export format (one line per decoded message):
  <sequence_counter>,<observed_at>,<TYPE>,<version>,<payload fields...>,

Every exported line ends with the delimiter, matching the payload
to_csv() output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, TextIO

from .decoder import frame_from_text
from .messages import DELIM, Message

logger = logging.getLogger(__name__)


@dataclass
class CapturedFrame:
    observed_at: int
    device_id: str
    frame: bytes


def format_capture_line(observed_at: int, device_id: str, frame: bytes) -> str:
    if DELIM in device_id:
        raise ValueError(f"device id may not contain {DELIM!r}: {device_id!r}")
    return f"{observed_at}{DELIM}{device_id}{DELIM}{frame.hex()}"


def parse_capture_line(line: str) -> CapturedFrame:
    """Parse one capture line.  Raises ValueError if malformed."""
    parts = line.strip().split(DELIM)
    if len(parts) != 3:
        raise ValueError(f"expected 3 fields, got {len(parts)}")
    ts, device_id, text = parts
    return CapturedFrame(int(ts), device_id, frame_from_text(text))


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------

class CaptureWriter:
    """Appends raw frames to a capture file."""

    def __init__(self, path: str | Path, append: bool = False):
        self._f: TextIO = open(path, "a" if append else "w", encoding="utf-8")
        self.count = 0

    def write_frame(self, observed_at: int, device_id: str, frame: bytes) -> None:
        self._f.write(format_capture_line(observed_at, device_id, frame) + "\n")
        self.count += 1

    def flush(self) -> None:
        self._f.flush()

    def close(self) -> None:
        self._f.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------

class CaptureReader:
    """Reads a capture file.

    Malformed lines are logged and skipped, or raise ValueError with
    ``strict=True``.
    """

    def __init__(self, path: str | Path, strict: bool = False):
        self._path = Path(path)
        self._f: TextIO | None = None
        self.strict = strict
        self.skipped = 0

    def open(self) -> None:
        self._f = open(self._path, "r", encoding="utf-8")

    def frames(self, device_ids: set[str] | None = None) -> Iterator[CapturedFrame]:
        """Iterate over captured frames, optionally only from *device_ids*."""
        if self._f is None:
            self.open()
        assert self._f is not None

        self._f.seek(0)
        for lineno, line in enumerate(self._f, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                cf = parse_capture_line(line)
            except ValueError as e:
                if self.strict:
                    raise ValueError(f"{self._path}:{lineno}: {e}") from e
                logger.warning("%s:%d: skipping line: %s", self._path, lineno, e)
                self.skipped += 1
                continue
            if device_ids is not None and cf.device_id not in device_ids:
                continue
            yield cf

    def close(self) -> None:
        if self._f:
            self._f.close()
            self._f = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------

class CsvExporter:
    """Writes decoded messages as delimited text lines."""

    def __init__(self, path: str | Path, device_column: bool = False):
        self._f: TextIO = open(path, "w", encoding="utf-8")
        self.device_column = device_column
        self.count = 0

    def write(self, msg: Message, device_id: str | None = None) -> None:
        line = msg.to_csv()
        if self.device_column:
            line = f"{device_id or ''}{DELIM}{line}"
        self._f.write(line + "\n")
        self.count += 1

    def write_all(self, messages: Iterable[Message],
                  device_id: str | None = None) -> None:
        for msg in messages:
            self.write(msg, device_id)

    def close(self) -> None:
        self._f.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
