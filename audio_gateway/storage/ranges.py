"""HTTP ``Range`` header negotiation for audio playback.

Policy:
    - only ``audio/*`` content is served partially;
    - a missing or unparseable start defaults to 0;
    - a missing, unparseable or oversized end is clamped to ``total_size - 1``;
    - a start at or past the end of the file is unsatisfiable (416);
    - anything else malformed (other units, ``end < start``) is ignored and
      the whole file is served.

Example:
    byte_range = negotiate("bytes=100-199", 4096, "audio/mpeg")
    print(byte_range.content_range)  # bytes 100-199/4096
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass

from audio_gateway.storage.content_types import is_streamable


RANGE_UNIT = "bytes"

_DIGITS = re.compile(r"[0-9]+")
_MAX_POSITION_DIGITS = 18


class RangeNotSatisfiable(ValueError):
    """Raised when the requested start lies beyond the end of the file."""

    def __init__(self, total_size: int):
        super().__init__(f"Range not satisfiable for size {total_size}")
        self.total_size = total_size

    @property
    def content_range(self) -> str:
        return f"{RANGE_UNIT} */{self.total_size}"


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int
    total_size: int

    def __post_init__(self) -> None:
        if not 0 <= self.start <= self.end < self.total_size:
            raise ValueError(f"Invalid byte range {self.start}-{self.end}/{self.total_size}")

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        return f"{RANGE_UNIT} {self.start}-{self.end}/{self.total_size}"


def _parse_position(value: str) -> int | None:
    value = value.strip()
    if not _DIGITS.fullmatch(value):
        return None
    value = value.lstrip("0") or "0"
    if len(value) > _MAX_POSITION_DIGITS:
        # larger than any file we can serve
        return sys.maxsize
    return int(value)


def parse_range_header(range_header: str, total_size: int) -> ByteRange | None:
    """Parse the first range of a ``bytes=`` header against ``total_size``.

    Returns None when the header should be ignored.
    """

    unit, sep, ranges = range_header.strip().partition("=")
    if not sep or unit.strip().lower() != RANGE_UNIT:
        return None
    first = ranges.split(",")[0]
    start_raw, dash, end_raw = first.partition("-")
    if not dash:
        return None

    start = _parse_position(start_raw)
    if start is None:
        start = 0
    end = _parse_position(end_raw)
    if end is None or end >= total_size:
        end = total_size - 1

    if start >= total_size:
        raise RangeNotSatisfiable(total_size)
    if end < start:
        return None
    return ByteRange(start=start, end=end, total_size=total_size)


def negotiate(range_header: str | None, total_size: int, mime_type: str) -> ByteRange | None:
    """Return the byte range to serve, or None to serve the whole file."""

    if not range_header or not is_streamable(mime_type):
        return None
    return parse_range_header(range_header, total_size)
