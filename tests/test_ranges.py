from __future__ import annotations

import pytest

from audio_gateway.storage.ranges import ByteRange, RangeNotSatisfiable, negotiate, parse_range_header

SIZE = 1000


def test_no_header_serves_full_file():
    assert negotiate(None, SIZE, "audio/mpeg") is None
    assert negotiate("", SIZE, "audio/mpeg") is None


def test_non_audio_ignores_range():
    assert negotiate("bytes=0-10", SIZE, "image/png") is None
    assert negotiate("bytes=0-10", SIZE, "application/json") is None


def test_explicit_range():
    byte_range = negotiate("bytes=100-199", SIZE, "audio/mpeg")
    assert byte_range == ByteRange(start=100, end=199, total_size=SIZE)
    assert byte_range.length == 100
    assert byte_range.content_range == "bytes 100-199/1000"


def test_open_ended_range_covers_rest_of_file():
    byte_range = negotiate("bytes=0-", SIZE, "audio/ogg")
    assert byte_range.content_range == "bytes 0-999/1000"
    assert byte_range.length == SIZE


def test_missing_or_unparseable_start_defaults_to_zero():
    assert parse_range_header("bytes=-500", SIZE) == ByteRange(0, 500, SIZE)
    assert parse_range_header("bytes=abc-10", SIZE) == ByteRange(0, 10, SIZE)


def test_end_is_clamped_to_last_byte():
    assert parse_range_header("bytes=900-5000", SIZE) == ByteRange(900, 999, SIZE)
    assert parse_range_header("bytes=0-999", SIZE) == ByteRange(0, 999, SIZE)
    assert parse_range_header("bytes=10-oops", SIZE) == ByteRange(10, 999, SIZE)


def test_start_past_end_of_file_is_unsatisfiable():
    with pytest.raises(RangeNotSatisfiable) as excinfo:
        parse_range_header("bytes=1000-1200", SIZE)
    assert excinfo.value.content_range == "bytes */1000"
    with pytest.raises(RangeNotSatisfiable):
        parse_range_header("bytes=0-", 0)


def test_malformed_ranges_are_ignored():
    assert parse_range_header("bytes=500-100", SIZE) is None
    assert parse_range_header("items=0-10", SIZE) is None
    assert parse_range_header("bytes=100", SIZE) is None
    assert parse_range_header("0-10", SIZE) is None


def test_only_first_range_is_honoured():
    assert parse_range_header("bytes=0-9, 20-29", SIZE) == ByteRange(0, 9, SIZE)


def test_byte_range_invariant():
    with pytest.raises(ValueError):
        ByteRange(start=5, end=4, total_size=SIZE)
    with pytest.raises(ValueError):
        ByteRange(start=0, end=SIZE, total_size=SIZE)


def test_non_ascii_digits_are_unparseable():
    assert parse_range_header("bytes=²-10", SIZE) == ByteRange(0, 10, SIZE)
    assert parse_range_header("bytes=5-¹", SIZE) == ByteRange(5, 999, SIZE)
    assert parse_range_header("bytes=١٢-20", SIZE) == ByteRange(0, 20, SIZE)


def test_very_long_positions_do_not_overflow():
    huge = "9" * 5000
    with pytest.raises(RangeNotSatisfiable):
        parse_range_header(f"bytes={huge}-", SIZE)
    assert parse_range_header(f"bytes=10-{huge}", SIZE) == ByteRange(10, 999, SIZE)
    assert parse_range_header("bytes=" + "0" * 5000 + "7-9", SIZE) == ByteRange(7, 9, SIZE)
