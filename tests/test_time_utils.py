from datetime import UTC, datetime, timedelta, timezone

from disaster_map_ingest.time_utils import parse_published_datetime


def test_parse_iso_with_z_suffix() -> None:
    dt = parse_published_datetime("2024-12-01T08:30:00Z")
    assert dt == datetime(2024, 12, 1, 8, 30, tzinfo=UTC)


def test_parse_converts_offsets_to_utc() -> None:
    dt = parse_published_datetime("2024-12-01T15:30:00+07:00")
    assert dt == datetime(2024, 12, 1, 8, 30, tzinfo=UTC)


def test_parse_naive_is_assumed_utc() -> None:
    dt = parse_published_datetime(datetime(2024, 12, 1, 8, 30))
    assert dt is not None
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)


def test_parse_rfc2822_and_epoch() -> None:
    assert parse_published_datetime("Sun, 01 Dec 2024 08:30:00 +0000") == datetime(2024, 12, 1, 8, 30, tzinfo=UTC)
    assert parse_published_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_parse_garbage_returns_none() -> None:
    assert parse_published_datetime(None) is None
    assert parse_published_datetime("") is None
    assert parse_published_datetime("kemarin sore") is None
