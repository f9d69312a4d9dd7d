from datetime import datetime, timezone

from chargehub.utils.timeutils import normalize_timestamp, parse_timestamp, to_iso


def test_to_iso_matches_javascript_format():
    value = datetime(2025, 1, 3, 10, 15, 0, 123456, tzinfo=timezone.utc)
    assert to_iso(value) == "2025-01-03T10:15:00.123Z"


def test_to_iso_treats_naive_as_utc():
    assert to_iso(datetime(2025, 1, 3, 10, 15)) == "2025-01-03T10:15:00.000Z"


def test_normalize_appends_zone():
    assert normalize_timestamp("2025-01-03T10:15:00") == "2025-01-03T10:15:00Z"


def test_normalize_keeps_explicit_zone():
    assert normalize_timestamp("2025-01-03T10:15:00.000Z") == "2025-01-03T10:15:00.000Z"
    assert normalize_timestamp("2025-01-03T17:15:00+07:00") == "2025-01-03T17:15:00+07:00"


def test_parse_offset_to_utc():
    expected = datetime(2025, 1, 3, 10, 15, tzinfo=timezone.utc)
    assert parse_timestamp("2025-01-03T17:15:00+07:00") == expected


def test_parse_zoneless_as_utc():
    expected = datetime(2025, 1, 3, 10, 15, tzinfo=timezone.utc)
    assert parse_timestamp("2025-01-03 10:15:00") == expected
    assert parse_timestamp("2025-01-03T10:15:00.000Z") == expected


def test_parse_empty():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_round_trip_keeps_millisecond_precision():
    value = datetime(2025, 6, 30, 23, 59, 59, 999000, tzinfo=timezone.utc)
    assert parse_timestamp(to_iso(value)) == value
