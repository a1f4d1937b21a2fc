"""Tests for timestamp parsing and formatting."""

from datetime import datetime, timedelta, timezone

from mission_replay.timeutil import format_instant, parse_instant

UTC = timezone.utc


class TestParseInstant:
    def test_store_format_is_utc(self):
        assert parse_instant("2024-01-01 10:00:00") == datetime(2024, 1, 1, 10, 0, tzinfo=UTC)

    def test_iso_z(self):
        assert parse_instant("2024-01-01T10:00:00Z") == datetime(2024, 1, 1, 10, 0, tzinfo=UTC)

    def test_offset_converted(self):
        parsed = parse_instant("2024-01-01T12:00:00+02:00")
        assert parsed == datetime(2024, 1, 1, 10, 0, tzinfo=UTC)
        assert parsed.utcoffset() == timedelta(0)

    def test_datetime_passthrough(self):
        naive = datetime(2024, 1, 1, 10, 0)
        assert parse_instant(naive) == datetime(2024, 1, 1, 10, 0, tzinfo=UTC)

    def test_invalid(self):
        assert parse_instant("not a time") is None
        assert parse_instant("") is None
        assert parse_instant("   ") is None
        assert parse_instant(None) is None
        assert parse_instant(12345) is None


class TestFormatInstant:
    def test_format(self):
        assert format_instant(datetime(2024, 1, 1, 10, 0, 5, tzinfo=UTC)) == "2024-01-01 10:00:05"

    def test_none(self):
        assert format_instant(None) == "--:--:--"
