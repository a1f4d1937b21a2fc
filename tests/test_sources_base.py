"""Tests for converting stored rows into position records."""

from mission_replay.models import EntityKind
from mission_replay.sources.base import position_from_row


def convert(rows):
    return [r for r in (position_from_row(row) for row in rows) if r is not None]


class TestPositionFromRow:
    def test_unknown_type_kept_between_neighbours(self):
        rows = [
            {"type": "drone", "drone_id": 1, "drone_name": "Alpha", "latitude": 48.0,
             "longitude": 11.0, "height": 30, "battery": 90, "recorded_at": "2024-01-01 10:00:00"},
            {"type": "balloon", "id": 5, "latitude": 1, "longitude": 2,
             "recorded_at": "2024-01-01 10:00:30"},
            {"type": "icon", "icon_id": 7, "icon_type": "fire", "label_text": "Hotspot",
             "latitude": 48.1, "longitude": 11.1, "recorded_at": "2024-01-01 10:01:00"},
        ]
        records = convert(rows)
        assert [(r.entity_kind, r.entity_id) for r in records] == [
            (EntityKind.VEHICLE.value, "1"),
            ("balloon", "5"),
            (EntityKind.MARKER.value, "7"),
        ]
        assert records[1].latitude == 1.0
        assert records[0].charge_level == 90.0
        assert records[2].marker_type == "fire"

    def test_malformed_row_skipped_alone(self):
        rows = [
            {"type": "drone", "drone_id": 1, "latitude": 48.0, "longitude": 11.0,
             "recorded_at": "2024-01-01 10:00:00"},
            {"type": "balloon", "id": 5, "latitude": "up high", "longitude": 2,
             "recorded_at": "2024-01-01 10:00:30"},
            {"type": "icon", "icon_id": 7, "latitude": 48.1, "longitude": 11.1,
             "recorded_at": "2024-01-01 10:01:00"},
        ]
        assert [r.entity_id for r in convert(rows)] == ["1", "7"]

    def test_missing_coordinates_skipped(self):
        assert position_from_row({"type": "icon", "icon_id": 7, "recorded_at": "2024-01-01 10:01:00"}) is None
