"""Tests for the console display sink."""

import io
from datetime import datetime, timezone

from conftest import marker, vehicle
from mission_replay.models import Mode, Snapshot
from mission_replay.output.console import ConsoleDisplay, format_snapshot_lines


class TestFormatSnapshotLines:
    def test_entities_and_fields(self):
        snap = Snapshot(
            mode=Mode.HISTORY,
            entities=[vehicle("7", "2024-01-01 10:00:00"), marker("3", "2024-01-01 10:00:00")],
            task_fields={"10": True, "2": True, "3": False},
        )
        lines = format_snapshot_lines(snap)
        assert lines[0].startswith("vehicle 7 @ 48.000000,11.000000")
        assert lines[1].startswith("marker 3 fire @ ")
        assert lines[2] == "fields done 2/3: 2, 10"

    def test_vehicle_details(self):
        rec = vehicle("7", "2024-01-01 10:00:00").model_copy(
            update={"name": "Drone 7", "altitude": 40.0, "charge_level": 80.0},
        )
        line = format_snapshot_lines(Snapshot(mode=Mode.LIVE, entities=[rec]))[0]
        assert line == "vehicle 7 Drone 7 @ 48.000000,11.000000 (alt 40m, battery 80%)"

    def test_nothing(self):
        assert format_snapshot_lines(Snapshot(mode=Mode.HISTORY)) == ["(nothing to show)"]


class TestConsoleDisplay:
    def test_render(self):
        out = io.StringIO()
        display = ConsoleDisplay(stream=out)
        display.render_snapshot(Snapshot(
            mode=Mode.HISTORY,
            time=datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc),
            slot_index=3,
            entities=[vehicle("7", "2024-01-01 10:00:00")],
        ))
        text = out.getvalue()
        assert text.startswith("[history] 2024-01-01 10:00:00  slot 3\n")
        assert display.frames == 1

    def test_banners(self):
        out = io.StringIO()
        display = ConsoleDisplay(stream=out)
        display.show_mode(Mode.LIVE)
        display.show_mode(Mode.HISTORY)
        display.show_no_data()
        assert out.getvalue().splitlines() == [
            "== LIVE ==",
            "== HISTORY (recorded positions) ==",
            "No historical position data for this mission.",
        ]

    def test_clock_only_when_enabled(self):
        out = io.StringIO()
        ConsoleDisplay(stream=out).show_time(None, None)
        assert out.getvalue() == ""
        ConsoleDisplay(stream=out, show_clock=True).show_time(None, None)
        assert "start --:--:--" in out.getvalue()
