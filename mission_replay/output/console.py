"""Plain-text display sink for the command line."""

import sys
from datetime import datetime
from typing import TextIO

from mission_replay.engine.display import DisplaySink
from mission_replay.models import EntityKind, Mode, Snapshot
from mission_replay.timeutil import format_instant


class ConsoleDisplay(DisplaySink):
    """Prints each snapshot as a short block of text."""

    def __init__(self, stream: TextIO | None = None, show_clock: bool = False) -> None:
        self.stream = stream or sys.stdout
        self.show_clock = show_clock
        self.frames = 0

    def _write(self, line: str) -> None:
        print(line, file=self.stream)

    def render_snapshot(self, snapshot: Snapshot) -> None:
        self.frames += 1
        header = f"[{snapshot.mode.value}] {format_instant(snapshot.time)}"
        if snapshot.slot_index is not None:
            header += f"  slot {snapshot.slot_index}"
        self._write(header)
        for line in format_snapshot_lines(snapshot):
            self._write(f"  {line}")

    def clear(self) -> None:
        return None

    def show_mode(self, mode: Mode) -> None:
        if mode is Mode.LIVE:
            self._write("== LIVE ==")
        else:
            self._write("== HISTORY (recorded positions) ==")

    def show_no_data(self) -> None:
        self._write("No historical position data for this mission.")

    def set_playback_enabled(self, enabled: bool) -> None:
        return None

    def show_time(self, start: datetime | None, shown: datetime | None) -> None:
        if self.show_clock:
            self._write(f"  start {format_instant(start)}  now {format_instant(shown)}")


def format_snapshot_lines(snapshot: Snapshot) -> list[str]:
    """One line per vehicle and marker, then a task-field summary."""
    lines: list[str] = []
    for v in snapshot.entities_of(EntityKind.VEHICLE):
        detail = []
        if v.altitude is not None:
            detail.append(f"alt {v.altitude:g}m")
        if v.charge_level is not None:
            detail.append(f"battery {v.charge_level:g}%")
        suffix = f" ({', '.join(detail)})" if detail else ""
        name = f" {v.name}" if v.name else ""
        lines.append(f"vehicle {v.entity_id}{name} @ {v.latitude:.6f},{v.longitude:.6f}{suffix}")
    for m in snapshot.entities_of(EntityKind.MARKER):
        label = f" \"{m.label_text}\"" if m.label_text else ""
        lines.append(
            f"marker {m.entity_id} {m.marker_type or '?'}{label} @ {m.latitude:.6f},{m.longitude:.6f}"
        )
    if snapshot.task_fields:
        done = sorted((f for f, d in snapshot.task_fields.items() if d), key=_field_sort_key)
        lines.append(f"fields done {len(done)}/{len(snapshot.task_fields)}: {', '.join(done) or '-'}")
    if not lines:
        lines.append("(nothing to show)")
    return lines


def _field_sort_key(field_id: str) -> tuple[int, str]:
    return (int(field_id), "") if field_id.isdigit() else (1 << 30, field_id)
