"""Group recorded positions into an ordered sequence of time slots."""

import logging
from collections.abc import Iterable
from datetime import datetime

from mission_replay.models import PositionRecord, TimeSlot
from mission_replay.timeutil import parse_instant

logger = logging.getLogger(__name__)


def build_time_index(records: Iterable[PositionRecord]) -> list[TimeSlot]:
    """Build ascending, deduplicated time slots from a flat record list.

    Records are grouped by exact ``recorded_at`` string. Groups whose strings
    parse to the same instant are merged, keeping records in load order.
    Unparseable timestamps are logged and their groups appended after every
    valid slot, in first-seen order.
    """
    # raw string -> (first load position, records in load order)
    by_raw: dict[str, list[tuple[int, PositionRecord]]] = {}
    for seq, record in enumerate(records):
        by_raw.setdefault(record.recorded_at, []).append((seq, record))

    by_instant: dict[datetime, tuple[str, list[tuple[int, PositionRecord]]]] = {}
    invalid: list[tuple[str, list[tuple[int, PositionRecord]]]] = []

    for raw, entries in by_raw.items():
        instant = parse_instant(raw)
        if instant is None:
            logger.warning(
                "Unparseable timestamp %r on %d record(s); placing after valid slots",
                raw, len(entries),
            )
            invalid.append((raw, entries))
            continue
        if instant in by_instant:
            key, merged = by_instant[instant]
            merged.extend(entries)
            logger.debug("Merged timestamp %r into slot %r", raw, key)
        else:
            by_instant[instant] = (raw, list(entries))

    slots: list[TimeSlot] = []
    for instant in sorted(by_instant):
        key, entries = by_instant[instant]
        entries.sort(key=lambda e: e[0])
        slots.append(TimeSlot(time=key, instant=instant, records=[r for _, r in entries]))

    for raw, entries in invalid:
        slots.append(TimeSlot(time=raw, instant=None, records=[r for _, r in entries]))

    logger.debug(
        "Built %d time slots (%d unparseable) from %d timestamps",
        len(slots), len(invalid), len(by_raw),
    )
    return slots


def last_valid_instant(slots: list[TimeSlot]) -> datetime | None:
    """Return the latest parseable slot instant, or None."""
    for slot in reversed(slots):
        if slot.instant is not None:
            return slot.instant
    return None
