"""Reconstruct what was true at a given instant.

Everything here is a pure function of its arguments: recomputing a snapshot
for the same instant always gives the same answer, however often a user
scrubs back and forth.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from mission_replay.models import (
    KNOWN_KINDS,
    DoneStatus,
    EntityKind,
    LegacyDone,
    Mode,
    PositionRecord,
    Snapshot,
    TimedDone,
    TimeSlot,
)
from mission_replay.timeutil import parse_instant

logger = logging.getLogger(__name__)

# Keys a structured status may use for its completion time.
_COMPLETION_KEYS = ("timestamp", "completed_at", "completedAt")


def positions_as_of(
    entity_kind: EntityKind | str,
    time: datetime | str | None,
    slots: list[TimeSlot],
) -> dict[str, PositionRecord]:
    """Latest record per entity with ``recorded_at <= time``.

    Entities with no record at or before ``time`` are omitted. Two records of
    one entity at the same instant resolve to the later one in load order.
    """
    kind = entity_kind.value if isinstance(entity_kind, EntityKind) else entity_kind
    if kind not in KNOWN_KINDS:
        logger.warning("Unknown entity kind requested: %r", kind)
        return {}

    at = parse_instant(time)
    if at is None:
        logger.warning("Cannot reconstruct positions for unparseable time %r", time)
        return {}

    latest: dict[str, PositionRecord] = {}
    for slot in slots:
        if slot.instant is None:
            # Unparseable slots sit at the end and cannot be ordered.
            break
        if slot.instant > at:
            break
        for record in slot.records:
            if record.entity_kind == kind:
                latest[record.entity_id] = record
    return latest


def current_positions(
    entity_kind: EntityKind | str,
    slots: list[TimeSlot],
) -> dict[str, PositionRecord]:
    """Latest known record per entity, with no time bound."""
    kind = entity_kind.value if isinstance(entity_kind, EntityKind) else entity_kind
    latest: dict[str, PositionRecord] = {}
    for slot in slots:
        if slot.instant is None:
            break
        for record in slot.records:
            if record.entity_kind == kind:
                latest[record.entity_id] = record
    return latest


def resolve_task_fields(raw: Any) -> dict[str, DoneStatus]:
    """Resolve stored task field statuses into ``LegacyDone`` / ``TimedDone``.

    Accepts the current map form and the older list form, where entry ``i``
    belongs to field number ``i + 1``. Fields that are not done are dropped.
    """
    if raw is None:
        return {}
    if isinstance(raw, list):
        raw = {str(i + 1): value for i, value in enumerate(raw) if value is not None}
    if not isinstance(raw, Mapping):
        logger.warning("Ignoring task field statuses of type %s", type(raw).__name__)
        return {}

    resolved: dict[str, DoneStatus] = {}
    for field_id, value in raw.items():
        status = _resolve_one(str(field_id), value)
        if status is not None:
            resolved[str(field_id)] = status
    return resolved


def _resolve_one(field_id: str, value: Any) -> DoneStatus | None:
    if isinstance(value, (LegacyDone, TimedDone)):
        return value
    if value is True:
        return LegacyDone()
    if not isinstance(value, Mapping) or value.get("done") is not True:
        return None

    stamp = next((value[k] for k in _COMPLETION_KEYS if value.get(k)), None)
    if stamp is None:
        return LegacyDone()
    completed_at = parse_instant(stamp)
    if completed_at is None:
        logger.warning(
            "Field %s has unparseable completion time %r; treating as always done",
            field_id, stamp,
        )
        return LegacyDone()
    return TimedDone(completed_at=completed_at)


def task_fields_as_of(
    time: datetime | str | None,
    statuses: Mapping[str, Any] | None,
) -> dict[str, bool]:
    """Done flag per stored field at ``time``.

    Legacy statuses carry no completion time and are reported done for every
    query time. This is a known approximation of old data, kept for
    compatibility.
    """
    if not statuses:
        return {}
    resolved = resolve_task_fields(statuses)
    at = parse_instant(time)

    result: dict[str, bool] = {}
    for field_id, status in resolved.items():
        if isinstance(status, TimedDone):
            result[field_id] = at is not None and status.completed_at <= at
        else:
            result[field_id] = True
    return result


def task_fields_present(statuses: Mapping[str, Any] | None) -> dict[str, bool]:
    """Present-day view: every stored field is done regardless of timestamp."""
    if not statuses:
        return {}
    return {field_id: True for field_id in resolve_task_fields(statuses)}


def build_snapshot(
    time: datetime | None,
    slots: list[TimeSlot],
    statuses: Mapping[str, Any] | None,
    slot_index: int | None = None,
) -> Snapshot:
    """Historical snapshot of vehicles, markers and task fields at ``time``."""
    if time is None:
        return Snapshot(mode=Mode.HISTORY, slot_index=slot_index)

    entities: list[PositionRecord] = []
    entities.extend(positions_as_of(EntityKind.VEHICLE, time, slots).values())
    entities.extend(positions_as_of(EntityKind.MARKER, time, slots).values())

    return Snapshot(
        mode=Mode.HISTORY,
        time=time,
        slot_index=slot_index,
        entities=entities,
        task_fields=task_fields_as_of(time, statuses),
    )
