"""Per-mission temporal state and the loader that builds it."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from mission_replay.engine.snapshot import resolve_task_fields
from mission_replay.engine.time_index import build_time_index
from mission_replay.models import DoneStatus, MissionInfo, PositionRecord, TimeSlot
from mission_replay.sources.base import MissionSource, SourceError
from mission_replay.timeutil import parse_instant

logger = logging.getLogger(__name__)


@dataclass
class MissionTemporalContext:
    """Everything the engine knows about one opened mission.

    ``start_time`` is fixed when the context is built. ``current_index`` is
    only meaningful while ``is_live`` is false and stays within the slot
    range; PlaybackController keeps it there.
    """
    mission_id: str | None
    start_time: datetime | None = None
    slots: list[TimeSlot] = field(default_factory=list)
    task_fields: dict[str, DoneStatus] = field(default_factory=dict)
    status: str = "pending"
    current_index: int = 0
    is_live: bool = False
    play_speed: int = 1

    @property
    def has_history(self) -> bool:
        return bool(self.slots)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


def build_context(
    mission: MissionInfo | None,
    records: list[PositionRecord],
    play_speed: int = 1,
) -> MissionTemporalContext:
    """Build a complete context from mission metadata and its records."""
    slots = build_time_index(records)

    start_time = parse_instant(mission.created_at) if mission else None
    if start_time is None:
        start_time = next((s.instant for s in slots if s.instant is not None), None)

    return MissionTemporalContext(
        mission_id=mission.mission_id if mission else None,
        start_time=start_time,
        slots=slots,
        task_fields=resolve_task_fields(mission.done_fields if mission else None),
        status=mission.status if mission else "pending",
        play_speed=play_speed,
    )


def empty_context(mission_id: str | None = None) -> MissionTemporalContext:
    return MissionTemporalContext(mission_id=mission_id)


async def load_context(
    source: MissionSource,
    mission_id: str,
    previous: MissionTemporalContext | None = None,
) -> MissionTemporalContext:
    """Load a mission and build its context.

    A failed load never yields a half-built context: it falls back to
    ``previous`` when that belongs to the same mission, else to an empty one.
    """
    try:
        mission, records = await source.load_mission_bundle(mission_id)
    except SourceError as e:
        if previous is not None and previous.mission_id == mission_id:
            logger.warning("Reload of mission %s failed, keeping previous data: %s", mission_id, e)
            return previous
        logger.warning("Load of mission %s failed, starting empty: %s", mission_id, e)
        return empty_context(mission_id)

    speed = previous.play_speed if previous is not None else 1
    context = build_context(mission, records, play_speed=speed)
    logger.info(
        "Mission %s: %d records in %d slots, %d task fields",
        mission_id, len(records), len(context.slots), len(context.task_fields),
    )
    return context
