"""Collaborator contracts: where recorded and live positions come from."""

import abc
import logging
from typing import Any

from mission_replay.models import EntityKind, MissionInfo, PositionRecord, VehicleRecord

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """A collaborator could not deliver mission data."""


class MissionSource(abc.ABC):
    """Read access to recorded mission data."""

    @abc.abstractmethod
    async def load_mission(self, mission_id: str) -> MissionInfo:
        ...

    @abc.abstractmethod
    async def load_mission_events(self, mission_id: str) -> list[PositionRecord]:
        """Return every recorded vehicle and marker position of a mission.

        Order is the store's load order; callers must not rely on it being
        chronological.
        """
        ...

    async def load_mission_bundle(
        self, mission_id: str,
    ) -> tuple[MissionInfo, list[PositionRecord]]:
        """Load mission metadata and recorded positions together."""
        mission = await self.load_mission(mission_id)
        events = await self.load_mission_events(mission_id)
        return mission, events


class LiveFeed(abc.ABC):
    """Current vehicle telemetry."""

    @abc.abstractmethod
    async def load_live_positions(self, mission_id: str | None = None) -> list[VehicleRecord]:
        """Return current telemetry, optionally scoped to one mission."""
        ...


def position_from_row(row: dict[str, Any]) -> PositionRecord | None:
    """Convert one stored position row into a PositionRecord.

    Rows use the store's column names: ``type`` is ``drone`` or ``icon``.
    Rows of any other type keep their raw type as kind; rows missing
    coordinates or a timestamp are skipped.
    """
    row_type = row.get("type")
    try:
        if row_type == "drone":
            return PositionRecord(
                entity_kind=EntityKind.VEHICLE.value,
                entity_id=str(row["drone_id"]),
                latitude=float(row["latitude"]),
                longitude=float(row["longitude"]),
                recorded_at=str(row["recorded_at"]),
                name=row.get("drone_name"),
                altitude=_opt_float(row.get("height")),
                charge_level=_opt_float(row.get("battery")),
            )
        if row_type == "icon":
            return PositionRecord(
                entity_kind=EntityKind.MARKER.value,
                entity_id=str(row["icon_id"]),
                latitude=float(row["latitude"]),
                longitude=float(row["longitude"]),
                recorded_at=str(row["recorded_at"]),
                marker_type=row.get("icon_type"),
                label_text=row.get("label_text"),
            )
        entity_id = row.get("id") or row.get("entity_id") or ""
        return PositionRecord(
            entity_kind=str(row_type),
            entity_id=str(entity_id),
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            recorded_at=str(row["recorded_at"]),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("Skipping malformed position row: %r", row)
        return None


def vehicle_from_payload(item: dict[str, Any]) -> VehicleRecord | None:
    """Convert one live-feed entry (``id, name, lat, long, height, battery``)."""
    try:
        return VehicleRecord(
            id=str(item["id"]),
            name=item.get("name"),
            latitude=float(item["lat"]),
            longitude=float(item["long"]),
            altitude=_opt_float(item.get("height")),
            charge_level=_opt_float(item.get("battery")),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("Skipping malformed vehicle entry: %r", item)
        return None


def _opt_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)
