"""Pydantic models for mission replay."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    VEHICLE = "vehicle"
    MARKER = "marker"


KNOWN_KINDS = frozenset(k.value for k in EntityKind)


class Mode(str, Enum):
    LIVE = "live"
    HISTORY = "history"


class PlaybackState(str, Enum):
    IDLE = "idle"
    PAUSED = "paused"
    PLAYING = "playing"


# --- Records (what comes out of the collaborator) ---


class PositionRecord(BaseModel):
    """One recorded position of a vehicle or marker. Never modified after load.

    ``entity_kind`` stays a plain string so a record of an unknown kind can
    travel through the index without failing validation of the whole batch.
    """
    model_config = ConfigDict(frozen=True)

    entity_kind: str
    entity_id: str
    latitude: float
    longitude: float
    recorded_at: str
    name: str | None = None
    altitude: float | None = None
    charge_level: float | None = None
    marker_type: str | None = None
    label_text: str | None = None


class VehicleRecord(BaseModel):
    """Current telemetry of one vehicle from the live feed."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None
    latitude: float
    longitude: float
    altitude: float | None = None
    charge_level: float | None = None

    def to_position(self, recorded_at: str) -> PositionRecord:
        return PositionRecord(
            entity_kind=EntityKind.VEHICLE.value,
            entity_id=self.id,
            latitude=self.latitude,
            longitude=self.longitude,
            recorded_at=recorded_at,
            name=self.name,
            altitude=self.altitude,
            charge_level=self.charge_level,
        )


class MissionInfo(BaseModel):
    mission_id: str
    status: str = "pending"
    created_at: str | None = None
    done_fields: Any = None  # raw map (or legacy list) as stored

    @property
    def is_active(self) -> bool:
        return self.status == "active"


# --- Time index ---


class TimeSlot(BaseModel):
    """All records sharing one recorded instant."""
    time: str
    instant: datetime | None = None  # None when the timestamp could not be parsed
    records: list[PositionRecord] = Field(default_factory=list)


# --- Task field status ---


class LegacyDone(BaseModel):
    """Done with no time information (bare ``true`` or no timestamp)."""
    kind: Literal["legacy"] = "legacy"


class TimedDone(BaseModel):
    kind: Literal["timed"] = "timed"
    completed_at: datetime


DoneStatus = Annotated[Union[LegacyDone, TimedDone], Field(discriminator="kind")]


# --- Output ---


class Snapshot(BaseModel):
    """What the display should show for one mode and moment."""
    mode: Mode
    time: datetime | None = None
    slot_index: int | None = None
    entities: list[PositionRecord] = Field(default_factory=list)
    task_fields: dict[str, bool] = Field(default_factory=dict)

    def entities_of(self, kind: EntityKind) -> list[PositionRecord]:
        return [e for e in self.entities if e.entity_kind == kind.value]
