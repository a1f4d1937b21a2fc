"""Shared test fixtures for mission replay tests."""

import asyncio
from datetime import datetime

import pytest

from mission_replay.config import Config
from mission_replay.context import build_context
from mission_replay.engine.display import DisplaySink
from mission_replay.engine.scheduler import ManualScheduler
from mission_replay.models import EntityKind, MissionInfo, Mode, PositionRecord, Snapshot, VehicleRecord
from mission_replay.sources.base import LiveFeed, MissionSource, SourceError
from mission_replay.sources.sqlite_store import MissionStore


def vehicle(entity_id: str, recorded_at: str, lat: float = 48.0, lon: float = 11.0) -> PositionRecord:
    return PositionRecord(
        entity_kind=EntityKind.VEHICLE.value, entity_id=entity_id,
        latitude=lat, longitude=lon, recorded_at=recorded_at,
    )


def marker(entity_id: str, recorded_at: str, lat: float = 48.1, lon: float = 11.1) -> PositionRecord:
    return PositionRecord(
        entity_kind=EntityKind.MARKER.value, entity_id=entity_id,
        latitude=lat, longitude=lon, recorded_at=recorded_at, marker_type="fire",
    )


class RecordingDisplay(DisplaySink):
    """DisplaySink that records every call for assertions."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []
        self.snapshots: list[Snapshot] = []
        self.playback_enabled: bool | None = None
        self.times: list[tuple[datetime | None, datetime | None]] = []

    def render_snapshot(self, snapshot: Snapshot) -> None:
        self.calls.append(("render", snapshot.mode))
        self.snapshots.append(snapshot)

    def clear(self) -> None:
        self.calls.append(("clear", None))

    def show_mode(self, mode: Mode) -> None:
        self.calls.append(("mode", mode))

    def show_no_data(self) -> None:
        self.calls.append(("no_data", None))

    def set_playback_enabled(self, enabled: bool) -> None:
        self.playback_enabled = enabled
        self.calls.append(("playback_enabled", enabled))

    def show_time(self, start: datetime | None, shown: datetime | None) -> None:
        self.times.append((start, shown))

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    @property
    def last(self) -> Snapshot | None:
        return self.snapshots[-1] if self.snapshots else None


class FakeFeed(LiveFeed):
    """LiveFeed returning canned vehicles and counting calls."""

    def __init__(self, vehicles: list[VehicleRecord] | None = None) -> None:
        self.vehicles = vehicles or []
        self.calls: list[str | None] = []
        self.fail = False
        self.gate: asyncio.Future | None = None  # blocks the next fetch until resolved

    async def load_live_positions(self, mission_id: str | None = None) -> list[VehicleRecord]:
        self.calls.append(mission_id)
        if self.gate is not None:
            gate, self.gate = self.gate, None
            await asyncio.shield(gate)
        if self.fail:
            raise SourceError("feed unavailable")
        return list(self.vehicles)


class FakeSource(MissionSource):
    """In-memory MissionSource."""

    def __init__(self, missions: dict[str, tuple[MissionInfo, list[PositionRecord]]] | None = None) -> None:
        self.missions = missions or {}
        self.fail = False

    async def load_mission(self, mission_id: str) -> MissionInfo:
        if self.fail or mission_id not in self.missions:
            raise SourceError(f"Mission not found: {mission_id}")
        return self.missions[mission_id][0]

    async def load_mission_events(self, mission_id: str) -> list[PositionRecord]:
        if self.fail or mission_id not in self.missions:
            raise SourceError(f"Mission not found: {mission_id}")
        return list(self.missions[mission_id][1])


@pytest.fixture()
def sample_records():
    """E1 at 10:00 and 10:05, E2 at 10:02, one marker at 10:01, loaded out of order."""
    return [
        vehicle("E1", "2024-01-01 10:05:00", lat=48.5),
        vehicle("E1", "2024-01-01 10:00:00", lat=48.0),
        vehicle("E2", "2024-01-01 10:02:00", lat=47.0),
        marker("M1", "2024-01-01 10:01:00"),
    ]


@pytest.fixture()
def sample_mission():
    return MissionInfo(
        mission_id="m-1",
        status="completed",
        created_at="2024-01-01 09:55:00",
        done_fields={
            "1": {"done": True, "timestamp": "2024-01-01 10:03:00"},
            "2": True,
        },
    )


@pytest.fixture()
def sample_context(sample_mission, sample_records):
    return build_context(sample_mission, sample_records)


@pytest.fixture()
def scheduler():
    sched = ManualScheduler()
    yield sched
    sched.close()


@pytest.fixture()
def display():
    return RecordingDisplay()


@pytest.fixture()
def feed():
    return FakeFeed([
        VehicleRecord(id="7", name="Drone 7", latitude=48.2, longitude=11.2, altitude=40.0, charge_level=80),
    ])


@pytest.fixture()
def tmp_store(tmp_path):
    """Create a MissionStore backed by a temp file."""
    store = MissionStore(Config(db_path=str(tmp_path / "missions.db")))
    store.init_db()
    yield store
    store.close()
