"""Read mission history from a SQLite mission database file."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from mission_replay.config import Config
from mission_replay.models import MissionInfo, PositionRecord, VehicleRecord
from mission_replay.sources.base import (
    LiveFeed,
    MissionSource,
    SourceError,
    position_from_row,
)

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS missions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    mission_id TEXT NOT NULL UNIQUE,
    status TEXT NOT NULL DEFAULT 'pending',
    done_fields TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS drone_positions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    mission_id TEXT NOT NULL,
    drone_id INTEGER NOT NULL,
    drone_name TEXT NOT NULL,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    height REAL NOT NULL,
    battery INTEGER NOT NULL,
    recorded_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS map_icons (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    mission_id TEXT NOT NULL,
    icon_type TEXT NOT NULL,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    label_text TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS map_icon_positions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    icon_id INTEGER NOT NULL,
    mission_id TEXT NOT NULL,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    recorded_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_drone_positions_mission_id ON drone_positions(mission_id);
CREATE INDEX IF NOT EXISTS idx_drone_positions_recorded_at ON drone_positions(recorded_at);
CREATE INDEX IF NOT EXISTS idx_map_icon_positions_mission_id ON map_icon_positions(mission_id);
"""


class MissionStore(MissionSource, LiveFeed):
    """SQLite reader for mission databases.

    Only reads. Rows are written by the mission application, so ``connect``
    opens an existing file read-only. ``init_db`` creates an empty database
    with the expected tables, for fixtures and fresh installs.
    """

    def __init__(self, config: Config) -> None:
        self.db_path = config.resolved_db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not opened. Call connect() or init_db() first.")
        return self._conn

    def connect(self) -> None:
        """Open an existing mission database read-only."""
        if not self.db_path.is_file():
            raise SourceError(f"Mission database not found: {self.db_path}")
        try:
            self._conn = sqlite3.connect(f"{self.db_path.as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as e:
            raise SourceError(f"Cannot open {self.db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row
        logger.info("Mission database opened read-only at %s", self.db_path)

    def init_db(self) -> None:
        """Create a writable database with the mission tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA_SQL)
        logger.info("Mission database opened at %s", self.db_path)

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    # --- Mission operations ---

    def get_mission(self, mission_id: str) -> MissionInfo | None:
        row = self.conn.execute(
            "SELECT mission_id, status, created_at, done_fields FROM missions WHERE mission_id = ?",
            (mission_id,),
        ).fetchone()
        if row is None:
            return None
        return MissionInfo(
            mission_id=row["mission_id"],
            status=row["status"] or "pending",
            created_at=row["created_at"],
            done_fields=_parse_done_fields(row["done_fields"]),
        )

    def list_missions(self) -> list[MissionInfo]:
        rows = self.conn.execute(
            "SELECT mission_id FROM missions ORDER BY created_at DESC"
        ).fetchall()
        missions = [self.get_mission(r["mission_id"]) for r in rows]
        return [m for m in missions if m is not None]

    # --- Position operations ---

    def get_position_rows(self, mission_id: str) -> list[dict[str, Any]]:
        """Vehicle rows then marker rows, each in store order."""
        rows: list[dict[str, Any]] = []
        for r in self.conn.execute(
            "SELECT * FROM drone_positions WHERE mission_id = ? ORDER BY id",
            (mission_id,),
        ):
            rows.append({**dict(r), "type": "drone"})
        for r in self.conn.execute(
            """SELECT mip.icon_id, mip.latitude, mip.longitude, mip.recorded_at,
                      mi.icon_type, mi.label_text
               FROM map_icon_positions mip
               JOIN map_icons mi ON mip.icon_id = mi.id
               WHERE mip.mission_id = ?
               ORDER BY mip.id""",
            (mission_id,),
        ):
            rows.append({**dict(r), "type": "icon"})
        return rows

    def get_latest_vehicles(self, mission_id: str | None = None) -> list[VehicleRecord]:
        """Most recent stored row per vehicle."""
        where = "WHERE mission_id = ?" if mission_id else ""
        params: tuple[Any, ...] = (mission_id,) if mission_id else ()
        rows = self.conn.execute(
            f"""SELECT dp.* FROM drone_positions dp
                JOIN (SELECT drone_id, MAX(id) AS max_id FROM drone_positions {where}
                      GROUP BY drone_id) latest
                ON dp.id = latest.max_id
                ORDER BY dp.drone_id""",
            params,
        ).fetchall()
        return [
            VehicleRecord(
                id=str(r["drone_id"]),
                name=r["drone_name"],
                latitude=r["latitude"],
                longitude=r["longitude"],
                altitude=r["height"],
                charge_level=r["battery"],
            )
            for r in rows
        ]

    # --- Collaborator contract ---

    async def load_mission(self, mission_id: str) -> MissionInfo:
        try:
            mission = self.get_mission(mission_id)
        except sqlite3.Error as e:
            raise SourceError(f"Mission {mission_id}: {e}") from e
        if mission is None:
            raise SourceError(f"Mission not found: {mission_id}")
        return mission

    async def load_mission_events(self, mission_id: str) -> list[PositionRecord]:
        try:
            rows = self.get_position_rows(mission_id)
        except sqlite3.Error as e:
            raise SourceError(f"Positions for {mission_id}: {e}") from e
        records = [r for r in (position_from_row(row) for row in rows) if r is not None]
        logger.info("Read %d positions for mission %s from %s", len(records), mission_id, self.db_path)
        return records

    async def load_live_positions(self, mission_id: str | None = None) -> list[VehicleRecord]:
        try:
            return self.get_latest_vehicles(mission_id)
        except sqlite3.Error as e:
            raise SourceError(f"Live positions: {e}") from e


def _parse_done_fields(raw: str | None) -> Any:
    """Safely parse the stored done_fields JSON string."""
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Ignoring malformed done_fields JSON: %.80r", raw)
        return {}


def open_store(path: Path) -> MissionStore:
    """Open an existing mission database file read-only.

    Relative paths resolve against the working directory.
    """
    store = MissionStore(Config(db_path=str(Path(path).resolve())))
    store.connect()
    return store
