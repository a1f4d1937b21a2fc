"""Read mission history and live telemetry from the mission web API."""

import logging
from typing import Any

import httpx

from mission_replay.config import HttpConfig
from mission_replay.models import MissionInfo, PositionRecord, VehicleRecord
from mission_replay.sources.base import (
    LiveFeed,
    MissionSource,
    SourceError,
    position_from_row,
    vehicle_from_payload,
)

logger = logging.getLogger(__name__)

MISSION_PATH = "api/mission.php"
LIVE_PATH = "api/drones.php"


class MissionApiClient(MissionSource, LiveFeed):
    """Async client for the mission API.

    ``transport`` is passed straight to httpx so tests can mount a
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        share_token: str | None = None,
        config: HttpConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config = config or HttpConfig()
        self.share_token = share_token
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(config.timeout_s, connect=config.connect_timeout_s),
            headers={"User-Agent": config.user_agent},
            transport=transport,
        )

    async def __aenter__(self) -> "MissionApiClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        if self.share_token:
            params = {**params, "token": self.share_token}
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise SourceError(f"GET {path} failed: {e}") from e
        except ValueError as e:
            raise SourceError(f"GET {path} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise SourceError(f"GET {path} returned {type(data).__name__}, expected object")
        if data.get("error") or data.get("success") is False:
            raise SourceError(f"GET {path}: {data.get('error') or 'request failed'}")
        return data

    async def load_mission_bundle(
        self, mission_id: str,
    ) -> tuple[MissionInfo, list[PositionRecord]]:
        data = await self._get_json(
            MISSION_PATH, {"mission_id": mission_id, "get_positions": "1"},
        )
        mission = _mission_from_payload(mission_id, data)
        rows = data.get("positions") or []
        records = [r for r in (position_from_row(row) for row in rows) if r is not None]
        logger.info(
            "Loaded %d positions for mission %s (%d rows skipped)",
            len(records), mission_id, len(rows) - len(records),
        )
        return mission, records

    async def load_mission(self, mission_id: str) -> MissionInfo:
        data = await self._get_json(MISSION_PATH, {"mission_id": mission_id})
        return _mission_from_payload(mission_id, data)

    async def load_mission_events(self, mission_id: str) -> list[PositionRecord]:
        _, records = await self.load_mission_bundle(mission_id)
        return records

    async def load_live_positions(self, mission_id: str | None = None) -> list[VehicleRecord]:
        params = {"mission_id": mission_id} if mission_id else {}
        data = await self._get_json(LIVE_PATH, params)
        items = data.get("drones") or []
        return [v for v in (vehicle_from_payload(item) for item in items) if v is not None]


def _mission_from_payload(mission_id: str, data: dict[str, Any]) -> MissionInfo:
    raw = data.get("mission")
    if not isinstance(raw, dict):
        raise SourceError(f"Mission {mission_id}: response has no mission object")
    return MissionInfo(
        mission_id=str(raw.get("mission_id") or mission_id),
        status=raw.get("status") or "pending",
        created_at=raw.get("created_at"),
        done_fields=raw.get("done_fields_parsed"),
    )
