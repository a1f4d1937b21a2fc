"""CLI entry point for mission replay."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from mission_replay.config import Config, load_config
from mission_replay.context import MissionTemporalContext, empty_context, load_context
from mission_replay.engine.coordinator import ModeCoordinator
from mission_replay.engine.live import LiveController
from mission_replay.engine.playback import PlaybackController
from mission_replay.engine.scheduler import AsyncioScheduler
from mission_replay.engine.snapshot import build_snapshot
from mission_replay.models import EntityKind
from mission_replay.output.console import ConsoleDisplay, format_snapshot_lines
from mission_replay.sources.base import SourceError
from mission_replay.sources.http_api import MissionApiClient
from mission_replay.sources.sqlite_store import MissionStore, open_store
from mission_replay.timeutil import format_instant, parse_instant

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Mission Replay")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--api", default=None, help="Base URL of the mission web API")
    parser.add_argument("--db", default=None, help="Mission SQLite file (overrides config)")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("missions", help="List missions in the database")

    slots_parser = sub.add_parser("slots", help="List recorded time slots of a mission")
    slots_parser.add_argument("mission_id")

    snapshot_parser = sub.add_parser("snapshot", help="Show what was true at one instant")
    snapshot_parser.add_argument("mission_id")
    snapshot_parser.add_argument(
        "--at", required=True,
        help="Instant as 'YYYY-MM-DD HH:MM:SS' (UTC unless a zone is given)",
    )

    replay_parser = sub.add_parser("replay", help="Play back recorded history")
    replay_parser.add_argument("mission_id")
    replay_parser.add_argument("--speed", type=int, default=None, help="Speed multiplier (1, 2 or 4)")
    replay_parser.add_argument("--from", dest="start_index", type=int, default=0, help="Start slot index")

    live_parser = sub.add_parser("live", help="Follow the live vehicle feed")
    live_parser.add_argument(
        "mission_id", nargs="?",
        help="Mission to follow. If omitted, follows the general feed.",
    )
    live_parser.add_argument("--duration", type=float, default=60.0, help="Seconds to follow")

    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    config = load_config(args.config)
    try:
        asyncio.run(run_command(args, config))
    except SourceError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def open_source(args: argparse.Namespace, config: Config) -> MissionApiClient | MissionStore:
    """Pick the mission source. Command line flags win over config.yaml."""
    if args.api:
        return _api_client(args.api, config)
    if args.db:
        return open_store(Path(args.db))
    if config.api_base_url:
        return _api_client(config.api_base_url, config)
    store = MissionStore(config)
    store.connect()
    return store


def _api_client(base_url: str, config: Config) -> MissionApiClient:
    logger.debug("Reading missions from API at %s", base_url)
    return MissionApiClient(base_url, share_token=config.share_token, config=config.http)


async def run_command(args: argparse.Namespace, config: Config) -> None:
    source = open_source(args, config)
    try:
        if args.command == "missions":
            if not isinstance(source, MissionStore):
                print("Listing missions needs a database (--db).")
                return
            missions = source.list_missions()
            if not missions:
                print("No missions found.")
                return
            for m in missions:
                print(f"  {m.mission_id}: {m.status}, created {m.created_at or '?'}")

        elif args.command == "slots":
            context = await load_context(source, args.mission_id)
            if not context.slots:
                print(f"No recorded positions for mission {args.mission_id}.")
                return
            print(f"Mission {args.mission_id}: start {format_instant(context.start_time)}, {len(context.slots)} slots")
            for i, slot in enumerate(context.slots):
                vehicles = sum(1 for r in slot.records if r.entity_kind == EntityKind.VEHICLE.value)
                markers = sum(1 for r in slot.records if r.entity_kind == EntityKind.MARKER.value)
                when = format_instant(slot.instant) if slot.instant else f"{slot.time!r} (unparseable)"
                print(f"  {i:4d}  {when}  vehicles={vehicles} markers={markers}")

        elif args.command == "snapshot":
            at = parse_instant(args.at)
            if at is None:
                print(f"Cannot parse --at {args.at!r}")
                return
            context = await load_context(source, args.mission_id)
            snapshot = build_snapshot(at, context.slots, context.task_fields)
            print(f"Mission {args.mission_id} at {format_instant(at)}:")
            for line in format_snapshot_lines(snapshot):
                print(f"  {line}")

        elif args.command == "replay":
            context = await load_context(source, args.mission_id)
            await _replay(context, source, config, args.start_index, args.speed)

        elif args.command == "live":
            if args.mission_id:
                context = await load_context(source, args.mission_id)
            else:
                context = empty_context()
            await _follow_live(context, source, config, args.duration)

        else:
            print(f"Unknown command: {args.command}")
    finally:
        if isinstance(source, MissionApiClient):
            await source.aclose()
        else:
            source.close()


def _build_engine(
    source: MissionApiClient | MissionStore,
    config: Config,
    display: ConsoleDisplay,
) -> ModeCoordinator:
    scheduler = AsyncioScheduler()
    playback = PlaybackController(scheduler, display, config.playback)
    live = LiveController(source, scheduler, config.live)
    return ModeCoordinator(playback, live, display)


async def _replay(
    context: MissionTemporalContext,
    source: MissionApiClient | MissionStore,
    config: Config,
    start_index: int,
    speed: int | None,
) -> None:
    display = ConsoleDisplay()
    coordinator = _build_engine(source, config, display)
    context.current_index = start_index
    coordinator.open_mission(context, active=False)
    if not context.slots:
        coordinator.close()
        return
    playback = coordinator.playback
    try:
        if speed is not None:
            playback.change_speed(speed)
        playback.play()
        while playback.is_playing:
            await asyncio.sleep(0.05)
    finally:
        coordinator.close()
    print(f"Replayed {display.frames} frames.")


async def _follow_live(
    context: MissionTemporalContext,
    source: MissionApiClient | MissionStore,
    config: Config,
    duration: float,
) -> None:
    display = ConsoleDisplay(show_clock=False)
    coordinator = _build_engine(source, config, display)
    coordinator.open_mission(context, active=True)
    try:
        await asyncio.sleep(duration)
    finally:
        coordinator.close()


if __name__ == "__main__":
    main()
