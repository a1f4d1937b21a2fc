"""Switch the display between live polling and historical playback."""

import logging
from datetime import datetime

from mission_replay.context import MissionTemporalContext
from mission_replay.engine.display import DisplaySink
from mission_replay.engine.live import LiveController, Subscriber, Subscription
from mission_replay.engine.playback import PlaybackController
from mission_replay.engine.snapshot import current_positions, task_fields_present
from mission_replay.models import EntityKind, Mode, Snapshot, VehicleRecord
from mission_replay.timeutil import format_instant

logger = logging.getLogger(__name__)


class _LiveView(Subscriber):
    """Turns live feed updates into live snapshots for the coordinator."""

    def __init__(self, coordinator: "ModeCoordinator") -> None:
        self.coordinator = coordinator

    def on_update(self, vehicles: list[VehicleRecord]) -> None:
        self.coordinator._render_live(vehicles)

    def on_clock_tick(self, now: datetime) -> None:
        self.coordinator._show_live_clock(now)


class ModeCoordinator:
    """Owns the Live/History switch for one opened mission at a time.

    Each ``enter_*`` tears down the other mode's timers and subscriptions
    before any setup, so rapid toggling never leaves two render paths
    running. Only this class flips ``context.is_live``.
    """

    def __init__(
        self,
        playback: PlaybackController,
        live: LiveController,
        display: DisplaySink,
    ) -> None:
        self.playback = playback
        self.live = live
        self.display = display
        self.context: MissionTemporalContext | None = None
        self.mode: Mode | None = None
        self.last_live_snapshot: Snapshot | None = None
        self._live_subscription: Subscription | None = None

    # --- Mission lifecycle ---

    def open_mission(self, context: MissionTemporalContext, active: bool | None = None) -> None:
        """Bind a freshly loaded mission.

        A mission opens in history mode unless it is actively operated
        (``active``, defaulting to the mission status).
        """
        self._teardown()
        self.context = context
        context.is_live = False
        self.playback.bind(context)
        if active is None:
            active = context.is_active
        logger.info(
            "Opened mission %s (%d slots, %s)",
            context.mission_id, len(context.slots), "live" if active else "history",
        )
        if active:
            self.enter_live()
        else:
            self.enter_history()

    def refresh(self, context: MissionTemporalContext) -> None:
        """Swap in a rebuilt context for the same mission, keeping mode and position."""
        previous = self.context
        if previous is None or self.mode is None:
            self.open_mission(context)
            return
        was_playing = self.playback.is_playing
        context.is_live = previous.is_live
        context.current_index = previous.current_index
        context.play_speed = previous.play_speed
        self.context = context
        self.playback.bind(context)

        if self.mode is Mode.LIVE:
            self._render_live(self.live.current_vehicles)
        elif context.slots:
            self.display.set_playback_enabled(True)
            self.playback.seek(context.current_index)
            if was_playing:
                self.playback.play()
        else:
            self._show_empty_history()

    def close(self) -> None:
        self._teardown()
        self.playback.destroy()
        self.live.destroy()
        self.context = None
        self.mode = None
        self.last_live_snapshot = None
        self.display.clear()

    # --- Modes ---

    def enter_live(self) -> None:
        ctx = self._require_context()
        self.playback.stop()
        self._stop_live()

        ctx.is_live = True
        self.mode = Mode.LIVE
        self.display.set_playback_enabled(False)
        self.display.show_mode(Mode.LIVE)
        self.display.clear()

        self.live.start(ctx.mission_id)
        self._live_subscription = self.live.subscribe(_LiveView(self))
        if not self.live.has_data:
            # Markers and task fields are known before the first vehicle poll lands.
            self._render_live([])
        logger.info("Entered live mode for mission %s", ctx.mission_id)

    def enter_history(self) -> None:
        ctx = self._require_context()
        self._stop_live()
        self.playback.stop()

        ctx.is_live = False
        self.mode = Mode.HISTORY
        self.last_live_snapshot = None
        self.display.show_mode(Mode.HISTORY)

        if ctx.slots:
            self.display.set_playback_enabled(True)
            self.playback.seek(ctx.current_index)
        else:
            self._show_empty_history()
        logger.info("Entered history mode for mission %s", ctx.mission_id)

    def toggle_mode(self) -> Mode:
        if self.mode is Mode.LIVE:
            self.enter_history()
            return Mode.HISTORY
        self.enter_live()
        return Mode.LIVE

    # --- Rendering ---

    def _render_live(self, vehicles: list[VehicleRecord]) -> None:
        ctx = self.context
        if ctx is None or self.mode is not Mode.LIVE:
            return
        now = self.live.clock()
        stamp = format_instant(now)
        entities = [v.to_position(stamp) for v in vehicles]
        entities.extend(current_positions(EntityKind.MARKER, ctx.slots).values())
        snapshot = Snapshot(
            mode=Mode.LIVE,
            time=now,
            entities=entities,
            task_fields=task_fields_present(ctx.task_fields),
        )
        self.last_live_snapshot = snapshot
        self.display.render_snapshot(snapshot)
        self.display.show_time(ctx.start_time, now)

    def _show_live_clock(self, now: datetime) -> None:
        if self.context is not None and self.mode is Mode.LIVE:
            self.display.show_time(self.context.start_time, now)

    def _show_empty_history(self) -> None:
        self.display.set_playback_enabled(False)
        self.display.clear()
        self.display.show_no_data()
        self.display.show_time(self.context.start_time if self.context else None, None)

    # --- Teardown ---

    def _stop_live(self) -> None:
        if self._live_subscription is not None:
            self._live_subscription.cancel()
            self._live_subscription = None
        self.live.stop()

    def _teardown(self) -> None:
        self.playback.stop()
        self._stop_live()

    def _require_context(self) -> MissionTemporalContext:
        if self.context is None:
            raise RuntimeError("No mission opened. Call open_mission() first.")
        return self.context
