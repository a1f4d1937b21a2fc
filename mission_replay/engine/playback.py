"""Historical playback: seek, play/pause and speed over recorded time slots."""

import logging

from mission_replay.config import PlaybackConfig
from mission_replay.context import MissionTemporalContext
from mission_replay.engine.display import DisplaySink
from mission_replay.engine.scheduler import CancellationHandle, Scheduler
from mission_replay.engine.snapshot import build_snapshot
from mission_replay.engine.time_index import last_valid_instant
from mission_replay.models import PlaybackState, Snapshot

logger = logging.getLogger(__name__)


class PlaybackController:
    """State machine ``IDLE -> PAUSED(i) <-> PLAYING(i) -> PAUSED(last)``.

    Reads slots from the bound context and writes only ``current_index`` and
    ``play_speed`` back to it. Seeking is ignored while the context is live.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        display: DisplaySink,
        config: PlaybackConfig | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.display = display
        self.config = config or PlaybackConfig()
        self.context: MissionTemporalContext | None = None
        self.state = PlaybackState.IDLE
        self.last_snapshot: Snapshot | None = None
        self._advance_handle: CancellationHandle | None = None

    # --- Properties ---

    @property
    def index(self) -> int | None:
        if self.context is None or self.state is PlaybackState.IDLE:
            return None
        return self.context.current_index

    @property
    def speed(self) -> int:
        if self.context is None:
            return self.config.default_speed
        return self.context.play_speed

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    @property
    def interval_ms(self) -> int:
        return max(1, self.config.base_interval_ms // self.speed)

    # --- Binding ---

    def bind(self, context: MissionTemporalContext) -> None:
        """Attach a newly built (or rebuilt) context.

        The index is clamped into the new slot range. An empty slot list
        returns to IDLE and clears whatever history was on screen.
        """
        self._cancel_schedule()
        self.context = context
        if context.play_speed not in self.config.speeds:
            context.play_speed = self.config.default_speed
        if not context.slots:
            self.reset()
            return
        context.current_index = self._clamp(context.current_index, len(context.slots))
        self.state = PlaybackState.PAUSED

    def reset(self) -> None:
        """Back to IDLE with nothing displayed."""
        self._cancel_schedule()
        was_showing = self.last_snapshot is not None
        self.state = PlaybackState.IDLE
        self.last_snapshot = None
        if self.context is not None:
            self.context.current_index = 0
            if was_showing and not self.context.is_live:
                self.display.clear()

    def destroy(self) -> None:
        self._cancel_schedule()
        self.state = PlaybackState.IDLE
        self.last_snapshot = None
        self.context = None

    # --- Seeking ---

    def seek(self, index: int) -> Snapshot | None:
        """Show the slot at ``index`` (clamped). Returns the rendered snapshot."""
        ctx = self.context
        if ctx is None:
            return None
        if ctx.is_live:
            logger.debug("Ignoring seek(%d) in live mode", index)
            return None
        if not ctx.slots:
            if self.state is not PlaybackState.IDLE:
                self.reset()
            return None

        clamped = self._clamp(index, len(ctx.slots))
        if clamped != index:
            logger.debug("Seek index %d clamped to %d", index, clamped)
        ctx.current_index = clamped
        if self.state is PlaybackState.IDLE:
            self.state = PlaybackState.PAUSED

        slot = ctx.slots[clamped]
        at = slot.instant if slot.instant is not None else last_valid_instant(ctx.slots)
        snapshot = build_snapshot(at, ctx.slots, ctx.task_fields, slot_index=clamped)
        self.last_snapshot = snapshot
        self.display.render_snapshot(snapshot)
        self.display.show_time(ctx.start_time, at)
        return snapshot

    # --- Playing ---

    def play(self) -> bool:
        """Start advancing one slot per tick. Returns True when playing."""
        ctx = self.context
        if ctx is None or ctx.is_live or not ctx.slots:
            return False
        if self.state is PlaybackState.PLAYING:
            return True
        if self.state is PlaybackState.IDLE:
            self.seek(ctx.current_index)
        self.state = PlaybackState.PLAYING
        self._advance_handle = self.scheduler.schedule(self.interval_ms, self._advance)
        logger.debug("Playback started at slot %d, speed %dx", ctx.current_index, ctx.play_speed)
        return True

    def pause(self) -> None:
        self._cancel_schedule()
        if self.state is PlaybackState.PLAYING:
            self.state = PlaybackState.PAUSED
            logger.debug("Playback paused")

    stop = pause

    def toggle(self) -> bool:
        if self.is_playing:
            self.pause()
            return False
        return self.play()

    def change_speed(self, new_speed: int | None = None) -> int:
        """Set the speed multiplier, or cycle through the speeds when None.

        While playing, the schedule restarts at the new rate from the current
        index.
        """
        speeds = self.config.speeds
        ctx = self.context
        if ctx is None or ctx.is_live:
            return self.speed
        if new_speed is None:
            position = speeds.index(ctx.play_speed) if ctx.play_speed in speeds else -1
            new_speed = speeds[(position + 1) % len(speeds)]
        elif new_speed not in speeds:
            raise ValueError(f"Unsupported speed {new_speed}; expected one of {speeds}")

        ctx.play_speed = new_speed
        if self.is_playing:
            self._cancel_schedule()
            self._advance_handle = self.scheduler.schedule(self.interval_ms, self._advance)
        logger.debug("Playback speed set to %dx", new_speed)
        return new_speed

    def _advance(self) -> None:
        ctx = self.context
        if self.state is not PlaybackState.PLAYING or ctx is None:
            return
        if not ctx.slots:
            self.reset()
            return
        last = len(ctx.slots) - 1
        if ctx.current_index < last:
            self.seek(ctx.current_index + 1)
        if ctx.current_index >= last:
            self.pause()
            logger.info("Playback reached the last slot (%d)", last)

    # --- Helpers ---

    @staticmethod
    def _clamp(index: int, count: int) -> int:
        return max(0, min(index, count - 1))

    def _cancel_schedule(self) -> None:
        if self._advance_handle is not None:
            self._advance_handle.cancel()
            self._advance_handle = None
