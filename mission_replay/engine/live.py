"""Live mode: poll the vehicle feed and fan results out to subscribers."""

import abc
import logging
from collections.abc import Callable
from datetime import datetime

from mission_replay.config import LiveConfig
from mission_replay.engine.scheduler import CancellationHandle, Scheduler
from mission_replay.models import VehicleRecord
from mission_replay.sources.base import LiveFeed
from mission_replay.timeutil import utc_now

logger = logging.getLogger(__name__)


class Subscriber(abc.ABC):
    """Observer of the live feed."""

    @abc.abstractmethod
    def on_update(self, vehicles: list[VehicleRecord]) -> None:
        ...

    def on_clock_tick(self, now: datetime) -> None:
        """Called every clock tick while live. Optional."""
        return None


class Subscription:
    """Removable registration returned by ``LiveController.subscribe``."""

    def __init__(self, controller: "LiveController", subscriber: Subscriber) -> None:
        self._controller = controller
        self.subscriber = subscriber

    @property
    def active(self) -> bool:
        return self.subscriber in self._controller._subscribers

    def cancel(self) -> None:
        self._controller.unsubscribe(self.subscriber)


class LiveController:
    """Periodic fetch-and-notify loop against a LiveFeed.

    Every timer and in-flight fetch is held as a CancellationHandle. A fetch
    that completes after ``stop()`` or after a restart is discarded.
    """

    def __init__(
        self,
        feed: LiveFeed,
        scheduler: Scheduler,
        config: LiveConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.feed = feed
        self.scheduler = scheduler
        self.config = config or LiveConfig()
        self.clock = clock
        self.mission_id: str | None = None
        self.current_vehicles: list[VehicleRecord] = []
        self.has_data = False
        self._subscribers: list[Subscriber] = []
        self._poll_handle: CancellationHandle | None = None
        self._clock_handle: CancellationHandle | None = None
        self._inflight: dict[object, CancellationHandle] = {}
        self._generation = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # --- Subscribers ---

    def subscribe(self, subscriber: Subscriber) -> Subscription:
        """Register ``subscriber``; it immediately gets the latest payload if any."""
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)
        if self.has_data:
            self._deliver(subscriber, self.current_vehicles)
        return Subscription(self, subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    # --- Lifecycle ---

    def start(self, mission_id: str | None = None, poll_interval_ms: int | None = None) -> None:
        """Begin polling. Restarting cancels the previous timers first."""
        self._cancel_handles()
        if mission_id != self.mission_id:
            self.current_vehicles = []
            self.has_data = False
        self.mission_id = mission_id
        if poll_interval_ms is None:
            poll_interval_ms = (
                self.config.mission_poll_interval_ms if mission_id
                else self.config.idle_poll_interval_ms
            )
        self._generation += 1
        self._running = True

        self._request_fetch()
        self._poll_handle = self.scheduler.schedule(poll_interval_ms, self._request_fetch)
        self._clock_handle = self.scheduler.schedule(self.config.clock_tick_ms, self._tick_clock)
        logger.info(
            "Live polling started (mission=%s, every %d ms)", mission_id or "-", poll_interval_ms,
        )

    def stop(self) -> None:
        """Cancel polling, the clock and in-flight fetches; drop all subscribers."""
        was_running = self._running
        self._cancel_handles()
        self._generation += 1
        self._running = False
        self._subscribers.clear()
        if was_running:
            logger.info("Live polling stopped")

    def destroy(self) -> None:
        self.stop()
        self.current_vehicles = []
        self.has_data = False
        self.mission_id = None

    # --- Fetching ---

    async def fetch_and_notify(self) -> bool:
        """Fetch once and notify subscribers. Returns True when delivered."""
        if not self._running:
            return False
        generation = self._generation
        try:
            vehicles = await self.feed.load_live_positions(self.mission_id)
        except Exception:
            logger.exception("Live position fetch failed; keeping previous data")
            return False

        if not self._running or generation != self._generation:
            logger.debug("Discarding live positions that arrived after stop")
            return False

        self.current_vehicles = list(vehicles)
        self.has_data = True
        for subscriber in list(self._subscribers):
            self._deliver(subscriber, self.current_vehicles)
        return True

    def _request_fetch(self) -> None:
        if not self._running:
            return
        token = object()
        self._inflight[token] = self.scheduler.spawn(self._fetch_tracked(token))

    async def _fetch_tracked(self, token: object) -> None:
        try:
            await self.fetch_and_notify()
        finally:
            self._inflight.pop(token, None)

    def _tick_clock(self) -> None:
        if not self._running:
            return
        now = self.clock()
        for subscriber in list(self._subscribers):
            try:
                subscriber.on_clock_tick(now)
            except Exception:
                logger.exception("Live clock subscriber failed")

    def _deliver(self, subscriber: Subscriber, vehicles: list[VehicleRecord]) -> None:
        try:
            subscriber.on_update(vehicles)
        except Exception:
            logger.exception("Live subscriber failed")

    def _cancel_handles(self) -> None:
        for handle in (self._poll_handle, self._clock_handle):
            if handle is not None:
                handle.cancel()
        self._poll_handle = None
        self._clock_handle = None
        inflight = list(self._inflight.values())
        self._inflight.clear()
        for handle in inflight:
            handle.cancel()
