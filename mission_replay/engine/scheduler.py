"""Timers and background tasks behind one injectable interface.

Controllers never touch the event loop directly. They ask a scheduler for a
repeating timer or a background coroutine and keep the returned
``CancellationHandle``. ``AsyncioScheduler`` runs on the real loop;
``ManualScheduler`` advances virtual time so playback and polling can be
driven step by step.
"""

import abc
import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class CancellationHandle:
    """Cancels one timer or task. Cancelling twice is harmless."""

    def __init__(self, on_cancel: Callable[[], Any] | None = None) -> None:
        self._on_cancel = on_cancel
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None


class Scheduler(abc.ABC):
    """Source of repeating timers and background tasks."""

    @abc.abstractmethod
    def schedule(self, interval_ms: int, fn: Callable[[], None]) -> CancellationHandle:
        """Call ``fn`` every ``interval_ms`` until the handle is cancelled."""
        ...

    @abc.abstractmethod
    def spawn(self, coro: Coroutine[Any, Any, Any]) -> CancellationHandle:
        """Run ``coro`` in the background. Cancelling the handle cancels it."""
        ...


def _check_interval(interval_ms: int) -> None:
    if interval_ms <= 0:
        raise ValueError(f"interval_ms must be positive, got {interval_ms}")


def _run_callback(fn: Callable[[], None]) -> None:
    try:
        fn()
    except Exception:
        logger.exception("Scheduled callback failed")


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def schedule(self, interval_ms: int, fn: Callable[[], None]) -> CancellationHandle:
        _check_interval(interval_ms)
        loop = self.loop
        delay = interval_ms / 1000
        timer: list[asyncio.TimerHandle] = []
        handle = CancellationHandle(lambda: timer[0].cancel())

        def _fire() -> None:
            if handle.cancelled:
                return
            # Re-arm before running so fn may cancel its own handle.
            timer[0] = loop.call_later(delay, _fire)
            _run_callback(fn)

        timer.append(loop.call_later(delay, _fire))
        return handle

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> CancellationHandle:
        task = self.loop.create_task(coro)
        return CancellationHandle(task.cancel)


class _Timer:
    def __init__(self, due_ms: int, interval_ms: int, fn: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.interval_ms = interval_ms
        self.fn = fn


class ManualScheduler(Scheduler):
    """Virtual-time scheduler.

    Nothing fires until ``advance()`` is called. Timers due within the advanced
    window fire in due order, ties broken by creation order, and spawned tasks
    are drained after every timer. Spawned coroutines run on a private event
    loop exposed as ``loop`` so callers can create futures on it.
    """

    def __init__(self) -> None:
        self.now_ms = 0
        self.loop = asyncio.new_event_loop()
        self._timers: dict[int, _Timer] = {}
        self._next_id = 0
        self._tasks: list[asyncio.Task] = []
        self.spawned = 0

    @property
    def active_timers(self) -> int:
        return len(self._timers)

    @property
    def pending_tasks(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def schedule(self, interval_ms: int, fn: Callable[[], None]) -> CancellationHandle:
        _check_interval(interval_ms)
        timer_id = self._next_id
        self._next_id += 1
        self._timers[timer_id] = _Timer(self.now_ms + interval_ms, interval_ms, fn)
        return CancellationHandle(lambda: self._timers.pop(timer_id, None))

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> CancellationHandle:
        task = self.loop.create_task(coro)
        self._tasks.append(task)
        self.spawned += 1
        return CancellationHandle(task.cancel)

    def advance(self, ms: int) -> None:
        """Move virtual time forward by ``ms``, firing every due timer."""
        target = self.now_ms + ms
        while True:
            due = [
                (timer.due_ms, timer_id)
                for timer_id, timer in self._timers.items()
                if timer.due_ms <= target
            ]
            if not due:
                break
            due_ms, timer_id = min(due)
            timer = self._timers[timer_id]
            self.now_ms = due_ms
            timer.due_ms += timer.interval_ms
            _run_callback(timer.fn)
            self.run_pending()
        self.now_ms = target
        self.run_pending()

    def run_pending(self, max_steps: int = 50) -> None:
        """Step the private loop until spawned tasks finish or block."""
        for _ in range(max_steps):
            self._tasks = [t for t in self._tasks if not t.done()]
            if not self._tasks:
                return
            self.loop.run_until_complete(asyncio.sleep(0))

    def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        self.run_pending()
        self.loop.close()
