"""Timer scheduling for deferred actions.

The queue decides *what* happens when a grace window elapses; a scheduler
decides *how* time is measured and when callbacks run. ``AsyncioScheduler``
drives production timers off the running event loop. ``ManualScheduler``
is a fake clock whose time only moves when ``advance()`` is awaited, so
expiry can be exercised without real delays.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Coroutine

import structlog

logger = structlog.get_logger(__name__)


class TimerHandle(ABC):
    """Cancellation token for a scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        ...


class Scheduler(ABC):
    """Source of time and timers for the deferred action queue."""

    @abstractmethod
    def now(self) -> float:
        """Current monotonic time in seconds."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""

    @abstractmethod
    def spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Run ``coro`` in the background without blocking the caller."""

    async def aclose(self) -> None:
        """Wait for background work started with ``spawn``."""


def _on_loop_thread(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class _AsyncioTimer(TimerHandle):
    """Timer whose loop handle may be attached after creation.

    When scheduled from another thread the loop handle only exists once the
    loop has run the hand-off; a cancel that arrives first still sticks.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False
        self._lock = threading.Lock()

    def attach(self, handle: asyncio.TimerHandle) -> None:
        with self._lock:
            if self._cancelled:
                handle.cancel()
            else:
                self._handle = handle

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            handle = self._handle
        if handle is None:
            return
        if _on_loop_thread(self._loop):
            handle.cancel()
        else:
            self._loop.call_soon_threadsafe(handle.cancel)


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop.

    Safe to call from threads other than the loop's: work is handed to the
    loop with ``call_soon_threadsafe``. Without an explicit ``loop`` the
    first call must come from the loop thread so the running loop can be
    picked up.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._tasks: set[asyncio.Task] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        loop = self._get_loop()
        timer = _AsyncioTimer(loop)
        when = loop.time() + delay
        if _on_loop_thread(loop):
            timer.attach(loop.call_at(when, callback))
        else:
            loop.call_soon_threadsafe(lambda: timer.attach(loop.call_at(when, callback)))
        return timer

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        loop = self._get_loop()
        if _on_loop_thread(loop):
            self._track(loop.create_task(coro))
        else:
            loop.call_soon_threadsafe(lambda: self._track(loop.create_task(coro)))

    def _track(self, task: asyncio.Task) -> None:
        # Hold a reference so the task is not garbage collected mid-flight
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def aclose(self) -> None:
        if self._tasks:
            logger.info("scheduler_draining", tasks=len(self._tasks))
            await asyncio.gather(*self._tasks, return_exceptions=True)


class _ManualTimer(TimerHandle):
    def __init__(self, deadline: float, seq: int, callback: Callable[[], Any]):
        self.deadline = deadline
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "_ManualTimer") -> bool:
        return (self.deadline, self.seq) < (other.deadline, other.seq)


class ManualScheduler(Scheduler):
    """Deterministic scheduler driven by explicit clock advances."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._seq = itertools.count()
        self._timers: list[_ManualTimer] = []
        self._spawned: list[Coroutine[Any, Any, Any]] = []
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        timer = _ManualTimer(self._now + max(delay, 0.0), next(self._seq), callback)
        with self._lock:
            heapq.heappush(self._timers, timer)
        return timer

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        with self._lock:
            self._spawned.append(coro)

    @property
    def pending_timers(self) -> int:
        """Number of timers that are scheduled and not cancelled."""
        return sum(1 for t in self._timers if not t.cancelled)

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in deadline order.

        Background work spawned by a callback is run to completion before
        the next timer fires.
        """
        target = self._now + seconds
        while True:
            with self._lock:
                if not self._timers or self._timers[0].deadline > target:
                    break
                timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = max(self._now, timer.deadline)
            timer.callback()
            await self.drain()
        self._now = target

    async def drain(self) -> None:
        """Run spawned coroutines until none are left."""
        while True:
            with self._lock:
                if not self._spawned:
                    return
                coro = self._spawned.pop(0)
            await coro

    async def aclose(self) -> None:
        await self.drain()
