from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

import structlog

log = structlog.get_logger()

TickCallback = Callable[[], None]


class TimerHandle(Protocol):
    """
    A recurring timer. cancel() must be idempotent and must guarantee the
    callback does not fire again afterwards.
    """

    @property
    def cancelled(self) -> bool:
        ...

    def cancel(self) -> None:
        ...


class TickScheduler(Protocol):
    """
    Host event loop seam: arms one recurring callback every interval_ms.
    """

    def schedule(self, *, interval_ms: float, callback: TickCallback) -> TimerHandle:
        ...


def _check_interval(interval_ms: float) -> None:
    if not math.isfinite(interval_ms) or interval_ms <= 0:
        raise ValueError(f"interval_ms must be finite and > 0, got {interval_ms!r}")


# ---------------------------------------------------------------------------
# asyncio
# ---------------------------------------------------------------------------


class AsyncioTimer:
    """
    setInterval-like timer on an asyncio loop.

    Deadlines are computed from the arming time (start + k * interval) so
    the cadence does not drift with callback latency. If the loop falls
    behind, missed ticks are dropped instead of fired in a burst. A callback
    that raises is logged and the timer keeps running.
    """

    def __init__(self, *, loop: asyncio.AbstractEventLoop, interval_ms: float, callback: TickCallback) -> None:
        self._loop = loop
        self._interval_s = interval_ms / 1000.0
        self._callback = callback
        self._cancelled = False
        self._deadline = loop.time() + self._interval_s
        self._handle: Optional[asyncio.TimerHandle] = loop.call_at(self._deadline, self._fire)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        if self._cancelled:
            return

        try:
            self._callback()
        except Exception:
            log.exception("scheduler.callback_failed", interval_ms=self._interval_s * 1000.0)

        # the callback may have disarmed us (end of run, pause, ...)
        if self._cancelled:
            return

        self._deadline += self._interval_s
        now = self._loop.time()
        if self._deadline < now:
            self._deadline = now
        self._handle = self._loop.call_at(self._deadline, self._fire)


class AsyncioTickScheduler:
    """
    Production scheduler: timers run on the asyncio event loop.

    Without an explicit loop the running loop is looked up when a timer is
    armed, so schedule() must then be called from inside that loop.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def schedule(self, *, interval_ms: float, callback: TickCallback) -> AsyncioTimer:
        _check_interval(interval_ms)
        loop = self._loop if self._loop is not None else asyncio.get_running_loop()
        return AsyncioTimer(loop=loop, interval_ms=interval_ms, callback=callback)


# ---------------------------------------------------------------------------
# virtual clock
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ManualTimer:
    interval_ms: float
    callback: TickCallback
    due_ms: float
    cancelled: bool = False
    fired: int = 0

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(slots=True)
class ManualTickScheduler:
    """
    Virtual-clock scheduler for tests and offline stepping.

    Nothing happens until advance() or step() is called; timers then fire
    synchronously in due order, so a test can reason about exact tick
    counts without sleeping.
    """

    now_ms: float = 0.0
    _timers: list[ManualTimer] = field(default_factory=list, init=False)

    def schedule(self, *, interval_ms: float, callback: TickCallback) -> ManualTimer:
        _check_interval(interval_ms)
        timer = ManualTimer(interval_ms=interval_ms, callback=callback, due_ms=self.now_ms + interval_ms)
        self._timers.append(timer)
        return timer

    @property
    def active_timers(self) -> tuple[ManualTimer, ...]:
        self._timers = [t for t in self._timers if not t.cancelled]
        return tuple(self._timers)

    def advance(self, ms: float) -> int:
        """
        Move the clock forward by ms, firing every timer that comes due.
        Returns the number of callbacks fired.
        """
        if ms < 0:
            raise ValueError("cannot move the clock backwards")

        target = self.now_ms + ms
        fired = 0
        while True:
            timer = self._next_due(until=target)
            if timer is None:
                break
            self.now_ms = timer.due_ms
            self._fire(timer)
            fired += 1

        self.now_ms = target
        return fired

    def step(self, count: int = 1) -> int:
        """
        Jump straight to the next due timer and fire it, count times.
        Stops early when no timer is armed. Returns the number fired.
        """
        fired = 0
        for _ in range(count):
            timer = self._next_due(until=math.inf)
            if timer is None:
                break
            self.now_ms = timer.due_ms
            self._fire(timer)
            fired += 1
        return fired

    def _next_due(self, *, until: float) -> Optional[ManualTimer]:
        due = [t for t in self.active_timers if t.due_ms <= until]
        if not due:
            return None
        return min(due, key=lambda t: t.due_ms)

    def _fire(self, timer: ManualTimer) -> None:
        timer.fired += 1
        timer.due_ms += timer.interval_ms
        timer.callback()
        log.debug("scheduler.manual_fired", now_ms=self.now_ms, fired=timer.fired)
