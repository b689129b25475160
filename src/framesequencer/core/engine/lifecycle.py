from __future__ import annotations

import math
from typing import Optional

import structlog

from framesequencer.core.engine.scheduler import TickCallback, TickScheduler, TimerHandle

log = structlog.get_logger()


class TimerLifecycle:
    """
    Owns the engine's single recurring timer.

    Guarantees:
      - at most one armed timer at any time (arm() releases the previous one)
      - an infinite interval never arms anything
      - after dispose() nothing can be armed again and the old timer is released
    """

    def __init__(self, *, scheduler: TickScheduler) -> None:
        self._scheduler = scheduler
        self._timer: Optional[TimerHandle] = None
        self._interval_ms: float = math.inf
        self._disposed = False

    @property
    def is_armed(self) -> bool:
        return self._timer is not None and not self._timer.cancelled

    @property
    def interval_ms(self) -> float:
        return self._interval_ms if self.is_armed else math.inf

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def arm(self, *, interval_ms: float, callback: TickCallback) -> bool:
        """
        (Re)arm the timer. Returns False when nothing was armed.

        If the scheduler raises, the exception propagates and the previous
        timer (if any) stays armed.
        """
        if self._disposed or not math.isfinite(interval_ms) or interval_ms <= 0:
            self.disarm()
            if not self._disposed:
                log.debug("timer.not_armed", interval_ms=interval_ms)
            return False

        timer = self._scheduler.schedule(interval_ms=interval_ms, callback=callback)
        self.disarm()
        self._timer = timer
        self._interval_ms = interval_ms
        log.debug("timer.armed", interval_ms=interval_ms)
        return True

    def disarm(self) -> None:
        timer, self._timer = self._timer, None
        self._interval_ms = math.inf
        if timer is None or timer.cancelled:
            return
        timer.cancel()
        log.debug("timer.disarmed")

    def dispose(self) -> None:
        if self._disposed:
            return
        self.disarm()
        self._disposed = True
        log.debug("timer.disposed")
