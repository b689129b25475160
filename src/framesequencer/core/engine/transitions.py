from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from framesequencer.core.engine.state import PlaybackState
from framesequencer.core.engine.timing import clamp


@dataclass(frozen=True, slots=True)
class TickOutcome:
    """
    Result of one timer tick, computed before anything is committed.

    - next_index: index to commit
    - halt_as: state to enter (and disarm the timer) after committing, if any
    - clear_stop_target: the stop-at-frame target was reached this tick
    """

    next_index: int
    halt_as: Optional[PlaybackState] = None
    clear_stop_target: bool = False


def advance(
    *,
    current_index: int,
    frame_count: int,
    loop_enabled: bool,
    stop_at_frame: Optional[int],
) -> Optional[TickOutcome]:
    """
    Compute the outcome of a single tick.

    Returns None for an empty frame list (nothing to advance).

    The index always lands exactly on the stop target or on the last frame
    before playback halts; it never overshoots by one tick.
    """
    if frame_count <= 0:
        return None

    last_index = frame_count - 1
    next_index = current_index + 1

    if stop_at_frame is not None and next_index >= stop_at_frame:
        return TickOutcome(
            next_index=clamp(stop_at_frame, 0, last_index),
            halt_as="paused",
            clear_stop_target=True,
        )

    if next_index > last_index:
        if loop_enabled:
            return TickOutcome(next_index=0)
        return TickOutcome(next_index=last_index, halt_as="stopped")

    return TickOutcome(next_index=next_index)
