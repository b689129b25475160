from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Literal, Optional

PlaybackState = Literal["idle", "playing", "paused", "stopped"]


@dataclass(slots=True)
class TimelineState:
    """
    The engine's only mutable state.

    - current_frame_index: always within [0, max(frame_count - 1, 0)]
    - stop_at_frame: target for the current run; overrides loop_enabled while set
    - tick_interval_ms: may be inf (no timer is ever armed then)
    - sequence: monotonic counter stamped on published events

    Owned by exactly one TimelineEngine; nothing else writes to it.
    """

    frame_count: int = 0
    current_frame_index: int = 0
    playback_state: PlaybackState = "idle"
    loop_enabled: bool = True
    stop_at_frame: Optional[int] = None
    tick_interval_ms: float = math.inf
    sequence: int = 0

    @property
    def last_index(self) -> int:
        return max(self.frame_count - 1, 0)

    @property
    def has_frames(self) -> bool:
        return self.frame_count > 0

    def next_sequence(self) -> int:
        self.sequence += 1
        return self.sequence

    def copy(self) -> "TimelineState":
        return replace(self)
