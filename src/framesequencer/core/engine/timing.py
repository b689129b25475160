from __future__ import annotations

import math
from typing import Optional

DEFAULT_FPS = 24.0


def clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


def clamp_frame(frame_index: int, frame_count: int) -> int:
    """
    Clamp an arbitrary index into [0, frame_count - 1]; 0 for an empty list.
    """
    if frame_count <= 0:
        return 0
    return clamp(frame_index, 0, frame_count - 1)


def normalize_fps(fps: Optional[float]) -> float:
    """
    Non-positive, non-finite or missing rates fall back to DEFAULT_FPS.
    """
    if fps is None or not math.isfinite(fps) or fps <= 0:
        return DEFAULT_FPS
    return float(fps)


def normalize_duration(duration_ms: Optional[float]) -> Optional[float]:
    """
    A total duration only counts when it is finite and > 0.
    """
    if duration_ms is None or not math.isfinite(duration_ms) or duration_ms <= 0:
        return None
    return float(duration_ms)


def tick_interval_ms(
    *,
    frame_count: int,
    fps: Optional[float] = None,
    duration_ms: Optional[float] = None,
) -> float:
    """
    Delay between two frames in milliseconds.

    A usable total duration wins over the frame rate and is spread evenly
    across the frames. An empty frame list yields inf: there is nothing to
    advance to, so no timer should ever be armed.
    """
    if frame_count <= 0:
        return math.inf

    duration = normalize_duration(duration_ms)
    if duration is not None:
        return duration / frame_count

    return 1000.0 / normalize_fps(fps)
