from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from framesequencer.core.engine.state import PlaybackState
from framesequencer.core.events.base import Event


@dataclass(frozen=True, slots=True)
class FrameChanged(Event):
    """
    Emitted after the engine commits a new current frame index.
    """

    event_type: ClassVar[str] = "playback.frame_changed"

    frame_index: int


@dataclass(frozen=True, slots=True)
class PlaybackStateChanged(Event):
    """
    Emitted after the engine commits a new playback state.
    Never emitted for a transition into the state it is already in.
    """

    event_type: ClassVar[str] = "playback.state_changed"

    state: PlaybackState
    previous: PlaybackState


@dataclass(frozen=True, slots=True)
class FrameListChanged(Event):
    """
    Emitted when the engine takes a frame list (construction, set_frames)
    or when the preload flag changes.

    Carries a snapshot so collaborators subscribing late can sync
    without querying the engine. `preload` is forwarded verbatim.
    """

    event_type: ClassVar[str] = "playback.frame_list_changed"

    frames: tuple[str, ...]
    preload: bool
    frame_index: int
    state: PlaybackState
