from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from framesequencer.core.engine.router import EventHandler
from framesequencer.core.engine.state import PlaybackState
from framesequencer.core.engine.timing import clamp_frame
from framesequencer.core.events.base import Event
from framesequencer.core.events.playback import FrameChanged, FrameListChanged, PlaybackStateChanged

BASE_CSS_CLASS = "png-sequencer"
DEFAULT_PLACEHOLDER = "Provide PNG frames to start playback."


@dataclass(frozen=True, slots=True)
class FrameView:
    """
    What a rendering surface should display right now.
    """

    has_frames: bool
    frame_index: int
    frame_count: int
    state: PlaybackState
    src: Optional[str]
    alt: Optional[str]
    css_class: str
    placeholder: Optional[str]

    @property
    def data_attributes(self) -> dict[str, str]:
        if not self.has_frames:
            return {}
        return {"data-frame": str(self.frame_index), "data-state": self.state}


@dataclass(slots=True)
class FrameViewComponent:
    """
    Rendering collaborator: tracks playback events and resolves the
    current frame reference for display.

    Never talks to the engine directly; everything arrives over the bus.
    """

    css_class: Optional[str] = None
    alt: Optional[str] = None
    placeholder: str = DEFAULT_PLACEHOLDER

    _frames: tuple[str, ...] = field(default=(), init=False)
    _frame_index: int = field(default=0, init=False)
    _state: PlaybackState = field(default="idle", init=False)

    def subscriptions(self) -> Sequence[tuple[str, EventHandler]]:
        return [
            (FrameListChanged.event_type, self._on_frame_list),
            (FrameChanged.event_type, self._on_frame),
            (PlaybackStateChanged.event_type, self._on_state),
        ]

    def _on_frame_list(self, e: Event) -> None:
        if isinstance(e, FrameListChanged):
            self._frames = e.frames
            self._frame_index = e.frame_index
            self._state = e.state

    def _on_frame(self, e: Event) -> None:
        if isinstance(e, FrameChanged):
            self._frame_index = e.frame_index

    def _on_state(self, e: Event) -> None:
        if isinstance(e, PlaybackStateChanged):
            self._state = e.state

    def snapshot(self) -> FrameView:
        css_class = " ".join(c for c in (BASE_CSS_CLASS, self.css_class) if c)
        count = len(self._frames)

        if count == 0:
            return FrameView(
                has_frames=False,
                frame_index=0,
                frame_count=0,
                state=self._state,
                src=None,
                alt=None,
                css_class=css_class,
                placeholder=self.placeholder,
            )

        # the bus may deliver a frame list change after a stale index
        index = clamp_frame(self._frame_index, count)
        alt = self.alt
        if alt is None:
            alt = f"PNG frame {index + 1} of {count} (state: {self._state})"

        return FrameView(
            has_frames=True,
            frame_index=index,
            frame_count=count,
            state=self._state,
            src=self._frames[index],
            alt=alt,
            css_class=css_class,
            placeholder=None,
        )
