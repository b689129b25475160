from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import structlog

from framesequencer.core.engine.lifecycle import TimerLifecycle
from framesequencer.core.engine.scheduler import TickScheduler
from framesequencer.core.engine.state import PlaybackState, TimelineState
from framesequencer.core.engine.timing import clamp_frame, tick_interval_ms
from framesequencer.core.engine.transitions import advance
from framesequencer.core.events.base import Event
from framesequencer.core.events.bus import EventBus
from framesequencer.core.events.playback import FrameChanged, FrameListChanged, PlaybackStateChanged
from framesequencer.core.sequence.spec import PlaybackSpec

log = structlog.get_logger()

FrameChangeCallback = Callable[[int], None]
StateChangeCallback = Callable[[PlaybackState], None]


class TimelineEngine:
    """
    Timer-driven playback over an ordered list of frames.

    Owns the current frame index, the playback state and one recurring
    timer. Commands never raise: arguments are clamped, and commands that
    make no sense for an empty frame list are ignored.

    Notifications (callbacks + EventBus) fire only on an actual change of
    value, and only after every part of a transition is committed.

    Not thread-safe; all calls and timer ticks must come from one thread
    (the event loop driving the scheduler).
    """

    def __init__(
        self,
        *,
        frames: Sequence[str] = (),
        spec: Optional[PlaybackSpec] = None,
        scheduler: TickScheduler,
        bus: Optional[EventBus] = None,
        on_frame_change: Optional[FrameChangeCallback] = None,
        on_state_change: Optional[StateChangeCallback] = None,
    ) -> None:
        self._spec = spec if spec is not None else PlaybackSpec()
        self._frames: tuple[str, ...] = tuple(frames)
        self._bus = bus if bus is not None else EventBus()
        self._on_frame_change = on_frame_change
        self._on_state_change = on_state_change

        self._state = TimelineState(
            frame_count=len(self._frames),
            current_frame_index=clamp_frame(self._spec.initial_frame_index, len(self._frames)),
            loop_enabled=self._spec.loop,
        )
        self._state.tick_interval_ms = self._compute_interval()
        self._lifecycle = TimerLifecycle(scheduler=scheduler)

        log.info(
            "timeline.created",
            frames=len(self._frames),
            interval_ms=self._state.tick_interval_ms,
            loop=self._spec.loop,
            auto_start=self._spec.auto_start,
        )

        self._publish_frame_list()

        if not self._frames:
            self._reset_to_stopped()
        elif self._spec.auto_start:
            self.play()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def frames(self) -> tuple[str, ...]:
        return self._frames

    @property
    def spec(self) -> PlaybackSpec:
        return self._spec

    @property
    def state(self) -> TimelineState:
        # snapshot; the live state is never handed out
        return self._state.copy()

    @property
    def tick_interval_ms(self) -> float:
        return self._state.tick_interval_ms

    @property
    def is_armed(self) -> bool:
        return self._lifecycle.is_armed

    @property
    def is_disposed(self) -> bool:
        return self._lifecycle.is_disposed

    def get_current_frame(self) -> int:
        return self._state.current_frame_index

    def get_playback_state(self) -> PlaybackState:
        return self._state.playback_state

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def play(self, stop_at_frame: Optional[int] = None) -> None:
        if self._ignored("play"):
            return
        if not self._state.has_frames:
            log.debug("timeline.play_ignored", reason="no_frames")
            return

        # the timer goes first; a scheduler failure leaves the state untouched
        if not self._arm():
            return

        if stop_at_frame is not None:
            self._state.stop_at_frame = clamp_frame(stop_at_frame, self._state.frame_count)
        else:
            self._state.stop_at_frame = None
        previous = self._commit_state("playing")

        log.info(
            "timeline.play",
            frame=self._state.current_frame_index,
            stop_at_frame=self._state.stop_at_frame,
            interval_ms=self._state.tick_interval_ms,
        )
        self._notify_state(previous)

    def pause(self) -> None:
        if self._ignored("pause"):
            return
        if not self._state.has_frames:
            log.debug("timeline.pause_ignored", reason="no_frames")
            return

        self._lifecycle.disarm()
        previous = self._commit_state("paused")
        log.info("timeline.pause", frame=self._state.current_frame_index)
        self._notify_state(previous)

    def stop(self) -> None:
        if self._ignored("stop"):
            return
        self._reset_to_stopped()
        log.info("timeline.stop")

    def restart(self) -> None:
        if self._ignored("restart"):
            return
        prev_index = self._commit_index(0)
        self._notify_frame(prev_index)
        self.play()

    def go_to_frame(self, frame_index: int, auto_pause: bool = False) -> None:
        if self._ignored("go_to_frame"):
            return

        prev_index = self._commit_index(clamp_frame(frame_index, self._state.frame_count))
        log.debug("timeline.seek", requested=frame_index, frame=self._state.current_frame_index)
        self._notify_frame(prev_index)

        if auto_pause:
            self.pause()

    # ------------------------------------------------------------------
    # Reconfiguration
    # ------------------------------------------------------------------

    def set_frames(self, frames: Sequence[str]) -> None:
        """
        Replace the frame list.

        - empty list: forced stop (index 0, timer released)
        - otherwise: index re-clamped; timer re-armed if the interval changed
        - empty -> non-empty with auto_start: play()
        """
        if self._ignored("set_frames"):
            return

        was_empty = not self._state.has_frames
        self._frames = tuple(frames)
        self._state.frame_count = len(self._frames)
        previous_interval = self._state.tick_interval_ms
        self._state.tick_interval_ms = self._compute_interval()

        log.info("timeline.frames_replaced", frames=len(self._frames), interval_ms=self._state.tick_interval_ms)

        if not self._frames:
            self._reset_to_stopped()
            self._publish_frame_list()
            return

        prev_index = self._commit_index(clamp_frame(self._state.current_frame_index, self._state.frame_count))
        if self._state.playback_state == "playing" and self._state.tick_interval_ms != previous_interval:
            self._arm()

        self._notify_frame(prev_index)
        self._publish_frame_list()

        if was_empty and self._spec.auto_start:
            self.play()

    def update_config(self, **changes: Any) -> None:
        """
        Apply PlaybackSpec changes (fps, duration_ms, loop, auto_start, preload).

        initial_frame_index only matters at construction and is stored as-is.
        A playing timeline is re-armed when its interval changes.
        """
        if self._ignored("update_config"):
            return

        unknown = sorted(set(changes) - set(PlaybackSpec.model_fields))
        if unknown:
            log.warning("timeline.config_keys_ignored", keys=unknown)

        previous = self._spec
        self._spec = previous.with_changes(**changes)
        self._state.loop_enabled = self._spec.loop

        previous_interval = self._state.tick_interval_ms
        self._state.tick_interval_ms = self._compute_interval()

        log.info(
            "timeline.configured",
            changes=sorted(changes),
            interval_ms=self._state.tick_interval_ms,
            loop=self._spec.loop,
        )

        if self._state.playback_state == "playing" and self._state.tick_interval_ms != previous_interval:
            self._arm()

        if self._spec.preload != previous.preload:
            self._publish_frame_list()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def dispose(self) -> None:
        """
        Release the timer. The engine ignores every command afterwards.
        """
        if self._lifecycle.is_disposed:
            return
        self._lifecycle.dispose()
        log.info("timeline.disposed", frame=self._state.current_frame_index, state=self._state.playback_state)

    def __enter__(self) -> "TimelineEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _on_tick(self) -> None:
        # a tick queued before a pause/stop can still arrive on some hosts
        if self._state.playback_state != "playing":
            return

        outcome = advance(
            current_index=self._state.current_frame_index,
            frame_count=self._state.frame_count,
            loop_enabled=self._state.loop_enabled,
            stop_at_frame=self._state.stop_at_frame,
        )
        if outcome is None:
            self._lifecycle.disarm()
            return

        # commit everything first, then notify
        prev_index = self._commit_index(outcome.next_index)
        prev_state = self._state.playback_state
        if outcome.clear_stop_target:
            self._state.stop_at_frame = None
        if outcome.halt_as is not None:
            self._lifecycle.disarm()
            prev_state = self._commit_state(outcome.halt_as)

        log.debug("timeline.tick", frame=self._state.current_frame_index, halt_as=outcome.halt_as)

        self._notify_frame(prev_index)
        self._notify_state(prev_state)

    def _arm(self) -> bool:
        try:
            return self._lifecycle.arm(interval_ms=self._state.tick_interval_ms, callback=self._on_tick)
        except RuntimeError:
            # e.g. AsyncioTickScheduler used outside a running loop
            log.exception(
                "timeline.arm_failed",
                interval_ms=self._state.tick_interval_ms,
                state=self._state.playback_state,
            )
            return False

    def _compute_interval(self) -> float:
        return tick_interval_ms(
            frame_count=self._state.frame_count,
            fps=self._spec.fps,
            duration_ms=self._spec.duration_ms,
        )

    # ------------------------------------------------------------------
    # Commit + notify
    # ------------------------------------------------------------------

    def _commit_index(self, frame_index: int) -> int:
        previous = self._state.current_frame_index
        self._state.current_frame_index = frame_index
        return previous

    def _commit_state(self, playback_state: PlaybackState) -> PlaybackState:
        previous = self._state.playback_state
        self._state.playback_state = playback_state
        return previous

    def _reset_to_stopped(self) -> None:
        self._lifecycle.disarm()
        self._state.stop_at_frame = None
        prev_index = self._commit_index(0)
        prev_state = self._commit_state("stopped")
        self._notify_frame(prev_index)
        self._notify_state(prev_state)

    def _notify_frame(self, previous: int) -> None:
        frame_index = self._state.current_frame_index
        if frame_index == previous:
            return
        if self._on_frame_change is not None:
            self._deliver("frame_change", self._on_frame_change, frame_index)
        self._emit(FrameChanged.create(frame_index=frame_index, sequence=self._state.next_sequence()))

    def _notify_state(self, previous: PlaybackState) -> None:
        playback_state = self._state.playback_state
        if playback_state == previous:
            return
        log.info("timeline.state_changed", state=playback_state, previous=previous)
        if self._on_state_change is not None:
            self._deliver("state_change", self._on_state_change, playback_state)
        self._emit(
            PlaybackStateChanged.create(
                state=playback_state,
                previous=previous,
                sequence=self._state.next_sequence(),
            )
        )

    def _publish_frame_list(self) -> None:
        self._emit(
            FrameListChanged.create(
                frames=self._frames,
                preload=self._spec.preload,
                frame_index=self._state.current_frame_index,
                state=self._state.playback_state,
                sequence=self._state.next_sequence(),
            )
        )

    def _deliver(self, kind: str, callback: Callable[[Any], None], value: Any) -> None:
        # observers are fire-and-forget
        try:
            callback(value)
        except Exception:
            log.exception("timeline.callback_failed", kind=kind, value=value)

    def _emit(self, event: Event) -> None:
        try:
            self._bus.publish(event)
        except Exception:
            log.exception("timeline.publish_failed", event_type=event.event_type, sequence=event.sequence)

    def _ignored(self, command: str) -> bool:
        if self._lifecycle.is_disposed:
            log.warning("timeline.command_after_dispose", command=command)
            return True
        return False
