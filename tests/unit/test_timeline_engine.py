from __future__ import annotations

from dataclasses import dataclass, field

from framesequencer.core.engine.engine import TimelineEngine
from framesequencer.core.engine.router import ComponentRouter
from framesequencer.core.engine.scheduler import ManualTickScheduler
from framesequencer.core.engine.state import PlaybackState
from framesequencer.core.events.base import Event
from framesequencer.core.events.bus import EventBus
from framesequencer.core.events.playback import FrameChanged, PlaybackStateChanged
from framesequencer.core.sequence.spec import PlaybackSpec


@dataclass(slots=True)
class Recorder:
    """
    Collects frame / state notifications in arrival order.
    """
    frames: list[int] = field(default_factory=list)
    states: list[PlaybackState] = field(default_factory=list)

    def on_frame(self, frame_index: int) -> None:
        self.frames.append(frame_index)

    def on_state(self, state: PlaybackState) -> None:
        self.states.append(state)


def make_engine(
    n: int,
    *,
    scheduler: ManualTickScheduler | None = None,
    recorder: Recorder | None = None,
    bus: EventBus | None = None,
    **spec,
) -> tuple[TimelineEngine, ManualTickScheduler, Recorder]:
    scheduler = scheduler if scheduler is not None else ManualTickScheduler()
    recorder = recorder if recorder is not None else Recorder()
    spec.setdefault("auto_start", False)
    engine = TimelineEngine(
        frames=[f"frame_{i:03d}.png" for i in range(n)],
        spec=PlaybackSpec(**spec),
        scheduler=scheduler,
        bus=bus,
        on_frame_change=recorder.on_frame,
        on_state_change=recorder.on_state,
    )
    return engine, scheduler, recorder


# ---------------------------------------------------------------------------
# construction
# ---------------------------------------------------------------------------


def test_starts_idle_when_auto_start_is_off() -> None:
    engine, scheduler, rec = make_engine(5)

    assert engine.get_playback_state() == "idle"
    assert engine.get_current_frame() == 0
    assert not engine.is_armed
    assert scheduler.active_timers == ()
    assert rec.states == []


def test_auto_start_plays_immediately() -> None:
    engine, scheduler, rec = make_engine(5, auto_start=True)

    assert engine.get_playback_state() == "playing"
    assert engine.is_armed
    assert rec.states == ["playing"]


def test_initial_frame_index_is_clamped() -> None:
    engine, _, _ = make_engine(5, initial_frame_index=42)
    assert engine.get_current_frame() == 4

    engine, _, _ = make_engine(5, initial_frame_index=-3)
    assert engine.get_current_frame() == 0


def test_empty_frame_list_starts_stopped_and_never_arms() -> None:
    engine, scheduler, rec = make_engine(0, auto_start=True, initial_frame_index=7)

    assert engine.get_playback_state() == "stopped"
    assert engine.get_current_frame() == 0
    assert not engine.is_armed
    assert rec.states == ["stopped"]


# ---------------------------------------------------------------------------
# timing
# ---------------------------------------------------------------------------


def test_interval_from_fps_and_duration() -> None:
    engine, _, _ = make_engine(10, fps=10)
    assert engine.tick_interval_ms == 100.0

    engine, _, _ = make_engine(4, fps=10, duration_ms=2000)
    assert engine.tick_interval_ms == 500.0


def test_bad_fps_falls_back_to_default_rate() -> None:
    engine, _, _ = make_engine(3, fps=0)
    assert engine.tick_interval_ms == 1000.0 / 24

    engine, _, _ = make_engine(3, fps=float("nan"))
    assert engine.tick_interval_ms == 1000.0 / 24


def test_ticks_follow_the_interval() -> None:
    engine, scheduler, rec = make_engine(10, fps=10)
    engine.play()

    scheduler.advance(99)
    assert engine.get_current_frame() == 0

    scheduler.advance(1)
    assert engine.get_current_frame() == 1

    scheduler.advance(250)
    assert engine.get_current_frame() == 3
    assert rec.frames == [1, 2, 3]


# ---------------------------------------------------------------------------
# tick policy
# ---------------------------------------------------------------------------


def test_looping_wraps_and_never_stops() -> None:
    for n in (1, 2, 5, 9):
        engine, scheduler, rec = make_engine(n, loop=True)
        engine.play()

        assert scheduler.step(n) == n
        assert engine.get_current_frame() == 0
        assert engine.get_playback_state() == "playing"
        assert "stopped" not in rec.states


def test_non_looping_halts_on_last_frame() -> None:
    # 10 frames at 10 fps
    engine, scheduler, rec = make_engine(10, fps=10, loop=False)
    engine.play()

    scheduler.advance(900)
    assert engine.get_current_frame() == 9
    assert engine.get_playback_state() == "playing"

    scheduler.advance(100)
    assert engine.get_current_frame() == 9
    assert engine.get_playback_state() == "stopped"
    assert not engine.is_armed

    # nothing more happens
    scheduler.advance(10_000)
    assert rec.states == ["playing", "stopped"]
    assert rec.frames == list(range(1, 10))


def test_stop_at_frame_pauses_exactly_on_target() -> None:
    engine, scheduler, rec = make_engine(5, loop=True)
    engine.play(stop_at_frame=3)

    scheduler.step(3)
    assert engine.get_current_frame() == 3
    assert engine.get_playback_state() == "paused"
    assert engine.state.stop_at_frame is None
    assert not engine.is_armed

    scheduler.advance(10_000)
    assert engine.get_current_frame() == 3
    assert 0 not in rec.frames


def test_stop_at_frame_overrides_loop_setting() -> None:
    for loop in (True, False):
        for target in range(6):
            engine, scheduler, _ = make_engine(6, loop=loop)
            engine.play(stop_at_frame=target)
            scheduler.step(10)

            assert engine.get_current_frame() == target
            assert engine.get_playback_state() == "paused"


def test_stop_at_frame_out_of_range_is_clamped() -> None:
    engine, scheduler, _ = make_engine(4)
    engine.play(stop_at_frame=99)

    assert engine.state.stop_at_frame == 3
    scheduler.step(10)
    assert engine.get_current_frame() == 3
    assert engine.get_playback_state() == "paused"


def test_stop_target_behind_current_frame_snaps_back_to_it() -> None:
    engine, scheduler, _ = make_engine(8)
    engine.go_to_frame(6)
    engine.play(stop_at_frame=2)

    scheduler.step()
    assert engine.get_current_frame() == 2
    assert engine.get_playback_state() == "paused"


def test_plain_play_clears_a_previous_stop_target() -> None:
    engine, scheduler, _ = make_engine(5, loop=True)
    engine.play(stop_at_frame=2)
    engine.play()

    assert engine.state.stop_at_frame is None
    scheduler.step(5)
    assert engine.get_current_frame() == 0
    assert engine.get_playback_state() == "playing"


# ---------------------------------------------------------------------------
# commands
# ---------------------------------------------------------------------------


def test_pause_then_play_resumes_from_same_frame() -> None:
    engine, scheduler, _ = make_engine(10)
    engine.play()
    scheduler.step(4)

    engine.pause()
    assert engine.get_playback_state() == "paused"
    assert not engine.is_armed
    scheduler.advance(10_000)
    assert engine.get_current_frame() == 4

    engine.play()
    scheduler.step()
    assert engine.get_current_frame() == 5


def test_stop_resets_from_any_state() -> None:
    engine, scheduler, _ = make_engine(10)

    for setup in (lambda: None, engine.play, engine.pause):
        setup()
        engine.go_to_frame(7)
        engine.stop()

        assert engine.get_current_frame() == 0
        assert engine.get_playback_state() == "stopped"
        assert engine.state.stop_at_frame is None
        assert not engine.is_armed


def test_repeated_commands_do_not_repeat_notifications() -> None:
    engine, _, rec = make_engine(5)

    engine.play()
    engine.play()
    engine.pause()
    engine.pause()
    engine.stop()
    engine.stop()

    assert rec.states == ["playing", "paused", "stopped"]


def test_play_while_playing_keeps_a_single_timer() -> None:
    engine, scheduler, _ = make_engine(5)

    engine.play()
    engine.play()
    engine.play(stop_at_frame=4)

    assert len(scheduler.active_timers) == 1
    assert scheduler.advance(1000.0 / 24) == 1
    assert engine.get_current_frame() == 1


def test_restart_rewinds_and_plays_without_stop_target() -> None:
    engine, scheduler, rec = make_engine(6, loop=False)
    engine.play(stop_at_frame=4)
    scheduler.step(2)
    engine.pause()

    engine.restart()

    assert engine.get_current_frame() == 0
    assert engine.get_playback_state() == "playing"
    assert engine.state.stop_at_frame is None

    scheduler.step(10)
    assert engine.get_current_frame() == 5
    assert engine.get_playback_state() == "stopped"
    assert rec.frames[:3] == [1, 2, 0]


def test_go_to_frame_is_clamped_for_every_length() -> None:
    for n in range(0, 6):
        engine, _, _ = make_engine(n)
        for target in (-100, -1, 0, 1, 3, n - 1, n, n + 7, 10_000):
            engine.go_to_frame(target)
            assert 0 <= engine.get_current_frame() <= max(n - 1, 0)


def test_go_to_frame_keeps_state_unless_auto_pause() -> None:
    engine, scheduler, rec = make_engine(10)
    engine.play()

    engine.go_to_frame(6)
    assert engine.get_playback_state() == "playing"
    scheduler.step()
    assert engine.get_current_frame() == 7

    engine.go_to_frame(2, auto_pause=True)
    assert engine.get_current_frame() == 2
    assert engine.get_playback_state() == "paused"
    assert not engine.is_armed


def test_commands_on_empty_list_are_no_ops_except_stop() -> None:
    engine, scheduler, rec = make_engine(0)
    rec.states.clear()

    engine.play(stop_at_frame=3)
    engine.pause()
    engine.restart()
    engine.go_to_frame(5, auto_pause=True)

    assert engine.get_playback_state() == "stopped"
    assert engine.get_current_frame() == 0
    assert scheduler.active_timers == ()
    assert rec.states == []
    assert rec.frames == []


# ---------------------------------------------------------------------------
# frame list / config changes
# ---------------------------------------------------------------------------


def test_shrinking_frame_list_reclamps_index() -> None:
    engine, _, rec = make_engine(5)
    engine.go_to_frame(4)

    engine.set_frames(["a.png", "b.png"])

    assert engine.get_current_frame() == 1
    assert rec.frames[-1] == 1


def test_emptying_frame_list_while_playing_forces_stop() -> None:
    engine, scheduler, rec = make_engine(5)
    engine.play()
    scheduler.step(3)

    engine.set_frames([])

    assert engine.get_playback_state() == "stopped"
    assert engine.get_current_frame() == 0
    assert not engine.is_armed
    assert scheduler.active_timers == ()
    assert rec.states == ["playing", "stopped"]


def test_frames_arriving_with_auto_start_start_playback() -> None:
    engine, _, rec = make_engine(0, auto_start=True)
    assert engine.get_playback_state() == "stopped"

    engine.set_frames(["a.png", "b.png", "c.png"])

    assert engine.get_playback_state() == "playing"
    assert engine.is_armed
    assert rec.states == ["stopped", "playing"]


def test_frames_arriving_without_auto_start_stay_stopped() -> None:
    engine, _, _ = make_engine(0)
    engine.set_frames(["a.png"])

    assert engine.get_playback_state() == "stopped"
    assert not engine.is_armed


def test_duration_timing_rearms_when_frame_count_changes() -> None:
    engine, scheduler, _ = make_engine(4, duration_ms=400)
    engine.play()
    assert engine.tick_interval_ms == 100.0

    engine.set_frames([f"{i}.png" for i in range(8)])
    assert engine.tick_interval_ms == 50.0
    assert len(scheduler.active_timers) == 1
    assert scheduler.active_timers[0].interval_ms == 50.0


def test_update_config_changes_rate_and_loop() -> None:
    engine, scheduler, _ = make_engine(3, fps=10, loop=True)
    engine.play()

    engine.update_config(fps=20, loop=False)

    assert engine.tick_interval_ms == 50.0
    assert scheduler.active_timers[0].interval_ms == 50.0

    scheduler.step(5)
    assert engine.get_current_frame() == 2
    assert engine.get_playback_state() == "stopped"


def test_update_config_normalizes_values() -> None:
    engine, _, _ = make_engine(3, fps=10)
    engine.update_config(fps=-5, duration_ms=0)

    assert engine.spec.fps == 24.0
    assert engine.spec.duration_ms is None


def test_update_config_ignores_unknown_keys() -> None:
    engine, scheduler, _ = make_engine(3, fps=10)
    engine.play()

    engine.update_config(fsp=30)

    assert engine.spec.fps == 10.0
    assert engine.tick_interval_ms == 100.0
    assert scheduler.active_timers[0].interval_ms == 100.0


# ---------------------------------------------------------------------------
# notifications
# ---------------------------------------------------------------------------


def test_observers_see_a_consistent_state_within_a_tick() -> None:
    seen: list[tuple[int, PlaybackState]] = []
    scheduler = ManualTickScheduler()
    holder: dict[str, TimelineEngine] = {}

    def on_frame(i: int) -> None:
        e = holder["engine"]
        seen.append((e.get_current_frame(), e.get_playback_state()))

    engine = TimelineEngine(
        frames=["a", "b", "c", "d"],
        spec=PlaybackSpec(auto_start=False),
        scheduler=scheduler,
        on_frame_change=on_frame,
    )
    holder["engine"] = engine
    engine.play(stop_at_frame=2)
    scheduler.step(2)

    assert seen == [(1, "playing"), (2, "paused")]


def test_raising_observer_does_not_break_playback() -> None:
    def boom(_: int) -> None:
        raise RuntimeError("observer failure")

    scheduler = ManualTickScheduler()
    engine = TimelineEngine(
        frames=["a", "b", "c"],
        spec=PlaybackSpec(auto_start=False),
        scheduler=scheduler,
        on_frame_change=boom,
    )
    engine.play()
    scheduler.step(2)

    assert engine.get_current_frame() == 2
    assert engine.is_armed


class Collector:
    def __init__(self) -> None:
        self.events: list[Event] = []

    def subscriptions(self):
        return [
            (FrameChanged.event_type, self.events.append),
            (PlaybackStateChanged.event_type, self.events.append),
        ]


def test_bus_events_mirror_callbacks_in_order() -> None:
    bus = EventBus()
    col = Collector()
    ComponentRouter(bus=bus).register([col])

    engine, scheduler, _ = make_engine(3, bus=bus, loop=False)
    engine.play()
    scheduler.step(3)

    kinds = [
        (type(e).__name__, getattr(e, "frame_index", None), getattr(e, "state", None))
        for e in col.events
    ]
    assert kinds == [
        ("PlaybackStateChanged", None, "playing"),
        ("FrameChanged", 1, None),
        ("FrameChanged", 2, None),
        ("PlaybackStateChanged", None, "stopped"),
    ]

    sequences = [e.sequence for e in col.events]
    assert sequences == sorted(sequences)
    assert len(set(sequences)) == len(sequences)


# ---------------------------------------------------------------------------
# disposal
# ---------------------------------------------------------------------------


def test_dispose_releases_timer_and_ignores_commands() -> None:
    engine, scheduler, rec = make_engine(5)
    engine.play()

    engine.dispose()
    assert engine.is_disposed
    assert scheduler.active_timers == ()

    engine.play()
    engine.go_to_frame(3)
    scheduler.advance(10_000)

    assert engine.get_current_frame() == 0
    assert rec.frames == []


def test_context_manager_disposes_on_exit() -> None:
    scheduler = ManualTickScheduler()
    with TimelineEngine(frames=["a", "b"], scheduler=scheduler) as engine:
        assert engine.is_armed

    assert engine.is_disposed
    assert scheduler.active_timers == ()
