from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import structlog

from framesequencer.core.engine.engine import FrameChangeCallback, StateChangeCallback, TimelineEngine
from framesequencer.core.engine.router import ComponentRouter, RouterWiring
from framesequencer.core.engine.scheduler import TickScheduler
from framesequencer.core.events.bus import EventBus
from framesequencer.core.logging.setup import bind_context, unbind_context
from framesequencer.core.sequence.spec import PlaybackSpec
from framesequencer.render.preload import FramePreloader
from framesequencer.render.view import FrameViewComponent

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class SequencerHandle:
    """
    Canonical handle for a wired sequencer in this process:
    the engine plus its rendering and preloading collaborators.
    """

    sequencer_id: str
    bus: EventBus
    engine: TimelineEngine
    view: FrameViewComponent
    preloader: FramePreloader
    router: ComponentRouter
    wiring: RouterWiring
    scheduler: TickScheduler

    def close(self) -> None:
        """
        Dispose the engine, drop preloaded frames and unwire collaborators.
        """
        self.engine.dispose()
        self.preloader.release()
        self.router.unregister(self.wiring)
        log.info("sequencer.closed", sequencer_id=self.sequencer_id)
        unbind_context("sequencer_id", "component")

    def __enter__(self) -> "SequencerHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_sequencer(
    *,
    sequencer_id: str,
    frames: Sequence[str],
    scheduler: TickScheduler,
    spec: Optional[PlaybackSpec] = None,
    view: Optional[FrameViewComponent] = None,
    preloader: Optional[FramePreloader] = None,
    extra_components: Iterable[object] = (),
    on_frame_change: Optional[FrameChangeCallback] = None,
    on_state_change: Optional[StateChangeCallback] = None,
) -> SequencerHandle:
    """
    Wire collaborators onto a fresh bus, then create the engine.

    Collaborators are registered before the engine exists so they see the
    initial frame list and any auto-start transition.
    """
    bind_context(sequencer_id=sequencer_id, component="sequencer")

    bus = EventBus()
    view = view if view is not None else FrameViewComponent()
    preloader = preloader if preloader is not None else FramePreloader()

    components: list[object] = [view, preloader]
    components.extend(extra_components)

    router = ComponentRouter(bus=bus)
    wiring = router.register(components)

    engine = TimelineEngine(
        frames=frames,
        spec=spec,
        scheduler=scheduler,
        bus=bus,
        on_frame_change=on_frame_change,
        on_state_change=on_state_change,
    )

    log.info(
        "sequencer.assembled",
        sequencer_id=sequencer_id,
        frames=len(engine.frames),
        components=list(wiring.components),
        state=engine.get_playback_state(),
    )

    return SequencerHandle(
        sequencer_id=sequencer_id,
        bus=bus,
        engine=engine,
        view=view,
        preloader=preloader,
        router=router,
        wiring=wiring,
        scheduler=scheduler,
    )
