from __future__ import annotations

from typing import Optional, Sequence

import structlog
from fastapi import FastAPI

from framesequencer.api import router as api_router
from framesequencer.core.config.settings import AppSettings, settings
from framesequencer.core.engine.scheduler import AsyncioTickScheduler, TickScheduler
from framesequencer.core.logging.setup import configure_logging
from framesequencer.core.sequence.assembly import build_sequencer
from framesequencer.core.sequence.frames import discover_frames, placeholder_frames
from framesequencer.core.sequence.spec import PlaybackSpec

log = structlog.get_logger()


def demo_frames(cfg: AppSettings) -> tuple[str, ...]:
    if cfg.frames_dir is not None:
        return discover_frames(cfg.frames_dir, cfg.frame_glob)
    return placeholder_frames(cfg.placeholder_frame_count, cfg.placeholder_url_template)


def create_app(
    *,
    scheduler: Optional[TickScheduler] = None,
    frames: Optional[Sequence[str]] = None,
    cfg: AppSettings = settings,
) -> FastAPI:
    """
    Application factory for the demo harness: one sequencer per process,
    driven over HTTP.

    `scheduler` and `frames` exist for tests; by default ticks run on the
    server's event loop and frames come from settings.
    """
    configure_logging(level=cfg.log_level, env=cfg.env)

    app = FastAPI(
        title="Frame Sequencer",
        version="0.1.0",
    )
    app.state.sequencer = None

    @app.on_event("startup")
    async def on_startup() -> None:
        # built here so the asyncio scheduler sees the running loop
        app.state.sequencer = build_sequencer(
            sequencer_id="demo",
            frames=frames if frames is not None else demo_frames(cfg),
            scheduler=scheduler if scheduler is not None else AsyncioTickScheduler(),
            spec=PlaybackSpec(fps=cfg.demo_fps, loop=cfg.demo_loop, preload=cfg.demo_preload),
        )
        log.info("app.startup", environment=cfg.env)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        handle = app.state.sequencer
        if handle is not None:
            handle.close()
        log.info("app.shutdown")

    # Mount API
    app.include_router(api_router, prefix="/api")

    return app


# ASGI entrypoint
app = create_app()
