from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from framesequencer.core.engine.state import PlaybackState
from framesequencer.core.sequence.assembly import SequencerHandle

router = APIRouter(tags=["sequencer"])


# =========================
# Schemas
# =========================

class PlayRequest(BaseModel):
    stop_at_frame: Optional[int] = Field(default=None, description="Pause once this frame is reached")


class SeekRequest(BaseModel):
    frame_index: int
    # scrubbing pauses by default
    auto_pause: bool = True


class ConfigPatch(BaseModel):
    fps: Optional[float] = None
    duration_ms: Optional[float] = None
    loop: Optional[bool] = None
    auto_start: Optional[bool] = None
    preload: Optional[bool] = None


class FramesRequest(BaseModel):
    frames: list[str]


class FrameViewResponse(BaseModel):
    has_frames: bool
    src: Optional[str]
    alt: Optional[str]
    css_class: str
    placeholder: Optional[str]
    data_attributes: dict[str, str]


class SequencerStatus(BaseModel):
    sequencer_id: str
    frame_index: int
    state: PlaybackState
    frame_count: int
    tick_interval_ms: Optional[float] = Field(description="null when no timer can be armed")
    armed: bool
    loop: bool
    stop_at_frame: Optional[int]
    fps: float
    duration_ms: Optional[float]
    preload: bool
    view: FrameViewResponse


# =========================
# Helpers
# =========================

def get_sequencer(request: Request) -> SequencerHandle:
    handle: Optional[SequencerHandle] = getattr(request.app.state, "sequencer", None)
    if handle is None or handle.engine.is_disposed:
        raise HTTPException(status_code=409, detail="no live sequencer")
    return handle


def _status(handle: SequencerHandle) -> SequencerStatus:
    engine = handle.engine
    state = engine.state
    view = handle.view.snapshot()
    interval = state.tick_interval_ms

    return SequencerStatus(
        sequencer_id=handle.sequencer_id,
        frame_index=state.current_frame_index,
        state=state.playback_state,
        frame_count=state.frame_count,
        tick_interval_ms=interval if math.isfinite(interval) else None,
        armed=engine.is_armed,
        loop=state.loop_enabled,
        stop_at_frame=state.stop_at_frame,
        fps=engine.spec.fps,
        duration_ms=engine.spec.duration_ms,
        preload=engine.spec.preload,
        view=FrameViewResponse(
            has_frames=view.has_frames,
            src=view.src,
            alt=view.alt,
            css_class=view.css_class,
            placeholder=view.placeholder,
            data_attributes=view.data_attributes,
        ),
    )


# =========================
# Routes
# =========================
# async handlers: the engine arms its timer on the running event loop

@router.get("/sequencer", response_model=SequencerStatus)
async def get_status(handle: SequencerHandle = Depends(get_sequencer)) -> SequencerStatus:
    return _status(handle)


@router.post("/sequencer/play", response_model=SequencerStatus)
async def play(payload: PlayRequest, handle: SequencerHandle = Depends(get_sequencer)) -> SequencerStatus:
    handle.engine.play(stop_at_frame=payload.stop_at_frame)
    return _status(handle)


@router.post("/sequencer/pause", response_model=SequencerStatus)
async def pause(handle: SequencerHandle = Depends(get_sequencer)) -> SequencerStatus:
    handle.engine.pause()
    return _status(handle)


@router.post("/sequencer/stop", response_model=SequencerStatus)
async def stop(handle: SequencerHandle = Depends(get_sequencer)) -> SequencerStatus:
    handle.engine.stop()
    return _status(handle)


@router.post("/sequencer/restart", response_model=SequencerStatus)
async def restart(handle: SequencerHandle = Depends(get_sequencer)) -> SequencerStatus:
    handle.engine.restart()
    return _status(handle)


@router.post("/sequencer/seek", response_model=SequencerStatus)
async def seek(payload: SeekRequest, handle: SequencerHandle = Depends(get_sequencer)) -> SequencerStatus:
    handle.engine.go_to_frame(payload.frame_index, auto_pause=payload.auto_pause)
    return _status(handle)


@router.patch("/sequencer/config", response_model=SequencerStatus)
async def update_config(payload: ConfigPatch, handle: SequencerHandle = Depends(get_sequencer)) -> SequencerStatus:
    changes = payload.model_dump(exclude_unset=True)
    # null only makes sense for duration_ms (back to fps timing)
    changes = {k: v for k, v in changes.items() if v is not None or k == "duration_ms"}
    if changes:
        handle.engine.update_config(**changes)
    return _status(handle)


@router.put("/sequencer/frames", response_model=SequencerStatus)
async def replace_frames(payload: FramesRequest, handle: SequencerHandle = Depends(get_sequencer)) -> SequencerStatus:
    handle.engine.set_frames(payload.frames)
    return _status(handle)
