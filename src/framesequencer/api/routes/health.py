from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from framesequencer.core.config.settings import settings
from framesequencer.core.engine.state import PlaybackState

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    environment: str
    sequencer: Optional[PlaybackState] = Field(
        default=None,
        description="Playback state of the live sequencer; null before startup or after shutdown",
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
def health(request: Request) -> HealthResponse:
    handle = getattr(request.app.state, "sequencer", None)
    live = handle is not None and not handle.engine.is_disposed
    return HealthResponse(
        status="ok",
        environment=settings.env,
        sequencer=handle.engine.get_playback_state() if live else None,
    )
