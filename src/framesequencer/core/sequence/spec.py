from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from framesequencer.core.engine.timing import DEFAULT_FPS, normalize_duration, normalize_fps


class PlaybackSpec(BaseModel):
    """
    Playback configuration for one TimelineEngine.

    Out-of-range values are normalized instead of rejected:
    - fps <= 0, nan or inf -> DEFAULT_FPS
    - duration_ms <= 0, nan or inf -> None (frame rate decides)

    Only type errors (e.g. fps="fast") fail validation.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    fps: float = Field(default=DEFAULT_FPS, description="Frames per second")
    duration_ms: Optional[float] = Field(
        default=None,
        description="Total run length; overrides fps when > 0",
    )
    loop: bool = Field(default=True)
    auto_start: bool = Field(default=True, description="Play as soon as frames are available")
    preload: bool = Field(default=True, description="Forwarded to the preloading collaborator")
    initial_frame_index: int = Field(default=0, description="Clamped into range at construction")

    @field_validator("fps", mode="before")
    @classmethod
    def _fps_fallback(cls, v: Any) -> Any:
        if v is None:
            return DEFAULT_FPS
        return v

    @field_validator("fps")
    @classmethod
    def _normalize_fps(cls, v: float) -> float:
        return normalize_fps(v)

    @field_validator("duration_ms")
    @classmethod
    def _normalize_duration(cls, v: Optional[float]) -> Optional[float]:
        return normalize_duration(v)

    def with_changes(self, **changes: Any) -> "PlaybackSpec":
        """
        Copy with changes applied, re-running normalization.
        """
        data = self.model_dump()
        data.update(changes)
        return PlaybackSpec.model_validate(data)
