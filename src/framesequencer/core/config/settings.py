from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Global application-level configuration.

    This class is the single source of truth for:
    - environment selection
    - logging behavior
    - where the demo sequencer gets its frames
    - demo playback defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="FSEQ_",
        env_file=".env",
        extra="ignore",
    )

    # ---- Environment -------------------------------------------------

    env: Literal["local", "staging", "prod"] = "local"

    # ---- Logging -----------------------------------------------------

    log_level: str = "INFO"

    # ---- Frame source ------------------------------------------------

    # When unset the demo plays numbered placeholder URLs
    frames_dir: Optional[Path] = Field(
        default=None,
        description="Directory holding the frame images",
    )

    frame_glob: str = Field(
        default="*.png",
        description="Glob used to pick frame files inside frames_dir",
    )

    placeholder_frame_count: int = Field(default=148, ge=0)

    placeholder_url_template: str = Field(
        default="https://placehold.co/320x320/1e293b/ffffff.png?text=Frame%20{number}",
        description="URL template for placeholder frames; {number} is 1-based and zero padded",
    )

    # ---- Demo playback -----------------------------------------------

    demo_fps: float = Field(default=12.0)
    demo_loop: bool = True
    demo_preload: bool = True


# Singleton settings object
settings = AppSettings()
