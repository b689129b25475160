from __future__ import annotations

from pathlib import Path

import structlog

log = structlog.get_logger()


def discover_frames(directory: Path, pattern: str = "*.png") -> tuple[str, ...]:
    """
    Frame files in `directory` matching `pattern`, sorted by name.

    Zero-padded file names (frame_001.png, ...) sort into playback order.
    """
    if not directory.is_dir():
        raise FileNotFoundError(f"frames directory not found: {directory}")

    frames = tuple(str(p) for p in sorted(directory.glob(pattern)) if p.is_file())
    log.info("frames.discovered", directory=str(directory), pattern=pattern, count=len(frames))
    return frames


def placeholder_frames(count: int, template: str) -> tuple[str, ...]:
    """
    Numbered placeholder frame references, e.g. for a demo without assets.

    `{number}` in the template is replaced by the 1-based frame number,
    zero padded to at least two digits.
    """
    if count < 0:
        raise ValueError("count must be >= 0")
    return tuple(template.format(number=str(i + 1).zfill(2)) for i in range(count))
