from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence
from urllib.parse import urlsplit

import structlog

from framesequencer.core.engine.router import EventHandler
from framesequencer.core.events.base import Event
from framesequencer.core.events.playback import FrameListChanged

log = structlog.get_logger()

FrameLoader = Callable[[str], bytes]

# left to the host (browser, http client, ...)
REMOTE_SCHEMES = frozenset({"http", "https", "data", "blob"})


def read_local_frame(ref: str) -> bytes:
    return Path(ref).read_bytes()


def is_remote(ref: str) -> bool:
    return urlsplit(ref).scheme.lower() in REMOTE_SCHEMES


@dataclass(slots=True)
class FramePreloader:
    """
    Preloading collaborator: eagerly fetches every frame of the current
    list when the engine forwards preload=True.

    The engine neither waits for nor sequences this; a frame that fails to
    load is logged and skipped.
    """

    loader: FrameLoader = read_local_frame
    skip_remote: bool = True

    _cache: dict[str, bytes] = field(default_factory=dict, init=False)

    def subscriptions(self) -> Sequence[tuple[str, EventHandler]]:
        return [(FrameListChanged.event_type, self._on_frame_list)]

    @property
    def loaded_count(self) -> int:
        return len(self._cache)

    def is_loaded(self, ref: str) -> bool:
        return ref in self._cache

    def get(self, ref: str) -> bytes | None:
        return self._cache.get(ref)

    def _on_frame_list(self, e: Event) -> None:
        if not isinstance(e, FrameListChanged):
            return
        self.release()
        if e.preload:
            self.preload(e.frames)

    def preload(self, frames: Sequence[str]) -> int:
        loaded = 0
        skipped = 0
        failed = 0

        for ref in frames:
            if ref in self._cache:
                continue
            if self.skip_remote and is_remote(ref):
                skipped += 1
                continue
            try:
                self._cache[ref] = self.loader(ref)
            except OSError as exc:
                failed += 1
                log.warning("preload.failed", frame=ref, error=str(exc))
                continue
            loaded += 1

        log.info("preload.done", frames=len(frames), loaded=loaded, skipped_remote=skipped, failed=failed)
        return loaded

    def release(self) -> None:
        if self._cache:
            log.debug("preload.released", frames=len(self._cache))
        self._cache.clear()
