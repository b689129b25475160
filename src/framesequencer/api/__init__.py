from __future__ import annotations

from fastapi import APIRouter

from framesequencer.api.routes.health import router as health_router
from framesequencer.api.routes.sequencer import router as sequencer_router

# Top-level API router
router = APIRouter()

# Route composition
router.include_router(health_router)
router.include_router(sequencer_router)
