"""API v1 routers."""

from fastapi import APIRouter

from .configurations import router as configurations_router
from .events import router as events_router
from .ingest import router as ingest_router

router = APIRouter(prefix="/v1")

router.include_router(ingest_router)
router.include_router(configurations_router)
router.include_router(events_router)

__all__ = ["router", "configurations_router", "events_router", "ingest_router"]
