"""
Health check endpoints.
/health must ALWAYS return 200; a broken session store only degrades it.
"""

from fastapi import APIRouter, Depends

from shield_review.config import settings
from shield_review.dependencies import get_registry, get_session_store
from shield_review.review.registry import ReviewSessionRegistry
from shield_review.storage.session_store import SessionOverrideStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    store: SessionOverrideStore = Depends(get_session_store),
    registry: ReviewSessionRegistry = Depends(get_registry),
):
    """
    Health check: verifies the API is running and probes the session store.
    Session durability is best effort, so a dead store is reported, not fatal.
    """
    store_ok = store.ping()

    return {
        "status": "healthy" if store_ok else "degraded",
        "version": settings.APP_VERSION,
        "session_store": settings.SESSION_STORE_BACKEND if store_ok else "unreachable",
        "active_sessions": len(registry),
    }


@router.get("/health/ready")
async def readiness_check(registry: ReviewSessionRegistry = Depends(get_registry)):
    """
    Readiness probe: true only if the resolver backend answers.
    """
    return {"ready": await registry.backend.health_check()}
