"""
FastAPI dependency injection.
Provides the session store, the shield backend, the review session registry,
and API key validation.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from shield_review.clients.base import ShieldBackend
from shield_review.clients.http_backend import HttpShieldBackend
from shield_review.config import settings
from shield_review.review.machine import ReviewStateMachine
from shield_review.review.registry import ReviewSessionRegistry
from shield_review.storage.session_store import SessionOverrideStore, build_session_store


# ── Singleton instances ──────────────────────────────────────
_session_store: Optional[SessionOverrideStore] = None
_shield_backend: Optional[ShieldBackend] = None
_registry: Optional[ReviewSessionRegistry] = None


def get_session_store() -> SessionOverrideStore:
    """Get or create the session store singleton."""
    global _session_store
    if _session_store is None:
        _session_store = build_session_store()
    return _session_store


def get_shield_backend() -> ShieldBackend:
    """Get or create the resolver/rules backend singleton."""
    global _shield_backend
    if _shield_backend is None:
        _shield_backend = HttpShieldBackend()
    return _shield_backend


def get_registry() -> ReviewSessionRegistry:
    """Get or create the review session registry singleton."""
    global _registry
    if _registry is None:
        _registry = ReviewSessionRegistry(get_shield_backend(), get_session_store())
    return _registry


def get_review_session(
    case_id: str,
    registry: ReviewSessionRegistry = Depends(get_registry),
) -> ReviewStateMachine:
    """The open review session for a case, or 404."""
    machine = registry.get(case_id)
    if machine is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No open review session for case {case_id}",
        )
    return machine


async def close_backend() -> None:
    """Release the backend's HTTP connection pool."""
    global _shield_backend
    if isinstance(_shield_backend, HttpShieldBackend):
        await _shield_backend.aclose()
    _shield_backend = None


async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Optional[str]:
    """
    Verify API key if configured.
    If API_KEY is not set, all requests are allowed (dev mode).
    """
    if settings.API_KEY is None:
        return None

    if x_api_key is None or x_api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return x_api_key
