"""
Top-level API router.
Combines all sub-routers into a single router.
"""

from fastapi import APIRouter

from shield_review.api.health import router as health_router
from shield_review.api.review import router as review_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(review_router)
