"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...services.recommendations import RecommendationCache
from ..dependencies import get_cache

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/cache", status_code=status.HTTP_200_OK)
def health_cache(cache: RecommendationCache = Depends(get_cache)) -> dict:
    """Report the recommendation cache state without triggering a refresh."""
    return {"service": "recommendation_cache", **cache.status()}
