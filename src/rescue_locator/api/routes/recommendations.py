"""API routes for cached rescue recommendations."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...schemas.recommendations import ManualLocationRequest, RecommendationSetModel
from ...services.recommendations import RecommendationCache, make_criteria
from ..dependencies import get_cache

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


def _criteria(specialization: str | None, urgency: str | None):
    try:
        return make_criteria(specialization, urgency)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("", response_model=RecommendationSetModel)
async def get_recommendations(
    specialization: str | None = Query(default=None, description="Animal type or service, e.g. dog, bird, wildlife"),
    urgency: str | None = Query(default=None, description="Urgency tier: standard, high or critical"),
    force_refresh: bool = Query(default=False, description="Bypass the cache and fetch fresh recommendations"),
    cache: RecommendationCache = Depends(get_cache),
) -> RecommendationSetModel:
    recommendation_set = await cache.get_recommendations(
        _criteria(specialization, urgency),
        force_refresh=force_refresh,
    )
    return RecommendationSetModel.from_domain(recommendation_set)


@router.post("/manual-location", response_model=RecommendationSetModel)
async def update_manual_location(
    payload: ManualLocationRequest,
    cache: RecommendationCache = Depends(get_cache),
) -> RecommendationSetModel:
    """Use a typed location instead of the device position until the cache is cleared."""
    criteria = _criteria(payload.specialization, payload.urgency)
    recommendation_set = await cache.update_manual_location(payload.location, criteria)
    return RecommendationSetModel.from_domain(recommendation_set)


@router.get("/situation", response_model=RecommendationSetModel)
def get_situation_recommendations(
    specialization: str = Query(default="all", description="Animal type to narrow the cached set to"),
    urgency: str = Query(default="high", description="Minimum provider urgency tier"),
    limit: int = Query(default=3, gt=0, le=20, description="Maximum number of providers to return"),
    cache: RecommendationCache = Depends(get_cache),
) -> RecommendationSetModel:
    try:
        recommendation_set = cache.filter_cached(specialization, urgency, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return RecommendationSetModel.from_domain(recommendation_set)


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
def clear_cache(cache: RecommendationCache = Depends(get_cache)) -> None:
    cache.clear_cache()
