"""Request-scoped accessors for services owned by the application."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from ..data.catalog_repository import ProviderCatalog
from ..services.location import ReportedPositionSource
from ..services.recommendations import RecommendationCache


def get_cache(request: Request) -> RecommendationCache:
    return request.app.state.recommendation_cache


def get_catalog(request: Request) -> ProviderCatalog:
    return request.app.state.recommendation_cache.catalog


def get_reported_source(request: Request) -> ReportedPositionSource:
    source = request.app.state.recommendation_cache.locator.source
    if not isinstance(source, ReportedPositionSource):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This deployment uses a fixed position source; device reports are not accepted.",
        )
    return source
