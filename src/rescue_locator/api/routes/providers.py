"""Read-only catalog endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...data.catalog_repository import ProviderCatalog
from ...schemas.recommendations import CoveredCityModel, LocationMatchResponse, ProviderModel
from ..dependencies import get_catalog

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("/cities", response_model=list[CoveredCityModel])
def list_covered_cities(catalog: ProviderCatalog = Depends(get_catalog)) -> list[CoveredCityModel]:
    return [CoveredCityModel.model_validate(item) for item in catalog.covered_cities()]


@router.get("/match", response_model=LocationMatchResponse)
def match_providers_for_location(
    location: str = Query(..., min_length=1, description="Free-text location, e.g. 'Andheri, Mumbai'"),
    specialization: str = Query(default="all", description="Animal type or service"),
    urgency: str = Query(default="standard", description="Urgency tier"),
    catalog: ProviderCatalog = Depends(get_catalog),
) -> LocationMatchResponse:
    try:
        result = catalog.match_location(location, specialization, urgency)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    fallback = result["fallback"]
    return LocationMatchResponse(
        found=result["found"],
        city=result["city"],
        providers=[ProviderModel.from_ranked(item) for item in result["providers"]],
        fallback=ProviderModel.from_provider(fallback) if fallback is not None else None,
        message=result["message"],
    )
