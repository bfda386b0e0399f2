"""Endpoints through which a client device relays its geolocation results."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...schemas.recommendations import DeviceErrorRequest, DeviceFixRequest
from ...services.location import ReportedPositionSource
from ..dependencies import get_reported_source

router = APIRouter(prefix="/location", tags=["location"])


@router.post("/fix", status_code=status.HTTP_202_ACCEPTED)
async def report_fix(
    payload: DeviceFixRequest,
    source: ReportedPositionSource = Depends(get_reported_source),
) -> dict:
    fix = source.report_fix(payload.latitude, payload.longitude, payload.accuracy)
    return {"status": "accepted", "timestamp": fix.timestamp.isoformat()}


@router.post("/error", status_code=status.HTTP_202_ACCEPTED)
async def report_error(
    payload: DeviceErrorRequest,
    source: ReportedPositionSource = Depends(get_reported_source),
) -> dict:
    source.report_error(payload.kind)
    return {"status": "accepted", "permission": source.permission_state}


@router.get("/permission")
async def get_permission_state(source: ReportedPositionSource = Depends(get_reported_source)) -> dict:
    return {"permission": source.permission_state}
