"""
Public flood report endpoints.

Submission, map listing and owner deletion. All logic lives in
``ReportLifecycleManager``; these handlers only translate HTTP in and out.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ...core.auth import get_device_fingerprint, get_optional_device_fingerprint
from ...core.errors import ReportRejected
from ...schemas.report import (
    Feature,
    FeatureCollection,
    FeatureProperties,
    PointGeometry,
    RateLimitOut,
    ReportCreatedOut,
    ReportIn,
    ReportOut,
)
from ...services import Services
from ...services.reports import BoundingBox, ReportSubmission
from ..dependencies import get_services, rejection_to_http


router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


def _intersects_display_bounds(bbox: BoundingBox, services: Services) -> bool:
    area = services.settings.display_bounds
    return not (
        bbox.south > area.north
        or bbox.north < area.south
        or bbox.west > area.east
        or bbox.east < area.west
    )


@router.post("", status_code=201, response_model=ReportCreatedOut)
def create_report(
    payload: ReportIn,
    device_id: str = Depends(get_device_fingerprint),
    services: Services = Depends(get_services),
) -> ReportCreatedOut:
    submission = ReportSubmission(
        latitude=payload.latitude,
        longitude=payload.longitude,
        severity=payload.severity,
        road_name=payload.road_name,
        device_fingerprint=device_id,
    )
    try:
        result = services.reports.submit(submission)
    except ReportRejected as exc:
        raise rejection_to_http(exc) from exc
    return ReportCreatedOut(
        report=ReportOut.model_validate(result.report),
        rate_limit=RateLimitOut.model_validate(result.rate_limit),
    )


@router.get("", response_model=FeatureCollection)
def list_reports(
    north: Optional[float] = Query(None, ge=-90, le=90),
    south: Optional[float] = Query(None, ge=-90, le=90),
    east: Optional[float] = Query(None, ge=-180, le=180),
    west: Optional[float] = Query(None, ge=-180, le=180),
    min_confidence: Optional[int] = Query(None, ge=1),
    device_id: Optional[str] = Depends(get_optional_device_fingerprint),
    services: Services = Depends(get_services),
) -> FeatureCollection:
    bbox = None
    bounds = (north, south, east, west)
    if any(value is not None for value in bounds):
        if any(value is None for value in bounds):
            raise HTTPException(status_code=400, detail="north, south, east and west must be given together")
        try:
            bbox = BoundingBox(north=north, south=south, east=east, west=west)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if not _intersects_display_bounds(bbox, services):
            raise HTTPException(status_code=400, detail="Bounding box is outside the map area")
    try:
        reports = services.reports.list_active(
            bbox=bbox,
            min_confidence=min_confidence,
            requester_device_id=device_id,
        )
    except ReportRejected as exc:
        raise rejection_to_http(exc) from exc
    return FeatureCollection(
        features=[
            Feature(
                geometry=PointGeometry(coordinates=(report.longitude, report.latitude)),
                properties=FeatureProperties(
                    id=report.id,
                    road_name=report.road_name,
                    severity=report.severity,
                    created_at=report.created_at,
                    expires_at=report.expires_at,
                    confidence_score=report.confidence_score,
                    is_own_report=report.is_own_report,
                ),
            )
            for report in reports
        ]
    )


@router.get("/rate-limit", response_model=RateLimitOut)
def rate_limit_status(
    device_id: str = Depends(get_device_fingerprint),
    services: Services = Depends(get_services),
) -> RateLimitOut:
    return RateLimitOut.model_validate(services.rate_limiter.remaining(device_id))


@router.delete("/{report_id}")
def delete_report(
    report_id: str,
    device_id: str = Depends(get_device_fingerprint),
    services: Services = Depends(get_services),
) -> dict:
    try:
        deleted = services.reports.delete(report_id, device_id)
    except ReportRejected as exc:
        raise rejection_to_http(exc) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail="Report not found or not authorized")
    return {"message": "Report deleted successfully"}
