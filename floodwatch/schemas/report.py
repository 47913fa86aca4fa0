"""
Pydantic schemas for flood report submission and listing.

``ReportIn`` is the request body for a new submission. Listings are
returned as a GeoJSON FeatureCollection of points.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReportIn(BaseModel):
    latitude: float
    longitude: float
    severity: str
    road_name: Optional[str] = Field(default=None, max_length=255)


class ReportOut(BaseModel):
    id: str
    latitude: float
    longitude: float
    road_name: Optional[str]
    severity: str
    created_at: datetime
    expires_at: datetime
    confidence_score: int
    region: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AdminReportOut(ReportOut):
    device_fingerprint: str


class RateLimitOut(BaseModel):
    remaining: int
    reset_at: datetime
    degraded: bool = False

    model_config = ConfigDict(from_attributes=True)


class ReportCreatedOut(BaseModel):
    report: ReportOut
    rate_limit: RateLimitOut


class PointGeometry(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float]  # [longitude, latitude]


class FeatureProperties(BaseModel):
    id: str
    road_name: Optional[str]
    severity: str
    created_at: datetime
    expires_at: datetime
    confidence_score: int
    is_own_report: bool


class Feature(BaseModel):
    type: Literal["Feature"] = "Feature"
    geometry: PointGeometry
    properties: FeatureProperties


class FeatureCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[Feature]


class ReportStatsOut(BaseModel):
    total: int
    today: int
    this_week: int
    by_severity: dict[str, int]

    model_config = ConfigDict(from_attributes=True)


class RotationRunOut(BaseModel):
    archived_count: int
    ran_at: datetime
