"""
Geofence checks for report submissions.

A point is accepted when it falls inside at least one configured service
region. Regions are axis-aligned rectangles; overlapping regions are
allowed and attribution returns the first match in configured order.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..core.config import ServiceRegion, Settings, settings
from ..core.errors import RejectionReason, ReportRejected


def is_valid_coordinate(lat: float, lng: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


class GeofenceValidator:
    def __init__(self, regions: Iterable[ServiceRegion]) -> None:
        self._regions = tuple(regions)

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> "GeofenceValidator":
        cfg = cfg or settings
        return cls(cfg.service_regions)

    @property
    def regions(self) -> tuple[ServiceRegion, ...]:
        return self._regions

    @staticmethod
    def is_within_region(lat: float, lng: float, region: ServiceRegion) -> bool:
        return region.south <= lat <= region.north and region.west <= lng <= region.east

    def is_within_any_region(self, lat: float, lng: float) -> bool:
        return self.region_for(lat, lng) is not None

    def region_for(self, lat: float, lng: float) -> Optional[ServiceRegion]:
        for region in self._regions:
            if self.is_within_region(lat, lng, region):
                return region
        return None

    def validate_coordinates(self, lat: float, lng: float) -> ServiceRegion:
        """Return the matching region or raise the applicable rejection."""
        if not is_valid_coordinate(lat, lng):
            raise ReportRejected(
                RejectionReason.INVALID_COORDINATES,
                "Latitude must be between -90 and 90 and longitude between -180 and 180",
            )
        region = self.region_for(lat, lng)
        if region is None:
            raise ReportRejected(
                RejectionReason.OUTSIDE_SERVICE_REGION,
                "Reports can only be submitted from within a participating county",
            )
        return region
