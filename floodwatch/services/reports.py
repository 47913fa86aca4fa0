"""
Flood report lifecycle: submission, listing and deletion.

A report moves submitted -> active -> expired -> archived, or is removed
while active by its owner or by an administrator. ``create`` is the only
path that inserts a report and it never updates an existing row. Expiry is
enforced at read time, so reports past ``expires_at`` disappear from
listings whether or not the weekly rotation has physically moved them yet.

Quota accounting is a separate step after persistence: if the
process dies between the insert and the counter increment the report is
kept and the quota is under-charged.
"""

from __future__ import annotations

import datetime
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.config import ServiceRegion, Settings, settings
from ..core.errors import (
    PersistenceFailure,
    QuotaExceeded,
    RejectionReason,
    ReportRejected,
    guarded_call,
    log_exception,
)
from ..core.timeutil import ensure_utc, local_midnight, utcnow
from ..models.audit_log import AuditLog
from ..models.flood_report import SEVERITIES, FloodReport
from .confidence import ConfidenceAggregator
from .geofence import GeofenceValidator
from .rate_limiter import RateLimiter, RateLimitStatus


logger = logging.getLogger("reports")

ROAD_NAME_MAX_LEN = 255


@dataclass(frozen=True)
class ReportSubmission:
    latitude: float
    longitude: float
    severity: str
    device_fingerprint: str
    road_name: Optional[str] = None


@dataclass(frozen=True)
class Report:
    id: str
    latitude: float
    longitude: float
    road_name: Optional[str]
    severity: str
    device_fingerprint: str
    created_at: datetime.datetime
    expires_at: datetime.datetime
    confidence_score: int
    region: Optional[str] = None


@dataclass(frozen=True)
class ActiveReport:
    """Public view of an active report. Carries ownership, never the fingerprint."""

    id: str
    latitude: float
    longitude: float
    road_name: Optional[str]
    severity: str
    created_at: datetime.datetime
    expires_at: datetime.datetime
    confidence_score: int
    is_own_report: bool


@dataclass(frozen=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    def __post_init__(self) -> None:
        if self.south > self.north:
            raise ValueError("bounding box south must be <= north")
        if self.west > self.east:
            raise ValueError("bounding box west must be <= east")


@dataclass(frozen=True)
class SubmissionResult:
    report: Report
    rate_limit: RateLimitStatus


@dataclass
class ReportStats:
    total: int
    today: int
    this_week: int
    by_severity: dict[str, int] = field(default_factory=dict)


def _to_report(row: FloodReport, region: Optional[str] = None) -> Report:
    return Report(
        id=row.id,
        latitude=row.latitude,
        longitude=row.longitude,
        road_name=row.road_name,
        severity=row.severity,
        device_fingerprint=row.device_fingerprint,
        created_at=ensure_utc(row.created_at),
        expires_at=ensure_utc(row.expires_at),
        confidence_score=row.confidence_score,
        region=region,
    )


def _normalize_road_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    return value[:ROAD_NAME_MAX_LEN]


@contextmanager
def _persistence(action: str, **context) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        log_exception(logger, f"{action} failed", extra=context, exc=exc)
        raise PersistenceFailure() from exc


class ReportLifecycleManager:
    def __init__(
        self,
        session_factory: sessionmaker,
        geofence: GeofenceValidator,
        confidence: ConfidenceAggregator,
        rate_limiter: RateLimiter,
        cfg: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._geofence = geofence
        self._confidence = confidence
        self._rate_limiter = rate_limiter
        self._quota_tz = (cfg or settings).quota_tz

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    # Creation

    def _validate(self, submission: ReportSubmission) -> tuple[float, float, ServiceRegion]:
        if not submission.device_fingerprint:
            raise ValueError("device fingerprint is required")
        if submission.severity not in SEVERITIES:
            raise ReportRejected(
                RejectionReason.INVALID_SEVERITY,
                f"Severity must be one of: {', '.join(SEVERITIES)}",
            )
        try:
            lat = float(submission.latitude)
            lng = float(submission.longitude)
        except (TypeError, ValueError) as exc:
            raise ReportRejected(RejectionReason.INVALID_COORDINATES, "Latitude and longitude must be numbers") from exc
        return lat, lng, self._geofence.validate_coordinates(lat, lng)

    def create(self, submission: ReportSubmission, now: Optional[datetime.datetime] = None) -> Report:
        """Validate, score and persist a new report. Raises ``ReportRejected`` without side effects."""
        now = ensure_utc(now or utcnow())
        lat, lng, region = self._validate(submission)

        with _persistence("Report create", device=submission.device_fingerprint):
            with self._session_factory() as db:
                score = self._confidence.compute_confidence(lat, lng, now, db=db)
                row = FloodReport(
                    latitude=lat,
                    longitude=lng,
                    road_name=_normalize_road_name(submission.road_name),
                    severity=submission.severity,
                    device_fingerprint=submission.device_fingerprint,
                    created_at=now,
                    expires_at=self._confidence.next_rotation_instant(now),
                    confidence_score=score,
                )
                db.add(row)
                db.commit()
                report = _to_report(row, region.display_name)

        logger.info(
            "Report created id=%s severity=%s confidence=%s region=%s",
            report.id,
            report.severity,
            report.confidence_score,
            report.region,
        )
        return report

    def submit(self, submission: ReportSubmission, now: Optional[datetime.datetime] = None) -> SubmissionResult:
        """Validate, quota check, create, then charge the quota as a separate step."""
        now = ensure_utc(now or utcnow())
        self._validate(submission)
        device = submission.device_fingerprint
        status = self._rate_limiter.remaining(device, now)
        if status.remaining <= 0:
            logger.info("Report rejected by quota device=%s reset_at=%s", device, status.reset_at.isoformat())
            raise QuotaExceeded(status.reset_at)

        report = self.create(submission, now)

        count = self._rate_limiter.increment(device, now)
        if count is None:
            return SubmissionResult(report=report, rate_limit=RateLimitStatus(
                remaining=max(0, status.remaining - 1),
                reset_at=status.reset_at,
                degraded=True,
            ))
        if count > self._rate_limiter.limit:
            # Lost a race with a concurrent submission from the same device.
            logger.warning("Quota race lost, withdrawing report id=%s device=%s count=%s", report.id, device, count)
            guarded_call(
                "Withdraw over-quota report",
                lambda: self._delete_row(report.id),
                fallback=False,
                logger=logger,
                context={"report_id": report.id},
            )
            raise QuotaExceeded(status.reset_at)
        return SubmissionResult(
            report=report,
            rate_limit=RateLimitStatus(remaining=max(0, self._rate_limiter.limit - count), reset_at=status.reset_at),
        )

    # Reads

    def list_active(
        self,
        bbox: Optional[BoundingBox] = None,
        min_confidence: Optional[int] = None,
        requester_device_id: Optional[str] = None,
        now: Optional[datetime.datetime] = None,
    ) -> list[ActiveReport]:
        now = ensure_utc(now or utcnow())
        query = select(FloodReport).where(FloodReport.expires_at > now)
        if bbox is not None:
            query = query.where(
                FloodReport.latitude >= bbox.south,
                FloodReport.latitude <= bbox.north,
                FloodReport.longitude >= bbox.west,
                FloodReport.longitude <= bbox.east,
            )
        if min_confidence is not None:
            query = query.where(FloodReport.confidence_score >= min_confidence)
        query = query.order_by(FloodReport.created_at.desc(), FloodReport.id.desc())

        with _persistence("Active report listing"):
            with self._session_factory() as db:
                rows = db.execute(query).scalars().all()
        return [
            ActiveReport(
                id=row.id,
                latitude=row.latitude,
                longitude=row.longitude,
                road_name=row.road_name,
                severity=row.severity,
                created_at=ensure_utc(row.created_at),
                expires_at=ensure_utc(row.expires_at),
                confidence_score=row.confidence_score,
                is_own_report=bool(requester_device_id) and row.device_fingerprint == requester_device_id,
            )
            for row in rows
        ]

    # Deletes

    def delete(self, report_id: str, device_id: str) -> bool:
        """Owner delete. A wrong owner looks exactly like an unknown id."""
        if not report_id or not device_id:
            return False
        with _persistence("Owner delete", report_id=report_id):
            with self._session_factory() as db:
                result = db.execute(
                    delete(FloodReport).where(
                        FloodReport.id == report_id,
                        FloodReport.device_fingerprint == device_id,
                    )
                )
                db.commit()
        if result.rowcount == 0:
            return False
        logger.info("Report deleted by owner id=%s device=%s", report_id, device_id)
        return True

    def admin_delete(self, report_id: str, actor: Optional[str] = None) -> bool:
        with _persistence("Admin delete", report_id=report_id):
            with self._session_factory() as db:
                result = db.execute(delete(FloodReport).where(FloodReport.id == report_id))
                if result.rowcount:
                    db.add(AuditLog(action="admin_delete_report", actor=actor, details={"report_id": report_id}))
                db.commit()
        if not result.rowcount:
            return False
        logger.warning("ADMIN report delete id=%s actor=%s", report_id, actor)
        return True

    def admin_clear_all(self, actor: Optional[str] = None) -> int:
        with _persistence("Admin clear all"):
            with self._session_factory() as db:
                result = db.execute(delete(FloodReport))
                count = int(result.rowcount or 0)
                db.add(AuditLog(action="admin_clear_reports", actor=actor, details={"count": count}))
                db.commit()
        logger.warning("ADMIN cleared all active reports count=%s actor=%s", count, actor)
        return count

    def _delete_row(self, report_id: str) -> bool:
        with self._session_factory() as db:
            result = db.execute(delete(FloodReport).where(FloodReport.id == report_id))
            db.commit()
        return bool(result.rowcount)

    # Admin views

    def admin_list(self) -> list[Report]:
        with _persistence("Admin report listing"):
            with self._session_factory() as db:
                rows = db.execute(
                    select(FloodReport).order_by(FloodReport.created_at.desc(), FloodReport.id.desc())
                ).scalars().all()
        return [_to_report(row, self._region_name(row)) for row in rows]

    def stats(self, now: Optional[datetime.datetime] = None) -> ReportStats:
        now = ensure_utc(now or utcnow())
        today_start = local_midnight(now, self._quota_tz)
        week_start = today_start - datetime.timedelta(days=7)
        with _persistence("Report stats"):
            with self._session_factory() as db:
                total = db.scalar(select(func.count(FloodReport.id))) or 0
                today = db.scalar(select(func.count(FloodReport.id)).where(FloodReport.created_at >= today_start)) or 0
                this_week = db.scalar(select(func.count(FloodReport.id)).where(FloodReport.created_at >= week_start)) or 0
                by_severity = dict(
                    db.execute(
                        select(FloodReport.severity, func.count(FloodReport.id)).group_by(FloodReport.severity)
                    ).all()
                )
        return ReportStats(total=int(total), today=int(today), this_week=int(this_week), by_severity=by_severity)

    def _region_name(self, row: FloodReport) -> Optional[str]:
        region = self._geofence.region_for(row.latitude, row.longitude)
        return region.display_name if region else None
