"""
Administrative report endpoints.

Every route here bypasses report ownership, so each one requires the admin
token and the destructive ones are written to the audit log.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from ...core.auth import require_admin
from ...core.errors import ReportRejected, RotationInProgress, log_exception
from ...core.timeutil import utcnow
from ...schemas.report import AdminReportOut, ReportStatsOut, RotationRunOut
from ...services import Services
from ..dependencies import get_services, rejection_to_http


logger = logging.getLogger("admin_api")

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.get("/reports", response_model=list[AdminReportOut])
def admin_list_reports(
    admin: str = Depends(require_admin),
    services: Services = Depends(get_services),
) -> list[AdminReportOut]:
    try:
        reports = services.reports.admin_list()
    except ReportRejected as exc:
        raise rejection_to_http(exc) from exc
    return [AdminReportOut.model_validate(report) for report in reports]


@router.get("/stats", response_model=ReportStatsOut)
def admin_stats(
    admin: str = Depends(require_admin),
    services: Services = Depends(get_services),
) -> ReportStatsOut:
    try:
        return ReportStatsOut.model_validate(services.reports.stats())
    except ReportRejected as exc:
        raise rejection_to_http(exc) from exc


@router.delete("/reports/{report_id}")
def admin_delete_report(
    report_id: str,
    admin: str = Depends(require_admin),
    services: Services = Depends(get_services),
) -> dict:
    try:
        deleted = services.reports.admin_delete(report_id, actor=admin)
    except ReportRejected as exc:
        raise rejection_to_http(exc) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail="Report not found")
    return {"message": "Report deleted successfully"}


@router.delete("/reports")
def admin_clear_reports(
    admin: str = Depends(require_admin),
    services: Services = Depends(get_services),
) -> dict:
    try:
        count = services.reports.admin_clear_all(actor=admin)
    except ReportRejected as exc:
        raise rejection_to_http(exc) from exc
    return {"message": f"Deleted {count} reports", "count": count}


@router.post("/rotation/run", response_model=RotationRunOut)
def admin_run_rotation(
    admin: str = Depends(require_admin),
    services: Services = Depends(get_services),
) -> RotationRunOut:
    now = utcnow()
    try:
        count = services.rotation.run_rotation(now)
    except RotationInProgress as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        log_exception(logger, "Manual rotation failed", extra={"admin": admin}, exc=exc)
        raise HTTPException(status_code=503, detail="Rotation failed and was rolled back") from exc
    logger.warning("ADMIN triggered rotation archived=%s admin=%s", count, admin)
    return RotationRunOut(archived_count=count, ran_at=now)
