"""Dependency helpers shared by the API routers."""

from __future__ import annotations

import math

from fastapi import HTTPException, Request

from ..core.errors import PersistenceFailure, QuotaExceeded, ReportRejected
from ..core.timeutil import utcnow
from ..services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def rejection_to_http(exc: ReportRejected) -> HTTPException:
    detail = {"error": exc.reason.value, "message": exc.message}
    if isinstance(exc, QuotaExceeded):
        retry_after = max(1, math.ceil((exc.reset_at - utcnow()).total_seconds()))
        detail.update({"remaining": 0, "reset_at": exc.reset_at.isoformat()})
        return HTTPException(status_code=429, detail=detail, headers={"Retry-After": str(retry_after)})
    if isinstance(exc, PersistenceFailure):
        detail["retryable"] = True
        return HTTPException(status_code=503, detail=detail, headers={"Retry-After": "5"})
    return HTTPException(status_code=400, detail=detail)
