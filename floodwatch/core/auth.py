"""
Request identity helpers for the HTTP boundary.

Device tokens are verified upstream; by the time a request reaches this
service the verified device fingerprint travels in ``X-Device-Fingerprint``.
Admin routes require ``X-Admin-Token`` to match the configured token.
"""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request


MAX_FINGERPRINT_LEN = 128


def _clean_fingerprint(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = value.strip()
    if not value or len(value) > MAX_FINGERPRINT_LEN:
        return None
    return value


def get_device_fingerprint(
    x_device_fingerprint: Optional[str] = Header(None, alias="X-Device-Fingerprint"),
) -> str:
    fingerprint = _clean_fingerprint(x_device_fingerprint)
    if not fingerprint:
        raise HTTPException(status_code=401, detail="Device fingerprint required")
    return fingerprint


def get_optional_device_fingerprint(
    x_device_fingerprint: Optional[str] = Header(None, alias="X-Device-Fingerprint"),
) -> Optional[str]:
    return _clean_fingerprint(x_device_fingerprint)


def require_admin(
    request: Request,
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
    x_admin_name: Optional[str] = Header(None, alias="X-Admin-Name"),
) -> str:
    """Return the acting admin's name, or reject the request."""
    expected = request.app.state.settings.admin_token
    if not expected:
        raise HTTPException(status_code=403, detail="Admin access disabled")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=401, detail="Invalid admin token")
    return (x_admin_name or "admin").strip()[:128] or "admin"
