"""
SQLAlchemy model base class for the Floodwatch backend.

This package defines ORM models for active and archived flood reports,
the audit log and the rotation run ledger. All models should inherit from
the declarative `Base` defined here.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


from .flood_report import FloodReport, ArchivedFloodReport  # noqa: E402,F401
from .audit_log import AuditLog  # noqa: E402,F401
from .rotation_run import RotationRun  # noqa: E402,F401

__all__ = [
    "Base",

    # Reports
    "FloodReport",
    "ArchivedFloodReport",

    # Audit / scheduling
    "AuditLog",
    "RotationRun",
]
