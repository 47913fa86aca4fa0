"""flood reports, archive, audit log and rotation ledger

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "flood_reports",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("road_name", sa.String(length=255), nullable=True),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("device_fingerprint", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confidence_score", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_flood_reports_device_fingerprint", "flood_reports", ["device_fingerprint"])
    op.create_index("ix_flood_reports_created_at", "flood_reports", ["created_at"])
    op.create_index("ix_flood_reports_expires_at", "flood_reports", ["expires_at"])
    op.create_index("ix_flood_reports_lat_lng", "flood_reports", ["latitude", "longitude"])

    op.create_table(
        "flood_reports_archive",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("road_name", sa.String(length=255), nullable=True),
        sa.Column("severity", sa.String(length=16), nullable=False),
        sa.Column("device_fingerprint", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confidence_score", sa.Integer(), nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_flood_reports_archive_created_at", "flood_reports_archive", ["created_at"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor", sa.String(length=128), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_log_action", "audit_log", ["action"])

    op.create_table(
        "rotation_runs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="RUNNING"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_count", sa.Integer(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.UniqueConstraint("scheduled_for", name="uq_rotation_runs_scheduled_for"),
    )


def downgrade() -> None:
    op.drop_table("rotation_runs")
    op.drop_index("ix_audit_log_action", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_flood_reports_archive_created_at", table_name="flood_reports_archive")
    op.drop_table("flood_reports_archive")
    op.drop_index("ix_flood_reports_lat_lng", table_name="flood_reports")
    op.drop_index("ix_flood_reports_expires_at", table_name="flood_reports")
    op.drop_index("ix_flood_reports_created_at", table_name="flood_reports")
    op.drop_index("ix_flood_reports_device_fingerprint", table_name="flood_reports")
    op.drop_table("flood_reports")
