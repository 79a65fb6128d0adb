"""initial_ticket_lifecycle

Revision ID: 4c1e7a2b9d30
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "4c1e7a2b9d30"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create help request, ticket, visit, queue and audit tables."""

    op.create_table(
        "help_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("visitor_id", sa.Integer(), nullable=False),
        sa.Column("visitor_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("reference", sa.String(50), nullable=False, unique=True),
        sa.Column("visit_day", sa.Date(), nullable=False),
        sa.Column("time_slot", sa.String(50), nullable=True),
        sa.Column("ticket_number", sa.String(64), nullable=True),
        sa.Column("qr_code", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_help_requests_visitor_id", "help_requests", ["visitor_id"])
    op.create_index("ix_help_requests_status", "help_requests", ["status"])
    op.create_index("ix_help_requests_ticket_number", "help_requests", ["ticket_number"])
    op.create_index(
        "ix_help_requests_status_visit_day", "help_requests", ["status", "visit_day"]
    )
    op.create_index(
        "ix_help_requests_visitor_created", "help_requests", ["visitor_id", "created_at"]
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_number", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "help_request_id", sa.Integer(), sa.ForeignKey("help_requests.id"), nullable=False
        ),
        sa.Column("visitor_id", sa.Integer(), nullable=False),
        sa.Column("visitor_name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("visit_date", sa.Date(), nullable=False),
        sa.Column("time_slot", sa.String(50), nullable=True),
        sa.Column("qr_code", sa.String(255), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_by", sa.Integer(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(255), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tickets_help_request_id", "tickets", ["help_request_id"])
    op.create_index("ix_tickets_visitor_id", "tickets", ["visitor_id"])
    op.create_index("ix_tickets_status", "tickets", ["status"])
    op.create_index("ix_tickets_visit_date_status", "tickets", ["visit_date", "status"])

    op.create_table(
        "visits",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("visitor_id", sa.Integer(), nullable=False),
        sa.Column(
            "ticket_id", sa.Integer(), sa.ForeignKey("tickets.id"), nullable=False, unique=True
        ),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_in_method", sa.String(32), nullable=False),
        sa.Column("checked_in_by", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_visits_visitor_id", "visits", ["visitor_id"])
    op.create_index("ix_visits_check_in_open", "visits", ["check_in_time", "check_out_time"])

    op.create_table(
        "queue_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("visitor_id", sa.Integer(), nullable=False),
        sa.Column(
            "help_request_id", sa.Integer(), sa.ForeignKey("help_requests.id"), nullable=False
        ),
        sa.Column("visit_id", sa.Integer(), sa.ForeignKey("visits.id"), nullable=False),
        sa.Column("reference", sa.String(64), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("estimated_minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_queue_entries_visitor_id", "queue_entries", ["visitor_id"])
    op.create_index("ix_queue_entries_reference", "queue_entries", ["reference"])

    op.create_table(
        "audit_activities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("activity_type", sa.String(100), nullable=False),
        sa.Column("severity", sa.String(20), nullable=True),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resource_type", sa.String(100), nullable=True),
        sa.Column("resource_id", sa.String(255), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("request_id", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_audit_activities_activity_type", "audit_activities", ["activity_type"])
    op.create_index("ix_audit_activities_severity", "audit_activities", ["severity"])
    op.create_index("ix_audit_activities_user_id", "audit_activities", ["user_id"])
    op.create_index("ix_audit_activities_timestamp", "audit_activities", ["timestamp"])
    op.create_index(
        "ix_audit_activities_user_timestamp", "audit_activities", ["user_id", "timestamp"]
    )
    op.create_index(
        "ix_audit_activities_type_timestamp", "audit_activities", ["activity_type", "timestamp"]
    )
    op.create_index(
        "ix_audit_activities_resource", "audit_activities", ["resource_type", "resource_id"]
    )


def downgrade() -> None:
    """Drop all ticket lifecycle tables."""
    op.drop_table("audit_activities")
    op.drop_table("queue_entries")
    op.drop_table("visits")
    op.drop_table("tickets")
    op.drop_table("help_requests")
