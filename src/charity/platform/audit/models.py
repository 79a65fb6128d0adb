"""
Audit and activity tracking models for the charity platform.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, TimestampMixin


class ActivityType(str, Enum):
    """Types of activities that can be audited."""

    # Ticket lifecycle
    TICKETS_BULK_ISSUED = "ticket.bulk_issued"
    TICKETS_BULK_ISSUE_FAILED = "ticket.bulk_issue_failed"
    TICKET_VALIDATED = "ticket.validated"
    TICKET_USED = "ticket.used"
    TICKET_USE_FAILED = "ticket.use_failed"
    TICKET_CANCELLED = "ticket.cancelled"
    TICKET_CANCEL_FAILED = "ticket.cancel_failed"

    # System activities
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class ActivitySeverity(str, Enum):
    """Severity levels for activities."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuditActivity(Base, TimestampMixin):
    """Audit activity tracking table."""

    __tablename__ = "audit_activities"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Activity identification
    activity_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(
        String(20), default=ActivitySeverity.LOW.value, index=True
    )

    # Who and when
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), index=True
    )

    # What and where
    resource_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)

    # Details
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Context
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Indexes for common queries
    __table_args__ = (
        Index("ix_audit_activities_user_timestamp", "user_id", "timestamp"),
        Index("ix_audit_activities_type_timestamp", "activity_type", "timestamp"),
        Index("ix_audit_activities_resource", "resource_type", "resource_id"),
    )


# Pydantic models for API


class AuditActivityCreate(BaseModel):
    """Model for creating audit activities."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True, extra="forbid")

    activity_type: ActivityType
    severity: ActivitySeverity = ActivitySeverity.LOW
    user_id: str | None = None
    resource_type: str | None = None
    resource_id: str | None = None
    action: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    request_id: str | None = None


class AuditActivityResponse(BaseModel):
    """Model for audit activity responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    activity_type: str
    severity: str
    user_id: str | None
    timestamp: datetime
    resource_type: str | None
    resource_id: str | None
    action: str
    description: str
    details: dict[str, Any] | None
    ip_address: str | None
    request_id: str | None


class AuditActivityList(BaseModel):
    """Model for paginated audit activity lists."""

    activities: list[AuditActivityResponse]
    total: int
    page: int = 1
    per_page: int = 50
    has_next: bool
    has_prev: bool


class AuditFilterParams(BaseModel):
    """Model for audit activity filtering parameters."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True, extra="forbid")

    user_id: str | None = None
    activity_type: ActivityType | None = None
    severity: ActivitySeverity | None = None
    resource_type: str | None = None
    resource_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=50, ge=1, le=1000)
