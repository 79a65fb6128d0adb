"""
Audit and activity tracking module for the charity platform.

Every ticket lifecycle call records who did what to which ticket, on the
success path and on the failure path alike.

Usage Examples:

    # Record a lifecycle event (never raises)
    from charity.platform.audit import AuditService, ActivityType

    await AuditService().record(
        actor=42,
        action="ticket.use",
        entity_type="ticket",
        entity_id="LDH-261016-3FA92C",
        description="Ticket redeemed at front desk",
        activity_type=ActivityType.TICKET_USED,
    )

    # Log a system activity
    from charity.platform.audit import log_system_activity

    await log_system_activity(
        activity_type=ActivityType.SYSTEM_STARTUP,
        action="startup",
        description="Service started",
    )
"""

from .models import (
    ActivitySeverity,
    ActivityType,
    AuditActivity,
    AuditActivityCreate,
    AuditActivityList,
    AuditActivityResponse,
    AuditFilterParams,
)
from .router import router as audit_router
from .service import AuditService, log_system_activity

__all__ = [
    # Models and enums
    "ActivityType",
    "ActivitySeverity",
    "AuditActivity",
    "AuditActivityCreate",
    "AuditActivityResponse",
    "AuditActivityList",
    "AuditFilterParams",
    # Service and helpers
    "AuditService",
    "log_system_activity",
    # Router
    "audit_router",
]
