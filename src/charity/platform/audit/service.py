"""
Audit service for tracking and retrieving activities across the platform.
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import and_, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..logging import log_audit_event
from .models import (
    ActivitySeverity,
    ActivityType,
    AuditActivity,
    AuditActivityCreate,
    AuditActivityList,
    AuditActivityResponse,
    AuditFilterParams,
)

logger = structlog.get_logger(__name__)


class AuditService:
    """Service for audit activity tracking and retrieval.

    Without an explicit session every call opens its own, so an audit entry
    written on a failure path is committed even though the caller's
    transaction was rolled back.
    """

    def __init__(self, session: AsyncSession | None = None):
        self._session = session

    def _get_session(self):
        """Get database session or session factory."""
        if self._session:

            @asynccontextmanager
            async def session_context():
                yield self._session

            return session_context()
        else:
            # Resolved at call time so tests can swap the session factory
            from .. import db

            return db.AsyncSessionLocal()

    async def log_activity(
        self,
        activity_type: ActivityType,
        action: str,
        description: str,
        *,
        user_id: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        severity: ActivitySeverity = ActivitySeverity.LOW,
        details: dict[str, Any] | None = None,
        ip_address: str | None = None,
        request_id: str | None = None,
    ) -> AuditActivity:
        """Log an audit activity."""
        async with self._get_session() as session:
            activity_data = AuditActivityCreate(
                activity_type=activity_type,
                action=action,
                description=description,
                severity=severity,
                user_id=user_id,
                resource_type=resource_type,
                resource_id=resource_id,
                details=details,
                ip_address=ip_address,
                request_id=request_id,
            )

            payload = activity_data.model_dump(exclude_none=True, mode="json")
            activity = AuditActivity(**payload)
            session.add(activity)
            await session.commit()
            await session.refresh(activity)

            logger.info(
                "Audit activity logged",
                activity_type=activity_type.value,
                action=action,
                user_id=user_id,
                activity_id=str(activity.id),
            )

            return activity

    async def record(
        self,
        actor: str | int | None,
        action: str,
        entity_type: str,
        entity_id: str | int | None,
        description: str,
        *,
        activity_type: ActivityType,
        severity: ActivitySeverity = ActivitySeverity.LOW,
        details: dict[str, Any] | None = None,
    ) -> AuditActivity | None:
        """Record a ticket lifecycle event.

        Never raises: a failed audit write is logged and must not change the
        outcome of the operation being audited.
        """
        user_id = str(actor) if actor is not None else None
        resource_id = str(entity_id) if entity_id is not None else None

        log_audit_event(
            action,
            category=activity_type.value,
            user_id=user_id,
            resource_type=entity_type,
            resource_id=resource_id,
            description=description,
        )

        try:
            return await self.log_activity(
                activity_type=activity_type,
                action=action,
                description=description,
                user_id=user_id,
                resource_type=entity_type,
                resource_id=resource_id,
                severity=severity,
                details=details,
            )
        except Exception as exc:
            logger.error(
                "audit.record.failed",
                action=action,
                entity_type=entity_type,
                entity_id=resource_id,
                error=str(exc),
            )
            return None

    def _build_attribute_conditions(self, filters: AuditFilterParams) -> list:
        """Build activity attribute filter conditions."""
        conditions = []

        if filters.user_id:
            conditions.append(AuditActivity.user_id == filters.user_id)

        if filters.activity_type:
            conditions.append(AuditActivity.activity_type == filters.activity_type.value)

        if filters.severity:
            conditions.append(AuditActivity.severity == filters.severity.value)

        if filters.resource_type:
            conditions.append(AuditActivity.resource_type == filters.resource_type)

        if filters.resource_id:
            conditions.append(AuditActivity.resource_id == filters.resource_id)

        return conditions

    def _build_date_conditions(self, filters: AuditFilterParams) -> list:
        """Build date range filter conditions."""
        conditions = []

        if filters.start_date:
            conditions.append(AuditActivity.timestamp >= filters.start_date)

        if filters.end_date:
            conditions.append(AuditActivity.timestamp <= filters.end_date)

        return conditions

    async def get_activities(self, filters: AuditFilterParams) -> AuditActivityList:
        """Get filtered and paginated audit activities."""
        async with self._get_session() as session:
            query = select(AuditActivity)

            conditions = self._build_attribute_conditions(filters)
            conditions.extend(self._build_date_conditions(filters))
            if conditions:
                query = query.where(and_(*conditions))

            # Most recent first
            query = query.order_by(desc(AuditActivity.timestamp))

            count_query = select(func.count()).select_from(query.subquery())
            total_result = await session.execute(count_query)
            total = total_result.scalar() or 0

            offset = (filters.page - 1) * filters.per_page
            query = query.offset(offset).limit(filters.per_page)

            result = await session.execute(query)
            activities = result.scalars().all()

            has_next = offset + len(activities) < total
            has_prev = filters.page > 1

            return AuditActivityList(
                activities=[
                    AuditActivityResponse.model_validate(activity) for activity in activities
                ],
                total=total,
                page=filters.page,
                per_page=filters.per_page,
                has_next=has_next,
                has_prev=has_prev,
            )

    async def get_recent_activities(
        self,
        *,
        user_id: str | None = None,
        limit: int = 20,
        days: int = 30,
    ) -> list[AuditActivityResponse]:
        """Get recent activities, newest first."""
        since_date = datetime.now(UTC) - timedelta(days=days)

        filters = AuditFilterParams(
            user_id=user_id,
            start_date=since_date,
            per_page=limit,
            page=1,
        )

        result = await self.get_activities(filters)
        return result.activities


# Helper functions for common audit scenarios


async def log_system_activity(
    activity_type: ActivityType, action: str, description: str, **kwargs
) -> AuditActivity:
    """Helper to log system-level activities."""
    service = AuditService()
    return await service.log_activity(
        activity_type=activity_type,
        action=action,
        description=description,
        severity=ActivitySeverity.MEDIUM,
        **kwargs,
    )
