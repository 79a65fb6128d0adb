"""
FastAPI router for audit and activity endpoints.
"""

from datetime import UTC, datetime, timedelta

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from .models import (
    ActivitySeverity,
    ActivityType,
    AuditActivityList,
    AuditActivityResponse,
    AuditFilterParams,
)
from .service import AuditService

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Audit"])


@router.get("/activities", response_model=AuditActivityList)
async def list_activities(
    user_id: str | None = Query(None, description="Filter by acting user"),
    activity_type: ActivityType | None = Query(None, description="Filter by activity type"),
    severity: ActivitySeverity | None = Query(None, description="Filter by severity"),
    resource_type: str | None = Query(None, description="Filter by resource type"),
    resource_id: str | None = Query(None, description="Filter by resource ID"),
    days: int | None = Query(30, ge=1, le=365, description="Number of days to look back"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(50, ge=1, le=1000, description="Items per page"),
    session: AsyncSession = Depends(get_async_session),
) -> AuditActivityList:
    """
    Get paginated list of audit activities.

    Ticket activities use resource_type "ticket" and the ticket number or id
    as resource_id.
    """
    try:
        start_date = datetime.now(UTC) - timedelta(days=days) if days else None

        filters = AuditFilterParams(
            user_id=user_id,
            activity_type=activity_type,
            severity=severity,
            resource_type=resource_type,
            resource_id=resource_id,
            start_date=start_date,
            page=page,
            per_page=per_page,
        )

        service = AuditService(session)
        return await service.get_activities(filters)

    except Exception as e:
        logger.error("Error retrieving audit activities", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve audit activities")


@router.get("/activities/recent", response_model=list[AuditActivityResponse])
async def get_recent_activities(
    limit: int = Query(20, ge=1, le=100, description="Maximum number of activities to return"),
    days: int = Query(7, ge=1, le=90, description="Number of days to look back"),
    session: AsyncSession = Depends(get_async_session),
) -> list[AuditActivityResponse]:
    """Get the most recent audit activities for front-desk dashboards."""
    try:
        service = AuditService(session)
        return await service.get_recent_activities(limit=limit, days=days)
    except Exception as e:
        logger.error("Error retrieving recent activities", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve recent activities")
