"""
FastAPI dependencies for the ticket lifecycle API.

Tests override these through ``app.dependency_overrides`` to inject a frozen
clock, a recording dispatcher or a failing queue tracker.
"""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from ..audit.service import AuditService
from ..communications.dispatcher import NotificationDispatcher
from ..communications.dispatcher import get_notification_dispatcher as _get_dispatcher
from ..core.clock import Clock, SystemClock
from ..db import get_async_session
from ..settings import settings
from .service import TicketLifecycleService

DEFAULT_ACTOR = "system"

_clock: Clock | None = None


def get_clock() -> Clock:
    """Process-wide wall clock."""
    global _clock
    if _clock is None:
        _clock = SystemClock()
    return _clock


def get_notification_dispatcher() -> NotificationDispatcher:
    return _get_dispatcher()


def get_audit_service() -> AuditService:
    # Own session per write so failure-path entries survive a rollback
    return AuditService()


def get_current_actor(
    actor: str | None = Header(None, alias=settings.api.actor_header),
) -> str:
    """Acting user from the actor header. No authentication is performed."""
    if actor and actor.strip():
        return actor.strip()
    return DEFAULT_ACTOR


async def get_ticket_service(
    session: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
    audit: AuditService = Depends(get_audit_service),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> TicketLifecycleService:
    return TicketLifecycleService(session, clock=clock, audit=audit, dispatcher=dispatcher)


__all__ = [
    "DEFAULT_ACTOR",
    "get_audit_service",
    "get_clock",
    "get_current_actor",
    "get_notification_dispatcher",
    "get_ticket_service",
]
