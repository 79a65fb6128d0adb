"""
Same-day queue tracking.

A visitor's position is the number of visits checked in today that have not
checked out, counting the visitor's own. Two check-ins landing at the same
instant can read the same count, so positions are an approximate arrival
order and may occasionally collide.
"""

from datetime import date, datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..settings import settings
from .models import QueueEntry, QueueStatus, Ticket, Visit

logger = structlog.get_logger(__name__)


class QueueTracker:
    """Computes queue positions and writes queue entries within a session."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock,
        minutes_per_position: int | None = None,
    ):
        self.session = session
        self.clock = clock
        self.minutes_per_position = (
            minutes_per_position or settings.tickets.service_minutes_per_position
        )

    async def count_open_checkins(self, day: date, exclude_visit_id: int | None = None) -> int:
        """Visits checked in on ``day`` (service timezone) with no checkout yet."""
        start, end = self.clock.day_bounds(day)
        query = select(func.count(Visit.id)).where(
            Visit.check_in_time >= start,
            Visit.check_in_time < end,
            Visit.check_out_time.is_(None),
        )
        if exclude_visit_id is not None:
            query = query.where(Visit.id != exclude_visit_id)
        result = await self.session.execute(query)
        return int(result.scalar() or 0)

    async def next_position(self, day: date, exclude_visit_id: int | None = None) -> int:
        return 1 + await self.count_open_checkins(day, exclude_visit_id)

    def estimate_minutes(self, position: int) -> int:
        return position * self.minutes_per_position

    async def enqueue(
        self,
        *,
        visit: Visit,
        ticket: Ticket,
        position: int,
        joined_at: datetime,
    ) -> QueueEntry:
        entry = QueueEntry(
            visitor_id=ticket.visitor_id,
            help_request_id=ticket.help_request_id,
            visit_id=visit.id,
            reference=ticket.ticket_number,
            category=ticket.category,
            position=position,
            estimated_minutes=self.estimate_minutes(position),
            status=QueueStatus.WAITING,
            joined_at=joined_at,
        )
        self.session.add(entry)
        await self.session.flush()

        logger.info(
            "queue.joined",
            reference=entry.reference,
            position=position,
            estimated_minutes=entry.estimated_minutes,
        )
        return entry


__all__ = ["QueueTracker"]
