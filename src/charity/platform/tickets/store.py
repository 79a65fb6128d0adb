"""
Ticket store: data access for tickets, visits and the help requests they
are issued against.

The store never commits. Transaction boundaries belong to the lifecycle
service so that every multi-step change commits or rolls back as one unit.
"""

from datetime import date
from typing import Any

import structlog
from sqlalchemy import exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..assistance.models import HelpCategory, HelpRequest, HelpRequestStatus
from .exceptions import DuplicateTicketNumberError
from .models import Ticket, TicketStatus, Visit

logger = structlog.get_logger(__name__)


class TicketStore:
    """Data access for the ticket lifecycle, bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    async def ticket_number_exists(self, ticket_number: str) -> bool:
        result = await self.session.execute(
            select(exists().where(Ticket.ticket_number == ticket_number))
        )
        return bool(result.scalar())

    async def add_ticket(self, ticket: Ticket) -> Ticket:
        """Insert a new ticket. An existing ticket number is never overwritten."""
        if await self.ticket_number_exists(ticket.ticket_number):
            raise DuplicateTicketNumberError(ticket.ticket_number)

        self.session.add(ticket)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent insert of the same number
            raise DuplicateTicketNumberError(ticket.ticket_number) from exc
        return ticket

    async def get_by_number(
        self, ticket_number: str, *, for_update: bool = False
    ) -> Ticket | None:
        query = select(Ticket).where(Ticket.ticket_number == ticket_number)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_id(self, ticket_id: int, *, for_update: bool = False) -> Ticket | None:
        query = select(Ticket).where(Ticket.id == ticket_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def transition(
        self,
        ticket: Ticket,
        expected: TicketStatus,
        new_status: TicketStatus,
        **values: Any,
    ) -> bool:
        """Move ``ticket`` to ``new_status`` only if it is still ``expected``.

        The conditional UPDATE is the at-most-once guard: when two requests
        race on the same ticket exactly one of them sees a matched row.
        """
        result = await self.session.execute(
            update(Ticket)
            .where(Ticket.id == ticket.id, Ticket.status == expected)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "ticket.transition.lost",
                ticket_number=ticket.ticket_number,
                expected=expected.value,
                target=new_status.value,
            )
            return False
        await self.session.refresh(ticket)
        return True

    # ------------------------------------------------------------------
    # Help requests
    # ------------------------------------------------------------------

    async def select_approved_requests(
        self,
        visit_day: date,
        limit: int,
        category: HelpCategory | None = None,
    ) -> list[HelpRequest]:
        """Oldest-first approved requests for ``visit_day``, at most ``limit``."""
        query = select(HelpRequest).where(
            HelpRequest.status == HelpRequestStatus.APPROVED,
            HelpRequest.visit_day == visit_day,
        )
        if category is not None:
            query = query.where(HelpRequest.category == category)
        query = (
            query.order_by(HelpRequest.created_at.asc(), HelpRequest.id.asc())
            .limit(limit)
            .with_for_update()
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_help_request(
        self, help_request_id: int, *, for_update: bool = False
    ) -> HelpRequest | None:
        query = select(HelpRequest).where(HelpRequest.id == help_request_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def visitor_ticket_requests(self, visitor_id: int) -> list[HelpRequest]:
        """A visitor's requests that hold, or are waiting for, a ticket."""
        result = await self.session.execute(
            select(HelpRequest)
            .where(
                HelpRequest.visitor_id == visitor_id,
                or_(
                    HelpRequest.ticket_number.is_not(None),
                    HelpRequest.status.in_(
                        [HelpRequestStatus.APPROVED, HelpRequestStatus.TICKET_ISSUED]
                    ),
                ),
            )
            .order_by(HelpRequest.created_at.desc(), HelpRequest.id.desc())
        )
        return list(result.scalars().all())

    async def tickets_by_number(self, ticket_numbers: list[str]) -> dict[str, Ticket]:
        if not ticket_numbers:
            return {}
        result = await self.session.execute(
            select(Ticket).where(Ticket.ticket_number.in_(ticket_numbers))
        )
        return {ticket.ticket_number: ticket for ticket in result.scalars().all()}

    # ------------------------------------------------------------------
    # Visits
    # ------------------------------------------------------------------

    async def add_visit(self, visit: Visit) -> Visit:
        self.session.add(visit)
        await self.session.flush()
        return visit


__all__ = ["TicketStore"]
