"""Tests for same-day queue position tracking."""

from datetime import UTC, date, datetime

import pytest

from charity.platform.tickets.models import CheckInMethod, QueueStatus, Visit, VisitStatus
from charity.platform.tickets.queue import QueueTracker
from charity.platform.tickets.store import TicketStore

pytestmark = pytest.mark.integration

TODAY = date(2026, 10, 16)


async def checked_in_visit(session, ticket_id: int, when: datetime, checked_out: bool = False):
    visit = Visit(
        visitor_id=ticket_id,
        ticket_id=ticket_id,
        check_in_time=when,
        check_out_time=when if checked_out else None,
        check_in_method=CheckInMethod.STAFF_ENTRY,
        checked_in_by=1,
        status=VisitStatus.COMPLETED if checked_out else VisitStatus.CHECKED_IN,
    )
    session.add(visit)
    await session.flush()
    return visit


@pytest.fixture
def tickets(issue_ticket, ticket_service):
    """Issue ``n`` tickets for today and return their database ids."""

    async def _issue(n: int) -> list[int]:
        ids = []
        for _ in range(n):
            number = await issue_ticket()
            ticket = await TicketStore(ticket_service.session).get_by_number(number)
            ids.append(ticket.id)
        return ids

    return _issue


@pytest.mark.asyncio
async def test_first_visitor_of_the_day_is_position_one(async_db_session, frozen_clock):
    tracker = QueueTracker(async_db_session, frozen_clock, minutes_per_position=5)
    assert await tracker.next_position(TODAY) == 1
    assert tracker.estimate_minutes(1) == 5


@pytest.mark.asyncio
async def test_counts_only_open_visits_for_the_day(async_db_session, frozen_clock, tickets):
    ids = await tickets(4)
    await checked_in_visit(async_db_session, ids[0], datetime(2026, 10, 16, 9, 0, tzinfo=UTC))
    await checked_in_visit(async_db_session, ids[1], datetime(2026, 10, 16, 9, 5, tzinfo=UTC))
    # Checked out already
    await checked_in_visit(
        async_db_session, ids[2], datetime(2026, 10, 16, 9, 10, tzinfo=UTC), checked_out=True
    )
    # Yesterday
    await checked_in_visit(async_db_session, ids[3], datetime(2026, 10, 15, 15, 0, tzinfo=UTC))

    tracker = QueueTracker(async_db_session, frozen_clock, minutes_per_position=7)
    assert await tracker.count_open_checkins(TODAY) == 2
    assert await tracker.next_position(TODAY) == 3
    assert tracker.estimate_minutes(3) == 21


@pytest.mark.asyncio
async def test_excluded_visit_is_not_counted(async_db_session, frozen_clock, tickets):
    ids = await tickets(2)
    await checked_in_visit(async_db_session, ids[0], datetime(2026, 10, 16, 9, 0, tzinfo=UTC))
    own = await checked_in_visit(
        async_db_session, ids[1], datetime(2026, 10, 16, 9, 30, tzinfo=UTC)
    )

    tracker = QueueTracker(async_db_session, frozen_clock)
    assert await tracker.next_position(TODAY, exclude_visit_id=own.id) == 2


@pytest.mark.asyncio
async def test_enqueue_writes_waiting_entry(async_db_session, frozen_clock, tickets, ticket_service):
    ids = await tickets(1)
    ticket = await TicketStore(async_db_session).get_by_id(ids[0])
    visit = await checked_in_visit(async_db_session, ids[0], frozen_clock.now())

    tracker = QueueTracker(async_db_session, frozen_clock, minutes_per_position=5)
    entry = await tracker.enqueue(visit=visit, ticket=ticket, position=4, joined_at=frozen_clock.now())

    assert entry.id is not None
    assert entry.reference == ticket.ticket_number
    assert entry.estimated_minutes == 20
    assert entry.status is QueueStatus.WAITING
    assert entry.visit_id == visit.id
