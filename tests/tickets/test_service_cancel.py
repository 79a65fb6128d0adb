"""Tests for ticket cancellation and the ticket read models."""

from datetime import date

import pytest
from sqlalchemy import select

from charity.platform.assistance.models import HelpCategory, HelpRequest, HelpRequestStatus
from charity.platform.audit.models import ActivityType, AuditActivity
from charity.platform.communications.models import NotificationTemplate
from charity.platform.tickets.exceptions import InvalidTicketStateError, TicketNotFoundError
from charity.platform.tickets.models import Ticket, TicketRejectionReason, TicketStatus
from charity.platform.tickets.store import TicketStore

pytestmark = pytest.mark.integration

TODAY = date(2026, 10, 16)


async def ticket_id_for(ticket_service, number: str) -> int:
    ticket = await TicketStore(ticket_service.session).get_by_number(number)
    return ticket.id


async def load_request(session_factory, reference: str) -> HelpRequest:
    async with session_factory() as session:
        result = await session.execute(
            select(HelpRequest).where(HelpRequest.reference == reference)
        )
        return result.scalar_one()


# ----------------------------------------------------------------------
# Cancellation
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cancel_reverts_help_request_to_approved(
    ticket_service, make_help_request, session_factory
):
    request = await make_help_request()
    reference = request.reference
    issued = await ticket_service.bulk_issue(TODAY, "morning", 1)
    number = issued.tickets[0].ticket_number
    ticket_id = await ticket_id_for(ticket_service, number)

    result = await ticket_service.cancel(
        ticket_id, "Visitor unwell", notes="Phoned in", actor="desk-2"
    )

    assert result.status is TicketStatus.CANCELLED
    assert result.ticket_number == number
    assert result.cancelled_by == "desk-2"
    assert result.help_request_reverted
    assert not result.user_notified

    reverted = await load_request(session_factory, reference)
    assert reverted.status is HelpRequestStatus.APPROVED
    assert reverted.ticket_number is None
    assert reverted.qr_code is None

    async with session_factory() as session:
        ticket = (await session.execute(select(Ticket).where(Ticket.id == ticket_id))).scalar_one()
        entries = (
            await session.execute(
                select(AuditActivity).where(
                    AuditActivity.activity_type == ActivityType.TICKET_CANCELLED.value
                )
            )
        ).scalars().all()
    assert ticket.cancellation_reason == "Visitor unwell"
    assert ticket.cancelled_by == "desk-2"
    assert len(entries) == 1
    assert entries[0].details["admin_notes"] == "Phoned in"


@pytest.mark.asyncio
async def test_cancelled_ticket_cannot_be_used(ticket_service, issue_ticket):
    number = await issue_ticket()
    await ticket_service.cancel(await ticket_id_for(ticket_service, number), "Duplicate booking")

    validation = await ticket_service.validate(number)
    assert not validation.valid
    assert validation.reason is TicketRejectionReason.CANCELLED

    with pytest.raises(InvalidTicketStateError) as exc_info:
        await ticket_service.redeem(number, staff_id=1)
    assert exc_info.value.reason is TicketRejectionReason.CANCELLED


@pytest.mark.asyncio
async def test_reverted_request_can_be_issued_again(ticket_service, make_help_request):
    request = await make_help_request()
    reference = request.reference
    first = await ticket_service.bulk_issue(TODAY, "morning", 1)
    await ticket_service.cancel(
        await ticket_id_for(ticket_service, first.tickets[0].ticket_number), "Slot moved"
    )

    second = await ticket_service.bulk_issue(TODAY, "afternoon", 1)

    assert second.tickets_issued == 1
    assert second.tickets[0].reference == reference
    assert second.tickets[0].ticket_number != first.tickets[0].ticket_number


@pytest.mark.asyncio
async def test_cancel_notifies_visitor_when_asked(
    ticket_service, issue_ticket, dispatcher, recording_sender
):
    number = await issue_ticket()

    result = await ticket_service.cancel(
        await ticket_id_for(ticket_service, number), "Centre closed", notify_visitor=True
    )

    assert result.user_notified
    await dispatcher.drain()
    recipient, template, data = recording_sender.sent[-1]
    assert template is NotificationTemplate.TICKET_CANCELLED
    assert data["reason"] == "Centre closed"
    assert data["ticket_number"] == number


@pytest.mark.asyncio
async def test_cancel_used_ticket_is_rejected(ticket_service, issue_ticket, session_factory):
    number = await issue_ticket()
    ticket_id = await ticket_id_for(ticket_service, number)
    await ticket_service.redeem(number, staff_id=3)

    with pytest.raises(InvalidTicketStateError, match="already been used"):
        await ticket_service.cancel(ticket_id, "Too late")

    async with session_factory() as session:
        ticket = (await session.execute(select(Ticket).where(Ticket.id == ticket_id))).scalar_one()
        failures = (
            await session.execute(
                select(AuditActivity).where(
                    AuditActivity.activity_type == ActivityType.TICKET_CANCEL_FAILED.value
                )
            )
        ).scalars().all()
    assert ticket.status is TicketStatus.USED
    assert len(failures) == 1


@pytest.mark.asyncio
async def test_cancel_twice_is_rejected(ticket_service, issue_ticket):
    number = await issue_ticket()
    ticket_id = await ticket_id_for(ticket_service, number)
    await ticket_service.cancel(ticket_id, "First")

    with pytest.raises(InvalidTicketStateError, match="already cancelled"):
        await ticket_service.cancel(ticket_id, "Second")


@pytest.mark.asyncio
async def test_cancel_unknown_ticket(ticket_service):
    with pytest.raises(TicketNotFoundError) as exc_info:
        await ticket_service.cancel(424242, "Nothing to cancel")
    assert exc_info.value.context["ticket_id"] == 424242


@pytest.mark.asyncio
async def test_cancel_leaves_completed_request_untouched(
    ticket_service, make_help_request, async_db_session, session_factory
):
    request = await make_help_request()
    reference = request.reference
    issued = await ticket_service.bulk_issue(TODAY, "morning", 1)
    number = issued.tickets[0].ticket_number

    # The visit was handled off-system and the request closed by staff
    request.status = HelpRequestStatus.COMPLETED
    await async_db_session.commit()

    result = await ticket_service.cancel(await ticket_id_for(ticket_service, number), "Cleanup")

    assert result.status is TicketStatus.CANCELLED
    assert not result.help_request_reverted
    untouched = await load_request(session_factory, reference)
    assert untouched.status is HelpRequestStatus.COMPLETED
    assert untouched.ticket_number == number


# ----------------------------------------------------------------------
# Read models
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_ticket_details_include_instructions(ticket_service, issue_ticket):
    number = await issue_ticket(category=HelpCategory.FOOD)

    details = await ticket_service.get_ticket_details(number)

    assert details.ticket_number == number
    assert details.can_be_used
    assert not details.is_expired
    assert details.instructions.what_to_bring == [
        "Valid ID",
        "Proof of address",
        "Reusable bags for food",
    ]
    assert details.instructions.contact_number


@pytest.mark.asyncio
async def test_general_ticket_instructions(ticket_service, issue_ticket):
    number = await issue_ticket(category=HelpCategory.GENERAL)
    details = await ticket_service.get_ticket_details(number)
    assert details.instructions.what_to_bring == ["Valid ID", "Proof of address"]


@pytest.mark.asyncio
async def test_ticket_details_unknown_number(ticket_service):
    with pytest.raises(TicketNotFoundError):
        await ticket_service.get_ticket_details("LDH-261016-NOPE00")


@pytest.mark.asyncio
async def test_visitor_history_newest_first_with_pending_placeholder(
    ticket_service, make_help_request
):
    await make_help_request(visitor_id=77)
    await ticket_service.bulk_issue(TODAY, "morning", 1)
    waiting = await make_help_request(visitor_id=77)
    await make_help_request(visitor_id=77, status=HelpRequestStatus.REJECTED)

    history = await ticket_service.get_visitor_ticket_history(77)

    assert history.visitor_id == 77
    assert history.total == 2
    newest, oldest = history.tickets
    assert newest.ticket_number == f"PENDING-{waiting.reference}"
    assert not newest.has_ticket
    assert newest.ticket_status is None
    assert oldest.has_ticket
    assert oldest.ticket_status is TicketStatus.ACTIVE
    assert oldest.request_status is HelpRequestStatus.TICKET_ISSUED
