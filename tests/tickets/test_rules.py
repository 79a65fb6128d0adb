"""Tests for the pure ticket rules: numbering, QR payloads, transitions and usability."""

import re
from datetime import UTC, date, datetime, timedelta

import pytest

from charity.platform.assistance.models import HelpCategory
from charity.platform.core.clock import FrozenClock
from charity.platform.tickets.exceptions import InvalidTicketStateError
from charity.platform.tickets.models import (
    Ticket,
    TicketEvent,
    TicketRejectionReason,
    TicketStatus,
)
from charity.platform.tickets.rules import (
    assess,
    build_qr_payload,
    expires_at_for,
    generate_ticket_number,
    next_status,
    qr_payload_matches,
)

pytestmark = pytest.mark.unit

VISIT_DAY = date(2026, 10, 16)


def make_ticket(
    visit_date: date = VISIT_DAY,
    status: TicketStatus = TicketStatus.ACTIVE,
    timezone: str = "UTC",
    qr_code: str | None = None,
) -> Ticket:
    number = generate_ticket_number(visit_date, "LDH")
    return Ticket(
        ticket_number=number,
        help_request_id=1,
        visitor_id=42,
        visitor_name="Ada Okafor",
        category=HelpCategory.FOOD,
        visit_date=visit_date,
        time_slot="09:00-10:00",
        qr_code=qr_code or build_qr_payload(number, "LDH-TICKET"),
        status=status,
        issued_at=datetime(2026, 10, 10, tzinfo=UTC),
        expires_at=expires_at_for(visit_date, timezone),
    )


class TestTicketNumbers:
    def test_number_embeds_visit_date_and_prefix(self):
        number = generate_ticket_number(VISIT_DAY, "LDH")
        assert re.fullmatch(r"LDH-261016-[0-9A-F]{6}", number)

    def test_numbers_are_random(self):
        numbers = {generate_ticket_number(VISIT_DAY, "LDH") for _ in range(50)}
        assert len(numbers) > 45


class TestQrPayload:
    def test_payload_round_trips_against_its_number(self):
        payload = build_qr_payload("LDH-261016-ABC123", "LDH-TICKET")
        assert payload.startswith("LDH-TICKET:LDH-261016-ABC123:")
        assert qr_payload_matches(payload, "LDH-261016-ABC123")

    def test_payload_for_other_number_does_not_match(self):
        payload = build_qr_payload("LDH-261016-ABC123", "LDH-TICKET")
        assert not qr_payload_matches(payload, "LDH-261016-FFFFFF")

    def test_tampered_digest_does_not_match(self):
        payload = build_qr_payload("LDH-261016-ABC123", "LDH-TICKET")
        assert not qr_payload_matches(payload[:-1] + "x", "LDH-261016-ABC123")

    def test_missing_payload_does_not_match(self):
        assert not qr_payload_matches(None, "LDH-261016-ABC123")
        assert not qr_payload_matches("garbage", "LDH-261016-ABC123")


class TestExpiry:
    def test_expires_at_midnight_after_visit_day_in_utc(self):
        assert expires_at_for(VISIT_DAY, "UTC") == datetime(2026, 10, 17, tzinfo=UTC)

    def test_expiry_follows_service_timezone(self):
        # London is on BST (UTC+1) in mid October
        assert expires_at_for(VISIT_DAY, "Europe/London") == datetime(
            2026, 10, 16, 23, 0, tzinfo=UTC
        )


class TestTransitions:
    def test_active_ticket_can_be_redeemed_or_cancelled(self):
        assert next_status(TicketStatus.ACTIVE, TicketEvent.REDEEM) is TicketStatus.USED
        assert next_status(TicketStatus.ACTIVE, TicketEvent.CANCEL) is TicketStatus.CANCELLED

    @pytest.mark.parametrize("event", [TicketEvent.REDEEM, TicketEvent.CANCEL])
    def test_used_is_terminal(self, event):
        with pytest.raises(InvalidTicketStateError) as exc_info:
            next_status(TicketStatus.USED, event, "LDH-261016-ABC123")
        assert exc_info.value.reason is TicketRejectionReason.ALREADY_USED

    def test_cancelling_used_ticket_has_specific_message(self):
        with pytest.raises(InvalidTicketStateError, match="already been used"):
            next_status(TicketStatus.USED, TicketEvent.CANCEL)

    def test_cancelled_is_terminal(self):
        with pytest.raises(InvalidTicketStateError, match="already cancelled") as exc_info:
            next_status(TicketStatus.CANCELLED, TicketEvent.CANCEL)
        assert exc_info.value.reason is TicketRejectionReason.CANCELLED


class TestAssessment:
    def test_active_ticket_for_today_is_usable(self):
        clock = FrozenClock(datetime(2026, 10, 16, 10, 0, tzinfo=UTC))
        assessment = assess(make_ticket(), clock)
        assert assessment.can_be_used
        assert assessment.reason is None

    def test_yesterdays_ticket_is_wrong_day(self):
        clock = FrozenClock(datetime(2026, 10, 17, 0, 30, tzinfo=UTC))
        assessment = assess(make_ticket(), clock)
        assert not assessment.is_for_today
        assert assessment.reason is TicketRejectionReason.WRONG_DAY

    def test_tomorrows_ticket_is_wrong_day_but_not_expired(self):
        clock = FrozenClock(datetime(2026, 10, 15, 16, 0, tzinfo=UTC))
        assessment = assess(make_ticket(), clock)
        assert not assessment.is_expired
        assert assessment.reason is TicketRejectionReason.WRONG_DAY

    def test_last_second_of_visit_day_is_still_usable(self):
        clock = FrozenClock(datetime(2026, 10, 16, 23, 59, 59, tzinfo=UTC))
        assert assess(make_ticket(), clock).can_be_used

    def test_expiry_is_derived_without_any_write(self):
        ticket = make_ticket()
        clock = FrozenClock(datetime(2026, 10, 20, 9, 0, tzinfo=UTC))
        assessment = assess(ticket, clock)
        assert assessment.is_expired
        assert not assessment.is_usable
        assert ticket.status is TicketStatus.ACTIVE

    def test_used_outranks_other_reasons(self):
        clock = FrozenClock(datetime(2026, 10, 20, 9, 0, tzinfo=UTC))
        assessment = assess(make_ticket(status=TicketStatus.USED), clock)
        assert assessment.reason is TicketRejectionReason.ALREADY_USED

    def test_cancelled_outranks_wrong_day(self):
        clock = FrozenClock(datetime(2026, 10, 20, 9, 0, tzinfo=UTC))
        assessment = assess(make_ticket(status=TicketStatus.CANCELLED), clock)
        assert assessment.reason is TicketRejectionReason.CANCELLED

    def test_mismatched_qr_is_invalid(self):
        clock = FrozenClock(datetime(2026, 10, 16, 10, 0, tzinfo=UTC))
        ticket = make_ticket(qr_code="LDH-TICKET:LDH-000000-000000:deadbeef")
        assessment = assess(ticket, clock)
        assert not assessment.is_valid
        assert assessment.reason is TicketRejectionReason.INVALID

    def test_same_day_uses_service_timezone(self):
        # 23:30 UTC on the 15th is 00:30 BST on the 16th
        clock = FrozenClock(datetime(2026, 10, 15, 23, 30, tzinfo=UTC), timezone="Europe/London")
        ticket = make_ticket(timezone="Europe/London")
        assessment = assess(ticket, clock)
        assert assessment.is_for_today
        assert assessment.can_be_used

    def test_naive_stored_expiry_is_read_as_utc(self):
        ticket = make_ticket()
        ticket.expires_at = ticket.expires_at.replace(tzinfo=None)
        clock = FrozenClock(datetime(2026, 10, 17, 0, 0, 1, tzinfo=UTC))
        assert assess(ticket, clock).is_expired

    def test_expiry_boundary_is_exclusive(self):
        clock = FrozenClock(datetime(2026, 10, 17, tzinfo=UTC) - timedelta(microseconds=1))
        assert not assess(make_ticket(), clock).is_expired
