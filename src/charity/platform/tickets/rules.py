"""
Pure ticket rules: numbering, QR payloads, expiry, state transitions and
the usability assessment shared by validation and redemption.

Nothing here touches the database, so the same-day and expiry rules can be
exercised directly against a frozen clock.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from ..core.clock import Clock, ensure_aware
from .exceptions import InvalidTicketStateError
from .models import Ticket, TicketEvent, TicketRejectionReason, TicketStatus

QR_DIGEST_LENGTH = 8

# (current status, event) -> next status. Anything absent is rejected.
TRANSITIONS: dict[tuple[TicketStatus, TicketEvent], TicketStatus] = {
    (TicketStatus.ACTIVE, TicketEvent.REDEEM): TicketStatus.USED,
    (TicketStatus.ACTIVE, TicketEvent.CANCEL): TicketStatus.CANCELLED,
}

_TERMINAL_REASONS = {
    TicketStatus.USED: TicketRejectionReason.ALREADY_USED,
    TicketStatus.CANCELLED: TicketRejectionReason.CANCELLED,
}

_CANCEL_MESSAGES = {
    TicketStatus.USED: "Cannot cancel a ticket that has already been used",
    TicketStatus.CANCELLED: "Ticket is already cancelled",
}


def next_status(
    current: TicketStatus, event: TicketEvent, ticket_number: str | None = None
) -> TicketStatus:
    """Return the status ``event`` moves a ticket to, or raise InvalidTicketStateError."""
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        reason = _TERMINAL_REASONS.get(current, TicketRejectionReason.INVALID)
        if event is TicketEvent.CANCEL:
            message = _CANCEL_MESSAGES.get(current, reason.message)
        else:
            message = reason.message
        raise InvalidTicketStateError(
            message, reason=reason, ticket_number=ticket_number, status=current
        ) from None


def generate_ticket_number(visit_date: date, prefix: str) -> str:
    """Random ticket number, e.g. ``LDH-261016-3FA92C``.

    Uniqueness is enforced by the store; this only makes collisions rare.
    """
    return f"{prefix}-{visit_date:%y%m%d}-{secrets.token_hex(3).upper()}"


def _qr_digest(ticket_number: str) -> str:
    return hashlib.sha256(ticket_number.encode("utf-8")).hexdigest()[:QR_DIGEST_LENGTH]


def build_qr_payload(ticket_number: str, prefix: str) -> str:
    """QR payload derived deterministically from the ticket number."""
    return f"{prefix}:{ticket_number}:{_qr_digest(ticket_number)}"


def qr_payload_matches(payload: str | None, ticket_number: str) -> bool:
    """Check a stored QR payload still encodes ``ticket_number``.

    The prefix is not compared so tickets survive a change of QR prefix.
    """
    if not payload:
        return False
    parts = payload.rsplit(":", 2)
    if len(parts) != 3:
        return False
    _, number, digest = parts
    return number == ticket_number and digest == _qr_digest(ticket_number)


def expires_at_for(visit_date: date, timezone: str | ZoneInfo, grace_days: int = 1) -> datetime:
    """Midnight ``grace_days`` after the visit date in the service timezone, as UTC."""
    tz = timezone if isinstance(timezone, ZoneInfo) else ZoneInfo(timezone)
    local = datetime.combine(visit_date + timedelta(days=grace_days), time.min, tzinfo=tz)
    return local.astimezone(UTC)


@dataclass(frozen=True)
class TicketAssessment:
    """The four usability predicates of a ticket at one instant."""

    is_valid: bool
    is_usable: bool
    is_unused: bool
    is_for_today: bool
    is_expired: bool
    is_cancelled: bool = False

    @property
    def can_be_used(self) -> bool:
        return self.is_valid and self.is_usable and self.is_unused and self.is_for_today

    @property
    def reason(self) -> TicketRejectionReason | None:
        """Highest-priority reason the ticket cannot be used, if any."""
        if self.can_be_used:
            return None
        if not self.is_unused:
            return TicketRejectionReason.ALREADY_USED
        if self.is_cancelled:
            return TicketRejectionReason.CANCELLED
        if not self.is_for_today:
            return TicketRejectionReason.WRONG_DAY
        if self.is_expired:
            return TicketRejectionReason.EXPIRED
        return TicketRejectionReason.INVALID


def is_structurally_valid(ticket: Ticket, clock: Clock) -> bool:
    """The ticket's stored fields agree with each other."""
    if not ticket.ticket_number or ticket.visit_date is None or ticket.expires_at is None:
        return False
    if not qr_payload_matches(ticket.qr_code, ticket.ticket_number):
        return False
    # A ticket cannot expire before its own visit day begins
    day_start, _ = clock.day_bounds(ticket.visit_date)
    return ensure_aware(ticket.expires_at) > day_start


def assess(ticket: Ticket, clock: Clock) -> TicketAssessment:
    """Evaluate whether ``ticket`` can be redeemed right now."""
    moment = clock.now()
    is_expired = moment > ensure_aware(ticket.expires_at)
    return TicketAssessment(
        is_valid=is_structurally_valid(ticket, clock),
        is_usable=ticket.status == TicketStatus.ACTIVE and not is_expired,
        is_unused=ticket.status != TicketStatus.USED,
        is_for_today=ticket.visit_date == clock.local_date(moment),
        is_expired=is_expired,
        is_cancelled=ticket.status == TicketStatus.CANCELLED,
    )


__all__ = [
    "TRANSITIONS",
    "TicketAssessment",
    "assess",
    "build_qr_payload",
    "expires_at_for",
    "generate_ticket_number",
    "is_structurally_valid",
    "next_status",
    "qr_payload_matches",
]
