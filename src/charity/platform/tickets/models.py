"""
Visit ticket, visit and queue models.

Ticket status is stored only for the states a staff action produces. Expiry
is never written; it is derived from ``expires_at`` whenever a ticket is read.
"""

from datetime import UTC, date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..assistance.models import HelpCategory
from ..db import Base, TimestampMixin, enum_column_type


class TicketStatus(str, Enum):
    """Stored ticket states. USED and CANCELLED are terminal."""

    ACTIVE = "active"
    USED = "used"
    CANCELLED = "cancelled"


class TicketEvent(str, Enum):
    """Staff actions that move a ticket between states."""

    REDEEM = "redeem"
    CANCEL = "cancel"


class TicketRejectionReason(str, Enum):
    """Why a ticket cannot be used, in reporting priority order."""

    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    CANCELLED = "cancelled"
    WRONG_DAY = "wrong_day"
    EXPIRED = "expired"
    INVALID = "invalid"

    @property
    def message(self) -> str:
        return _REJECTION_MESSAGES[self]


_REJECTION_MESSAGES = {
    TicketRejectionReason.NOT_FOUND: "Ticket not found",
    TicketRejectionReason.ALREADY_USED: "Ticket has already been used",
    TicketRejectionReason.CANCELLED: "Ticket has been cancelled",
    TicketRejectionReason.WRONG_DAY: "Ticket is not valid for today",
    TicketRejectionReason.EXPIRED: "Ticket has expired",
    TicketRejectionReason.INVALID: "Ticket is not valid",
}


class VisitStatus(str, Enum):
    """Visit lifecycle states."""

    CHECKED_IN = "checked_in"
    IN_SERVICE = "in_service"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class CheckInMethod(str, Enum):
    """How the visitor was checked in."""

    QR_SCAN = "qr_scan"
    MANUAL_ENTRY = "manual_entry"
    STAFF_ENTRY = "staff_entry"


class QueueStatus(str, Enum):
    """Queue entry states."""

    WAITING = "waiting"
    CALLED = "called"
    SERVED = "served"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Ticket(Base, TimestampMixin):
    """Visit ticket table."""

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    help_request_id: Mapped[int] = mapped_column(
        ForeignKey("help_requests.id"), nullable=False, index=True
    )
    visitor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    visitor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[HelpCategory] = mapped_column(enum_column_type(HelpCategory), nullable=False)

    # Slot
    visit_date: Mapped[date] = mapped_column(Date, nullable=False)
    time_slot: Mapped[str | None] = mapped_column(String(50), nullable=True)
    qr_code: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[TicketStatus] = mapped_column(
        enum_column_type(TicketStatus), default=TicketStatus.ACTIVE, nullable=False, index=True
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Redemption
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    used_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Cancellation
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_tickets_visit_date_status", "visit_date", "status"),)

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, number={self.ticket_number}, status={self.status})>"


class Visit(Base, TimestampMixin):
    """Check-in record created when a ticket is redeemed."""

    __tablename__ = "visits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    visitor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    # One visit per ticket
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id"), unique=True, nullable=False)

    check_in_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_in_method: Mapped[CheckInMethod] = mapped_column(
        enum_column_type(CheckInMethod), nullable=False
    )
    checked_in_by: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[VisitStatus] = mapped_column(
        enum_column_type(VisitStatus), default=VisitStatus.CHECKED_IN, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("ix_visits_check_in_open", "check_in_time", "check_out_time"),)


class QueueEntry(Base, TimestampMixin):
    """A visitor's place in the day's service queue."""

    __tablename__ = "queue_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    visitor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    help_request_id: Mapped[int] = mapped_column(ForeignKey("help_requests.id"), nullable=False)
    visit_id: Mapped[int] = mapped_column(ForeignKey("visits.id"), nullable=False)

    # Ticket number the visitor checked in with
    reference: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    category: Mapped[HelpCategory] = mapped_column(enum_column_type(HelpCategory), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[QueueStatus] = mapped_column(
        enum_column_type(QueueStatus), default=QueueStatus.WAITING, nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


__all__ = [
    "TicketStatus",
    "TicketEvent",
    "TicketRejectionReason",
    "VisitStatus",
    "CheckInMethod",
    "QueueStatus",
    "Ticket",
    "Visit",
    "QueueEntry",
]
