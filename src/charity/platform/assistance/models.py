"""
Help request models.

A help request is a visitor's application for assistance on a given day.
Approved requests are what bulk ticket issuance draws from.
"""

from datetime import date
from enum import Enum
from typing import Any

from sqlalchemy import Date, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, TimestampMixin, enum_column_type


class HelpCategory(str, Enum):
    """Kinds of assistance a visitor can request."""

    FOOD = "food"
    GENERAL = "general"

    @classmethod
    def _missing_(cls, value: Any) -> "HelpCategory | None":
        # Older records and clients capitalise the category ("Food")
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class HelpRequestStatus(str, Enum):
    """Help request lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    TICKET_ISSUED = "ticket_issued"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class HelpRequest(Base, TimestampMixin):
    """Visitor help request table."""

    __tablename__ = "help_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Visitor
    visitor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    visitor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Request
    category: Mapped[HelpCategory] = mapped_column(enum_column_type(HelpCategory), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[HelpRequestStatus] = mapped_column(
        enum_column_type(HelpRequestStatus),
        default=HelpRequestStatus.PENDING,
        nullable=False,
        index=True,
    )
    reference: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    # Visit slot
    visit_day: Mapped[date] = mapped_column(Date, nullable=False)
    time_slot: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Ticket binding, populated only while status is ticket_issued
    ticket_number: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    qr_code: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("ix_help_requests_status_visit_day", "status", "visit_day"),
        Index("ix_help_requests_visitor_created", "visitor_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<HelpRequest(id={self.id}, reference={self.reference}, status={self.status})>"


__all__ = [
    "HelpCategory",
    "HelpRequestStatus",
    "HelpRequest",
]
