"""
Visit ticket lifecycle.

Tickets move ACTIVE -> USED on redemption or ACTIVE -> CANCELLED on
cancellation; both are terminal. Expiry and same-day checks are derived
from the clock at read time.

Usage:

    from charity.platform.tickets import TicketLifecycleService

    service = TicketLifecycleService(session)
    result = await service.bulk_issue("2026-10-16", "09:00-10:00", capacity=20)
    await service.redeem(result.tickets[0].ticket_number, staff_id=7)
"""

from .exceptions import (
    DuplicateTicketNumberError,
    HelpRequestNotFoundError,
    InvalidTicketStateError,
    TicketError,
    TicketNotFoundError,
    TicketStoreError,
    TicketValidationError,
)
from .models import (
    CheckInMethod,
    QueueEntry,
    QueueStatus,
    Ticket,
    TicketEvent,
    TicketRejectionReason,
    TicketStatus,
    Visit,
    VisitStatus,
)
from .queue import QueueTracker
from .router import router as tickets_router
from .service import TicketLifecycleService
from .store import TicketStore

__all__ = [
    # Models and enums
    "Ticket",
    "Visit",
    "QueueEntry",
    "TicketStatus",
    "TicketEvent",
    "TicketRejectionReason",
    "VisitStatus",
    "CheckInMethod",
    "QueueStatus",
    # Errors
    "TicketError",
    "TicketValidationError",
    "TicketNotFoundError",
    "HelpRequestNotFoundError",
    "InvalidTicketStateError",
    "TicketStoreError",
    "DuplicateTicketNumberError",
    # Services
    "TicketStore",
    "QueueTracker",
    "TicketLifecycleService",
    # Router
    "tickets_router",
]
