"""
Ticket lifecycle API router.

Ticket errors propagate to the handlers registered in
``charity.platform.core.exception_handlers`` which render
``TicketError.to_dict()`` with the error's status code.
"""

import structlog
from fastapi import APIRouter, Depends, Response, status

from .dependencies import get_current_actor, get_ticket_service
from .schemas import (
    BulkIssueRequest,
    BulkIssueResult,
    CancellationResult,
    CancelTicketRequest,
    RedemptionResult,
    TicketDetails,
    UseTicketRequest,
    ValidateTicketRequest,
    ValidationResult,
    VisitorTicketHistory,
)
from .service import TicketLifecycleService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post(
    "/bulk-issue",
    response_model=BulkIssueResult,
    status_code=status.HTTP_201_CREATED,
)
async def bulk_issue_tickets(
    payload: BulkIssueRequest,
    response: Response,
    service: TicketLifecycleService = Depends(get_ticket_service),
    actor: str = Depends(get_current_actor),
) -> BulkIssueResult:
    """Issue tickets to the oldest approved requests for a visit day.

    Returns 200 instead of 201 when no approved request matched.
    """
    result = await service.bulk_issue(
        payload.date,
        payload.time_slot,
        payload.capacity,
        category=payload.category,
        actor=actor,
    )
    if result.tickets_issued == 0:
        response.status_code = status.HTTP_200_OK
    return result


@router.post("/{ticket_number}/validate", response_model=ValidationResult)
async def validate_ticket(
    ticket_number: str,
    payload: ValidateTicketRequest | None = None,
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> ValidationResult:
    """Check a scanned ticket. Unusable tickets still answer 200 with ``valid: false``."""
    payload = payload or ValidateTicketRequest()
    return await service.validate(
        ticket_number, staff_id=payload.staff_id, check_in_time=payload.check_in_time
    )


@router.post("/{ticket_number}/use", response_model=RedemptionResult)
async def use_ticket(
    ticket_number: str,
    payload: UseTicketRequest,
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> RedemptionResult:
    """Redeem a ticket, check the visitor in and assign a queue position."""
    return await service.redeem(
        ticket_number,
        payload.staff_id,
        check_in_time=payload.check_in_time,
        notes=payload.notes,
        queue_position=payload.queue_position,
    )


@router.post("/{ticket_id}/cancel", response_model=CancellationResult)
async def cancel_ticket(
    ticket_id: int,
    payload: CancelTicketRequest,
    service: TicketLifecycleService = Depends(get_ticket_service),
    actor: str = Depends(get_current_actor),
) -> CancellationResult:
    """Cancel an active ticket and return its help request to approved."""
    return await service.cancel(
        ticket_id,
        payload.reason,
        notes=payload.admin_notes,
        notify_visitor=payload.notify_user,
        actor=actor,
    )


@router.get("/visitors/{visitor_id}/history", response_model=VisitorTicketHistory)
async def get_visitor_history(
    visitor_id: int,
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> VisitorTicketHistory:
    return await service.get_visitor_ticket_history(visitor_id)


@router.get("/{ticket_number}", response_model=TicketDetails)
async def get_ticket(
    ticket_number: str,
    service: TicketLifecycleService = Depends(get_ticket_service),
) -> TicketDetails:
    return await service.get_ticket_details(ticket_number)


__all__ = ["router"]
