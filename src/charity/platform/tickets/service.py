"""
Ticket lifecycle service.

Owns every ticket state change: bulk issuance against approved help
requests, front-desk validation, redemption into a visit and queue entry,
and cancellation with the help request reverted to approved.

Each mutating operation runs in a single transaction on the service's
session. Audit entries are written after the transaction has committed or
rolled back, through the audit service's own session, so failure-path
entries are kept. Notifications are handed to the dispatcher only after a
successful commit.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ..assistance.models import HelpCategory, HelpRequest, HelpRequestStatus
from ..audit.models import ActivitySeverity, ActivityType
from ..audit.service import AuditService
from ..communications.dispatcher import NotificationDispatcher, get_notification_dispatcher
from ..communications.models import NotificationTemplate
from ..core.clock import Clock, SystemClock, ensure_aware
from ..settings import Settings, settings
from .exceptions import (
    HelpRequestNotFoundError,
    InvalidTicketStateError,
    TicketError,
    TicketNotFoundError,
    TicketStoreError,
    TicketValidationError,
)
from .models import (
    CheckInMethod,
    Ticket,
    TicketEvent,
    TicketRejectionReason,
    TicketStatus,
    Visit,
    VisitStatus,
)
from .queue import QueueTracker
from .rules import assess, build_qr_payload, expires_at_for, generate_ticket_number, next_status
from .schemas import (
    BulkIssueResult,
    CancellationResult,
    IssuedTicket,
    RedemptionResult,
    TicketDetails,
    TicketHistoryItem,
    TicketInstructions,
    TicketValidationData,
    ValidationResult,
    VisitorTicketHistory,
)
from .store import TicketStore

logger = structlog.get_logger(__name__)

TICKET_ENTITY = "ticket"

_WHAT_TO_BRING = {
    HelpCategory.FOOD: ["Valid ID", "Proof of address", "Reusable bags for food"],
    HelpCategory.GENERAL: ["Valid ID", "Proof of address"],
}


def parse_visit_date(value: str | date) -> date:
    """Parse a YYYY-MM-DD visit date, raising TicketValidationError otherwise."""
    if isinstance(value, datetime):
        raise TicketValidationError("Visit date must be a date, not a timestamp", "date", value)
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise TicketValidationError(
            "Invalid date format. Use YYYY-MM-DD", field="date", value=value
        ) from None


def parse_category(value: HelpCategory | str | None) -> HelpCategory | None:
    if value is None or value == "":
        return None
    try:
        return HelpCategory(value)
    except ValueError:
        raise TicketValidationError("Unknown category", field="category", value=value) from None


def _split_name(full_name: str) -> tuple[str, str]:
    first, _, last = full_name.strip().partition(" ")
    return first, last.strip()


class TicketLifecycleService:
    """Issues, validates, redeems and cancels visit tickets."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock | None = None,
        audit: AuditService | None = None,
        dispatcher: NotificationDispatcher | None = None,
        queue_tracker: QueueTracker | None = None,
        number_generator: Callable[[date], str] | None = None,
        ticket_settings: Settings.TicketSettings | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.audit = audit or AuditService()
        self.dispatcher = dispatcher or get_notification_dispatcher()
        self.config = ticket_settings or settings.tickets
        self.store = TicketStore(session)
        self.queue = queue_tracker or QueueTracker(
            session, self.clock, self.config.service_minutes_per_position
        )
        self._generate_number = number_generator or self._default_ticket_number

    def _default_ticket_number(self, visit_date: date) -> str:
        return generate_ticket_number(visit_date, self.config.ticket_number_prefix)

    @asynccontextmanager
    async def _transaction(self, operation: str, **context: Any) -> AsyncIterator[None]:
        """Commit on success; roll back everything on any failure."""
        try:
            yield
            await self.session.commit()
        except TicketError:
            await self.session.rollback()
            raise
        except Exception as exc:
            await self.session.rollback()
            logger.error(
                f"ticket.{operation}.store_failure",
                error=str(exc),
                error_type=type(exc).__name__,
                **context,
            )
            raise TicketStoreError(f"Failed to {operation.replace('_', ' ')}", context) from exc

    # ------------------------------------------------------------------
    # Bulk issue
    # ------------------------------------------------------------------

    async def bulk_issue(
        self,
        visit_date: str | date,
        time_slot: str,
        capacity: int,
        category: HelpCategory | str | None = None,
        actor: str | None = None,
    ) -> BulkIssueResult:
        """Issue up to ``capacity`` tickets to the oldest approved requests for a day.

        Either every selected request gets a ticket or none does.
        """
        day = parse_visit_date(visit_date)
        if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
            raise TicketValidationError(
                "Capacity must be a positive integer", field="capacity", value=capacity
            )
        if not time_slot or not time_slot.strip():
            raise TicketValidationError("Time slot is required", field="time_slot")
        wanted_category = parse_category(category)
        actor = actor or "system"

        issued: list[IssuedTicket] = []
        notices: list[tuple[str | None, dict[str, Any]]] = []
        expires_at = expires_at_for(day, self.clock.tz, self.config.expiry_grace_days)

        try:
            async with self._transaction("bulk_issue", visit_date=day.isoformat()):
                requests = await self.store.select_approved_requests(day, capacity, wanted_category)
                issued_at = self.clock.now()
                for help_request in requests:
                    issued.append(await self._issue_one(help_request, day, time_slot, issued_at, expires_at))
                    notices.append((help_request.email, self._issued_notice(help_request, issued[-1])))
        except TicketError as exc:
            logger.error("ticket.bulk_issue.failed", visit_date=day.isoformat(), error=exc.message)
            await self.audit.record(
                actor,
                "ticket.bulk_issue",
                TICKET_ENTITY,
                None,
                f"Bulk issue for {day.isoformat()} failed: {exc.message}",
                activity_type=ActivityType.TICKETS_BULK_ISSUE_FAILED,
                severity=ActivitySeverity.HIGH,
                details={"visit_date": day.isoformat(), "error_code": exc.error_code, **exc.context},
            )
            raise

        logger.info(
            "ticket.bulk_issue.success",
            visit_date=day.isoformat(),
            time_slot=time_slot,
            category=wanted_category.value if wanted_category else None,
            capacity=capacity,
            tickets_issued=len(issued),
        )
        await self.audit.record(
            actor,
            "ticket.bulk_issue",
            TICKET_ENTITY,
            None,
            f"Issued {len(issued)} tickets for {day.isoformat()} {time_slot}",
            activity_type=ActivityType.TICKETS_BULK_ISSUED,
            severity=ActivitySeverity.MEDIUM,
            details={
                "visit_date": day.isoformat(),
                "time_slot": time_slot,
                "capacity": capacity,
                "category": wanted_category.value if wanted_category else None,
                "ticket_numbers": [ticket.ticket_number for ticket in issued],
            },
        )

        for recipient, data in notices:
            self.dispatcher.dispatch(recipient, NotificationTemplate.TICKET_ISSUED, data)

        if not issued:
            return BulkIssueResult(
                message="No approved requests found for the specified date and category",
                tickets_issued=0,
            )
        return BulkIssueResult(
            message=f"Successfully issued {len(issued)} tickets",
            tickets_issued=len(issued),
            tickets=issued,
        )

    async def _issue_one(
        self,
        help_request: HelpRequest,
        day: date,
        time_slot: str,
        issued_at: datetime,
        expires_at: datetime,
    ) -> IssuedTicket:
        request_context = {"help_request_id": help_request.id, "reference": help_request.reference}
        try:
            ticket_number = self._generate_number(day)
            qr_code = build_qr_payload(ticket_number, self.config.qr_prefix)
            ticket = Ticket(
                ticket_number=ticket_number,
                help_request_id=help_request.id,
                visitor_id=help_request.visitor_id,
                visitor_name=help_request.visitor_name,
                category=help_request.category,
                visit_date=day,
                time_slot=time_slot,
                qr_code=qr_code,
                status=TicketStatus.ACTIVE,
                issued_at=issued_at,
                expires_at=expires_at,
            )
            await self.store.add_ticket(ticket)

            help_request.status = HelpRequestStatus.TICKET_ISSUED
            help_request.ticket_number = ticket_number
            help_request.qr_code = qr_code
            help_request.time_slot = time_slot
            await self.session.flush()
        except TicketError as exc:
            exc.context.update(request_context)
            exc.message = f"{exc.message} (help request {help_request.reference})"
            raise
        except Exception as exc:
            raise TicketStoreError(
                f"Failed to issue ticket for help request {help_request.reference}",
                context={**request_context, "error": str(exc)},
            ) from exc

        return IssuedTicket(
            ticket_number=ticket_number,
            assigned_to=help_request.visitor_name,
            email=help_request.email,
            time_slot=time_slot,
            category=help_request.category,
            reference=help_request.reference,
            qr_code=qr_code,
            visit_date=day,
            expires_at=expires_at,
        )

    def _issued_notice(self, help_request: HelpRequest, ticket: IssuedTicket) -> dict[str, Any]:
        first_name, last_name = _split_name(help_request.visitor_name)
        return {
            "first_name": first_name,
            "last_name": last_name,
            "ticket_number": ticket.ticket_number,
            "reference": ticket.reference,
            "category": ticket.category.value,
            "visit_day": ticket.visit_date.strftime("%A, %B %d, %Y"),
            "time_slot": ticket.time_slot,
            "qr_code": ticket.qr_code,
            "organization_name": self.config.organization_name,
        }

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    async def validate(
        self,
        ticket_number: str,
        staff_id: int | None = None,
        check_in_time: datetime | None = None,
    ) -> ValidationResult:
        """Report whether a ticket can be used right now. Never mutates, never
        raises for ticket state."""
        ticket_number = (ticket_number or "").strip()
        if not ticket_number:
            raise TicketValidationError("Ticket number is required", field="ticket_number")

        validated_at = self.clock.now()
        try:
            ticket = await self.store.get_by_number(ticket_number)
        except Exception as exc:
            logger.error("ticket.validate.lookup_failed", ticket_number=ticket_number, error=str(exc))
            ticket = None
            result = ValidationResult(
                valid=False,
                reason=TicketRejectionReason.INVALID,
                error="Ticket could not be checked, please try again",
            )
        else:
            result = self._validation_result(ticket, staff_id, validated_at)

        logger.info(
            "ticket.validate.completed",
            ticket_number=ticket_number,
            staff_id=staff_id,
            valid=result.valid,
            reason=result.reason.value if result.reason else None,
        )
        await self.audit.record(
            staff_id,
            "ticket.validate",
            TICKET_ENTITY,
            ticket_number,
            f"Ticket validation: {'valid' if result.valid else result.error}",
            activity_type=ActivityType.TICKET_VALIDATED,
            details={
                "valid": result.valid,
                "reason": result.reason.value if result.reason else None,
                "check_in_time": check_in_time.isoformat() if check_in_time else None,
            },
        )
        return result

    def _validation_result(
        self, ticket: Ticket | None, staff_id: int | None, validated_at: datetime
    ) -> ValidationResult:
        if ticket is None:
            return ValidationResult(
                valid=False,
                reason=TicketRejectionReason.NOT_FOUND,
                error=TicketRejectionReason.NOT_FOUND.message,
            )

        assessment = assess(ticket, self.clock)
        reason = assessment.reason
        return ValidationResult(
            valid=assessment.can_be_used,
            reason=reason,
            error=reason.message if reason else None,
            data=TicketValidationData(
                ticket_number=ticket.ticket_number,
                visitor_name=ticket.visitor_name,
                category=ticket.category,
                time_slot=ticket.time_slot,
                visit_date=ticket.visit_date,
                status=ticket.status,
                is_valid=assessment.is_valid,
                is_for_today=assessment.is_for_today,
                is_expired=assessment.is_expired,
                can_use=assessment.can_be_used,
                validated_at=validated_at,
                validated_by=staff_id,
            ),
        )

    # ------------------------------------------------------------------
    # Redeem
    # ------------------------------------------------------------------

    async def redeem(
        self,
        ticket_number: str,
        staff_id: int,
        check_in_time: datetime | None = None,
        notes: str | None = None,
        queue_position: int | None = None,
    ) -> RedemptionResult:
        """Mark a ticket used, record the visit and place the visitor in today's queue.

        All three writes commit together or not at all.
        """
        ticket_number = (ticket_number or "").strip()
        if not ticket_number:
            raise TicketValidationError("Ticket number is required", field="ticket_number")
        if staff_id is None:
            raise TicketValidationError("staff_id is required", field="staff_id")
        if queue_position is not None and queue_position < 1:
            raise TicketValidationError(
                "Queue position must be at least 1", field="queue_position", value=queue_position
            )
        checked_in_at = (
            ensure_aware(check_in_time).astimezone(UTC) if check_in_time else self.clock.now()
        )

        try:
            async with self._transaction("redeem", ticket_number=ticket_number):
                ticket = await self.store.get_by_number(ticket_number, for_update=True)
                if ticket is None:
                    raise TicketNotFoundError(ticket_number=ticket_number)

                assessment = assess(ticket, self.clock)
                if not assessment.can_be_used:
                    reason = assessment.reason or TicketRejectionReason.INVALID
                    raise InvalidTicketStateError(
                        reason.message, reason, ticket_number=ticket_number, status=ticket.status
                    )

                target = next_status(ticket.status, TicketEvent.REDEEM, ticket_number)
                claimed = await self.store.transition(
                    ticket, TicketStatus.ACTIVE, target, used_at=checked_in_at, used_by=staff_id
                )
                if not claimed:
                    raise InvalidTicketStateError(
                        TicketRejectionReason.ALREADY_USED.message,
                        TicketRejectionReason.ALREADY_USED,
                        ticket_number=ticket_number,
                    )

                visit = await self.store.add_visit(
                    Visit(
                        visitor_id=ticket.visitor_id,
                        ticket_id=ticket.id,
                        check_in_time=checked_in_at,
                        check_in_method=CheckInMethod.STAFF_ENTRY,
                        checked_in_by=staff_id,
                        status=VisitStatus.CHECKED_IN,
                        notes=notes,
                    )
                )

                position = queue_position or await self.queue.next_position(
                    self.clock.today(), exclude_visit_id=visit.id
                )
                entry = await self.queue.enqueue(
                    visit=visit, ticket=ticket, position=position, joined_at=checked_in_at
                )

                help_request = await self.store.get_help_request(ticket.help_request_id)
                recipient = help_request.email if help_request else None

                result = RedemptionResult(
                    ticket_number=ticket.ticket_number,
                    used_at=checked_in_at,
                    used_by=staff_id,
                    queue_position=entry.position,
                    estimated_wait=f"{entry.estimated_minutes} minutes",
                    estimated_wait_minutes=entry.estimated_minutes,
                    visit_id=visit.id,
                    visitor_name=ticket.visitor_name,
                    category=ticket.category,
                )
        except TicketError as exc:
            logger.warning(
                "ticket.redeem.failed",
                ticket_number=ticket_number,
                staff_id=staff_id,
                error_code=exc.error_code,
                error=exc.message,
            )
            await self.audit.record(
                staff_id,
                "ticket.use",
                TICKET_ENTITY,
                ticket_number,
                f"Ticket use failed: {exc.message}",
                activity_type=ActivityType.TICKET_USE_FAILED,
                severity=ActivitySeverity.MEDIUM,
                details={"error_code": exc.error_code, **exc.context},
            )
            raise

        logger.info(
            "ticket.redeem.success",
            ticket_number=ticket_number,
            staff_id=staff_id,
            visit_id=result.visit_id,
            queue_position=result.queue_position,
        )
        await self.audit.record(
            staff_id,
            "ticket.use",
            TICKET_ENTITY,
            ticket_number,
            f"Ticket used by staff {staff_id}, queue position {result.queue_position}",
            activity_type=ActivityType.TICKET_USED,
            details={
                "visit_id": result.visit_id,
                "queue_position": result.queue_position,
                "check_in_time": checked_in_at.isoformat(),
                "notes": notes,
            },
        )
        self.dispatcher.dispatch(
            recipient,
            NotificationTemplate.QUEUE_JOINED,
            {
                "ticket_number": result.ticket_number,
                "queue_position": result.queue_position,
                "estimated_wait": result.estimated_wait,
                "organization_name": self.config.organization_name,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    async def cancel(
        self,
        ticket_id: int,
        reason: str,
        notes: str | None = None,
        notify_visitor: bool = False,
        actor: str | None = None,
    ) -> CancellationResult:
        """Cancel an active ticket and give the visitor's request back to approved."""
        reason = (reason or "").strip()
        if not reason:
            raise TicketValidationError("Cancellation reason is required", field="reason")
        actor = actor or "system"

        try:
            async with self._transaction("cancel", ticket_id=ticket_id):
                ticket = await self.store.get_by_id(ticket_id, for_update=True)
                if ticket is None:
                    raise TicketNotFoundError(ticket_id=ticket_id)
                ticket_number = ticket.ticket_number

                target = next_status(ticket.status, TicketEvent.CANCEL, ticket_number)
                cancelled_at = self.clock.now()
                claimed = await self.store.transition(
                    ticket,
                    TicketStatus.ACTIVE,
                    target,
                    cancelled_at=cancelled_at,
                    cancelled_by=actor,
                    cancellation_reason=reason,
                )
                if not claimed:
                    # Changed under us; report the state that won
                    await self.session.refresh(ticket)
                    next_status(ticket.status, TicketEvent.CANCEL, ticket_number)
                    raise TicketStoreError(
                        "Ticket changed while it was being cancelled",
                        context={"ticket_id": ticket_id},
                    )

                help_request = await self.store.get_help_request(
                    ticket.help_request_id, for_update=True
                )
                if help_request is None:
                    raise HelpRequestNotFoundError(ticket.help_request_id)

                reverted = help_request.status == HelpRequestStatus.TICKET_ISSUED
                if reverted:
                    help_request.status = HelpRequestStatus.APPROVED
                    help_request.ticket_number = None
                    help_request.qr_code = None
                    await self.session.flush()
                else:
                    logger.info(
                        "ticket.cancel.help_request_unchanged",
                        ticket_number=ticket_number,
                        help_request_id=help_request.id,
                        help_request_status=help_request.status.value,
                    )

                recipient = help_request.email
                visitor_name = help_request.visitor_name
        except TicketError as exc:
            logger.warning(
                "ticket.cancel.failed", ticket_id=ticket_id, error_code=exc.error_code, error=exc.message
            )
            await self.audit.record(
                actor,
                "ticket.cancel",
                TICKET_ENTITY,
                ticket_id,
                f"Ticket cancellation failed: {exc.message}",
                activity_type=ActivityType.TICKET_CANCEL_FAILED,
                severity=ActivitySeverity.MEDIUM,
                details={"reason": reason, "error_code": exc.error_code, **exc.context},
            )
            raise

        user_notified = False
        if notify_visitor:
            first_name, last_name = _split_name(visitor_name)
            message = self.dispatcher.dispatch(
                recipient,
                NotificationTemplate.TICKET_CANCELLED,
                {
                    "first_name": first_name,
                    "last_name": last_name,
                    "ticket_number": ticket_number,
                    "reason": reason,
                    "organization_name": self.config.organization_name,
                },
            )
            user_notified = message is not None

        logger.info(
            "ticket.cancel.success",
            ticket_id=ticket_id,
            ticket_number=ticket_number,
            actor=actor,
            help_request_reverted=reverted,
        )
        await self.audit.record(
            actor,
            "ticket.cancel",
            TICKET_ENTITY,
            ticket_id,
            f"Ticket {ticket_number} cancelled: {reason}",
            activity_type=ActivityType.TICKET_CANCELLED,
            severity=ActivitySeverity.MEDIUM,
            details={
                "ticket_number": ticket_number,
                "reason": reason,
                "admin_notes": notes,
                "notify_user": notify_visitor,
                "help_request_reverted": reverted,
            },
        )
        return CancellationResult(
            ticket_id=ticket_id,
            ticket_number=ticket_number,
            status=TicketStatus.CANCELLED,
            reason=reason,
            cancelled_at=cancelled_at,
            cancelled_by=actor,
            user_notified=user_notified,
            help_request_reverted=reverted,
        )

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    async def get_ticket_details(self, ticket_number: str) -> TicketDetails:
        ticket = await self.store.get_by_number(ticket_number.strip())
        if ticket is None:
            raise TicketNotFoundError(ticket_number=ticket_number)

        assessment = assess(ticket, self.clock)
        return TicketDetails(
            id=ticket.id,
            ticket_number=ticket.ticket_number,
            visitor_id=ticket.visitor_id,
            visitor_name=ticket.visitor_name,
            category=ticket.category,
            visit_date=ticket.visit_date,
            time_slot=ticket.time_slot,
            status=ticket.status,
            qr_code=ticket.qr_code,
            issued_at=ensure_aware(ticket.issued_at),
            expires_at=ensure_aware(ticket.expires_at),
            used_at=ensure_aware(ticket.used_at) if ticket.used_at else None,
            cancelled_at=ensure_aware(ticket.cancelled_at) if ticket.cancelled_at else None,
            is_valid=assessment.is_valid,
            is_expired=assessment.is_expired,
            can_be_used=assessment.can_be_used,
            instructions=self.instructions_for(ticket.category),
        )

    def instructions_for(self, category: HelpCategory) -> TicketInstructions:
        return TicketInstructions(
            location=self.config.location,
            arrival_time=self.config.arrival_advice,
            what_to_bring=list(_WHAT_TO_BRING.get(category, _WHAT_TO_BRING[HelpCategory.GENERAL])),
            contact_number=self.config.contact_number,
        )

    async def get_visitor_ticket_history(self, visitor_id: int) -> VisitorTicketHistory:
        requests = await self.store.visitor_ticket_requests(visitor_id)
        tickets = await self.store.tickets_by_number(
            [request.ticket_number for request in requests if request.ticket_number]
        )

        items = []
        for request in requests:
            ticket = tickets.get(request.ticket_number) if request.ticket_number else None
            items.append(
                TicketHistoryItem(
                    help_request_id=request.id,
                    reference=request.reference,
                    ticket_number=request.ticket_number or f"PENDING-{request.reference}",
                    has_ticket=request.ticket_number is not None,
                    category=request.category,
                    request_status=request.status,
                    ticket_status=ticket.status if ticket else None,
                    visit_day=request.visit_day,
                    time_slot=request.time_slot,
                    qr_code=request.qr_code,
                    requested_at=ensure_aware(request.created_at),
                )
            )
        return VisitorTicketHistory(visitor_id=visitor_id, total=len(items), tickets=items)


__all__ = ["TicketLifecycleService", "parse_category", "parse_visit_date"]
