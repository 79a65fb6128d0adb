"""
Visit ticket exceptions.

Each error carries an HTTP status code, a machine-readable error code,
context for the API response and a recovery hint for staff.
"""

from typing import Any

from .models import TicketRejectionReason, TicketStatus


class TicketError(Exception):
    """
    Base ticket lifecycle error with enhanced context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        status_code: HTTP status code for this error type
        context: Additional context data about the error
        recovery_hint: Suggested action to resolve the error
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 400,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code or "TICKET_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "status_code": self.status_code,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


class TicketValidationError(TicketError):
    """Malformed input, rejected before the store is touched."""

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        context: dict[str, Any] = {}
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)
        super().__init__(
            message,
            "TICKET_VALIDATION_ERROR",
            status_code=400,
            context=context,
            recovery_hint="Correct the request and try again",
        )


class TicketNotFoundError(TicketError):
    """No ticket with the given number or id."""

    def __init__(
        self,
        message: str = "Ticket not found",
        ticket_number: str | None = None,
        ticket_id: int | None = None,
    ) -> None:
        context: dict[str, Any] = {}
        if ticket_number:
            context["ticket_number"] = ticket_number
        if ticket_id is not None:
            context["ticket_id"] = ticket_id
        super().__init__(
            message,
            "TICKET_NOT_FOUND",
            status_code=404,
            context=context,
            recovery_hint="Check the ticket number printed on the visitor's ticket",
        )


class HelpRequestNotFoundError(TicketError):
    """The help request a ticket points at no longer exists."""

    def __init__(self, help_request_id: int) -> None:
        super().__init__(
            f"Help request {help_request_id} not found",
            "HELP_REQUEST_NOT_FOUND",
            status_code=404,
            context={"help_request_id": help_request_id},
        )


class InvalidTicketStateError(TicketError):
    """The ticket exists but its state does not allow the requested action."""

    def __init__(
        self,
        message: str,
        reason: TicketRejectionReason,
        ticket_number: str | None = None,
        status: TicketStatus | None = None,
    ) -> None:
        context: dict[str, Any] = {"reason": reason.value}
        if ticket_number:
            context["ticket_number"] = ticket_number
        if status is not None:
            context["status"] = status.value
        super().__init__(
            message,
            "INVALID_TICKET_STATE",
            status_code=400,
            context=context,
            recovery_hint="Ask the visitor to contact the help desk",
        )
        self.reason = reason


class TicketStoreError(TicketError):
    """A storage failure. The surrounding transaction has been rolled back."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = "Retry the operation; no partial changes were saved",
    ) -> None:
        super().__init__(
            message,
            "TICKET_STORE_ERROR",
            status_code=500,
            context=context,
            recovery_hint=recovery_hint,
        )


class DuplicateTicketNumberError(TicketStoreError):
    """A ticket number was issued twice."""

    def __init__(self, ticket_number: str) -> None:
        super().__init__(
            f"Ticket number {ticket_number} already exists",
            context={"ticket_number": ticket_number},
        )
        self.error_code = "DUPLICATE_TICKET_NUMBER"


__all__ = [
    "TicketError",
    "TicketValidationError",
    "TicketNotFoundError",
    "HelpRequestNotFoundError",
    "InvalidTicketStateError",
    "TicketStoreError",
    "DuplicateTicketNumberError",
]
