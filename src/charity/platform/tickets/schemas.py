"""
Request and response models for the ticket lifecycle API.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from ..assistance.models import HelpCategory, HelpRequestStatus
from .models import TicketRejectionReason, TicketStatus

# ============================================================
# Requests
# ============================================================


class BulkIssueRequest(BaseModel):
    """Issue tickets to the oldest approved requests for one day."""

    model_config = ConfigDict(str_strip_whitespace=True)

    # Kept as a string so a malformed date is reported as a ticket validation error
    date: str = Field(..., description="Visit date, YYYY-MM-DD")
    time_slot: str = Field(..., min_length=1, max_length=50, description="Time slot label")
    capacity: int = Field(..., description="Maximum number of tickets to issue")
    category: HelpCategory | None = Field(None, description="Only issue for this category")


class ValidateTicketRequest(BaseModel):
    """Front-desk validation of a scanned ticket."""

    staff_id: int | None = Field(None, description="Staff member scanning the ticket")
    check_in_time: datetime | None = Field(None, description="Scan time reported by the device")


class UseTicketRequest(BaseModel):
    """Redeem a ticket and check the visitor in."""

    model_config = ConfigDict(str_strip_whitespace=True)

    staff_id: int = Field(..., description="Staff member checking the visitor in")
    check_in_time: datetime | None = Field(None, description="Check-in time, defaults to now")
    notes: str | None = Field(None, max_length=2000)
    queue_position: int | None = Field(None, ge=1, description="Explicit queue position")


class CancelTicketRequest(BaseModel):
    """Cancel an active ticket."""

    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field(..., min_length=1, max_length=500)
    admin_notes: str | None = Field(None, max_length=2000)
    notify_user: bool = Field(False, description="Send the visitor a cancellation notice")


# ============================================================
# Responses
# ============================================================


class IssuedTicket(BaseModel):
    """One ticket produced by bulk issuance."""

    ticket_number: str
    assigned_to: str
    email: str | None
    time_slot: str | None
    category: HelpCategory
    reference: str
    qr_code: str
    visit_date: date
    expires_at: datetime


class BulkIssueResult(BaseModel):
    success: bool = True
    message: str
    tickets_issued: int
    tickets: list[IssuedTicket] = Field(default_factory=list)


class TicketValidationData(BaseModel):
    """What the scanner shows about a known ticket."""

    ticket_number: str
    visitor_name: str
    category: HelpCategory
    time_slot: str | None
    visit_date: date
    status: TicketStatus
    is_valid: bool
    is_for_today: bool
    is_expired: bool
    can_use: bool
    validated_at: datetime
    validated_by: int | None


class ValidationResult(BaseModel):
    """Validation never fails for ticket state; ``valid`` carries the answer."""

    success: bool = True
    valid: bool
    reason: TicketRejectionReason | None = None
    error: str | None = None
    data: TicketValidationData | None = None


class RedemptionResult(BaseModel):
    ticket_number: str
    used_at: datetime
    used_by: int
    queue_position: int
    estimated_wait: str
    estimated_wait_minutes: int
    visit_id: int
    status: str = "checked_in"
    visitor_name: str
    category: HelpCategory


class CancellationResult(BaseModel):
    ticket_id: int
    ticket_number: str
    status: TicketStatus
    reason: str
    cancelled_at: datetime
    cancelled_by: str
    user_notified: bool
    help_request_reverted: bool


class TicketInstructions(BaseModel):
    location: str
    arrival_time: str
    what_to_bring: list[str]
    contact_number: str


class TicketDetails(BaseModel):
    """Full ticket view with derived usability flags."""

    id: int
    ticket_number: str
    visitor_id: int
    visitor_name: str
    category: HelpCategory
    visit_date: date
    time_slot: str | None
    status: TicketStatus
    qr_code: str
    issued_at: datetime
    expires_at: datetime
    used_at: datetime | None
    cancelled_at: datetime | None
    is_valid: bool
    is_expired: bool
    can_be_used: bool
    instructions: TicketInstructions


class TicketHistoryItem(BaseModel):
    help_request_id: int
    reference: str
    ticket_number: str
    has_ticket: bool
    category: HelpCategory
    request_status: HelpRequestStatus
    ticket_status: TicketStatus | None
    visit_day: date
    time_slot: str | None
    qr_code: str | None
    requested_at: datetime


class VisitorTicketHistory(BaseModel):
    visitor_id: int
    total: int
    tickets: list[TicketHistoryItem]
