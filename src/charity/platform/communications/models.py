"""
Notification models.

Only the hand-off contract lives here. Rendering templates and choosing a
delivery provider belong to whichever sender is plugged into the dispatcher.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class NotificationTemplate(str, Enum):
    """Templates the ticket lifecycle can ask for."""

    TICKET_ISSUED = "ticket_issued"
    TICKET_CANCELLED = "ticket_cancelled"
    QUEUE_JOINED = "queue_joined"


class NotificationStatus(str, Enum):
    """Outcome of a single send attempt."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationMessage(BaseModel):
    """A single notification handed to a sender."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    recipient: str = Field(min_length=1, description="Recipient address")
    template_type: NotificationTemplate
    template_data: dict[str, Any] = Field(default_factory=dict)
    channel: str = Field("email", description="Delivery channel")
    status: NotificationStatus = NotificationStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None


class NotificationError(Exception):
    """A notification could not be delivered. Never leaves the dispatcher."""


__all__ = [
    "NotificationTemplate",
    "NotificationStatus",
    "NotificationMessage",
    "NotificationError",
]
