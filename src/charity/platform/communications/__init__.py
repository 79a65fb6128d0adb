"""
Visitor notifications.

The ticket lifecycle only hands notifications off; delivery is
fire-and-forget and never affects the outcome of the ticket operation.

Usage:

    from charity.platform.communications import (
        NotificationTemplate,
        get_notification_dispatcher,
    )

    dispatcher = get_notification_dispatcher()
    dispatcher.dispatch(
        "visitor@example.com",
        NotificationTemplate.TICKET_ISSUED,
        {"ticket_number": "LDH-261016-3FA92C"},
    )
"""

from .dispatcher import (
    LoggingNotificationSender,
    NotificationDispatcher,
    NotificationSender,
    get_notification_dispatcher,
    reset_notification_dispatcher,
)
from .models import (
    NotificationError,
    NotificationMessage,
    NotificationStatus,
    NotificationTemplate,
)

__all__ = [
    "NotificationTemplate",
    "NotificationStatus",
    "NotificationMessage",
    "NotificationError",
    "NotificationSender",
    "LoggingNotificationSender",
    "NotificationDispatcher",
    "get_notification_dispatcher",
    "reset_notification_dispatcher",
]
