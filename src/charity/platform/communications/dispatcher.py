"""
Fire-and-forget notification dispatch.

``NotificationDispatcher.dispatch`` returns immediately; the send runs on a
detached asyncio task. Each message is attempted at most once. Failures are
logged and swallowed, never retried and never reported to the caller.
"""

import asyncio
from typing import Any, Protocol

import structlog

from ..settings import settings
from .models import (
    NotificationError,
    NotificationMessage,
    NotificationStatus,
    NotificationTemplate,
)

logger = structlog.get_logger(__name__)


class NotificationSender(Protocol):
    """Delivers one notification to a recipient."""

    async def send(
        self, recipient: str, template_type: NotificationTemplate, template_data: dict[str, Any]
    ) -> None: ...  # pragma: no cover - protocol definition


class LoggingNotificationSender:
    """Default sender: records the notification in the structured log."""

    async def send(
        self, recipient: str, template_type: NotificationTemplate, template_data: dict[str, Any]
    ) -> None:
        logger.info(
            "notification.sent",
            recipient=recipient,
            template=template_type.value,
            channel=settings.notifications.default_channel,
            fields=sorted(template_data),
        )


class NotificationDispatcher:
    """Hands notifications to a sender without blocking the caller."""

    def __init__(self, sender: NotificationSender | None = None, enabled: bool | None = None):
        self.sender: NotificationSender = sender or LoggingNotificationSender()
        self.enabled = settings.notifications.enabled if enabled is None else enabled
        self._tasks: set[asyncio.Task[None]] = set()
        self._stats = {
            "dispatched": 0,
            "sent": 0,
            "failed": 0,
            "skipped": 0,
        }

    def dispatch(
        self,
        recipient: str | None,
        template_type: NotificationTemplate,
        template_data: dict[str, Any] | None = None,
    ) -> NotificationMessage | None:
        """Schedule a send and return at once. Returns None if nothing was scheduled."""
        if not self.enabled:
            self._stats["skipped"] += 1
            logger.debug("notification.skipped", reason="disabled", template=template_type.value)
            return None
        if not recipient:
            self._stats["skipped"] += 1
            logger.info("notification.skipped", reason="no_recipient", template=template_type.value)
            return None

        message = NotificationMessage(
            recipient=recipient,
            template_type=template_type,
            template_data=template_data or {},
            channel=settings.notifications.default_channel,
        )
        task = asyncio.create_task(self._deliver(message))
        # Keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._stats["dispatched"] += 1
        return message

    async def _deliver(self, message: NotificationMessage) -> None:
        try:
            await self.sender.send(message.recipient, message.template_type, message.template_data)
        except Exception as exc:
            message.status = NotificationStatus.FAILED
            message.error = str(exc)
            self._stats["failed"] += 1
            logger.warning(
                "notification.failed",
                notification_id=message.id,
                template=message.template_type.value,
                recipient=message.recipient,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return
        message.status = NotificationStatus.SENT
        self._stats["sent"] += 1

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight sends, e.g. at shutdown."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning("notification.drain.timeout", pending=len(pending))


_dispatcher: NotificationDispatcher | None = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher (singleton)."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher()
    return _dispatcher


def reset_notification_dispatcher() -> None:
    """Reset the dispatcher (mainly for testing)."""
    global _dispatcher
    _dispatcher = None


__all__ = [
    "NotificationSender",
    "LoggingNotificationSender",
    "NotificationDispatcher",
    "NotificationError",
    "get_notification_dispatcher",
    "reset_notification_dispatcher",
]
