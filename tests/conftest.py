"""
Global pytest configuration and fixtures for Charity Platform Services tests.

Every test gets its own file-based SQLite database; the application's engine
and session makers are pointed at it so services that open their own
sessions (the audit trail) write to the same database.
"""

import itertools
import os
from datetime import UTC, date, datetime, timedelta

# Settings are read at import time, so configure the environment first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("OBSERVABILITY__LOG_FORMAT", "console")
os.environ.setdefault("OBSERVABILITY__LOG_LEVEL", "WARNING")
os.environ.pop("DATABASE__URL", None)

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from charity.platform import db as db_module
from charity.platform.assistance.models import HelpCategory, HelpRequest, HelpRequestStatus
from charity.platform.audit.service import AuditService
from charity.platform.communications.dispatcher import (
    NotificationDispatcher,
    reset_notification_dispatcher,
)
from charity.platform.core.clock import FrozenClock
from charity.platform.tickets.service import TicketLifecycleService

TODAY = date(2026, 10, 16)
NOW = datetime(2026, 10, 16, 10, 0, tzinfo=UTC)
REQUESTS_OPENED_AT = datetime(2026, 10, 1, 9, 0, tzinfo=UTC)


class RecordingSender:
    """Notification sender that keeps what it was asked to send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, object, dict]] = []

    async def send(self, recipient, template_type, template_data) -> None:
        if self.fail:
            raise ConnectionError("SMTP relay unavailable")
        self.sent.append((recipient, template_type, template_data))


@pytest_asyncio.fixture
async def async_db_engine(tmp_path):
    """Async engine on a fresh SQLite file, wired into the application db module."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'charity-test.db'}")

    db_module._load_models()
    async with engine.begin() as conn:
        await conn.run_sync(db_module.Base.metadata.create_all)

    original = (db_module._async_engine, db_module.AsyncSessionLocal, db_module._async_session_maker)
    db_module._async_engine = engine
    db_module.AsyncSessionLocal = async_sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    db_module._async_session_maker = db_module.AsyncSessionLocal

    try:
        yield engine
    finally:
        db_module._async_engine, db_module.AsyncSessionLocal, db_module._async_session_maker = (
            original
        )
        await engine.dispose()


@pytest_asyncio.fixture
async def async_db_session(async_db_engine):
    async with db_module.AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory(async_db_engine):
    """Opens additional sessions on the test database."""
    return db_module.AsyncSessionLocal


@pytest.fixture
def frozen_clock():
    return FrozenClock(NOW, timezone="UTC")


@pytest.fixture
def recording_sender():
    return RecordingSender()


@pytest.fixture
def dispatcher(recording_sender):
    reset_notification_dispatcher()
    yield NotificationDispatcher(sender=recording_sender, enabled=True)
    reset_notification_dispatcher()


@pytest.fixture
def failing_dispatcher():
    """Dispatcher whose every send raises."""
    return NotificationDispatcher(sender=RecordingSender(fail=True), enabled=True)


@pytest.fixture
def ticket_service(async_db_session, frozen_clock, dispatcher):
    return TicketLifecycleService(
        async_db_session, clock=frozen_clock, audit=AuditService(), dispatcher=dispatcher
    )


@pytest.fixture
def make_help_request(async_db_session):
    """Factory for committed help requests; later calls are newer requests."""
    counter = itertools.count(1)

    async def _make(
        *,
        visit_day: date = TODAY,
        status: HelpRequestStatus = HelpRequestStatus.APPROVED,
        category: HelpCategory = HelpCategory.FOOD,
        created_at: datetime | None = None,
        visitor_id: int | None = None,
        visitor_name: str | None = None,
        email: str | None = "",
    ) -> HelpRequest:
        n = next(counter)
        request = HelpRequest(
            visitor_id=visitor_id if visitor_id is not None else 1000 + n,
            visitor_name=visitor_name or f"Visitor Number{n}",
            email=f"visitor{n}@example.org" if email == "" else email,
            category=category,
            status=status,
            reference=f"LCH-{n:05d}",
            visit_day=visit_day,
            created_at=created_at or REQUESTS_OPENED_AT + timedelta(minutes=n),
        )
        async_db_session.add(request)
        await async_db_session.commit()
        return request

    return _make


@pytest.fixture
def issue_ticket(ticket_service, make_help_request):
    """Issue a single ticket for a fresh approved request and return its number."""

    async def _issue(visit_day: date = TODAY, **request_kwargs) -> str:
        await make_help_request(visit_day=visit_day, **request_kwargs)
        result = await ticket_service.bulk_issue(visit_day, "09:00-10:00", 1)
        assert result.tickets_issued == 1
        return result.tickets[0].ticket_number

    return _issue
