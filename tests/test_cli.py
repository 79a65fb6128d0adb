"""Tests for the management CLI."""

import json
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime

import pytest
from click.testing import CliRunner

from charity.platform import cli as cli_module
from charity.platform.assistance.models import HelpCategory
from charity.platform.communications.dispatcher import NotificationDispatcher
from charity.platform.tickets.exceptions import TicketValidationError
from charity.platform.tickets.models import TicketRejectionReason
from charity.platform.tickets.schemas import BulkIssueResult, IssuedTicket, ValidationResult

pytestmark = pytest.mark.unit


class StubService:
    def __init__(self, session):
        self.session = session
        self.dispatcher = NotificationDispatcher(enabled=False)
        self.calls = []

    async def bulk_issue(self, visit_date, time_slot, capacity, category=None, actor=None):
        self.calls.append(("bulk_issue", visit_date, time_slot, capacity, category, actor))
        if visit_date == "bad":
            raise TicketValidationError("Invalid date format. Use YYYY-MM-DD", field="date")
        ticket = IssuedTicket(
            ticket_number="LDH-261016-ABC123",
            assigned_to="Ada Visitor",
            email="ada@example.org",
            time_slot=time_slot,
            category=HelpCategory.FOOD,
            reference="LCH-00001",
            qr_code="LDH-TICKET:LDH-261016-ABC123:0123456789abcdef",
            visit_date=date(2026, 10, 16),
            expires_at=datetime(2026, 10, 17, tzinfo=UTC),
        )
        return BulkIssueResult(
            message="Successfully issued 1 tickets", tickets_issued=1, tickets=[ticket]
        )

    async def validate(self, ticket_number, staff_id=None):
        self.calls.append(("validate", ticket_number, staff_id))
        if ticket_number.endswith("ABC123"):
            return ValidationResult(valid=True)
        reason = TicketRejectionReason.NOT_FOUND
        return ValidationResult(valid=False, reason=reason, error=reason.message)


@pytest.fixture
def services(monkeypatch):
    created: list[StubService] = []
    tables: list[bool] = []

    @asynccontextmanager
    async def session_factory():
        yield object()

    async def create_tables():
        tables.append(True)

    def service_factory(session):
        service = StubService(session)
        created.append(service)
        return service

    monkeypatch.setattr(
        cli_module,
        "_get_cli_dependencies",
        lambda: cli_module.CLIDependencies(
            session_factory=session_factory,
            create_tables=create_tables,
            service_factory=service_factory,
        ),
    )
    return created, tables


def test_init_database(services):
    _, tables = services
    result = CliRunner().invoke(cli_module.cli, ["init-database"])

    assert result.exit_code == 0, result.output
    assert "Database initialized successfully!" in result.output
    assert tables == [True]


def test_bulk_issue(services):
    created, _ = services
    result = CliRunner().invoke(
        cli_module.cli,
        [
            "bulk-issue",
            "--date",
            "2026-10-16",
            "--time-slot",
            "09:00-10:00",
            "--capacity",
            "3",
            "--category",
            "food",
            "--actor",
            "coordinator-1",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Successfully issued 1 tickets" in result.output
    assert "LDH-261016-ABC123" in result.output
    assert created[0].calls == [
        ("bulk_issue", "2026-10-16", "09:00-10:00", 3, "food", "coordinator-1")
    ]


def test_bulk_issue_reports_ticket_errors(services):
    result = CliRunner().invoke(
        cli_module.cli,
        ["bulk-issue", "--date", "bad", "--time-slot", "am", "--capacity", "1"],
    )

    assert result.exit_code == 1
    assert "Invalid date format" in result.output


def test_validate_ticket_outputs_json(services):
    result = CliRunner().invoke(
        cli_module.cli, ["validate-ticket", "LDH-261016-ABC123", "--staff-id", "7"]
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["valid"] is True


def test_validate_ticket_exits_non_zero_when_unusable(services):
    result = CliRunner().invoke(cli_module.cli, ["validate-ticket", "LDH-261016-NOPE00"])

    assert result.exit_code == 1
    assert json.loads(result.output)["reason"] == "not_found"
