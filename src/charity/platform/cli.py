#!/usr/bin/env python
"""
CLI management commands for Charity Platform Services.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import click

from charity.platform.db import create_all_tables_async, get_async_db
from charity.platform.tickets.exceptions import TicketError
from charity.platform.tickets.service import TicketLifecycleService


class AsyncSessionManager(Protocol):
    async def __aenter__(self) -> Any: ...  # pragma: no cover - protocol definition
    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> Any: ...  # pragma: no cover


@dataclass
class CLIDependencies:
    """Bundle of injectable dependencies used by CLI commands."""

    session_factory: Callable[[], AsyncSessionManager]
    create_tables: Callable[[], Awaitable[None]]
    service_factory: Callable[[Any], TicketLifecycleService]


def _get_cli_dependencies() -> CLIDependencies:
    """Return the default dependency bundle for CLI commands."""
    return CLIDependencies(
        session_factory=get_async_db,
        create_tables=create_all_tables_async,
        service_factory=TicketLifecycleService,
    )


def _echo_json(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


@click.group()
def cli() -> None:
    """Charity Platform Services CLI."""
    pass


@cli.command()
def init_database() -> None:
    """Create all ticket lifecycle tables."""
    deps = _get_cli_dependencies()
    click.echo("Initializing database...")
    asyncio.run(deps.create_tables())
    click.echo("Database initialized successfully!")


@cli.command()
@click.option("--date", "visit_date", required=True, help="Visit date (YYYY-MM-DD)")
@click.option("--time-slot", required=True, help="Time slot label, e.g. 09:00-10:00")
@click.option("--capacity", type=int, required=True, help="Maximum tickets to issue")
@click.option(
    "--category",
    type=click.Choice(["food", "general"], case_sensitive=False),
    default=None,
    help="Only issue tickets for this help category",
)
@click.option("--actor", default="system", show_default=True, help="Acting user for the audit trail")
def bulk_issue(
    visit_date: str, time_slot: str, capacity: int, category: str | None, actor: str
) -> None:
    """Issue tickets to the oldest approved help requests for a day."""
    deps = _get_cli_dependencies()

    async def _bulk_issue() -> None:
        async with deps.session_factory() as session:
            service = deps.service_factory(session)
            result = await service.bulk_issue(
                visit_date, time_slot, capacity, category=category, actor=actor
            )
            await service.dispatcher.drain()
        click.echo(result.message)
        for ticket in result.tickets:
            click.echo(f"  {ticket.ticket_number}  {ticket.assigned_to}  ({ticket.reference})")

    try:
        asyncio.run(_bulk_issue())
    except TicketError as e:
        raise click.ClickException(e.message) from e


@cli.command()
@click.argument("ticket_number")
@click.option("--staff-id", type=int, default=None, help="Staff member scanning the ticket")
def validate_ticket(ticket_number: str, staff_id: int | None) -> None:
    """Check whether a ticket can be used right now."""
    deps = _get_cli_dependencies()

    async def _validate() -> dict[str, Any]:
        async with deps.session_factory() as session:
            service = deps.service_factory(session)
            result = await service.validate(ticket_number, staff_id=staff_id)
        return result.model_dump(mode="json")

    try:
        payload = asyncio.run(_validate())
    except TicketError as e:
        raise click.ClickException(e.message) from e

    _echo_json(payload)
    if not payload["valid"]:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
