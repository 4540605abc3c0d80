"""Notification outbox CLI commands.

``deliver`` runs one relay pass over pending outbox events and is meant to be
scheduled (cron, systemd timer). ``stats`` prints counts per delivery status.
"""

from __future__ import annotations

import asyncio
import json
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from sitetrack.database.queries.notification import count_events_by_status
from sitetrack.notifications import NotificationRelay, WebhookDispatcher

app = typer.Typer(help="Notification outbox commands")
console = Console()


@app.command()
def deliver(
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-l", help="Maximum events to deliver (default from config)"),
    ] = None,
) -> None:
    """Deliver pending notification events to configured webhooks."""
    from sitetrack.main import get_app_context

    ctx = get_app_context()
    settings = ctx.config.notifications
    batch = limit or settings.batch_size

    async def _deliver():
        dispatcher = WebhookDispatcher.from_config(settings)
        relay = NotificationRelay(dispatcher, max_attempts=settings.max_attempts)
        try:
            async with ctx.session_factory() as session:
                return await relay.deliver_pending(session, limit=batch)
        finally:
            await dispatcher.close()

    try:
        report = asyncio.run(_deliver())
    except SQLAlchemyError as e:
        console.print(f"[red]Error delivering events:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(
        f"[bold]Attempted:[/bold] {report.attempted}  "
        f"[green]Delivered:[/green] {report.delivered}  "
        f"[yellow]Retrying:[/yellow] {report.retrying}  "
        f"[red]Failed:[/red] {report.failed}"
    )


@app.command()
def stats(
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (table or json)"),
    ] = "table",
) -> None:
    """Show outbox event counts per delivery status."""
    from sitetrack.main import get_app_context

    ctx = get_app_context()

    async def _stats():
        async with ctx.session_factory() as session:
            return await count_events_by_status(session)

    try:
        counts = asyncio.run(_stats())
    except SQLAlchemyError as e:
        console.print(f"[red]Error reading outbox:[/red] {e}")
        raise typer.Exit(code=1) from e

    if format == "json":
        console.print(json.dumps(counts, indent=2))
        return

    table = Table(title="Notification Outbox")
    table.add_column("Status", style="bold")
    table.add_column("Events", justify="right")
    for status, count in counts.items():
        table.add_row(status, str(count))
    console.print(table)
