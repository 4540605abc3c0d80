"""Actor profile CLI commands.

Bootstraps the first admin and lists registered actors. Commands here run
as the system operator and bypass the admin check that the API enforces.
"""

from __future__ import annotations

import asyncio
import json
from typing import Annotated, Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from sitetrack.database.models.actor import ActorRole
from sitetrack.database.queries.actor import list_actors
from sitetrack.errors import SiteTrackError
from sitetrack.workflow.registry import register_actor

app = typer.Typer(help="Actor profile commands")
console = Console()


def _parse_role(value: str) -> ActorRole:
    try:
        return ActorRole(value.upper())
    except ValueError:
        console.print(
            f"[red]Invalid role:[/red] {value}. "
            f"Valid values: {', '.join(r.value for r in ActorRole)}"
        )
        raise typer.Exit(code=1) from None


@app.command()
def create(
    role: Annotated[str, typer.Argument(help="ADMIN, CONSULTANT or CONTRACTOR")],
    full_name: Annotated[str, typer.Argument(help="Display name")],
    email: Annotated[
        Optional[str],
        typer.Option("--email", "-e", help="Contact email address"),
    ] = None,
    actor_id: Annotated[
        Optional[str],
        typer.Option("--id", help="Identity-provider UUID to reuse"),
    ] = None,
) -> None:
    """Register an actor profile."""
    from sitetrack.main import get_app_context

    ctx = get_app_context()
    actor_role = _parse_role(role)

    parsed_id = None
    if actor_id is not None:
        try:
            parsed_id = UUID(actor_id)
        except ValueError:
            console.print(f"[red]Invalid actor id:[/red] {actor_id}")
            raise typer.Exit(code=1) from None

    async def _create():
        async with ctx.session_factory() as session:
            return await register_actor(
                session, None, actor_role, full_name, email=email, actor_id=parsed_id
            )

    try:
        actor = asyncio.run(_create())
    except (SiteTrackError, SQLAlchemyError) as e:
        console.print(f"[red]Error creating actor:[/red] {e}")
        raise typer.Exit(code=1) from e

    panel = Panel(
        f"[green]Actor registered[/green]\n\n"
        f"[bold]ID:[/bold] {actor.id}\n"
        f"[bold]Name:[/bold] {actor.full_name}\n"
        f"[bold]Role:[/bold] {actor.role.value}",
        title="Actor Created",
        border_style="green",
    )
    console.print(panel)


@app.command(name="list")
def list_command(
    role: Annotated[
        Optional[str],
        typer.Option("--role", "-r", help="Filter by role"),
    ] = None,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (table or json)"),
    ] = "table",
) -> None:
    """List registered actors."""
    from sitetrack.main import get_app_context

    ctx = get_app_context()
    role_filter = _parse_role(role) if role is not None else None

    async def _list():
        async with ctx.session_factory() as session:
            return await list_actors(session, role_filter=role_filter)

    try:
        actors = asyncio.run(_list())
    except SQLAlchemyError as e:
        console.print(f"[red]Error listing actors:[/red] {e}")
        raise typer.Exit(code=1) from e

    if format == "json":
        output = [
            {
                "id": str(a.id),
                "role": a.role.value,
                "full_name": a.full_name,
                "email": a.email,
            }
            for a in actors
        ]
        console.print(json.dumps(output, indent=2))
        return

    if not actors:
        console.print("[yellow]No actors found[/yellow]")
        return

    table = Table(title="Actors")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Role", style="magenta")
    table.add_column("Email", style="dim")
    for a in actors:
        table.add_row(str(a.id), a.full_name, a.role.value, a.email or "")
    console.print(table)
