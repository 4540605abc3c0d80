"""Project inspection CLI commands.

This module provides read-only CLI commands for listing projects and
printing their progress and budget position. Commands run as the system
operator unless ``--as`` names a registered actor, in which case that
actor's visibility rules apply.
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

from sitetrack.auth import ActorContext
from sitetrack.cli import SYSTEM_ACTOR
from sitetrack.database.models.milestone import MilestoneStatus
from sitetrack.database.models.project import ProjectStatus
from sitetrack.database.queries.actor import get_actor
from sitetrack.errors import NotFoundError, SiteTrackError
from sitetrack.workflow import registry
from sitetrack.workflow.progress import ProgressAggregator

app = typer.Typer(help="Project inspection commands")
console = Console()

AsOption = Annotated[
    Optional[str],
    typer.Option("--as", help="Actor UUID whose view to use (default: operator)"),
]
FormatOption = Annotated[
    str,
    typer.Option("--format", "-f", help="Output format (table or json)"),
]

STATUS_COLORS = {
    MilestoneStatus.COMPLETED: "green",
    MilestoneStatus.PENDING_APPROVAL: "yellow",
    MilestoneStatus.QUERIED: "red",
    MilestoneStatus.IN_PROGRESS: "cyan",
}


def _parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        console.print(f"[red]Invalid {label}:[/red] {value}")
        raise typer.Exit(code=1) from None


async def _resolve_actor(session, as_actor: UUID | None) -> ActorContext:
    if as_actor is None:
        return SYSTEM_ACTOR
    actor = await get_actor(session, as_actor)
    if actor is None:
        raise NotFoundError("Actor", as_actor)
    return ActorContext(actor_id=actor.id, role=actor.role)


def _run(coro, action: str):
    try:
        return asyncio.run(coro)
    except (SiteTrackError, SQLAlchemyError) as e:
        console.print(f"[red]Error {action}:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command(name="list")
def list_command(
    status: Annotated[
        Optional[str],
        typer.Option(
            "--status",
            "-s",
            help="Filter by status (DRAFT, ACTIVE, COMPLETED, SUSPENDED)",
        ),
    ] = None,
    as_actor: AsOption = None,
    format: FormatOption = "table",
) -> None:
    """List projects visible to the operator or the given actor."""
    from sitetrack.main import get_app_context

    ctx = get_app_context()

    status_filter = None
    if status is not None:
        try:
            status_filter = ProjectStatus(status.upper())
        except ValueError:
            console.print(
                f"[red]Invalid status:[/red] {status}. "
                f"Valid values: {', '.join(s.value for s in ProjectStatus)}"
            )
            raise typer.Exit(code=1) from None
    actor_id = _parse_uuid(as_actor, "actor id") if as_actor else None

    async def _list_projects():
        async with ctx.session_factory() as session:
            actor = await _resolve_actor(session, actor_id)
            return await registry.list_projects(session, actor, status_filter=status_filter)

    projects = _run(_list_projects(), "listing projects")

    if format == "json":
        output = [
            {
                "id": str(p.id),
                "title": p.title,
                "status": p.status.value,
                "total_budget": str(p.total_budget),
                "currency": p.currency,
                "consultant_id": str(p.consultant_id) if p.consultant_id else None,
                "created_at": p.created_at.isoformat(),
            }
            for p in projects
        ]
        console.print(json.dumps(output, indent=2))
        return

    if not projects:
        console.print("[yellow]No projects found[/yellow]")
        return

    table = Table(title="Projects")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="bold")
    table.add_column("Status", style="magenta")
    table.add_column("Budget", justify="right")
    table.add_column("Created", style="dim")
    for p in projects:
        table.add_row(
            str(p.id),
            p.title,
            p.status.value,
            f"{p.currency} {p.total_budget:,.2f}",
            p.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def progress(
    project_id: Annotated[str, typer.Argument(help="Project UUID")],
    as_actor: AsOption = None,
    format: FormatOption = "table",
) -> None:
    """Print section and project progress for a project."""
    from sitetrack.main import get_app_context

    ctx = get_app_context()
    pid = _parse_uuid(project_id, "project id")
    actor_id = _parse_uuid(as_actor, "actor id") if as_actor else None
    aggregator = ProgressAggregator(ctx.config.workflow.progress_weights)

    async def _progress():
        async with ctx.session_factory() as session:
            actor = await _resolve_actor(session, actor_id)
            return await aggregator.project_progress(session, actor, pid)

    report = _run(_progress(), "loading progress")

    if format == "json":
        output = {
            "project_id": str(report.project_id),
            "status": report.status.value,
            "completion_percentage": report.completion_percentage,
            "progress_percentage": report.progress_percentage,
            "milestone_count": report.milestone_count,
            "sections": [
                {
                    "section_id": str(s.section_id),
                    "name": s.name,
                    "status": s.status.value,
                    "progress_percentage": s.progress_percentage,
                }
                for s in report.sections
            ],
            "unassigned": [str(m.milestone_id) for m in report.unassigned],
        }
        console.print(json.dumps(output, indent=2))
        return

    color = STATUS_COLORS.get(report.status, "white")
    console.print(
        Panel(
            f"[bold]Status:[/bold] [{color}]{report.status.value}[/{color}]\n"
            f"[bold]Progress:[/bold] {report.progress_percentage}%\n"
            f"[bold]Completed:[/bold] {report.completion_percentage}% "
            f"of {report.milestone_count} milestones",
            title=f"Project {report.project_id}",
            border_style="cyan",
        )
    )

    table = Table(title="Sections")
    table.add_column("Section", style="bold")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Milestones", justify="right")
    for s in report.sections:
        color = STATUS_COLORS.get(s.status, "white")
        table.add_row(
            s.name,
            f"[{color}]{s.status.value}[/{color}]",
            f"{s.progress_percentage}%",
            str(len(s.milestones)),
        )
    if report.unassigned:
        table.add_row("[dim]Unassigned[/dim]", "", "", str(len(report.unassigned)))
    console.print(table)


@app.command()
def budget(
    project_id: Annotated[str, typer.Argument(help="Project UUID")],
    as_actor: AsOption = None,
) -> None:
    """Print the budget position of a project."""
    from sitetrack.main import get_app_context

    ctx = get_app_context()
    pid = _parse_uuid(project_id, "project id")
    actor_id = _parse_uuid(as_actor, "actor id") if as_actor else None
    aggregator = ProgressAggregator(ctx.config.workflow.progress_weights)

    async def _budget():
        async with ctx.session_factory() as session:
            actor = await _resolve_actor(session, actor_id)
            return await aggregator.budget_summary(session, actor, pid)

    summary = _run(_budget(), "loading budget")

    warning = ""
    if summary.over_allocated:
        warning = "\n[red]Milestone budgets exceed the project total[/red]"
    console.print(
        Panel(
            f"[bold]Total:[/bold] {summary.currency} {summary.total_budget:,.2f}\n"
            f"[bold]Allocated:[/bold] {summary.currency} {summary.allocated:,.2f}\n"
            f"[bold]Approved:[/bold] {summary.currency} {summary.approved_value:,.2f}\n"
            f"[bold]Pending:[/bold] {summary.currency} {summary.pending_value:,.2f}\n"
            f"[bold]Remaining:[/bold] {summary.currency} {summary.remaining:,.2f}"
            f"{warning}",
            title="Budget",
            border_style="green" if not summary.over_allocated else "red",
        )
    )
