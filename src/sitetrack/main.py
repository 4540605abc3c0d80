"""Main CLI entry point for SiteTrack.

This module provides the main Typer application with sub-commands for actor
seeding, project inspection and notification delivery.

Usage:
    sitetrack serve --port 8000
    sitetrack actor create ADMIN "Amina Bello" --email amina@example.gov.ng
    sitetrack project list --status ACTIVE
    sitetrack project progress <project-id>
    sitetrack events deliver --limit 100
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError as ConfigValidationError
from rich.console import Console

from sitetrack.cli import actor as actor_cli
from sitetrack.cli import events as events_cli
from sitetrack.cli import project as project_cli
from sitetrack.config import SiteTrackConfig, load_config
from sitetrack.database.connection import get_engine, get_session_factory
from sitetrack.logging import setup_logging

app = typer.Typer(
    name="sitetrack",
    help="SiteTrack: milestone verification for infrastructure projects",
    no_args_is_help=True,
)

app.add_typer(actor_cli.app, name="actor", help="Manage actor profiles")
app.add_typer(project_cli.app, name="project", help="Inspect projects")
app.add_typer(events_cli.app, name="events", help="Deliver notification events")

console = Console()


class AppContext:
    """Application context shared across CLI commands.

    Attributes:
        config: Loaded SiteTrack configuration
        engine: Async SQLAlchemy engine
        session_factory: Factory for creating database sessions
    """

    def __init__(self, config: SiteTrackConfig):
        self.config = config
        self.engine = get_engine(config.database)
        self.session_factory = get_session_factory(self.engine)


_app_context: AppContext | None = None


def get_app_context() -> AppContext:
    """Get the shared application context.

    Raises:
        RuntimeError: If context has not been initialized
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized. Call initialize_context first.")
    return _app_context


def initialize_context(config: SiteTrackConfig) -> AppContext:
    """Initialize the global application context."""
    global _app_context
    _app_context = AppContext(config)
    return _app_context


def reset_context() -> None:
    """Drop the global application context."""
    global _app_context
    _app_context = None


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host to bind to (default from config)"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to bind to (default from config)"),
    ] = None,
) -> None:
    """Start the SiteTrack API server."""
    import uvicorn

    from sitetrack.web.app import create_app

    config = get_app_context().config
    bind_host = host or config.web.host
    bind_port = port or config.web.port

    console.print("[bold cyan]Starting SiteTrack API[/bold cyan]")
    console.print(f"[dim]Host:[/dim] {bind_host}")
    console.print(f"[dim]Port:[/dim] {bind_port}")
    console.print()

    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_level="info")


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Load configuration, configure logging and open the database context."""
    if _app_context is not None:
        # Already initialized by an embedding caller
        return

    try:
        config = load_config(config_path)
    except (ConfigValidationError, OSError, ValueError) as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1) from e

    if verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)

    initialize_context(config)

    if verbose:
        console.print("[dim]Debug logging enabled[/dim]")


if __name__ == "__main__":
    app()
