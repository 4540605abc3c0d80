"""Integration tests for CLI commands.

This module tests the Typer-based CLI interface for actor, project and
notification commands. Workflow calls are patched so the commands run
against a mocked session factory.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from typer.testing import CliRunner

from sitetrack.database.models.actor import ActorRole
from sitetrack.database.models.milestone import MilestoneStatus
from sitetrack.database.models.project import ProjectStatus
from sitetrack.main import app, initialize_context, reset_context
from sitetrack.notifications import RelayReport
from sitetrack.workflow.progress import ProjectProgress, SectionProgress


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Typer CLI runner."""
    return CliRunner()


@pytest.fixture
def mock_session() -> AsyncMock:
    """Mock session usable as an async context manager."""
    session = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    return session


@pytest.fixture
def cli_context(test_config, mock_session):
    """Initialize the CLI application context with a mocked session factory."""
    ctx = initialize_context(test_config)
    ctx.session_factory = MagicMock(return_value=mock_session)
    yield ctx
    reset_context()


def _project(title: str = "ICT Center") -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        title=title,
        status=ProjectStatus.ACTIVE,
        total_budget=Decimal("1000000.00"),
        currency="NGN",
        consultant_id=None,
        created_at=datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc),
    )


@pytest.mark.integration
class TestActorCLI:
    """Tests for actor commands."""

    def test_create_admin(self, cli_runner, cli_context):
        actor = SimpleNamespace(id=uuid4(), full_name="Amina Bello", role=ActorRole.ADMIN)
        with patch("sitetrack.cli.actor.register_actor", AsyncMock(return_value=actor)) as mock:
            result = cli_runner.invoke(app, ["actor", "create", "admin", "Amina Bello"])

        assert result.exit_code == 0
        assert "Actor registered" in result.stdout
        assert str(actor.id) in result.stdout
        args = mock.await_args
        assert args.args[1] is None
        assert args.args[2] == ActorRole.ADMIN

    def test_invalid_role(self, cli_runner, cli_context):
        result = cli_runner.invoke(app, ["actor", "create", "mayor", "Someone"])
        assert result.exit_code == 1
        assert "Invalid role" in result.stdout

    def test_invalid_actor_id(self, cli_runner, cli_context):
        result = cli_runner.invoke(
            app, ["actor", "create", "ADMIN", "Someone", "--id", "not-a-uuid"]
        )
        assert result.exit_code == 1

    def test_list_json(self, cli_runner, cli_context):
        actors = [
            SimpleNamespace(
                id=uuid4(), role=ActorRole.CONSULTANT, full_name="Chinedu", email=None
            )
        ]
        with patch("sitetrack.cli.actor.list_actors", AsyncMock(return_value=actors)):
            result = cli_runner.invoke(app, ["actor", "list", "--format", "json"])

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output[0]["role"] == "CONSULTANT"


@pytest.mark.integration
class TestProjectCLI:
    """Tests for project commands."""

    def test_list_json(self, cli_runner, cli_context):
        project = _project()
        with patch(
            "sitetrack.cli.project.registry.list_projects",
            AsyncMock(return_value=[project]),
        ) as mock:
            result = cli_runner.invoke(app, ["project", "list", "--format", "json"])

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output[0]["id"] == str(project.id)
        assert output[0]["title"] == "ICT Center"
        assert output[0]["status"] == "ACTIVE"
        assert mock.await_args.args[1].role == ActorRole.ADMIN

    def test_list_empty(self, cli_runner, cli_context):
        with patch("sitetrack.cli.project.registry.list_projects", AsyncMock(return_value=[])):
            result = cli_runner.invoke(app, ["project", "list", "--status", "active"])

        assert result.exit_code == 0
        assert "No projects found" in result.stdout

    def test_list_invalid_status(self, cli_runner, cli_context):
        result = cli_runner.invoke(app, ["project", "list", "--status", "paused"])
        assert result.exit_code == 1
        assert "Invalid status" in result.stdout

    def test_list_as_unknown_actor_fails(self, cli_runner, cli_context, mock_session):
        with patch("sitetrack.cli.project.get_actor", AsyncMock(return_value=None)):
            result = cli_runner.invoke(app, ["project", "list", "--as", str(uuid4())])

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_progress_json(self, cli_runner, cli_context):
        project_id = uuid4()
        report = ProjectProgress(
            project_id=project_id,
            status=MilestoneStatus.PENDING_APPROVAL,
            completion_percentage=0,
            progress_percentage=75,
            milestone_count=1,
            sections=[
                SectionProgress(
                    section_id=uuid4(),
                    name="Civil Works",
                    contractor_id=None,
                    status=MilestoneStatus.PENDING_APPROVAL,
                    completion_percentage=0,
                    progress_percentage=75,
                )
            ],
        )
        with patch(
            "sitetrack.cli.project.ProgressAggregator.project_progress",
            AsyncMock(return_value=report),
        ):
            result = cli_runner.invoke(
                app, ["project", "progress", str(project_id), "--format", "json"]
            )

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["progress_percentage"] == 75
        assert output["sections"][0]["status"] == "PENDING_APPROVAL"

    def test_progress_invalid_id(self, cli_runner, cli_context):
        result = cli_runner.invoke(app, ["project", "progress", "abc"])
        assert result.exit_code == 1


@pytest.mark.integration
class TestEventsCLI:
    """Tests for notification outbox commands."""

    def test_deliver_uses_configured_batch(self, cli_runner, cli_context, test_config):
        relay = MagicMock()
        relay.deliver_pending = AsyncMock(
            return_value=RelayReport(attempted=3, delivered=2, retrying=1, failed=0)
        )
        with patch("sitetrack.cli.events.NotificationRelay", return_value=relay) as relay_cls:
            result = cli_runner.invoke(app, ["events", "deliver"])

        assert result.exit_code == 0
        assert "Delivered: 2" in result.stdout
        assert relay_cls.call_args.kwargs["max_attempts"] == test_config.notifications.max_attempts
        assert relay.deliver_pending.await_args.kwargs["limit"] == (
            test_config.notifications.batch_size
        )

    def test_stats_json(self, cli_runner, cli_context):
        counts = {"pending": 2, "delivered": 5, "failed": 1}
        with patch(
            "sitetrack.cli.events.count_events_by_status", AsyncMock(return_value=counts)
        ):
            result = cli_runner.invoke(app, ["events", "stats", "--format", "json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == counts
