"""Tests for status and plan rendering."""

import io
from datetime import datetime, timezone

import pytest
from rich.console import Console

from compose_deploy.backend.base import LiveServiceStatus
from compose_deploy.cli.output import StatusReporter
from compose_deploy.orchestrator.reconciler import PlannedService, ReconcilePlan
from compose_deploy.state.models import DeploymentRecord


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def reporter(output):
    return StatusReporter(Console(file=output, width=200))


def statuses():
    return [
        LiveServiceStatus(
            name="goforms-api-1",
            service="api",
            state="running",
            status="Up 2 minutes (healthy)",
            health="healthy",
            ports=["0.0.0.0:8090:8090/tcp"],
        ),
        LiveServiceStatus(name="goforms-db-1", service="db", state="exited", status="Exited (1)"),
    ]


def test_no_containers(reporter, output):
    reporter.render([])
    assert output.getvalue().strip() == "No containers running"


def test_table_without_health(reporter, output):
    reporter.render(statuses())

    text = output.getvalue()
    for heading in ("NAME", "STATE", "STATUS", "PORTS"):
        assert heading in text
    assert "HEALTH" not in text
    assert "goforms-api-1" in text
    assert "0.0.0.0:8090:8090/tcp" in text
    assert "exited" in text


def test_table_with_health_and_record(reporter, output):
    record = DeploymentRecord(
        last_tag="v1.2.0",
        deployed_at=datetime(2024, 5, 1, 12, tzinfo=timezone.utc),
        services=["api", "db"],
        project_name="goforms",
    )

    reporter.render(statuses(), record=record, show_health=True)

    text = output.getvalue()
    assert text.startswith("Current deployment: tag=v1.2.0, deployed=2024-05-01T12:00:00Z\n")
    assert "HEALTH" in text
    assert "healthy" in text


def test_record_without_containers(reporter, output):
    record = DeploymentRecord(last_tag="v1.2.0", project_name="goforms")
    reporter.render([], record=record)
    lines = output.getvalue().splitlines()
    assert lines[0].startswith("Current deployment: tag=v1.2.0")
    assert lines[-1] == "No containers running"


def test_status_text_is_not_markup(reporter, output):
    reporter.render([
        LiveServiceStatus(name="goforms-api-1", service="api", state="running", status="[bold]odd[/bold]")
    ])
    assert "[bold]odd[/bold]" in output.getvalue()


def test_render_plan(reporter, output):
    plan = ReconcilePlan(
        stack="goforms",
        services=[
            PlannedService(name="db", image="postgres:16"),
            PlannedService(
                name="api",
                build="./api (Dockerfile: Dockerfile.prod)",
                ports=["8090:8090/tcp"],
                depends_on=["db"],
            ),
        ],
        ordering_warning="Circular dependency detected",
    )

    reporter.render_plan(plan)

    text = output.getvalue()
    assert "Circular dependency detected" in text
    assert "Dry run: goforms" in text
    assert "postgres:16" in text
    assert "build: ./api (Dockerfile: Dockerfile.prod)" in text
    assert text.index("postgres:16") < text.index("8090:8090/tcp")
    assert text.rstrip().endswith("No changes were made")
