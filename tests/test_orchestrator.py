"""Tests for the deploy flow."""

import io
import os
from unittest.mock import MagicMock

import pytest

from compose_deploy.config.models import ReconcileProfile
from compose_deploy.orchestrator.orchestrator import DeploymentOrchestrator
from compose_deploy.state.manager import DeploymentStateStore
from compose_deploy.state.models import STATE_FILE_NAME
from compose_deploy.utils.errors import BackendError, ConfigurationError, StateError

from conftest import running


@pytest.mark.parametrize("tag", [None, "", "   "])
def test_deploy_requires_tag(backend, context, tag):
    with pytest.raises(ConfigurationError, match="--tag"):
        DeploymentOrchestrator(backend).deploy(context, tag)
    assert backend.calls == []


def test_deploy_sequence(backend, context, project_dir):
    result = DeploymentOrchestrator(backend).deploy(context, "v1.2.0")

    assert backend.call_names() == ["load_stack", "pull", "up"]
    assert backend.up_tags() == ["v1.2.0"]
    assert backend.load_requests[0].variables == {"IMAGE_TAG": "v1.2.0"}
    assert result.pulled
    assert result.saved
    assert result.record.last_tag == "v1.2.0"
    assert result.record.services == ["api", "db"]
    assert (project_dir / STATE_FILE_NAME).exists()


def test_deploy_uses_profile(backend, context):
    DeploymentOrchestrator(backend).deploy(
        context, "v1", pull=False, profile=ReconcileProfile(recreate="always", wait_timeout=30)
    )
    assert backend.call_names() == ["load_stack", "up"]
    _, (_, create, start) = backend.calls[-1]
    assert create.recreate == "always"
    assert start.wait_timeout.total_seconds() == 30


def test_caller_image_tag_wins(backend, context):
    DeploymentOrchestrator(backend).deploy(context.with_variables(IMAGE_TAG="pinned"), "v1.2.0")
    assert backend.up_tags() == ["pinned"]


def test_environment_image_tag_wins(backend, context, monkeypatch):
    monkeypatch.setenv("IMAGE_TAG", "from-env")
    DeploymentOrchestrator(backend).deploy(context, "v1.2.0")
    # Left for the backend to pick up from the process environment
    assert "IMAGE_TAG" not in backend.load_requests[0].variables


def test_deploy_does_not_touch_process_environment(backend, context):
    DeploymentOrchestrator(backend).deploy(context, "v1.2.0")
    assert "IMAGE_TAG" not in os.environ


def test_dry_run_deploy_is_pure(backend, context, project_dir):
    result = DeploymentOrchestrator(backend).deploy(context, "v1.2.0", dry_run=True)

    assert backend.call_names() == ["load_stack"]
    assert result.plan is not None
    assert result.plan.service_names() == ["db", "api"]
    assert not result.saved
    assert not (project_dir / STATE_FILE_NAME).exists()


def test_up_failure_does_not_save(backend, context, project_dir):
    backend.failures["up"] = RuntimeError("port is already allocated")

    with pytest.raises(BackendError, match="port is already allocated"):
        DeploymentOrchestrator(backend).deploy(context, "v1.2.0")

    assert not (project_dir / STATE_FILE_NAME).exists()


def test_pull_failure_stops_deploy(backend, context):
    backend.failures["pull"] = RuntimeError("manifest unknown")

    with pytest.raises(BackendError):
        DeploymentOrchestrator(backend).deploy(context, "v1.2.0")

    assert "up" not in backend.call_names()


def test_save_failure_is_a_warning(backend, context, caplog):
    state_store = MagicMock(spec=DeploymentStateStore)
    state_store.save.side_effect = StateError("disk full")

    result = DeploymentOrchestrator(backend, state_store=state_store).deploy(context, "v1.2.0")

    assert not result.saved
    assert "disk full" in result.state_warning
    assert any(r.levelname == "WARNING" and "disk full" in r.getMessage() for r in caplog.records)


def test_dev_up_never_saves(backend, context, project_dir):
    result = DeploymentOrchestrator(backend).dev_up(context)

    assert backend.call_names() == ["load_stack", "up"]
    _, (_, create, start) = backend.calls[-1]
    assert create.recreate == "missing"
    assert start.wait_timeout.total_seconds() == 60
    assert result.plan is None
    assert not (project_dir / STATE_FILE_NAME).exists()


def test_status_includes_record(backend, context):
    orchestrator = DeploymentOrchestrator(backend)
    backend.statuses = [running("api", health="healthy")]

    assert orchestrator.status(context, include_record=True).record is None

    orchestrator.deploy(context, "v1.2.0")
    status = orchestrator.status(context, include_record=True)

    assert status.record.last_tag == "v1.2.0"
    assert [s.service for s in status.services] == ["api"]
    assert orchestrator.status(context).record is None


def test_logs_are_written(backend, context):
    backend.log_lines = ["api-1  | listening on :8090\n"]
    writer = io.StringIO()

    DeploymentOrchestrator(backend).logs(context, ["api"], False, writer)

    assert writer.getvalue() == "api-1  | listening on :8090\n"
    assert backend.calls[-1][1][1:] == (["api"], False)
