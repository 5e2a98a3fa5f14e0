"""Tests for the reconciliation controller."""

from datetime import timedelta

import pytest

from compose_deploy.config.models import (
    BuildOptions,
    DownOptions,
    PullOptions,
    ReconcileProfile,
)
from compose_deploy.orchestrator.loader import ManifestLoader
from compose_deploy.orchestrator.reconciler import DRY_RUN_MARKER, ReconciliationController
from compose_deploy.utils.errors import BackendError, DeploymentError

from conftest import FakeBackend


@pytest.fixture
def stack(backend, context):
    loaded = ManifestLoader(backend).load(context)
    backend.calls.clear()
    return loaded


def test_dry_run_never_calls_backend(backend, stack, caplog):
    caplog.set_level("INFO")
    plan = ReconciliationController(backend).up(
        stack, ReconcileProfile.prod().to_up_options(dry_run=True)
    )

    assert backend.calls == []
    assert plan.service_names() == ["db", "api"]
    assert plan.services[1].ports == ["8090:8090/tcp"]
    assert plan.services[1].depends_on == ["db"]
    assert "  Service: api" in caplog.text
    assert "    Image: ghcr.io/goformx/goforms:latest" in caplog.text
    assert caplog.records[-1].getMessage() == DRY_RUN_MARKER


def test_dry_run_with_unresolvable_graph_falls_back_to_name_order(context, caplog):
    caplog.set_level("INFO")
    backend = FakeBackend(services={
        "b": {"image": "b", "depends_on": ["a"]},
        "a": {"image": "a", "depends_on": ["b"]},
        "c": {"build": {"context": "./c", "dockerfile": "Dockerfile.dev"}, "depends_on": ["missing"]},
    })
    stack = ManifestLoader(backend).load(context)
    backend.calls.clear()

    plan = ReconciliationController(backend).up(
        stack, ReconcileProfile.dev().to_up_options(dry_run=True)
    )

    assert backend.calls == []
    assert plan.service_names() == ["a", "b", "c"]
    assert plan.ordering_warning
    assert plan.services[2].build == "./c (Dockerfile: Dockerfile.dev)"
    assert DRY_RUN_MARKER in caplog.text


def test_up_translates_options(backend, stack, caplog):
    caplog.set_level("INFO")
    result = ReconciliationController(backend).up(stack, ReconcileProfile.prod().to_up_options())

    assert result is None
    assert backend.call_names() == ["up"]
    _, (handle, create, start) = backend.calls[0]
    assert handle is stack.handle
    assert create.recreate == "diverged"
    assert create.remove_orphans is True
    assert create.quiet_pull is False
    assert start.wait is True
    assert start.wait_timeout == timedelta(seconds=120)
    assert "Successfully started project 'goforms'" in caplog.text


def test_up_wraps_backend_errors(backend, stack):
    cause = DeploymentError("docker compose exited with status 1", suggestions=["check it"])
    backend.failures["up"] = cause

    with pytest.raises(BackendError) as exc_info:
        ReconciliationController(backend).up(stack, ReconcileProfile.dev().to_up_options())

    assert exc_info.value.__cause__ is cause
    assert exc_info.value.context.operation == "up"
    assert exc_info.value.suggestions == ["check it"]
    assert backend.call_names() == ["up"]


@pytest.mark.parametrize("seconds,expected", [
    (10, timedelta(seconds=10)),
    (0, None),
    (-5, None),
])
def test_down_timeout(backend, stack, seconds, expected):
    ReconciliationController(backend).down(
        stack, DownOptions(remove_volumes=True, timeout=seconds)
    )
    _, (_, options) = backend.calls[0]
    assert options.timeout == expected
    assert options.volumes is True
    assert options.remove_orphans is False


def test_pull_and_build(backend, stack, caplog):
    caplog.set_level("INFO")
    controller = ReconciliationController(backend)
    controller.pull(stack, PullOptions(ignore_buildable=True))
    controller.build(stack, BuildOptions(services=["api"], deps=True, no_cache=True))

    assert backend.call_names() == ["pull", "build"]
    assert backend.calls[0][1][1].ignore_buildable is True
    build_options = backend.calls[1][1][1]
    assert build_options.services == ["api"]
    assert build_options.deps is True
    assert build_options.no_cache is True
    assert "Successfully pulled images for project 'goforms'" in caplog.text
    assert "Successfully built images for project 'goforms'" in caplog.text


def test_build_failure_is_backend_error(backend, stack):
    backend.failures["build"] = RuntimeError("boom")
    with pytest.raises(BackendError, match="Failed to build images: boom"):
        ReconciliationController(backend).build(stack, BuildOptions())
