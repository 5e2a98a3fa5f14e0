"""Tests for the health waiter."""

import threading
import time

import pytest

from compose_deploy.backend.base import LiveServiceStatus
from compose_deploy.config.models import HealthWaitPolicy
from compose_deploy.orchestrator.health import HealthWaiter, jitter_delay
from compose_deploy.orchestrator.loader import ManifestLoader
from compose_deploy.utils.errors import HealthCheckCancelledError, HealthCheckTimeoutError

from conftest import running


FAST = HealthWaitPolicy(timeout=0.5, poll_interval=0.02, jitter=False)


@pytest.fixture
def stack(backend, context):
    loaded = ManifestLoader(backend).load(context)
    backend.calls.clear()
    return loaded


def queried_services(backend):
    return [args[1] for name, args in backend.calls if name == "query_status"]


def test_is_healthy_rules():
    assert running("api", health="healthy").is_healthy()
    assert running("api").is_healthy()
    assert not running("api", health="starting").is_healthy()
    assert not running("api", health="unhealthy").is_healthy()
    assert not LiveServiceStatus(name="c", service="api", state="exited").is_healthy()


def test_waits_for_all_services_in_order(backend, stack, caplog):
    caplog.set_level("INFO")
    backend.statuses = [running("api", health="healthy"), running("db")]

    confirmed = HealthWaiter(backend).wait_for_healthy(stack, [], FAST)

    assert confirmed == ["api", "db"]
    # Confirmed services are never re-checked
    assert queried_services(backend) == [["api"], ["db"]]
    assert "All services are healthy" in caplog.text


def test_status_of_other_service_does_not_count(backend, stack):
    backend.status_script = [[running("db")], [running("api", health="healthy")]]

    HealthWaiter(backend).wait_for_healthy(stack, ["api"], FAST)

    assert queried_services(backend) == [["api"], ["api"]]


def test_query_errors_are_retried(backend, stack, caplog):
    caplog.set_level("DEBUG")
    backend.status_script = [
        RuntimeError("daemon hiccup"),
        [running("api", health="starting")],
        [running("api", health="healthy")],
    ]

    HealthWaiter(backend).wait_for_healthy(stack, ["api"], FAST)

    assert len(queried_services(backend)) == 3
    assert any(
        r.levelname == "DEBUG" and "daemon hiccup" in r.getMessage() for r in caplog.records
    )


def test_timeout_names_service_and_is_bounded(backend, stack):
    backend.statuses = [running("db"), running("api", health="unhealthy")]
    policy = HealthWaitPolicy(timeout=0.3, poll_interval=0.05, jitter=False)

    start = time.monotonic()
    with pytest.raises(HealthCheckTimeoutError) as exc_info:
        HealthWaiter(backend).wait_for_healthy(stack, ["db", "api"], policy)
    elapsed = time.monotonic() - start

    assert "'api'" in exc_info.value.message
    assert exc_info.value.context.service == "api"
    assert 0.3 <= elapsed < 0.3 + 0.05 + 0.5


def test_first_check_after_one_interval(backend, stack):
    backend.statuses = [running("api")]
    policy = HealthWaitPolicy(timeout=5, poll_interval=0.2, jitter=False)

    start = time.monotonic()
    HealthWaiter(backend).wait_for_healthy(stack, ["api"], policy)

    assert time.monotonic() - start >= 0.2


def test_jitter_delay_bounds():
    samples = [jitter_delay() for _ in range(2000)]
    assert all(0 <= s < 0.5 for s in samples)
    assert len(set(samples)) > 1


def test_jitter_is_bounded_by_remaining_time(backend, stack):
    backend.statuses = []
    policy = HealthWaitPolicy(timeout=0.2, poll_interval=0.1, jitter=True)
    waiter = HealthWaiter(backend, jitter=lambda: 0.499)

    start = time.monotonic()
    with pytest.raises(HealthCheckTimeoutError):
        waiter.wait_for_healthy(stack, ["api"], policy)

    assert time.monotonic() - start < 0.2 + 0.1 + 0.5


def test_cancel_event_aborts_promptly(backend, stack):
    backend.statuses = []
    cancel = threading.Event()
    timer = threading.Timer(0.1, cancel.set)
    timer.start()

    start = time.monotonic()
    try:
        with pytest.raises(HealthCheckCancelledError, match="'api'"):
            HealthWaiter(backend).wait_for_healthy(
                stack, ["api"], HealthWaitPolicy(timeout=30, poll_interval=0.05, jitter=False), cancel
            )
    finally:
        timer.cancel()

    assert time.monotonic() - start < 5


def test_injected_clock_controls_deadline(backend, stack):
    """With a clock already past the deadline the wait fails without polling."""
    ticks = iter([0.0, 100.0])
    waiter = HealthWaiter(backend, clock=lambda: next(ticks))

    with pytest.raises(HealthCheckTimeoutError):
        waiter.wait_for_healthy(stack, ["api"], FAST)

    assert queried_services(backend) == []
