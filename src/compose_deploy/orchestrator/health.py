"""Health polling for services of a deployed stack."""

import random
import threading
import time
from typing import Callable, List, Optional

from compose_deploy.backend.base import ComposeBackend
from compose_deploy.config.models import HealthWaitPolicy
from compose_deploy.orchestrator.loader import LoadedStack
from compose_deploy.utils.errors import (
    ErrorContext,
    HealthCheckCancelledError,
    HealthCheckTimeoutError,
)
from compose_deploy.utils.logging import LogContext, get_logger

logger = get_logger(__name__)

# Upper bound (exclusive) of the per-poll random delay, in milliseconds
MAX_JITTER_MS = 500


def jitter_delay() -> float:
    """Random extra delay in seconds, uniformly in [0, 0.5)."""
    return random.randrange(MAX_JITTER_MS) / 1000.0


class HealthWaiter:
    """Polls the backend until services report healthy or a deadline passes."""

    def __init__(
        self,
        backend: ComposeBackend,
        clock: Callable[[], float] = time.monotonic,
        jitter: Callable[[], float] = jitter_delay,
    ):
        """Initialize health waiter.

        Args:
            backend: Compose backend used to query container state
            clock: Monotonic clock in seconds
            jitter: Source of the per-poll random delay
        """
        self.backend = backend
        self.clock = clock
        self.jitter = jitter
        self.logger = get_logger(__name__)

    def wait_for_healthy(
        self,
        stack: LoadedStack,
        service_names: Optional[List[str]],
        policy: HealthWaitPolicy,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[str]:
        """Block until every named service is healthy.

        Services are checked one after another against a single deadline;
        a service confirmed healthy is not checked again.

        Args:
            stack: Loaded stack
            service_names: Services to wait for; empty or None means all
            policy: Timeout, poll interval and jitter settings
            cancel_event: Set from another thread to abort the wait

        Returns:
            Names of the services confirmed healthy, in check order

        Raises:
            HealthCheckTimeoutError: If the deadline passes first
            HealthCheckCancelledError: If cancel_event is set first
        """
        names = list(service_names) if service_names else stack.service_names()
        cancel_event = cancel_event or threading.Event()
        deadline = self.clock() + policy.timeout

        self.logger.info(
            f"Waiting for {len(names)} services to become healthy (timeout: {policy.timeout:g}s)"
        )

        confirmed = []
        for name in names:
            with LogContext(self.logger, stack=stack.name, service=name, operation="health"):
                self._wait_for_service(stack, name, policy, deadline, cancel_event)
                self.logger.info("Service is healthy")
            confirmed.append(name)

        self.logger.info("All services are healthy")
        return confirmed

    def _wait_for_service(
        self,
        stack: LoadedStack,
        name: str,
        policy: HealthWaitPolicy,
        deadline: float,
        cancel_event: threading.Event,
    ) -> None:
        context = ErrorContext(stack=stack.name, service=name, operation="health")

        while True:
            remaining = deadline - self.clock()
            if remaining <= 0:
                raise HealthCheckTimeoutError(
                    f"Timeout waiting for service '{name}' to become healthy",
                    context=context,
                    suggestions=[
                        f"Inspect the service with: compose-deploy logs {name}",
                        "Check the service's healthcheck definition",
                    ],
                )

            delay = min(policy.poll_interval, remaining)
            if policy.jitter:
                delay += min(self.jitter(), remaining - delay)

            if cancel_event.wait(delay):
                raise HealthCheckCancelledError(
                    f"Health check cancelled while waiting for service '{name}'",
                    context=context,
                )

            try:
                statuses = self.backend.query_status(stack.handle, [name])
            except Exception as e:
                self.logger.debug(f"Status query failed: {e}")
                continue

            if any(s.service == name and s.is_healthy() for s in statuses):
                return
