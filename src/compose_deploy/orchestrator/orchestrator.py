"""Main orchestrator that composes loading, reconciliation, health and state."""

import os
import threading
from dataclasses import dataclass
from typing import List, Optional, TextIO

from compose_deploy.backend.base import ComposeBackend, LiveServiceStatus
from compose_deploy.config.models import (
    IMAGE_TAG_VARIABLE,
    BuildOptions,
    DownOptions,
    HealthWaitPolicy,
    ProjectContext,
    PullOptions,
    ReconcileProfile,
)
from compose_deploy.orchestrator.health import HealthWaiter
from compose_deploy.orchestrator.loader import LoadedStack, ManifestLoader
from compose_deploy.orchestrator.reconciler import ReconcilePlan, ReconciliationController
from compose_deploy.orchestrator.rollback import RollbackController, RollbackResult
from compose_deploy.state.manager import DeploymentStateStore
from compose_deploy.state.models import DeploymentRecord
from compose_deploy.utils.errors import (
    BackendError,
    ConfigurationError,
    DeploymentError,
    ErrorContext,
    StateError,
    StateNotFoundError,
)
from compose_deploy.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


@dataclass
class DeployResult:
    """Result of a deploy or dev up."""

    project_name: str
    tag: Optional[str] = None
    dry_run: bool = False
    pulled: bool = False
    plan: Optional[ReconcilePlan] = None
    record: Optional[DeploymentRecord] = None
    state_warning: Optional[str] = None

    @property
    def saved(self) -> bool:
        return self.record is not None


@dataclass
class StackStatus:
    """Live container state plus the recorded deployment, if any."""

    project_name: str
    services: List[LiveServiceStatus]
    record: Optional[DeploymentRecord] = None


class DeploymentOrchestrator:
    """Coordinates deploys, rollbacks and day-to-day stack operations."""

    def __init__(
        self,
        backend: ComposeBackend,
        state_store: Optional[DeploymentStateStore] = None,
        health_waiter: Optional[HealthWaiter] = None,
    ):
        """Initialize deployment orchestrator.

        Args:
            backend: Compose backend
            state_store: Deployment state store
            health_waiter: Health waiter (defaults to one over the backend)
        """
        self.backend = backend
        self.state_store = state_store or DeploymentStateStore()

        # Initialize components
        self.loader = ManifestLoader(backend)
        self.reconciler = ReconciliationController(backend)
        self.health_waiter = health_waiter or HealthWaiter(backend)
        self.rollback_controller = RollbackController(
            loader=self.loader,
            state_store=self.state_store,
            reconciler=self.reconciler,
        )

        self.logger = get_logger(__name__)

    def deploy(
        self,
        context: ProjectContext,
        tag: Optional[str],
        pull: bool = True,
        dry_run: bool = False,
        profile: Optional[ReconcileProfile] = None,
    ) -> DeployResult:
        """Deploy the stack at an image tag and record it.

        Args:
            context: Stack descriptor
            tag: Image tag to deploy
            pull: Pull images before starting services
            dry_run: Only report what would be done
            profile: Reconcile profile (defaults to prod)

        Returns:
            DeployResult

        Raises:
            ConfigurationError: If no tag is given
            BackendError: If loading, pulling or reconciling fails
        """
        if not tag or not tag.strip():
            raise ConfigurationError(
                "--tag is required for production deployment",
                context=ErrorContext(stack=context.name or None, operation="deploy"),
                suggestions=["Pass the image tag to deploy, e.g. --tag v1.2.0"],
            )
        tag = tag.strip()
        profile = profile or ReconcileProfile.prod()

        # An IMAGE_TAG chosen by the caller wins over --tag
        if IMAGE_TAG_VARIABLE not in context.variables and not os.environ.get(IMAGE_TAG_VARIABLE):
            context = context.with_variables(**{IMAGE_TAG_VARIABLE: tag})

        with LogContext(self.logger, stack=context.name, operation="deploy"):
            stack = self.loader.load(context)
            result = DeployResult(project_name=stack.name, tag=tag, dry_run=dry_run)

            if pull and not dry_run:
                self.reconciler.pull(stack, PullOptions())
                result.pulled = True

            result.plan = self.reconciler.up(stack, profile.to_up_options(dry_run=dry_run))

            if not dry_run:
                try:
                    result.record = self.state_store.save(context, stack, tag)
                except StateError as e:
                    result.state_warning = f"Failed to save deployment state: {e.message}"
                    self.logger.warning(result.state_warning)

                self.logger.info(f"Successfully deployed project '{stack.name}' with tag '{tag}'")

        return result

    def dev_up(
        self,
        context: ProjectContext,
        dry_run: bool = False,
        profile: Optional[ReconcileProfile] = None,
    ) -> DeployResult:
        """Start the development stack. Never records state."""
        profile = profile or ReconcileProfile.dev()

        with LogContext(self.logger, stack=context.name, operation="up"):
            stack = self.loader.load(context)
            plan = self.reconciler.up(stack, profile.to_up_options(dry_run=dry_run))

        return DeployResult(project_name=stack.name, dry_run=dry_run, plan=plan)

    def rollback(self, context: ProjectContext, dry_run: bool = False) -> RollbackResult:
        """Roll back to the last recorded deployment."""
        return self.rollback_controller.rollback(context, dry_run=dry_run)

    def down(self, context: ProjectContext, options: DownOptions) -> LoadedStack:
        """Stop and remove the stack's containers."""
        stack = self.loader.load(context)
        self.reconciler.down(stack, options)
        return stack

    def build(self, context: ProjectContext, options: BuildOptions) -> LoadedStack:
        """Build service images."""
        stack = self.loader.load(context)
        self.reconciler.build(stack, options)
        return stack

    def status(self, context: ProjectContext, include_record: bool = False) -> StackStatus:
        """Query live container state.

        Args:
            context: Stack descriptor
            include_record: Also read the recorded deployment; a missing or
                unreadable record is left out

        Raises:
            BackendError: If the status query fails
        """
        stack = self.loader.load(context)
        try:
            statuses = self.backend.query_status(stack.handle)
        except DeploymentError as e:
            raise BackendError(
                f"Failed to get status: {e.message}",
                context=ErrorContext(stack=stack.name, operation="status"),
                cause=e,
                suggestions=e.suggestions,
            ) from e
        except Exception as e:
            raise BackendError(
                f"Failed to get status: {e}",
                context=ErrorContext(stack=stack.name, operation="status"),
                cause=e,
            ) from e

        record = None
        if include_record:
            try:
                record = self.state_store.load(context)
            except StateNotFoundError:
                pass
            except StateError as e:
                self.logger.warning(f"Ignoring deployment state: {e.message}")

        return StackStatus(project_name=stack.name, services=statuses, record=record)

    def logs(
        self,
        context: ProjectContext,
        services: List[str],
        follow: bool,
        writer: TextIO,
    ) -> None:
        """Write container logs to writer.

        Raises:
            BackendError: If the logs cannot be read
        """
        stack = self.loader.load(context)
        try:
            self.backend.stream_logs(stack.handle, list(services), follow, writer)
        except DeploymentError as e:
            raise BackendError(
                f"Failed to get logs: {e.message}",
                context=ErrorContext(stack=stack.name, operation="logs"),
                cause=e,
                suggestions=e.suggestions,
            ) from e
        except Exception as e:
            raise BackendError(
                f"Failed to get logs: {e}",
                context=ErrorContext(stack=stack.name, operation="logs"),
                cause=e,
            ) from e

    def health(
        self,
        context: ProjectContext,
        policy: HealthWaitPolicy,
        services: Optional[List[str]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[str]:
        """Wait for the stack's services to become healthy."""
        stack = self.loader.load(context)
        return self.health_waiter.wait_for_healthy(stack, services, policy, cancel_event)
