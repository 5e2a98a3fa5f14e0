"""Reconciliation of running containers against a loaded stack."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, List, Optional

from compose_deploy.backend.base import (
    BackendBuildOptions,
    BackendCreateOptions,
    BackendDownOptions,
    BackendPullOptions,
    BackendStartOptions,
    ComposeBackend,
)
from compose_deploy.config.models import BuildOptions, DownOptions, PullOptions, UpOptions
from compose_deploy.orchestrator.dependency_graph import DependencyGraph
from compose_deploy.orchestrator.loader import LoadedStack
from compose_deploy.utils.errors import (
    BackendError,
    DependencyError,
    DeploymentError,
    ErrorContext,
)
from compose_deploy.utils.logging import get_logger

logger = get_logger(__name__)

DRY_RUN_MARKER = "DRY RUN: No changes were made"


@dataclass
class PlannedService:
    """What an up pass would do for one service."""

    name: str
    image: str = ""
    build: str = ""
    ports: List[str] = field(default_factory=list)
    depends_on: List[str] = field(default_factory=list)

    def describe(self) -> List[str]:
        """Human-readable plan lines for this service."""
        lines = [f"  Service: {self.name}"]
        if self.image:
            lines.append(f"    Image: {self.image}")
        if self.build:
            lines.append(f"    Build: {self.build}")
        if self.ports:
            lines.append(f"    Ports: {', '.join(self.ports)}")
        if self.depends_on:
            lines.append(f"    Depends on: {', '.join(self.depends_on)}")
        return lines


@dataclass
class ReconcilePlan:
    """Reconciliation plan reported by a dry run."""

    stack: str
    services: List[PlannedService] = field(default_factory=list)
    ordering_warning: Optional[str] = None

    def service_names(self) -> List[str]:
        return [s.name for s in self.services]

    def to_lines(self) -> List[str]:
        lines = ["DRY RUN: Would start the following services:"]
        for service in self.services:
            lines.extend(service.describe())
        lines.append(DRY_RUN_MARKER)
        return lines


class ReconciliationController:
    """Issues up/down/pull/build operations against the compose backend."""

    def __init__(self, backend: ComposeBackend):
        """Initialize reconciliation controller.

        Args:
            backend: Compose backend that performs the operations
        """
        self.backend = backend
        self.logger = get_logger(__name__)

    def plan(self, stack: LoadedStack) -> ReconcilePlan:
        """Build the plan for an up pass without touching the backend.

        Services are listed dependencies first; if the graph cannot be
        ordered the plan falls back to name order and records why.
        """
        ordering_warning = None
        try:
            order = DependencyGraph.from_services(stack.services).topological_sort()
        except DependencyError as e:
            ordering_warning = e.message
            order = sorted(stack.services)

        services = []
        for name in order:
            spec = stack.services[name]
            build = ""
            if spec.build is not None:
                build = spec.build.context or "."
                if spec.build.dockerfile:
                    build = f"{build} (Dockerfile: {spec.build.dockerfile})"
            services.append(
                PlannedService(
                    name=name,
                    image=spec.image,
                    build=build,
                    ports=list(spec.ports),
                    depends_on=list(spec.depends_on),
                )
            )

        return ReconcilePlan(stack=stack.name, services=services, ordering_warning=ordering_warning)

    def up(self, stack: LoadedStack, options: UpOptions) -> Optional[ReconcilePlan]:
        """Create and start services, or only report the plan on a dry run.

        Args:
            stack: Loaded stack to reconcile
            options: Up options

        Returns:
            The ReconcilePlan for a dry run, None otherwise

        Raises:
            BackendError: If the backend fails (never on a dry run)
        """
        if options.dry_run:
            return self._dry_run_up(stack)

        create = BackendCreateOptions(
            recreate=options.create.recreate,
            remove_orphans=options.create.remove_orphans,
            quiet_pull=options.create.quiet,
        )
        start = BackendStartOptions(
            wait=options.start.wait,
            wait_timeout=timedelta(seconds=options.start.wait_timeout),
        )

        self._call(stack, "up", "Failed to start services", self.backend.up, create, start)
        self.logger.info(f"Successfully started project '{stack.name}'")
        return None

    def _dry_run_up(self, stack: LoadedStack) -> ReconcilePlan:
        plan = self.plan(stack)
        if plan.ordering_warning:
            self.logger.warning(f"DRY RUN: {plan.ordering_warning}; listing services by name")
        for line in plan.to_lines():
            self.logger.info(line)
        return plan

    def down(self, stack: LoadedStack, options: DownOptions) -> None:
        """Stop and remove services.

        Raises:
            BackendError: If the backend fails
        """
        timeout = None
        if options.timeout > 0:
            timeout = timedelta(seconds=options.timeout)

        backend_options = BackendDownOptions(
            volumes=options.remove_volumes,
            remove_orphans=options.remove_orphans,
            timeout=timeout,
        )

        self._call(stack, "down", "Failed to stop services", self.backend.down, backend_options)
        self.logger.info(f"Successfully stopped project '{stack.name}'")

    def pull(self, stack: LoadedStack, options: PullOptions) -> None:
        """Pull service images.

        Raises:
            BackendError: If the backend fails
        """
        backend_options = BackendPullOptions(
            quiet=options.quiet,
            ignore_buildable=options.ignore_buildable,
        )

        self._call(stack, "pull", "Failed to pull images", self.backend.pull, backend_options)
        self.logger.info(f"Successfully pulled images for project '{stack.name}'")

    def build(self, stack: LoadedStack, options: BuildOptions) -> None:
        """Build service images.

        Raises:
            BackendError: If the backend fails
        """
        backend_options = BackendBuildOptions(
            pull=options.pull,
            no_cache=options.no_cache,
            quiet=options.quiet,
            services=list(options.services),
            deps=options.deps,
        )

        self._call(stack, "build", "Failed to build images", self.backend.build, backend_options)
        self.logger.info(f"Successfully built images for project '{stack.name}'")

    def _call(
        self,
        stack: LoadedStack,
        operation: str,
        message: str,
        func: Callable[..., Any],
        *args: Any,
    ) -> None:
        context = ErrorContext(stack=stack.name, operation=operation)
        try:
            func(stack.handle, *args)
        except DeploymentError as e:
            raise BackendError(
                f"{message}: {e.message}", context=context, cause=e, suggestions=e.suggestions
            ) from e
        except Exception as e:
            raise BackendError(f"{message}: {e}", context=context, cause=e) from e
