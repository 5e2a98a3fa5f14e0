"""Single-level rollback to the last recorded deployment."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from compose_deploy.config.models import IMAGE_TAG_VARIABLE, ProjectContext, ReconcileProfile
from compose_deploy.orchestrator.loader import ManifestLoader
from compose_deploy.orchestrator.reconciler import ReconcilePlan, ReconciliationController
from compose_deploy.state.manager import DeploymentStateStore
from compose_deploy.state.models import DeploymentRecord, format_timestamp
from compose_deploy.utils.errors import ErrorContext, StateError, StateNotFoundError
from compose_deploy.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


@dataclass
class RollbackResult:
    """Result of a rollback."""

    tag: str
    deployed_at: datetime
    project_name: str
    dry_run: bool = False
    missing_services: List[str] = field(default_factory=list)
    plan: Optional[ReconcilePlan] = None
    record: Optional[DeploymentRecord] = None  # Re-saved record, if any
    state_warning: Optional[str] = None

    @property
    def saved(self) -> bool:
        return self.record is not None


class RollbackController:
    """Redeploys the stack at the tag of the last recorded deployment."""

    def __init__(
        self,
        loader: ManifestLoader,
        state_store: DeploymentStateStore,
        reconciler: ReconciliationController,
        profile: Optional[ReconcileProfile] = None,
    ):
        """Initialize rollback controller.

        Args:
            loader: Manifest loader
            state_store: Deployment state store
            reconciler: Reconciliation controller
            profile: Reconcile profile for the redeploy (defaults to prod)
        """
        self.loader = loader
        self.state_store = state_store
        self.reconciler = reconciler
        self.profile = profile or ReconcileProfile.prod()
        self.logger = get_logger(__name__)

    def rollback(self, context: ProjectContext, dry_run: bool = False) -> RollbackResult:
        """Roll the stack back to the recorded tag.

        Args:
            context: Stack descriptor
            dry_run: Only report what would be done

        Returns:
            RollbackResult

        Raises:
            StateNotFoundError: If no deployment has been recorded
            StateError: If the record cannot be read
            BackendError: If loading or reconciling fails
        """
        try:
            record = self.state_store.load(context)
        except StateNotFoundError as e:
            raise StateNotFoundError(
                f"No deployment state found for project '{context.name}'; nothing to roll back to",
                context=ErrorContext(stack=context.name or None, operation="rollback"),
                cause=e,
                suggestions=[
                    "Deploy at least once with: compose-deploy prod deploy --tag <tag>",
                    f"Check that {self.state_store.state_path(context)} exists",
                ],
            ) from e

        with LogContext(self.logger, stack=record.project_name, operation="rollback"):
            self.logger.info(
                f"Rolling back to tag: {record.last_tag} "
                f"(deployed at: {format_timestamp(record.deployed_at)})"
            )

            if record.project_name != context.name:
                self.logger.warning(
                    f"Project name mismatch: state has '{record.project_name}', "
                    f"current is '{context.name}'"
                )

            rollback_context = context.with_variables(**{IMAGE_TAG_VARIABLE: record.last_tag})
            stack = self.loader.load(rollback_context)

            missing = [name for name in record.services if not stack.has_service(name)]
            for name in missing:
                self.logger.warning(
                    f"Service '{name}' from previous deployment not found in current compose file"
                )

            plan = self.reconciler.up(stack, self.profile.to_up_options(dry_run=dry_run))

            result = RollbackResult(
                tag=record.last_tag,
                deployed_at=record.deployed_at,
                project_name=stack.name,
                dry_run=dry_run,
                missing_services=missing,
                plan=plan,
            )

            if not dry_run:
                try:
                    result.record = self.state_store.save(rollback_context, stack, record.last_tag)
                except StateError as e:
                    result.state_warning = f"Failed to update deployment state: {e.message}"
                    self.logger.warning(result.state_warning)

                self.logger.info(
                    f"Successfully rolled back project '{stack.name}' to tag '{record.last_tag}'"
                )

        return result
