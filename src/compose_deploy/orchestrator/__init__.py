"""Orchestrator module for loading, reconciling and rolling back stacks."""

from compose_deploy.orchestrator.loader import (
    BuildSpec,
    ServiceSpec,
    LoadedStack,
    ManifestLoader,
    project_service,
)
from compose_deploy.orchestrator.dependency_graph import DependencyGraph, DependencyNode
from compose_deploy.orchestrator.reconciler import (
    PlannedService,
    ReconcilePlan,
    ReconciliationController,
    DRY_RUN_MARKER,
)
from compose_deploy.orchestrator.health import HealthWaiter, jitter_delay
from compose_deploy.orchestrator.rollback import RollbackController, RollbackResult
from compose_deploy.orchestrator.orchestrator import (
    DeploymentOrchestrator,
    DeployResult,
    StackStatus,
)

__all__ = [
    # Loading
    'BuildSpec',
    'ServiceSpec',
    'LoadedStack',
    'ManifestLoader',
    'project_service',

    # Dependency graph
    'DependencyGraph',
    'DependencyNode',

    # Reconciliation
    'PlannedService',
    'ReconcilePlan',
    'ReconciliationController',
    'DRY_RUN_MARKER',

    # Health
    'HealthWaiter',
    'jitter_delay',

    # Rollback
    'RollbackController',
    'RollbackResult',

    # Main orchestrator
    'DeploymentOrchestrator',
    'DeployResult',
    'StackStatus',
]
