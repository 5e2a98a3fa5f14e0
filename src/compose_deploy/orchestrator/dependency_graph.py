"""Dependency graph of services for ordering reconciliation plans."""

from typing import Dict, List, Set, Optional
from dataclasses import dataclass
from collections import defaultdict, deque

from compose_deploy.orchestrator.loader import ServiceSpec
from compose_deploy.utils.errors import DependencyError, ErrorContext


@dataclass
class DependencyNode:
    """Node in the dependency graph."""

    service: str
    dependencies: Set[str]  # Services this node depends on


class DependencyGraph:
    """Directed graph of service dependencies."""

    def __init__(self):
        """Initialize empty dependency graph."""
        self.nodes: Dict[str, DependencyNode] = {}
        self._adjacency_list: Dict[str, Set[str]] = defaultdict(set)

    @classmethod
    def from_services(cls, services: Dict[str, ServiceSpec]) -> "DependencyGraph":
        graph = cls()
        for spec in services.values():
            graph.add_service(spec)
        return graph

    def add_service(self, spec: ServiceSpec) -> None:
        """Add a service and its dependency edges.

        Args:
            spec: Service to add to the graph
        """
        dependencies = set(spec.depends_on)
        self.nodes[spec.name] = DependencyNode(service=spec.name, dependencies=dependencies)
        for dep in dependencies:
            self._adjacency_list[dep].add(spec.name)

    def detect_circular_dependencies(self) -> Optional[List[str]]:
        """Detect circular dependencies in the graph.

        Returns:
            List of services forming a cycle, or None if no cycle exists
        """
        # White (0): unvisited, Gray (1): visiting, Black (2): visited
        color = {name: 0 for name in self.nodes}
        path: List[str] = []

        def dfs(name: str) -> Optional[List[str]]:
            color[name] = 1
            path.append(name)

            for dep in sorted(self.nodes[name].dependencies):
                if dep not in self.nodes:
                    continue
                if color[dep] == 1:
                    return path[path.index(dep):] + [dep]
                if color[dep] == 0:
                    cycle = dfs(dep)
                    if cycle:
                        return cycle

            path.pop()
            color[name] = 2
            return None

        for name in sorted(self.nodes):
            if color[name] == 0:
                cycle = dfs(name)
                if cycle:
                    return cycle

        return None

    def validate(self) -> None:
        """Validate the dependency graph.

        Raises:
            DependencyError: On circular dependencies or dependencies on undefined services
        """
        cycle = self.detect_circular_dependencies()
        if cycle:
            raise DependencyError(
                f"Circular dependency detected: {' -> '.join(cycle)}",
                context=ErrorContext(service=cycle[0]),
            )

        for name, node in self.nodes.items():
            for dep in node.dependencies:
                if dep not in self.nodes:
                    raise DependencyError(
                        f"Service '{name}' depends on '{dep}' which is not defined",
                        context=ErrorContext(service=name),
                    )

    def topological_sort(self) -> List[str]:
        """Order services so dependencies come before their dependents.

        Ties are broken by name for a stable order.

        Raises:
            DependencyError: If the graph is invalid
        """
        self.validate()

        # Kahn's algorithm
        in_degree = {name: len(node.dependencies) for name, node in self.nodes.items()}
        queue = deque(sorted(name for name, degree in in_degree.items() if degree == 0))
        result = []

        while queue:
            name = queue.popleft()
            result.append(name)

            ready = []
            for dependent in self._adjacency_list[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    ready.append(dependent)
            queue.extend(sorted(ready))

        return result
