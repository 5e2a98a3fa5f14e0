"""Tests for service dependency ordering."""

import pytest

from compose_deploy.orchestrator.dependency_graph import DependencyGraph
from compose_deploy.orchestrator.loader import ServiceSpec
from compose_deploy.utils.errors import DependencyError


def graph(**edges):
    return DependencyGraph.from_services({
        name: ServiceSpec(name=name, depends_on=deps) for name, deps in edges.items()
    })


def test_dependencies_come_first():
    order = graph(web=["api"], api=["db", "cache"], db=[], cache=[]).topological_sort()
    assert order == ["cache", "db", "api", "web"]


def test_cycle_detected():
    g = graph(a=["b"], b=["c"], c=["a"])
    cycle = g.detect_circular_dependencies()
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {"a", "b", "c"}
    with pytest.raises(DependencyError, match="Circular dependency"):
        g.topological_sort()


def test_undefined_dependency():
    with pytest.raises(DependencyError, match="'api' depends on 'db'"):
        graph(api=["db"]).validate()
