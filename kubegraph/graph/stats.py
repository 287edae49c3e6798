"""Graph statistics: totals, first-seen ordered sets and group-by counts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from kubegraph.graph.models import DependencyGraph, DependencyStrength


@dataclass
class GraphStatistics:
    """Summary of one snapshot.

    Invariants: ``sum(nodes_by_type.values()) == total_nodes``,
    ``sum(edges_by_type.values()) == total_edges`` and
    ``strong_dependencies + weak_dependencies == total_edges``.
    """

    total_nodes: int = 0
    total_edges: int = 0
    resource_types: list[str] = field(default_factory=list)
    dependency_types: list[str] = field(default_factory=list)
    namespaces: list[str] = field(default_factory=list)
    strong_dependencies: int = 0
    weak_dependencies: int = 0
    nodes_by_type: dict[str, int] = field(default_factory=dict)
    edges_by_type: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalNodes": self.total_nodes,
            "totalEdges": self.total_edges,
            "resourceTypes": list(self.resource_types),
            "dependencyTypes": list(self.dependency_types),
            "namespaces": list(self.namespaces),
            "strongDependencies": self.strong_dependencies,
            "weakDependencies": self.weak_dependencies,
            "nodesByType": dict(self.nodes_by_type),
            "edgesByType": dict(self.edges_by_type),
        }


def summarize(graph: DependencyGraph | None) -> GraphStatistics:
    """Aggregate counts over *graph*. ``None`` or empty collections give all zeros."""
    stats = GraphStatistics()
    if graph is None:
        return stats
    nodes = getattr(graph, "nodes", None) or ()
    edges = getattr(graph, "edges", None) or ()

    # dicts keep first-seen order, so the keys double as the ordered sets
    namespaces: dict[str, None] = {}
    for node in nodes:
        stats.nodes_by_type[node.kind] = stats.nodes_by_type.get(node.kind, 0) + 1
        if node.namespace:
            namespaces.setdefault(node.namespace, None)

    for edge in edges:
        key = edge.type.value
        stats.edges_by_type[key] = stats.edges_by_type.get(key, 0) + 1
        if edge.strength == DependencyStrength.STRONG:
            stats.strong_dependencies += 1
        else:
            stats.weak_dependencies += 1

    stats.total_nodes = len(nodes)
    stats.total_edges = len(edges)
    stats.resource_types = list(stats.nodes_by_type)
    stats.dependency_types = list(stats.edges_by_type)
    stats.namespaces = list(namespaces)
    return stats
