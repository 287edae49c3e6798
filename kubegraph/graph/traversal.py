"""Connected sub-graph extraction.

Breadth-first search from one resource, following every edge in both
directions: "what touches this resource" must see dependents as well as
dependencies. Each node is enqueued at most once, so cycles in ownership
or selector graphs terminate.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any

import structlog

from kubegraph.errors import InvalidFilter
from kubegraph.graph.ids import decode_resource_id
from kubegraph.graph.models import DependencyGraph, GraphEdge, GraphNode

_log = structlog.get_logger(component="graph.traversal")

DEFAULT_MAX_DEPTH = 2


@dataclass(frozen=True)
class SubgraphResult:
    """Result of a bounded traversal around ``start_id``."""

    start_id: str
    graph: DependencyGraph
    depth_reached: int = 0
    truncated: bool = False  # True if max_depth hit before exhausting the component

    @property
    def nodes(self) -> tuple[GraphNode, ...]:
        return self.graph.nodes

    @property
    def edges(self) -> tuple[GraphEdge, ...]:
        return self.graph.edges

    def to_dict(self) -> dict[str, Any]:
        return {
            "startId": self.start_id,
            "depthReached": self.depth_reached,
            "truncated": self.truncated,
            **self.graph.to_dict(),
        }


def build_adjacency(graph: DependencyGraph) -> dict[str, list[str]]:
    """Undirected adjacency lists in edge-list order."""
    adjacency: dict[str, list[str]] = {}
    for edge in graph.edges:
        adjacency.setdefault(edge.source, []).append(edge.target)
        adjacency.setdefault(edge.target, []).append(edge.source)
    return adjacency


def extract_connected_subgraph(
    graph: DependencyGraph,
    start_id: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> SubgraphResult:
    """Return every node within *max_depth* hops of *start_id* and the edges among them.

    Nodes at exactly *max_depth* are included but not expanded. An edge is
    kept whenever both of its endpoints were visited, so edges between two
    boundary nodes are kept while edges leaving the visited set are not.
    Output order follows the source graph's node and edge order.

    Raises:
        InvalidFilter: if *max_depth* is negative.
        CodecError: if *start_id* is not a valid resource id.
    """
    if max_depth < 0:
        raise InvalidFilter(f"max_depth must be >= 0, got {max_depth}")
    decode_resource_id(start_id)

    if not graph.has_node(start_id):
        _log.debug("subgraph_start_not_found", start_id=start_id)
        return SubgraphResult(start_id=start_id, graph=graph.derive((), ()))

    adjacency = build_adjacency(graph)
    depth_of: dict[str, int] = {start_id: 0}
    frontier: deque[tuple[str, int]] = deque([(start_id, 0)])

    while frontier:
        current, depth = frontier.popleft()
        if depth >= max_depth:
            continue
        for neighbour in adjacency.get(current, ()):
            if neighbour in depth_of:
                continue
            depth_of[neighbour] = depth + 1
            frontier.append((neighbour, depth + 1))

    truncated = any(
        neighbour not in depth_of
        for node_id, depth in depth_of.items()
        if depth == max_depth
        for neighbour in adjacency.get(node_id, ())
    )

    nodes = [node for node in graph.nodes if node.id in depth_of]
    edges = [edge for edge in graph.edges if edge.source in depth_of and edge.target in depth_of]
    return SubgraphResult(
        start_id=start_id,
        graph=graph.derive(nodes, edges),
        depth_reached=max(depth_of.values()),
        truncated=truncated,
    )
