"""Graph filters.

GraphFilter      -- what to ask the collaborator for (one round trip).
SecondaryFilter  -- caller-local narrowing applied to a fetched snapshot.

Every function here returns a new snapshot and re-establishes the
dangling-edge invariant: an edge survives only if both endpoints do.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from kubegraph.errors import InvalidFilter
from kubegraph.graph.models import DependencyGraph, DependencyType, GraphEdge, GraphNode


@dataclass(frozen=True)
class GraphFilter:
    """Collaborator-side filter plus client-side type allow-lists."""

    namespace: str | None = None
    include_custom_resources: bool | None = None
    resource_types: tuple[str, ...] = ()
    dependency_types: tuple[DependencyType, ...] = ()
    max_nodes: int | None = None

    @classmethod
    def build(
        cls,
        namespace: str | None = None,
        include_custom_resources: bool | None = None,
        resource_types: Iterable[str] | None = None,
        dependency_types: Iterable[str] | None = None,
        max_nodes: int | None = None,
    ) -> GraphFilter:
        """Validate raw caller input.

        Raises:
            InvalidFilter: unknown dependency type or non-positive max_nodes.
        """
        if max_nodes is not None and max_nodes < 1:
            raise InvalidFilter(f"max_nodes must be a positive integer, got {max_nodes}")
        return cls(
            namespace=namespace or None,
            include_custom_resources=include_custom_resources,
            resource_types=tuple(t for t in (resource_types or ()) if t),
            dependency_types=parse_dependency_types(dependency_types),
            max_nodes=max_nodes,
        )

    def with_max_nodes(self, max_nodes: int) -> GraphFilter:
        return GraphFilter(
            namespace=self.namespace,
            include_custom_resources=self.include_custom_resources,
            resource_types=self.resource_types,
            dependency_types=self.dependency_types,
            max_nodes=max_nodes,
        )

    def to_query_params(self) -> dict[str, str]:
        """Query parameters understood by the graph-construction collaborator."""
        params: dict[str, str] = {}
        if self.namespace:
            params["namespace"] = self.namespace
        if self.include_custom_resources is not None:
            params["includeCustom"] = str(self.include_custom_resources).lower()
        if self.max_nodes:
            params["maxNodes"] = str(self.max_nodes)
        return params


@dataclass(frozen=True)
class SecondaryFilter:
    """Filters applied locally, without a new round trip."""

    search: str = ""
    resource_types: tuple[str, ...] = ()
    dependency_types: tuple[DependencyType, ...] = ()
    strong_only: bool = False

    @classmethod
    def build(
        cls,
        search: str | None = None,
        resource_types: Iterable[str] | None = None,
        dependency_types: Iterable[str] | None = None,
        strong_only: bool = False,
    ) -> SecondaryFilter:
        return cls(
            search=(search or "").strip(),
            resource_types=tuple(t for t in (resource_types or ()) if t),
            dependency_types=parse_dependency_types(dependency_types),
            strong_only=strong_only,
        )

    @property
    def is_empty(self) -> bool:
        return not (self.search or self.resource_types or self.dependency_types or self.strong_only)


def parse_dependency_types(values: Iterable[str] | None) -> tuple[DependencyType, ...]:
    """Convert raw strings to DependencyType, rejecting unknown values."""
    parsed: list[DependencyType] = []
    for value in values or ():
        if not value:
            continue
        try:
            parsed.append(DependencyType(value))
        except ValueError:
            allowed = ", ".join(t.value for t in DependencyType)
            raise InvalidFilter(f"unknown dependency type {value!r}; expected one of: {allowed}") from None
    return tuple(parsed)


# ---------------------------------------------------------------------------
# Pure filter functions
# ---------------------------------------------------------------------------


def filter_nodes_by_type(nodes: Sequence[GraphNode], types: Sequence[str]) -> list[GraphNode]:
    """Keep nodes whose kind is in *types*. An empty list keeps everything."""
    if not types:
        return list(nodes)
    allowed = set(types)
    return [node for node in nodes if node.kind in allowed]


def filter_edges_by_type(edges: Sequence[GraphEdge], types: Sequence[DependencyType]) -> list[GraphEdge]:
    """Keep edges whose type is in *types*. An empty list keeps everything."""
    if not types:
        return list(edges)
    allowed = set(types)
    return [edge for edge in edges if edge.type in allowed]


def drop_dangling_edges(edges: Iterable[GraphEdge], node_ids: set[str]) -> list[GraphEdge]:
    return [edge for edge in edges if edge.source in node_ids and edge.target in node_ids]


def matches_search(node: GraphNode, term: str) -> bool:
    """Case-insensitive substring match over name, kind and namespace."""
    needle = term.lower()
    return (
        needle in node.name.lower()
        or needle in node.kind.lower()
        or (node.namespace is not None and needle in node.namespace.lower())
    )


def filter_by_resource_types(graph: DependencyGraph, types: Sequence[str]) -> DependencyGraph:
    if not types:
        return graph
    nodes = filter_nodes_by_type(graph.nodes, types)
    return graph.derive(nodes, drop_dangling_edges(graph.edges, {n.id for n in nodes}))


def filter_by_dependency_types(graph: DependencyGraph, types: Sequence[DependencyType]) -> DependencyGraph:
    if not types:
        return graph
    return graph.derive(graph.nodes, filter_edges_by_type(graph.edges, types))


def apply_secondary_filters(graph: DependencyGraph, secondary: SecondaryFilter | None) -> DependencyGraph:
    """Apply search, type allow-lists and the strong-only toggle in one pass."""
    if secondary is None or secondary.is_empty:
        return graph

    nodes: list[GraphNode] = list(graph.nodes)
    if secondary.search:
        nodes = [node for node in nodes if matches_search(node, secondary.search)]
    nodes = filter_nodes_by_type(nodes, secondary.resource_types)

    edges = drop_dangling_edges(graph.edges, {node.id for node in nodes})
    edges = filter_edges_by_type(edges, secondary.dependency_types)
    if secondary.strong_only:
        edges = [edge for edge in edges if edge.is_strong]
    return graph.derive(nodes, edges)

