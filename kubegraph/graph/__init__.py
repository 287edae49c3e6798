"""Resource dependency graph model and pure graph computations.

Provides the id codec, immutable snapshot types, client-side filters,
bounded breadth-first extraction and statistics. Nothing in this package
performs I/O.
"""

from kubegraph.graph.filters import GraphFilter, SecondaryFilter, apply_secondary_filters
from kubegraph.graph.ids import ResourceRef, decode_resource_id, decode_resource_ids, encode_resource_id
from kubegraph.graph.models import (
    DEGRADED_NAMESPACE,
    DependencyGraph,
    DependencyStrength,
    DependencyType,
    EdgeMetadata,
    GraphEdge,
    GraphMetadata,
    GraphNode,
    ResourceWithDependencies,
)
from kubegraph.graph.stats import GraphStatistics, summarize
from kubegraph.graph.traversal import SubgraphResult, extract_connected_subgraph

__all__ = [
    "DEGRADED_NAMESPACE",
    "DependencyGraph",
    "DependencyStrength",
    "DependencyType",
    "EdgeMetadata",
    "GraphEdge",
    "GraphFilter",
    "GraphMetadata",
    "GraphNode",
    "GraphStatistics",
    "ResourceRef",
    "ResourceWithDependencies",
    "SecondaryFilter",
    "SubgraphResult",
    "apply_secondary_filters",
    "decode_resource_id",
    "decode_resource_ids",
    "encode_resource_id",
    "extract_connected_subgraph",
    "summarize",
]
