"""Prometheus metrics for graph retrieval and CRD requests."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

graph_retrievals_total = Counter(
    "kubegraph_graph_retrievals_total",
    "Graph retrievals by outcome (primary, fallback, placeholder, error).",
    ["outcome"],
)

crd_requests_total = Counter(
    "kubegraph_crd_relationship_requests_total",
    "CRD relationship requests by outcome (primary, fallback, placeholder, error).",
    ["outcome"],
)

crd_analysis_requests_total = Counter(
    "kubegraph_crd_analysis_requests_total",
    "Enhanced CRD analysis requests by outcome (primary, fallback, placeholder, error).",
    ["outcome"],
)

graph_retrieval_duration_seconds = Histogram(
    "kubegraph_graph_retrieval_duration_seconds",
    "Wall-clock time of a graph retrieval including fallback attempts.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

skipped_resource_ids_total = Counter(
    "kubegraph_skipped_resource_ids_total",
    "Resource ids skipped because they did not decode.",
)

stale_responses_total = Counter(
    "kubegraph_stale_responses_total",
    "Graph responses discarded because a newer request superseded them.",
)
