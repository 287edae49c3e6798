"""Shared fixtures for kubegraph tests."""

from __future__ import annotations

from typing import Any

import pytest
from factories import build_graph, edge_payload, graph_payload, node_payload

from kubegraph.graph.models import DependencyGraph
from kubegraph.retrieval.policy import DegradationPolicy


@pytest.fixture
def ownership_chain_payload() -> dict[str, Any]:
    """Pod --owner--> ReplicaSet --owner--> Deployment, plus an unrelated ConfigMap."""
    pod = node_payload("Pod", "web-5d8f7c-x2kj9")
    rs = node_payload("ReplicaSet", "web-5d8f7c")
    deploy = node_payload("Deployment", "web")
    cm = node_payload("ConfigMap", "unrelated")
    return graph_payload(
        [pod, rs, deploy, cm],
        [
            edge_payload(pod, rs, field="metadata.ownerReferences", controller=True),
            edge_payload(rs, deploy, field="metadata.ownerReferences", controller=True),
        ],
    )


@pytest.fixture
def ownership_chain(ownership_chain_payload: dict[str, Any]) -> DependencyGraph:
    return DependencyGraph.from_dict(ownership_chain_payload)


@pytest.fixture
def mixed_graph() -> DependencyGraph:
    """Two pods behind a service, one pod mounting a config map, plus a cluster-scoped node."""
    pod_a = node_payload("Pod", "api-a", labels={"app": "api"})
    pod_b = node_payload("Pod", "api-b", labels={"app": "api"})
    svc = node_payload("Service", "api", namespace="prod")
    cm = node_payload("ConfigMap", "api-config")
    node = node_payload("Node", "worker-1", namespace=None)
    return build_graph(
        [pod_a, pod_b, svc, cm, node],
        [
            edge_payload(svc, pod_a, "service", "weak", selector={"app": "api"}),
            edge_payload(svc, pod_b, "service", "weak", selector={"app": "api"}),
            edge_payload(pod_a, cm, "volume", "strong", field="spec.volumes"),
        ],
    )


@pytest.fixture
def fast_policy() -> DegradationPolicy:
    """Short timeouts so timeout paths run quickly."""
    return DegradationPolicy(primary_timeout=0.2, fallback_timeout=0.1, fallback_limit=25)
