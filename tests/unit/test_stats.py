"""Tests for graph statistics."""

from __future__ import annotations

from factories import build_graph, edge_payload, node_payload
from hypothesis import given
from hypothesis import strategies as st

from kubegraph.graph.models import DependencyGraph
from kubegraph.graph.stats import GraphStatistics, summarize

_kinds = st.sampled_from(["Pod", "Service", "ConfigMap", "Node", "Secret"])
_types = st.sampled_from(["owner", "selector", "volume", "serviceAccount", "network", "custom", "service"])


@st.composite
def graphs(draw: st.DrawFn) -> DependencyGraph:
    kinds = draw(st.lists(_kinds, max_size=15))
    nodes = [node_payload(kind, f"r{i}", namespace=draw(st.sampled_from(["a", "b", None]))) for i, kind in enumerate(kinds)]
    edges = []
    if nodes:
        count = draw(st.integers(0, 20))
        for i in range(count):
            s = draw(st.integers(0, len(nodes) - 1))
            t = draw(st.integers(0, len(nodes) - 1))
            edges.append(
                edge_payload(nodes[s], nodes[t], draw(_types), draw(st.sampled_from(["strong", "weak"])), edge_id=f"e{i}")
            )
    return build_graph(nodes, edges)


class TestSummarize:
    def test_mixed_graph(self, mixed_graph: DependencyGraph) -> None:
        stats = summarize(mixed_graph)
        assert stats.total_nodes == 5
        assert stats.total_edges == 3
        assert stats.resource_types == ["Pod", "Service", "ConfigMap", "Node"]
        assert stats.dependency_types == ["service", "volume"]
        assert stats.namespaces == ["default", "prod"]
        assert stats.strong_dependencies == 1
        assert stats.weak_dependencies == 2

    def test_pods_service_node_counts(self) -> None:
        pod_a = node_payload("Pod", "a")
        pod_b = node_payload("Pod", "b")
        svc = node_payload("Service", "s")
        node = node_payload("Node", "n1", namespace=None)
        graph = build_graph(
            [pod_a, pod_b, svc, node],
            [
                edge_payload(svc, pod_a, "service", "weak"),
                edge_payload(svc, pod_b, "service", "weak"),
                edge_payload(pod_a, node, "owner", "strong"),
            ],
        )
        stats = summarize(graph)
        assert stats.total_nodes == 4
        assert stats.total_edges == 3
        assert stats.strong_dependencies == 1
        assert stats.weak_dependencies == 2
        assert stats.nodes_by_type == {"Pod": 2, "Service": 1, "Node": 1}
        assert stats.edges_by_type == {"service": 2, "owner": 1}

    def test_none_gives_zeros(self) -> None:
        assert summarize(None) == GraphStatistics()

    def test_empty_graph_gives_zeros(self) -> None:
        stats = summarize(DependencyGraph.empty())
        assert stats.total_nodes == 0
        assert stats.resource_types == []
        assert stats.nodes_by_type == {}

    def test_to_dict_uses_wire_names(self, mixed_graph: DependencyGraph) -> None:
        out = summarize(mixed_graph).to_dict()
        assert out["totalNodes"] == 5
        assert out["edgesByType"] == {"service": 2, "volume": 1}
        assert set(out) == {
            "totalNodes",
            "totalEdges",
            "resourceTypes",
            "dependencyTypes",
            "namespaces",
            "strongDependencies",
            "weakDependencies",
            "nodesByType",
            "edgesByType",
        }


class TestInvariants:
    @given(graph=graphs())
    def test_counts_are_consistent(self, graph: DependencyGraph) -> None:
        stats = summarize(graph)
        assert sum(stats.nodes_by_type.values()) == stats.total_nodes
        assert sum(stats.edges_by_type.values()) == stats.total_edges
        assert stats.strong_dependencies + stats.weak_dependencies == stats.total_edges
        assert len(set(stats.resource_types)) == len(stats.resource_types)
        assert len(set(stats.namespaces)) == len(stats.namespaces)
