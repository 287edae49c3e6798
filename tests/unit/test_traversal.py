"""Tests for bounded sub-graph extraction."""

from __future__ import annotations

import pytest
from factories import build_graph, edge_payload, node_payload
from hypothesis import given, settings
from hypothesis import strategies as st

from kubegraph.errors import CodecError, InvalidFilter
from kubegraph.graph.models import DependencyGraph
from kubegraph.graph.traversal import build_adjacency, extract_connected_subgraph

POD = "Pod/web-5d8f7c-x2kj9@default"
RS = "ReplicaSet/web-5d8f7c@default"
DEPLOY = "Deployment/web@default"


def _chain(length: int) -> DependencyGraph:
    nodes = [node_payload("Pod", f"p{i}") for i in range(length)]
    edges = [edge_payload(nodes[i], nodes[i + 1]) for i in range(length - 1)]
    return build_graph(nodes, edges)


@st.composite
def random_graphs(draw: st.DrawFn) -> DependencyGraph:
    size = draw(st.integers(min_value=1, max_value=12))
    nodes = [node_payload("Pod", f"n{i}") for i in range(size)]
    pairs = draw(
        st.lists(
            st.tuples(st.integers(0, size - 1), st.integers(0, size - 1)),
            max_size=30,
            unique=True,
        )
    )
    edges = [edge_payload(nodes[s], nodes[t], edge_id=f"e{i}") for i, (s, t) in enumerate(pairs)]
    return build_graph(nodes, edges)


class TestExtraction:
    def test_ownership_chain_depth_two(self, ownership_chain: DependencyGraph) -> None:
        result = extract_connected_subgraph(ownership_chain, POD, 2)
        assert {n.id for n in result.nodes} == {POD, RS, DEPLOY}
        assert len(result.edges) == 2
        assert result.depth_reached == 2
        assert not result.truncated

    def test_follows_edges_in_both_directions(self, ownership_chain: DependencyGraph) -> None:
        result = extract_connected_subgraph(ownership_chain, DEPLOY, 1)
        assert {n.id for n in result.nodes} == {DEPLOY, RS}

    def test_depth_zero_returns_only_start(self, ownership_chain: DependencyGraph) -> None:
        result = extract_connected_subgraph(ownership_chain, RS, 0)
        assert [n.id for n in result.nodes] == [RS]
        assert result.edges == ()
        assert result.truncated

    def test_depth_zero_keeps_self_loop(self) -> None:
        a = node_payload("Pod", "a")
        b = node_payload("Pod", "b")
        graph = build_graph([a, b], [edge_payload(a, a, "network", "weak"), edge_payload(a, b, "network", "weak")])
        result = extract_connected_subgraph(graph, a["id"], 0)
        assert [n.id for n in result.nodes] == [a["id"]]
        assert [(e.source, e.target) for e in result.edges] == [(a["id"], a["id"])]

    def test_boundary_edges_between_visited_nodes_are_kept(self) -> None:
        # triangle: both neighbours of the start sit on the boundary at depth 1
        a, b, c = (node_payload("Pod", name) for name in "abc")
        graph = build_graph(
            [a, b, c],
            [edge_payload(a, b), edge_payload(a, c), edge_payload(b, c, "network", "weak")],
        )
        result = extract_connected_subgraph(graph, a["id"], 1)
        assert len(result.edges) == 3

    def test_edges_leaving_visited_set_are_dropped(self) -> None:
        graph = _chain(5)
        result = extract_connected_subgraph(graph, "Pod/p0@default", 2)
        assert [n.name for n in result.nodes] == ["p0", "p1", "p2"]
        assert len(result.edges) == 2
        assert result.truncated

    def test_cycles_terminate(self) -> None:
        a, b, c = (node_payload("Pod", name) for name in "abc")
        graph = build_graph([a, b, c], [edge_payload(a, b), edge_payload(b, c), edge_payload(c, a)])
        result = extract_connected_subgraph(graph, a["id"], 10)
        assert len(result.nodes) == 3
        assert len(result.edges) == 3
        assert result.depth_reached == 1

    def test_unrelated_nodes_are_not_reached(self, ownership_chain: DependencyGraph) -> None:
        result = extract_connected_subgraph(ownership_chain, POD, 10)
        assert "ConfigMap/unrelated@default" not in {n.id for n in result.nodes}

    def test_output_follows_source_order(self, mixed_graph: DependencyGraph) -> None:
        result = extract_connected_subgraph(mixed_graph, "ConfigMap/api-config@default", 3)
        source_order = [n.id for n in mixed_graph.nodes if n.id in {m.id for m in result.nodes}]
        assert [n.id for n in result.nodes] == source_order

    def test_result_to_dict(self, ownership_chain: DependencyGraph) -> None:
        out = extract_connected_subgraph(ownership_chain, POD, 1).to_dict()
        assert out["startId"] == POD
        assert out["depthReached"] == 1
        assert out["metadata"]["nodeCount"] == 2


class TestEdgeCases:
    def test_unknown_start_returns_empty(self, ownership_chain: DependencyGraph) -> None:
        result = extract_connected_subgraph(ownership_chain, "Pod/missing@default", 2)
        assert result.nodes == ()
        assert result.edges == ()
        assert not result.truncated

    def test_negative_depth_is_invalid(self, ownership_chain: DependencyGraph) -> None:
        with pytest.raises(InvalidFilter):
            extract_connected_subgraph(ownership_chain, POD, -1)

    def test_malformed_start_id(self, ownership_chain: DependencyGraph) -> None:
        with pytest.raises(CodecError):
            extract_connected_subgraph(ownership_chain, "not-an-id", 2)

    def test_empty_graph(self) -> None:
        result = extract_connected_subgraph(DependencyGraph.empty(), "Pod/a@default", 2)
        assert result.nodes == ()

    def test_adjacency_is_undirected(self, ownership_chain: DependencyGraph) -> None:
        adjacency = build_adjacency(ownership_chain)
        assert adjacency[RS] == [POD, DEPLOY]
        assert "ConfigMap/unrelated@default" not in adjacency


class TestProperties:
    @settings(max_examples=75)
    @given(graph=random_graphs(), depth=st.integers(0, 6))
    def test_depth_is_monotonic(self, graph: DependencyGraph, depth: int) -> None:
        start = graph.nodes[0].id
        shallow = {n.id for n in extract_connected_subgraph(graph, start, depth).nodes}
        deep = {n.id for n in extract_connected_subgraph(graph, start, depth + 1).nodes}
        assert shallow <= deep

    @settings(max_examples=75)
    @given(graph=random_graphs(), depth=st.integers(0, 6))
    def test_result_is_a_valid_subgraph(self, graph: DependencyGraph, depth: int) -> None:
        start = graph.nodes[0].id
        result = extract_connected_subgraph(graph, start, depth)
        ids = {n.id for n in result.nodes}
        assert start in ids
        assert ids <= graph.node_ids
        for edge in result.edges:
            assert edge.source in ids and edge.target in ids
        assert result.depth_reached <= depth
