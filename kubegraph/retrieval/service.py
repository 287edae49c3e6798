"""Dependency graph retrieval with filter composition and graceful degradation.

Usage::

    service = DependencyGraphService(
        source=HTTPGraphCollaborator(base_url),
        policy=DegradationPolicy(primary_timeout=30, fallback_timeout=10, fallback_limit=25),
        degraded_source=DegradedGraphProvider(),
    )
    graph = await service.retrieve(GraphFilter.build(namespace="default"))

The collaborator applies namespace, custom-resource and node limits; resource
and dependency type allow-lists plus any secondary filter are applied here on
the snapshot that comes back.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from kubegraph.errors import MalformedResponse, TransportFailure
from kubegraph.graph.filters import (
    GraphFilter,
    SecondaryFilter,
    apply_secondary_filters,
    filter_by_dependency_types,
    filter_by_resource_types,
)
from kubegraph.graph.models import DependencyGraph, ResourceWithDependencies
from kubegraph.observability import metrics
from kubegraph.retrieval.policy import DegradationPolicy, bounded, run_with_fallback

if TYPE_CHECKING:
    from kubegraph.collaborators.base import GraphSource

_log = structlog.get_logger(component="retrieval.service")

_GRAPH_OPERATION = "get dependency graph"


class DependencyGraphService:
    """Fetches graph snapshots through a GraphSource under a DegradationPolicy.

    Args:
        source:            Primary collaborator.
        policy:            Timeouts and fallback limit.
        default_max_nodes: Node limit used when the filter sets none.
        degraded_source:   Where placeholder data comes from once both
                           attempts failed. ``None`` disables placeholders.
    """

    def __init__(
        self,
        source: GraphSource,
        policy: DegradationPolicy,
        default_max_nodes: int = 100,
        degraded_source: GraphSource | None = None,
    ) -> None:
        if default_max_nodes < 1:
            raise ValueError("default_max_nodes must be a positive integer")
        self._source = source
        self._policy = policy
        self._default_max_nodes = default_max_nodes
        self._degraded_source = degraded_source

    @property
    def policy(self) -> DegradationPolicy:
        return self._policy

    async def retrieve(
        self,
        graph_filter: GraphFilter | None = None,
        secondary: SecondaryFilter | None = None,
    ) -> DependencyGraph:
        """Return a filtered snapshot.

        Raises:
            TransportFailure: both attempts failed and no placeholder is available.
            MalformedResponse: the collaborator answered with invalid data.
        """
        graph_filter = graph_filter or GraphFilter()
        primary_filter = graph_filter.with_max_nodes(graph_filter.max_nodes or self._default_max_nodes)
        primary_limit = primary_filter.max_nodes or self._default_max_nodes
        fallback_limit = self._policy.fallback_limit_for(primary_limit)

        async def primary() -> DependencyGraph:
            return await self._source.fetch_graph(primary_filter, self._policy.primary_timeout)

        async def fallback() -> DependencyGraph:
            assert fallback_limit is not None
            reduced = primary_filter.with_max_nodes(fallback_limit)
            _log.info(
                "graph_retrieval_fallback",
                source=self._source.source_name,
                max_nodes=fallback_limit,
                timeout=self._policy.fallback_timeout,
            )
            return await self._source.fetch_graph(reduced, self._policy.fallback_timeout)

        async def placeholder(reason: str) -> DependencyGraph:
            assert self._degraded_source is not None
            graph = await self._degraded_source.fetch_graph(
                primary_filter.with_max_nodes(fallback_limit or primary_limit),
                self._policy.fallback_timeout,
            )
            return graph.as_degraded(reason)

        started = time.monotonic()
        try:
            outcome = await run_with_fallback(
                _GRAPH_OPERATION,
                self._policy,
                primary,
                fallback if fallback_limit is not None else None,
                placeholder if self._degraded_source is not None else None,
            )
        except (TransportFailure, MalformedResponse) as exc:
            metrics.graph_retrievals_total.labels(outcome="error").inc()
            _log.error("graph_retrieval_failed", source=self._source.source_name, error=str(exc))
            raise
        finally:
            metrics.graph_retrieval_duration_seconds.observe(time.monotonic() - started)

        metrics.graph_retrievals_total.labels(outcome=outcome.stage.value).inc()
        graph = outcome.value
        if graph.metadata.skipped_ids:
            metrics.skipped_resource_ids_total.inc(graph.metadata.skipped_ids)
            _log.warning("resource_ids_skipped", count=graph.metadata.skipped_ids)

        graph = filter_by_resource_types(graph, graph_filter.resource_types)
        graph = filter_by_dependency_types(graph, graph_filter.dependency_types)
        graph = apply_secondary_filters(graph, secondary)

        _log.info(
            "graph_retrieved",
            stage=outcome.stage.value,
            nodes=graph.metadata.node_count,
            edges=graph.metadata.edge_count,
            degraded=graph.is_degraded,
        )
        return graph

    async def get_resource_dependencies(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
    ) -> ResourceWithDependencies:
        """Outgoing, incoming and related dependencies of one resource.

        There is no fallback here; failures carry the resource in the message.
        """
        label = f"{kind}/{name}"

        async def call() -> ResourceWithDependencies:
            return await self._source.fetch_resource_dependencies(
                kind, name, namespace, self._policy.primary_timeout
            )

        try:
            return await bounded(call, self._policy.primary_timeout, f"get dependencies for {label}")
        except TransportFailure as exc:
            _log.warning("resource_dependencies_failed", resource=label, namespace=namespace, error=str(exc))
            raise TransportFailure(f"Failed to get dependencies for {label}: {exc}") from exc
        except MalformedResponse as exc:
            raise MalformedResponse(f"Failed to get dependencies for {label}: {exc}") from exc
