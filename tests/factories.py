"""Builders and collaborator doubles shared by unit and integration tests.

Graph payloads are built as collaborator JSON and parsed through
``DependencyGraph.from_dict`` so test data passes the same validation real
collaborator data does.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from kubegraph.collaborators.base import CRDRelationshipSource, GraphSource
from kubegraph.crd.analysis import (
    CRDAnalysisExport,
    CRDAnalysisOptions,
    CRDAnalysisResult,
    CRDApiGroup,
    CRDExportOptions,
)
from kubegraph.crd.models import CRDRelationshipOptions, CRDRelationshipsResponse
from kubegraph.graph.filters import GraphFilter
from kubegraph.graph.ids import encode_resource_id
from kubegraph.graph.models import DependencyGraph, ResourceWithDependencies

# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


def node_payload(kind: str, name: str, namespace: str | None = "default", **extra: Any) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": encode_resource_id(kind, name, namespace),
        "kind": kind,
        "name": name,
        "labels": extra.pop("labels", {}),
        "status": extra.pop("status", {"phase": "Running"}),
    }
    if namespace is not None:
        out["namespace"] = namespace
    out.update(extra)
    return out


def edge_payload(
    source: dict[str, Any],
    target: dict[str, Any],
    dep_type: str = "owner",
    strength: str = "strong",
    reason: str = "",
    edge_id: str | None = None,
    **meta: Any,
) -> dict[str, Any]:
    return {
        "id": edge_id or f"{source['id']}-{target['id']}-{dep_type}",
        "source": source["id"],
        "target": target["id"],
        "type": dep_type,
        "strength": strength,
        "metadata": {"reason": reason or f"{source['kind']} {dep_type} {target['kind']}", **meta},
    }


def graph_payload(
    nodes: list[dict[str, Any]],
    edges: list[dict[str, Any]],
    namespace: str = "default",
) -> dict[str, Any]:
    return {
        "metadata": {
            "namespace": namespace,
            "nodeCount": len(nodes),
            "edgeCount": len(edges),
            "timestamp": "2024-01-15T10:30:00.000Z",
        },
        "nodes": nodes,
        "edges": edges,
    }


def build_graph(nodes: list[dict[str, Any]], edges: list[dict[str, Any]], namespace: str = "default") -> DependencyGraph:
    return DependencyGraph.from_dict(graph_payload(nodes, edges, namespace))


def crd_payload(degraded: bool = False) -> dict[str, Any]:
    """Two CNPG CRDs with one reference relationship."""
    meta: dict[str, Any] = {"timestamp": "2024-01-15T10:30:00Z", "analysisTimeMs": 12}
    if degraded:
        meta.update({"degraded": True, "degradedReason": "offline"})
    return {
        "metadata": meta,
        "crds": [
            {
                "id": "crd-clusters.postgresql.cnpg.io",
                "name": "clusters.postgresql.cnpg.io",
                "kind": "Cluster",
                "group": "postgresql.cnpg.io",
                "version": "v1",
                "scope": "Namespaced",
            },
            {
                "id": "crd-backups.postgresql.cnpg.io",
                "name": "backups.postgresql.cnpg.io",
                "kind": "Backup",
                "group": "postgresql.cnpg.io",
                "version": "v1",
                "scope": "Namespaced",
            },
        ],
        "relationships": [
            {
                "id": "backup-cluster",
                "source": "crd-backups.postgresql.cnpg.io",
                "target": "crd-clusters.postgresql.cnpg.io",
                "type": "reference",
                "strength": "strong",
                "metadata": {
                    "reason": "Backup references cluster via spec.cluster.name",
                    "sourceField": "spec.cluster.name",
                    "confidence": 0.9,
                },
            }
        ],
    }


def analysis_payload(namespace: str = "default") -> dict[str, Any]:
    """Enhanced CRD analysis: Backup depends on Cluster."""
    return {
        "metadata": {
            "namespace": namespace,
            "nodeCount": 2,
            "edgeCount": 1,
            "timestamp": "2024-01-15T10:30:00Z",
            "apiGroups": ["postgresql.cnpg.io"],
            "analysisTime": 40,
            "crdCount": 2,
            "dependencyCount": 1,
        },
        "nodes": [
            {"id": "clusters.postgresql.cnpg.io", "name": "clusters.postgresql.cnpg.io", "kind": "Cluster"},
            {"id": "backups.postgresql.cnpg.io", "name": "backups.postgresql.cnpg.io", "kind": "Backup"},
        ],
        "edges": [
            {
                "id": "backup-cluster-ref",
                "source": "backups.postgresql.cnpg.io",
                "target": "clusters.postgresql.cnpg.io",
                "type": "crd-reference",
                "strength": "strong",
                "metadata": {"reason": "spec.cluster.name references a Cluster"},
            }
        ],
    }


# ---------------------------------------------------------------------------
# Scripted collaborator
# ---------------------------------------------------------------------------


class ScriptedSource(GraphSource, CRDRelationshipSource):
    """Collaborator double that replays a script of results.

    Each script entry is a value to return, an exception to raise, or an
    ``async`` callable producing the value. Calls are recorded so tests can
    assert on the limits and timeouts that were requested.
    """

    def __init__(self, *script: Any, dependencies: ResourceWithDependencies | Exception | None = None) -> None:
        self.script = list(script)
        self.dependencies = dependencies
        self.graph_calls: list[tuple[GraphFilter, float]] = []
        self.crd_calls: list[tuple[CRDRelationshipOptions, float]] = []
        self.dependency_calls: list[tuple[str, str, str | None]] = []
        self.api_group_calls: list[float] = []
        self.analysis_calls: list[tuple[CRDAnalysisOptions, float]] = []
        self.export_calls: list[tuple[CRDExportOptions, float]] = []

    @property
    def source_name(self) -> str:
        return "scripted"

    async def _next(self) -> Any:
        if not self.script:
            raise AssertionError("ScriptedSource ran out of scripted results")
        entry = self.script.pop(0)
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            return await entry()
        return entry

    async def fetch_graph(self, graph_filter: GraphFilter, timeout: float) -> DependencyGraph:
        self.graph_calls.append((graph_filter, timeout))
        return await self._next()

    async def fetch_resource_dependencies(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        timeout: float,
    ) -> ResourceWithDependencies:
        self.dependency_calls.append((kind, name, namespace))
        if isinstance(self.dependencies, BaseException):
            raise self.dependencies
        assert self.dependencies is not None
        return self.dependencies

    async def fetch_crd_relationships(
        self,
        options: CRDRelationshipOptions,
        timeout: float,
    ) -> CRDRelationshipsResponse:
        self.crd_calls.append((options, timeout))
        return await self._next()

    async def fetch_api_groups(self, timeout: float) -> tuple[CRDApiGroup, ...]:
        self.api_group_calls.append(timeout)
        return await self._next()

    async def fetch_crd_analysis(self, options: CRDAnalysisOptions, timeout: float) -> CRDAnalysisResult:
        self.analysis_calls.append((options, timeout))
        return await self._next()

    async def fetch_crd_export(self, options: CRDExportOptions, timeout: float) -> CRDAnalysisExport:
        self.export_calls.append((options, timeout))
        return await self._next()


def slow(value: Any, delay: float) -> Callable[[], Any]:
    """Script entry that resolves to *value* (or raises it) after *delay* seconds."""

    async def _produce() -> Any:
        await asyncio.sleep(delay)
        if isinstance(value, BaseException):
            raise value
        return value

    return _produce
