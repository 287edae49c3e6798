"""Degraded provider: placeholder data for when collaborators are unreachable.

It implements the same interfaces as the HTTP collaborator so callers can
select it explicitly (tests, offline demos) instead of having it kick in
silently. Everything it returns is tagged: graph metadata carries
``namespace == DEGRADED_NAMESPACE`` and ``degraded=True``; CRD metadata
carries ``degraded=True``; CRD analysis metadata carries both. Untaggable
data (API group listings, exports) is never served from here. Automated
consumers must check ``is_degraded``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from kubegraph.collaborators.base import CRDRelationshipSource, GraphSource
from kubegraph.crd.analysis import CRDAnalysisExport, CRDAnalysisOptions, CRDAnalysisResult, CRDApiGroup, CRDExportOptions
from kubegraph.crd.models import CRDRelationshipOptions, CRDRelationshipsResponse
from kubegraph.errors import TransportFailure
from kubegraph.graph.filters import GraphFilter, drop_dangling_edges
from kubegraph.graph.ids import encode_resource_id
from kubegraph.graph.models import (
    DEGRADED_NAMESPACE,
    DependencyGraph,
    ResourceDependencies,
    ResourceInfo,
    ResourceWithDependencies,
)

_PLACEHOLDER_LABEL = "kubegraph.io/placeholder"


def _node(kind: str, name: str) -> dict[str, Any]:
    return {
        "id": encode_resource_id(kind, name, DEGRADED_NAMESPACE),
        "kind": kind,
        "name": name,
        "namespace": DEGRADED_NAMESPACE,
        "labels": {"app": "sample-app", _PLACEHOLDER_LABEL: "true"},
        "status": {"phase": "Unknown"},
    }


def _edge(source: dict[str, Any], target: dict[str, Any], dep_type: str, strength: str, reason: str, **meta: Any) -> dict[str, Any]:
    return {
        "id": f"{source['id']}-{target['id']}",
        "source": source["id"],
        "target": target["id"],
        "type": dep_type,
        "strength": strength,
        "metadata": {"reason": reason, **meta},
    }


def placeholder_graph(reason: str, max_nodes: int | None = None) -> DependencyGraph:
    """Small sample workload, clearly tagged as placeholder data."""
    deployment = _node("Deployment", "sample-app")
    replicaset = _node("ReplicaSet", "sample-app-5d8f7c")
    pod = _node("Pod", "sample-app-5d8f7c-x2kj9")
    service = _node("Service", "sample-app")
    configmap = _node("ConfigMap", "sample-app-config")
    nodes = [deployment, replicaset, pod, service, configmap]
    edges = [
        _edge(pod, replicaset, "owner", "strong", "Pod is owned by ReplicaSet", field="metadata.ownerReferences", controller=True),
        _edge(replicaset, deployment, "owner", "strong", "ReplicaSet is owned by Deployment", field="metadata.ownerReferences", controller=True),
        _edge(pod, configmap, "volume", "strong", "Pod mounts ConfigMap", field="spec.volumes"),
        _edge(service, pod, "service", "weak", "Service selects Pod", selector={"app": "sample-app"}),
    ]
    graph = DependencyGraph.from_dict(
        {
            "metadata": {
                "namespace": DEGRADED_NAMESPACE,
                "timestamp": datetime.now(tz=UTC).isoformat(),
                "degraded": True,
                "degradedReason": reason,
            },
            "nodes": nodes,
            "edges": edges,
        },
        allow_degraded=True,
    )
    if max_nodes is not None and max_nodes < len(graph.nodes):
        kept = graph.nodes[:max_nodes]
        graph = graph.derive(kept, drop_dangling_edges(graph.edges, {n.id for n in kept}))
    return graph


def placeholder_crd_relationships(options: CRDRelationshipOptions, reason: str) -> CRDRelationshipsResponse:
    """CloudNativePG sample: Backup and ScheduledBackup referencing Cluster."""
    group = "postgresql.cnpg.io"

    def crd(kind: str, plural: str) -> dict[str, Any]:
        return {
            "id": f"crd-{plural}.{group}",
            "name": f"{plural}.{group}",
            "kind": kind,
            "group": group,
            "version": "v1",
            "scope": "Namespaced",
            "plural": plural,
        }

    crds = [crd("Cluster", "clusters"), crd("Backup", "backups"), crd("ScheduledBackup", "scheduledbackups")]
    cluster, backup, scheduled = (c["id"] for c in crds)
    relationships = [
        {
            "id": "backup-cluster-reference",
            "source": backup,
            "target": cluster,
            "type": "reference",
            "strength": "strong",
            "metadata": {
                "sourceField": "spec.cluster.name",
                "reason": "Backup references cluster via spec.cluster.name field",
                "confidence": 0.9,
                "referenceType": "crd-to-crd",
            },
        },
        {
            "id": "scheduledbackup-cluster-reference",
            "source": scheduled,
            "target": cluster,
            "type": "reference",
            "strength": "strong",
            "metadata": {
                "sourceField": "spec.cluster.name",
                "reason": "ScheduledBackup references cluster for automated backups",
                "confidence": 0.9,
                "referenceType": "crd-to-crd",
            },
        },
        {
            "id": "backup-scheduledbackup-composition",
            "source": scheduled,
            "target": backup,
            "type": "composition",
            "strength": "weak",
            "metadata": {
                "sourceField": "spec.backupOwnerReference",
                "reason": "ScheduledBackup creates Backup instances",
                "confidence": 0.7,
                "referenceType": "crd-to-crd",
            },
        },
    ]
    if options.relationship_types:
        wanted = {t.value for t in options.relationship_types}
        relationships = [r for r in relationships if r["type"] in wanted]
    if options.max_relationships:
        relationships = relationships[: options.max_relationships]

    return CRDRelationshipsResponse.from_dict(
        {
            "metadata": {
                "timestamp": datetime.now(tz=UTC).isoformat(),
                "apiGroups": [group],
                "analysisOptions": options.to_dict(),
                "degraded": True,
                "degradedReason": reason,
            },
            "crds": crds,
            "relationships": relationships,
        },
        allow_degraded=True,
    )


def placeholder_crd_analysis(options: CRDAnalysisOptions, reason: str) -> CRDAnalysisResult:
    """CloudNativePG sample analysis: Backup and ScheduledBackup depend on Cluster."""
    group = "postgresql.cnpg.io"

    def crd(kind: str, plural: str) -> dict[str, Any]:
        return {"id": f"{plural}.{group}", "name": kind, "kind": kind, "labels": {"group": group}}

    nodes = [crd("Cluster", "clusters"), crd("Backup", "backups"), crd("ScheduledBackup", "scheduledbackups")]
    if options.max_crds is not None:
        nodes = nodes[: options.max_crds]
    kept = {n["id"] for n in nodes}
    cluster, backup, scheduled = (f"{plural}.{group}" for plural in ("clusters", "backups", "scheduledbackups"))
    edges = [
        {
            "id": "backup-cluster-ref",
            "source": backup,
            "target": cluster,
            "type": "reference",
            "strength": "strong",
            "metadata": {"reason": "Backup references cluster via spec.cluster.name", "field": "spec.cluster.name"},
        },
        {
            "id": "scheduledbackup-cluster-ref",
            "source": scheduled,
            "target": cluster,
            "type": "reference",
            "strength": "strong",
            "metadata": {"reason": "ScheduledBackup references cluster", "field": "spec.cluster.name"},
        },
    ]
    edges = [e for e in edges if e["source"] in kept and e["target"] in kept]
    return CRDAnalysisResult.from_dict(
        {
            "metadata": {
                "namespace": DEGRADED_NAMESPACE,
                "timestamp": datetime.now(tz=UTC).isoformat(),
                "apiGroups": list(options.api_groups) or [group],
                "analysisOptions": options.to_dict(),
                "degraded": True,
                "degradedReason": reason,
            },
            "nodes": nodes,
            "edges": edges,
        },
        allow_degraded=True,
    )

class DegradedGraphProvider(GraphSource, CRDRelationshipSource):
    """Serves placeholder data through the regular collaborator interfaces."""

    def __init__(self, reason: str = "graph source unavailable") -> None:
        self._reason = reason

    @property
    def source_name(self) -> str:
        return "degraded"

    async def fetch_graph(self, graph_filter: GraphFilter, timeout: float) -> DependencyGraph:
        return placeholder_graph(self._reason, graph_filter.max_nodes)

    async def fetch_resource_dependencies(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        timeout: float,
    ) -> ResourceWithDependencies:
        return ResourceWithDependencies(
            resource=ResourceInfo(kind=kind, name=name, namespace=namespace),
            dependencies=ResourceDependencies(),
        )

    async def fetch_crd_relationships(
        self,
        options: CRDRelationshipOptions,
        timeout: float,
    ) -> CRDRelationshipsResponse:
        return placeholder_crd_relationships(options, self._reason)

    async def fetch_crd_analysis(self, options: CRDAnalysisOptions, timeout: float) -> CRDAnalysisResult:
        return placeholder_crd_analysis(options, self._reason)

    async def fetch_api_groups(self, timeout: float) -> tuple[CRDApiGroup, ...]:
        # A group listing has no metadata to carry the placeholder marker.
        raise TransportFailure(f"API group listing is not available from placeholder data ({self._reason})")

    async def fetch_crd_export(self, options: CRDExportOptions, timeout: float) -> CRDAnalysisExport:
        raise TransportFailure(f"CRD analysis export is not available from placeholder data ({self._reason})")
