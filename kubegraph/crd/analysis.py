"""CRD API groups, enhanced CRD dependency analysis and CRD analysis exports.

The analysis is a small graph of CRD definitions and the dependencies the
analyser found between them. Node ids are CRD names
(``clusters.postgresql.cnpg.io``), not resource ids, and edge types are
free-form classifier labels, so it has its own shapes instead of reusing
DependencyGraph. Structural invariants are the same: unique node and edge
ids, every edge endpoint present.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from kubegraph.errors import InvalidFilter, MalformedResponse
from kubegraph.graph.models import (
    DEGRADED_NAMESPACE,
    DependencyStrength,
    EdgeMetadata,
    non_negative_int,
    non_negative_number,
    optional_str,
    parse_strength,
    string_list,
    string_map,
)

# The primary analysis request is kept small so it answers quickly.
PRIMARY_MAX_CRDS = 10
PRIMARY_MAX_API_GROUPS = 3


def _required_str(raw: Mapping[str, Any], key: str, what: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedResponse(f"{what} '{key}' must be a non-empty string")
    return value


def _optional_object(raw: Mapping[str, Any], key: str, what: str) -> dict[str, Any] | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise MalformedResponse(f"{what} '{key}' must be an object")
    return dict(value)


# ---------------------------------------------------------------------------
# API groups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CRDApiGroupMember:
    name: str
    kind: str
    scope: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "kind": self.kind, "scope": self.scope}


@dataclass(frozen=True)
class CRDApiGroup:
    """One API group and the CRDs served under it."""

    group: str
    crd_count: int
    crds: tuple[CRDApiGroupMember, ...] = ()
    versions: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: Any) -> CRDApiGroup:
        if not isinstance(raw, Mapping):
            raise MalformedResponse("api group entries must be objects")
        group = _required_str(raw, "group", "api group")
        where = f"api group {group!r}"
        raw_crds = raw.get("crds") or []
        if not isinstance(raw_crds, list):
            raise MalformedResponse(f"{where} 'crds' must be a list")
        members = []
        for entry in raw_crds:
            if not isinstance(entry, Mapping):
                raise MalformedResponse(f"{where} crd entries must be objects")
            members.append(
                CRDApiGroupMember(
                    name=_required_str(entry, "name", where),
                    kind=_required_str(entry, "kind", where),
                    scope=optional_str(entry, "scope", where) or "",
                )
            )
        crd_count = non_negative_int(raw, "crdCount", where)
        return cls(
            group=group,
            crd_count=crd_count if crd_count is not None else len(members),
            crds=tuple(members),
            versions=string_list(raw, "versions", where),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "group": self.group,
            "crdCount": self.crd_count,
            "crds": [member.to_dict() for member in self.crds],
            "versions": list(self.versions),
        }


def parse_api_groups(payload: Any) -> tuple[CRDApiGroup, ...]:
    """Parse the API group listing; group names must be unique."""
    if not isinstance(payload, list):
        raise MalformedResponse("api group listing must be a list")
    groups = tuple(CRDApiGroup.from_dict(raw) for raw in payload)
    names = [g.group for g in groups]
    if len(set(names)) != len(names):
        raise MalformedResponse("api group names must be unique")
    return groups


# ---------------------------------------------------------------------------
# Analysis request
# ---------------------------------------------------------------------------


class AnalysisDepth(StrEnum):
    SHALLOW = "shallow"
    DEEP = "deep"


@dataclass(frozen=True)
class CRDAnalysisOptions:
    """What to ask the CRD analyser for."""

    api_groups: tuple[str, ...] = ()
    max_crds: int | None = None
    include_native_resources: bool = False
    depth: AnalysisDepth = AnalysisDepth.SHALLOW

    @classmethod
    def build(
        cls,
        api_groups: Iterable[str] | None = None,
        max_crds: int | None = None,
        include_native_resources: bool = False,
        depth: str | None = None,
    ) -> CRDAnalysisOptions:
        """Validate raw caller input.

        Raises:
            InvalidFilter: unknown depth or non-positive limit.
        """
        if max_crds is not None and max_crds < 1:
            raise InvalidFilter(f"max_crds must be a positive integer, got {max_crds}")
        try:
            parsed_depth = AnalysisDepth(depth) if depth else AnalysisDepth.SHALLOW
        except ValueError:
            allowed = ", ".join(d.value for d in AnalysisDepth)
            raise InvalidFilter(f"unknown analysis depth {depth!r}; expected one of: {allowed}") from None
        return cls(
            api_groups=tuple(g for g in (api_groups or ()) if g),
            max_crds=max_crds,
            include_native_resources=include_native_resources,
            depth=parsed_depth,
        )

    def for_primary(self) -> CRDAnalysisOptions:
        """At most PRIMARY_MAX_CRDS CRDs across at most PRIMARY_MAX_API_GROUPS groups."""
        return replace(
            self,
            api_groups=self.api_groups[:PRIMARY_MAX_API_GROUPS],
            max_crds=min(self.max_crds or PRIMARY_MAX_CRDS, PRIMARY_MAX_CRDS),
        )

    @classmethod
    def minimal(cls, max_crds: int) -> CRDAnalysisOptions:
        """Shallow, CRDs only, no group restriction: the cheapest useful request."""
        return cls(max_crds=max_crds)

    def to_query_params(self) -> dict[str, str]:
        params = {
            "includeNative": str(self.include_native_resources).lower(),
            "depth": self.depth.value,
        }
        if self.max_crds is not None:
            params["maxCRDs"] = str(self.max_crds)
        if self.api_groups:
            params["apiGroups"] = ",".join(self.api_groups)
        return params

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiGroups": list(self.api_groups),
            "maxCRDs": self.max_crds,
            "includeNativeResources": self.include_native_resources,
            "analysisDepth": self.depth.value,
        }


# ---------------------------------------------------------------------------
# Analysis result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CRDAnalysisNode:
    id: str
    name: str
    kind: str
    labels: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "name": self.name, "kind": self.kind, "labels": dict(self.labels)}
        if self.metadata is not None:
            out["metadata"] = self.metadata
        return out


@dataclass(frozen=True)
class CRDAnalysisEdge:
    """A dependency found by the analyser; ``type`` is the analyser's own label."""

    id: str
    source: str
    target: str
    type: str
    strength: DependencyStrength
    metadata: EdgeMetadata = field(default_factory=EdgeMetadata)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "strength": self.strength.value,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class CRDAnalysisMetadata:
    namespace: str
    node_count: int
    edge_count: int
    timestamp: str
    api_groups: tuple[str, ...] = ()
    api_group_stats: dict[str, Any] | None = None
    analysis_options: dict[str, Any] | None = None
    analysis_time: float | None = None
    crd_count: int = 0
    dependency_count: int = 0
    degraded: bool = False
    degraded_reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "namespace": self.namespace,
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "timestamp": self.timestamp,
            "apiGroups": list(self.api_groups),
            "crdCount": self.crd_count,
            "dependencyCount": self.dependency_count,
        }
        if self.api_group_stats is not None:
            out["apiGroupStats"] = self.api_group_stats
        if self.analysis_options is not None:
            out["analysisOptions"] = self.analysis_options
        if self.analysis_time is not None:
            out["analysisTime"] = self.analysis_time
        if self.degraded:
            out["degraded"] = True
            out["degradedReason"] = self.degraded_reason
        return out


@dataclass(frozen=True)
class CRDAnalysisResult:
    """CRD definitions and the dependencies between them."""

    metadata: CRDAnalysisMetadata
    nodes: tuple[CRDAnalysisNode, ...] = ()
    edges: tuple[CRDAnalysisEdge, ...] = ()

    @property
    def is_degraded(self) -> bool:
        return self.metadata.degraded

    def as_degraded(self, reason: str) -> CRDAnalysisResult:
        metadata = replace(self.metadata, namespace=DEGRADED_NAMESPACE, degraded=True, degraded_reason=reason)
        return replace(self, metadata=metadata)

    @classmethod
    def from_dict(cls, payload: Any, *, allow_degraded: bool = False) -> CRDAnalysisResult:
        """Parse an analyser payload.

        Missing metadata is filled in from the collections.

        Raises:
            MalformedResponse: naming the violated invariant.
        """
        if not isinstance(payload, Mapping):
            raise MalformedResponse("crd analysis payload must be an object")
        raw_meta = payload.get("metadata") or {}
        if not isinstance(raw_meta, Mapping):
            raise MalformedResponse("crd analysis metadata must be an object")
        namespace = optional_str(raw_meta, "namespace", "crd analysis metadata") or ""
        degraded = raw_meta.get("degraded") is True or namespace == DEGRADED_NAMESPACE
        if degraded and not allow_degraded:
            raise MalformedResponse(
                f"collaborator used the reserved placeholder marker (namespace {DEGRADED_NAMESPACE!r})"
            )

        raw_nodes = payload.get("nodes") or []
        raw_edges = payload.get("edges") or []
        if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
            raise MalformedResponse("crd analysis 'nodes' and 'edges' must be lists")

        nodes = tuple(_parse_node(raw) for raw in raw_nodes)
        node_ids = {node.id for node in nodes}
        if len(node_ids) != len(nodes):
            raise MalformedResponse("crd analysis node ids must be unique")
        edges = tuple(_parse_edge(raw) for raw in raw_edges)
        if len({edge.id for edge in edges}) != len(edges):
            raise MalformedResponse("crd analysis edge ids must be unique")
        for edge in edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in node_ids:
                    raise MalformedResponse(
                        f"edge endpoints must reference analysis nodes: edge {edge.id!r} references unknown node {endpoint!r}"
                    )

        where = "crd analysis metadata"
        crd_count = non_negative_int(raw_meta, "crdCount", where)
        dependency_count = non_negative_int(raw_meta, "dependencyCount", where)
        timestamp = raw_meta.get("timestamp")
        metadata = CRDAnalysisMetadata(
            namespace=namespace or "default",
            node_count=len(nodes),
            edge_count=len(edges),
            timestamp=str(timestamp) if timestamp else datetime.now(tz=UTC).isoformat(),
            api_groups=string_list(raw_meta, "apiGroups", where),
            api_group_stats=_optional_object(raw_meta, "apiGroupStats", where),
            analysis_options=_optional_object(raw_meta, "analysisOptions", where),
            analysis_time=non_negative_number(raw_meta, "analysisTime", where),
            crd_count=crd_count if crd_count is not None else len(nodes),
            dependency_count=dependency_count if dependency_count is not None else len(edges),
            degraded=degraded,
            degraded_reason=str(raw_meta.get("degradedReason", "")) if degraded else "",
        )
        return cls(metadata=metadata, nodes=nodes, edges=edges)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


def _parse_node(raw: Any) -> CRDAnalysisNode:
    if not isinstance(raw, Mapping):
        raise MalformedResponse("crd analysis nodes must be objects")
    node_id = _required_str(raw, "id", "crd analysis node")
    where = f"crd analysis node {node_id!r}"
    return CRDAnalysisNode(
        id=node_id,
        name=_required_str(raw, "name", where),
        kind=_required_str(raw, "kind", where),
        labels=string_map(raw, "labels", where),
        metadata=_optional_object(raw, "metadata", where),
    )


def _parse_edge(raw: Any) -> CRDAnalysisEdge:
    if not isinstance(raw, Mapping):
        raise MalformedResponse("crd analysis edges must be objects")
    edge_id = _required_str(raw, "id", "crd analysis edge")
    where = f"crd analysis edge {edge_id!r}"
    return CRDAnalysisEdge(
        id=edge_id,
        source=_required_str(raw, "source", where),
        target=_required_str(raw, "target", where),
        type=_required_str(raw, "type", where),
        strength=parse_strength(raw.get("strength"), where=where),
        metadata=EdgeMetadata.from_dict(raw.get("metadata")),
    )


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


class CRDExportFormat(StrEnum):
    JSON = "json"
    CSV = "csv"
    MARKDOWN = "markdown"

    @property
    def media_type(self) -> str:
        return {"json": "application/json", "csv": "text/csv", "markdown": "text/markdown"}[self.value]


@dataclass(frozen=True)
class CRDExportOptions:
    format: CRDExportFormat = CRDExportFormat.JSON
    include_schema_details: bool | None = None
    include_dependency_metadata: bool | None = None
    focus_on_crds: bool | None = None
    api_groups: tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        fmt: str | None = None,
        include_schema_details: bool | None = None,
        include_dependency_metadata: bool | None = None,
        focus_on_crds: bool | None = None,
        api_groups: Iterable[str] | None = None,
    ) -> CRDExportOptions:
        try:
            parsed = CRDExportFormat(fmt) if fmt else CRDExportFormat.JSON
        except ValueError:
            allowed = ", ".join(f.value for f in CRDExportFormat)
            raise InvalidFilter(f"unknown export format {fmt!r}; expected one of: {allowed}") from None
        return cls(
            format=parsed,
            include_schema_details=include_schema_details,
            include_dependency_metadata=include_dependency_metadata,
            focus_on_crds=focus_on_crds,
            api_groups=tuple(g for g in (api_groups or ()) if g),
        )

    def to_query_params(self) -> dict[str, str]:
        params = {"format": self.format.value}
        flags = {
            "includeSchemaDetails": self.include_schema_details,
            "includeDependencyMetadata": self.include_dependency_metadata,
            "focusOnCRDs": self.focus_on_crds,
        }
        for key, value in flags.items():
            if value is not None:
                params[key] = str(value).lower()
        if self.api_groups:
            params["apiGroups"] = ",".join(self.api_groups)
        return params


@dataclass(frozen=True)
class CRDAnalysisExport:
    """Export produced by the analyser.

    ``content`` is decoded JSON for ``json`` and text otherwise.
    """

    format: CRDExportFormat
    content: Any

    @classmethod
    def from_content(cls, fmt: CRDExportFormat, content: Any) -> CRDAnalysisExport:
        if fmt is CRDExportFormat.JSON:
            if not isinstance(content, (Mapping, list)):
                raise MalformedResponse("json crd export must be an object or a list")
        elif not isinstance(content, str):
            raise MalformedResponse(f"{fmt.value} crd export must be text")
        return cls(format=fmt, content=content)

    @property
    def media_type(self) -> str:
        return self.format.media_type

    def as_text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, indent=2)
