"""Data structures for the resource dependency graph.

Nodes live in an id-indexed map on the snapshot; edges refer to nodes only
by id, never by object reference. A DependencyGraph is an immutable
snapshot: filters and traversals build new snapshots instead of mutating.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from kubegraph.errors import CodecError, MalformedResponse
from kubegraph.graph.ids import decode_resource_id, encode_resource_id

# Reserved namespace carried by placeholder snapshots. Real collaborator
# payloads may never use it.
DEGRADED_NAMESPACE = "__degraded__"


class DependencyType(StrEnum):
    """Resource-to-resource relationship types."""

    OWNER = "owner"
    SELECTOR = "selector"
    VOLUME = "volume"
    SERVICE_ACCOUNT = "serviceAccount"
    NETWORK = "network"
    CUSTOM = "custom"
    SERVICE = "service"

    @property
    def description(self) -> str:
        return _DEPENDENCY_DESCRIPTIONS[self]


_DEPENDENCY_DESCRIPTIONS = {
    DependencyType.OWNER: "Ownership relationship (parent-child)",
    DependencyType.SELECTOR: "Label selector relationship",
    DependencyType.VOLUME: "Volume mount relationship",
    DependencyType.SERVICE_ACCOUNT: "Service account usage",
    DependencyType.NETWORK: "Network policy relationship",
    DependencyType.CUSTOM: "Custom resource relationship",
    DependencyType.SERVICE: "Service discovery relationship",
}


class CRDRelationshipType(StrEnum):
    """Type-to-type relationship kinds between custom resource definitions."""

    REFERENCE = "reference"
    COMPOSITION = "composition"
    DEPENDENCY = "dependency"


class DependencyStrength(StrEnum):
    """Strong: required for the dependent to function. Weak: informational."""

    STRONG = "strong"
    WEAK = "weak"


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass(frozen=True)
class EdgeMetadata:
    """Why an edge exists. Unknown collaborator keys are kept in ``extra``."""

    reason: str = ""
    field_path: str | None = None  # "field" on the wire
    controller: bool | None = None
    selector: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, value: Any) -> EdgeMetadata:
        if value is None:
            return cls()
        if not isinstance(value, Mapping):
            raise MalformedResponse("edge metadata must be an object")
        data = dict(value)
        reason = data.pop("reason", "")
        field_path = data.pop("field", None)
        controller = data.pop("controller", None)
        selector = data.pop("selector", None)
        if not isinstance(reason, str):
            raise MalformedResponse("edge metadata 'reason' must be a string")
        if field_path is not None and not isinstance(field_path, str):
            raise MalformedResponse("edge metadata 'field' must be a string")
        if controller is not None and not isinstance(controller, bool):
            raise MalformedResponse("edge metadata 'controller' must be a boolean")
        return cls(reason=reason, field_path=field_path, controller=controller, selector=selector, extra=data)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"reason": self.reason}
        if self.field_path is not None:
            out["field"] = self.field_path
        if self.controller is not None:
            out["controller"] = self.controller
        if self.selector is not None:
            out["selector"] = self.selector
        out.update(self.extra)
        return out


@dataclass(frozen=True)
class NodeStatus:
    """Resource status: an optional phase plus the opaque raw payload."""

    phase: str | None = None
    raw: Any = None

    @classmethod
    def from_value(cls, value: Any) -> NodeStatus:
        if isinstance(value, str):
            return cls(phase=value, raw=value)
        if isinstance(value, Mapping):
            phase = value.get("phase")
            return cls(phase=phase if isinstance(phase, str) else None, raw=dict(value))
        return cls(raw=value)

    def to_wire(self) -> Any:
        if self.raw is None:
            return {}
        return self.raw


@dataclass(frozen=True)
class GraphNode:
    """A node in the dependency graph representing one resource."""

    id: str
    kind: str
    name: str
    namespace: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    creation_timestamp: str | None = None  # ISO-8601 as sent by the collaborator
    status: NodeStatus = field(default_factory=NodeStatus)

    @classmethod
    def create(
        cls,
        kind: str,
        name: str,
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
        creation_timestamp: str | None = None,
        status: Any = None,
    ) -> GraphNode:
        """Build a node whose id is derived from kind/name/namespace."""
        return cls(
            id=encode_resource_id(kind, name, namespace),
            kind=kind,
            name=name,
            namespace=namespace or None,
            labels=dict(labels or {}),
            creation_timestamp=creation_timestamp,
            status=NodeStatus.from_value(status),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "labels": dict(self.labels),
            "status": self.status.to_wire(),
        }
        if self.namespace is not None:
            out["namespace"] = self.namespace
        if self.creation_timestamp is not None:
            out["creationTimestamp"] = self.creation_timestamp
        return out


@dataclass(frozen=True)
class GraphEdge:
    """A typed, directed edge between two node ids."""

    id: str
    source: str
    target: str
    type: DependencyType
    strength: DependencyStrength
    metadata: EdgeMetadata = field(default_factory=EdgeMetadata)

    @property
    def is_strong(self) -> bool:
        return self.strength == DependencyStrength.STRONG

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
            "strength": self.strength.value,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class GraphMetadata:
    """Snapshot metadata. ``degraded`` marks placeholder data."""

    namespace: str = ""
    node_count: int = 0
    edge_count: int = 0
    timestamp: str = field(default_factory=_utc_now_iso)
    degraded: bool = False
    degraded_reason: str = ""
    skipped_ids: int = 0  # node ids dropped because they did not decode

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "namespace": self.namespace,
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "timestamp": self.timestamp,
        }
        if self.degraded:
            out["degraded"] = True
            out["degradedReason"] = self.degraded_reason
        if self.skipped_ids:
            out["skippedIds"] = self.skipped_ids
        return out


@dataclass(frozen=True)
class DependencyGraph:
    """Immutable graph snapshot.

    Invariants: node ids are unique, edge ids are unique, and every edge's
    source and target is a node of this snapshot.
    """

    metadata: GraphMetadata
    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()
    _index: dict[str, GraphNode] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))
        object.__setattr__(self, "_index", {node.id: node for node in self.nodes})

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        nodes: Iterable[GraphNode],
        edges: Iterable[GraphEdge],
        namespace: str = "",
        timestamp: str | None = None,
    ) -> DependencyGraph:
        """Build a snapshot from trusted parts, computing the counts."""
        node_tuple = tuple(nodes)
        edge_tuple = tuple(edges)
        metadata = GraphMetadata(
            namespace=namespace,
            node_count=len(node_tuple),
            edge_count=len(edge_tuple),
            timestamp=timestamp or _utc_now_iso(),
        )
        return cls(metadata=metadata, nodes=node_tuple, edges=edge_tuple)

    @classmethod
    def empty(cls, namespace: str = "") -> DependencyGraph:
        return cls.build((), (), namespace=namespace)

    def derive(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> DependencyGraph:
        """Return a new snapshot over a subset of this one, keeping its metadata."""
        node_tuple = tuple(nodes)
        edge_tuple = tuple(edges)
        metadata = replace(self.metadata, node_count=len(node_tuple), edge_count=len(edge_tuple))
        return DependencyGraph(metadata=metadata, nodes=node_tuple, edges=edge_tuple)

    def as_degraded(self, reason: str) -> DependencyGraph:
        """Return a copy tagged as placeholder data."""
        metadata = replace(self.metadata, namespace=DEGRADED_NAMESPACE, degraded=True, degraded_reason=reason)
        return DependencyGraph(metadata=metadata, nodes=self.nodes, edges=self.edges)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def node_ids(self) -> set[str]:
        return set(self._index)

    @property
    def edge_ids(self) -> set[str]:
        return {edge.id for edge in self.edges}

    @property
    def is_degraded(self) -> bool:
        return self.metadata.degraded

    def get_node(self, node_id: str) -> GraphNode | None:
        return self._index.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._index

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }

    @classmethod
    def from_dict(cls, payload: Any, *, allow_degraded: bool = False) -> DependencyGraph:
        """Parse and validate a graph payload.

        Node ids that do not decode are skipped and counted in
        ``metadata.skipped_ids``; edges touching them are dropped too.

        Raises:
            MalformedResponse: naming the violated invariant.
        """
        if not isinstance(payload, Mapping):
            raise MalformedResponse("graph payload must be an object")

        raw_meta = payload.get("metadata") or {}
        if not isinstance(raw_meta, Mapping):
            raise MalformedResponse("graph metadata must be an object")
        namespace = raw_meta.get("namespace") or ""
        if not isinstance(namespace, str):
            raise MalformedResponse("graph metadata 'namespace' must be a string")

        degraded = raw_meta.get("degraded") is True or namespace == DEGRADED_NAMESPACE
        if degraded and not allow_degraded:
            raise MalformedResponse(
                f"collaborator used the reserved placeholder marker (namespace {DEGRADED_NAMESPACE!r})"
            )

        raw_nodes = _list_field(payload, "nodes")
        raw_edges = _list_field(payload, "edges")

        nodes: list[GraphNode] = []
        seen_nodes: set[str] = set()
        skipped: set[str] = set()
        for raw in raw_nodes:
            node = _parse_node(raw, skipped)
            if node is None:
                continue
            if node.id in seen_nodes:
                raise MalformedResponse(f"node ids must be unique: duplicate {node.id!r}")
            seen_nodes.add(node.id)
            nodes.append(node)

        edges: list[GraphEdge] = []
        seen_edges: set[str] = set()
        for raw in raw_edges:
            edge = _parse_edge(raw)
            if edge.source in skipped or edge.target in skipped:
                continue
            for endpoint in (edge.source, edge.target):
                if endpoint not in seen_nodes:
                    raise MalformedResponse(
                        f"edge endpoints must reference graph nodes: edge {edge.id!r} references unknown node {endpoint!r}"
                    )
            if edge.id in seen_edges:
                raise MalformedResponse(f"edge ids must be unique: duplicate {edge.id!r}")
            seen_edges.add(edge.id)
            edges.append(edge)

        timestamp = raw_meta.get("timestamp")
        metadata = GraphMetadata(
            namespace=namespace,
            node_count=len(nodes),
            edge_count=len(edges),
            timestamp=str(timestamp) if timestamp else _utc_now_iso(),
            degraded=degraded,
            degraded_reason=str(raw_meta.get("degradedReason", "")) if degraded else "",
            skipped_ids=len(skipped) + (non_negative_int(raw_meta, "skippedIds", "graph metadata") or 0),
        )
        return cls(metadata=metadata, nodes=tuple(nodes), edges=tuple(edges))


def _list_field(payload: Mapping[str, Any], key: str) -> list[Any]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedResponse(f"graph '{key}' must be a list")
    return value


def _required_str(raw: Mapping[str, Any], key: str, what: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedResponse(f"{what} '{key}' must be a non-empty string")
    return value


def non_negative_int(raw: Mapping[str, Any], key: str, what: str) -> int | None:
    """Optional count field; booleans and negative or non-integer values are rejected."""
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedResponse(f"{what} '{key}' must be a non-negative integer, got {value!r}")
    return value


def optional_str(raw: Mapping[str, Any], key: str, what: str) -> str | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise MalformedResponse(f"{what} '{key}' must be a string, got {value!r}")
    return value


def string_map(raw: Mapping[str, Any], key: str, what: str) -> dict[str, str]:
    value = raw.get(key)
    if not value:
        return {}
    if not isinstance(value, Mapping):
        raise MalformedResponse(f"{what} '{key}' must be an object")
    return {str(k): str(v) for k, v in value.items()}


def string_list(raw: Mapping[str, Any], key: str, what: str) -> tuple[str, ...]:
    value = raw.get(key)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedResponse(f"{what} '{key}' must be a list of strings")
    return tuple(value)


def non_negative_number(raw: Mapping[str, Any], key: str, what: str) -> float | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise MalformedResponse(f"{what} '{key}' must be a non-negative number, got {value!r}")
    return value


def _parse_node(raw: Any, skipped: set[str]) -> GraphNode | None:
    if not isinstance(raw, Mapping):
        raise MalformedResponse("graph nodes must be objects")
    node_id = raw.get("id")
    if not isinstance(node_id, str):
        raise MalformedResponse("node 'id' must be a string")
    try:
        ref = decode_resource_id(node_id)
    except CodecError:
        skipped.add(node_id)
        return None

    kind = raw.get("kind") or ref.kind
    name = raw.get("name") or ref.name
    namespace = raw.get("namespace") if "namespace" in raw else ref.namespace
    if not isinstance(kind, str) or not isinstance(name, str):
        raise MalformedResponse(f"node {node_id!r} 'kind' and 'name' must be strings")
    if namespace is not None and not isinstance(namespace, str):
        raise MalformedResponse(f"node {node_id!r} 'namespace' must be a string")
    namespace = namespace or None
    if encode_resource_id(kind, name, namespace) != node_id:
        raise MalformedResponse(f"node id {node_id!r} does not match its kind/name/namespace")

    labels = string_map(raw, "labels", f"node {node_id!r}")
    created = raw.get("creationTimestamp")
    return GraphNode(
        id=node_id,
        kind=kind,
        name=name,
        namespace=namespace,
        labels=labels,
        creation_timestamp=str(created) if created else None,
        status=NodeStatus.from_value(raw.get("status")),
    )


def _parse_edge(raw: Any) -> GraphEdge:
    if not isinstance(raw, Mapping):
        raise MalformedResponse("graph edges must be objects")
    edge_id = _required_str(raw, "id", "edge")
    source = _required_str(raw, "source", f"edge {edge_id!r}")
    target = _required_str(raw, "target", f"edge {edge_id!r}")
    return GraphEdge(
        id=edge_id,
        source=source,
        target=target,
        type=parse_dependency_type(raw.get("type"), where=f"edge {edge_id!r}"),
        strength=parse_strength(raw.get("strength"), where=f"edge {edge_id!r}"),
        metadata=EdgeMetadata.from_dict(raw.get("metadata")),
    )


def parse_dependency_type(value: Any, where: str = "edge") -> DependencyType:
    try:
        return DependencyType(value)
    except ValueError:
        raise MalformedResponse(f"{where} has unknown dependency type {value!r}") from None


def parse_strength(value: Any, where: str = "edge") -> DependencyStrength:
    try:
        return DependencyStrength(value)
    except ValueError:
        raise MalformedResponse(f"{where} has unknown dependency strength {value!r}") from None


# ---------------------------------------------------------------------------
# Single-resource dependency query
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResourceInfo:
    """The resource a dependency query was made for."""

    kind: str
    name: str
    namespace: str | None = None
    uid: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    creation_timestamp: str | None = None

    @property
    def id(self) -> str:
        return encode_resource_id(self.kind, self.name, self.namespace)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "kind": self.kind, "name": self.name}
        if self.namespace:
            out["namespace"] = self.namespace
        if self.uid:
            out["uid"] = self.uid
        if self.labels:
            out["labels"] = dict(self.labels)
        if self.creation_timestamp:
            out["creationTimestamp"] = self.creation_timestamp
        return out


@dataclass(frozen=True)
class DependencyEdge:
    """A dependency relative to the queried resource; ``target`` is a resource id."""

    type: DependencyType
    target: str
    strength: DependencyStrength
    metadata: EdgeMetadata = field(default_factory=EdgeMetadata)

    @classmethod
    def from_dict(cls, raw: Any) -> DependencyEdge:
        if not isinstance(raw, Mapping):
            raise MalformedResponse("dependency entries must be objects")
        return cls(
            type=parse_dependency_type(raw.get("type"), where="dependency"),
            target=_required_str(raw, "target", "dependency"),
            strength=parse_strength(raw.get("strength"), where="dependency"),
            metadata=EdgeMetadata.from_dict(raw.get("metadata")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "target": self.target,
            "strength": self.strength.value,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class ResourceDependencies:
    """Outgoing (this depends on), incoming (depends on this), related (weak)."""

    outgoing: tuple[DependencyEdge, ...] = ()
    incoming: tuple[DependencyEdge, ...] = ()
    related: tuple[DependencyEdge, ...] = ()

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "outgoing": [dep.to_dict() for dep in self.outgoing],
            "incoming": [dep.to_dict() for dep in self.incoming],
            "related": [dep.to_dict() for dep in self.related],
        }


@dataclass(frozen=True)
class ResourceWithDependencies:
    resource: ResourceInfo
    dependencies: ResourceDependencies

    @classmethod
    def from_dict(cls, payload: Any) -> ResourceWithDependencies:
        if not isinstance(payload, Mapping):
            raise MalformedResponse("dependency payload must be an object")
        raw_resource = payload.get("resource")
        if not isinstance(raw_resource, Mapping):
            raise MalformedResponse("dependency payload 'resource' must be an object")
        raw_deps = payload.get("dependencies") or {}
        if not isinstance(raw_deps, Mapping):
            raise MalformedResponse("dependency payload 'dependencies' must be an object")

        resource = ResourceInfo(
            kind=_required_str(raw_resource, "kind", "resource"),
            name=_required_str(raw_resource, "name", "resource"),
            namespace=optional_str(raw_resource, "namespace", "resource"),
            uid=optional_str(raw_resource, "uid", "resource"),
            labels=string_map(raw_resource, "labels", "resource"),
            creation_timestamp=optional_str(raw_resource, "creationTimestamp", "resource"),
        )
        groups = {}
        for key in ("outgoing", "incoming", "related"):
            entries = raw_deps.get(key) or []
            if not isinstance(entries, list):
                raise MalformedResponse(f"dependencies '{key}' must be a list")
            groups[key] = tuple(DependencyEdge.from_dict(entry) for entry in entries)
        return cls(resource=resource, dependencies=ResourceDependencies(**groups))

    def to_dict(self) -> dict[str, Any]:
        return {"resource": self.resource.to_dict(), "dependencies": self.dependencies.to_dict()}
