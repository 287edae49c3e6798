"""Request and response shapes for CRD-to-CRD relationship analysis.

The relationships themselves (and their confidence scores) are computed by
the CRD relationship collaborator; this module only validates what comes
back and what goes out.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from kubegraph.errors import InvalidFilter, MalformedResponse
from kubegraph.graph.models import (
    CRDRelationshipType,
    DependencyStrength,
    non_negative_int,
    non_negative_number,
    optional_str,
    string_list,
)


class CRDScope(StrEnum):
    CLUSTER = "Cluster"
    NAMESPACED = "Namespaced"


@dataclass(frozen=True)
class CRDInfo:
    """One custom resource type definition."""

    id: str
    name: str
    kind: str
    group: str
    version: str
    scope: CRDScope
    plural: str | None = None
    short_names: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, raw: Any) -> CRDInfo:
        if not isinstance(raw, Mapping):
            raise MalformedResponse("crd entries must be objects")
        try:
            scope = CRDScope(raw.get("scope"))
        except ValueError:
            raise MalformedResponse(f"crd {raw.get('id')!r} has unknown scope {raw.get('scope')!r}") from None
        return cls(
            id=_required_str(raw, "id", "crd"),
            name=_required_str(raw, "name", "crd"),
            kind=_required_str(raw, "kind", "crd"),
            group=optional_str(raw, "group", "crd") or "",
            version=optional_str(raw, "version", "crd") or "",
            scope=scope,
            plural=optional_str(raw, "plural", "crd"),
            short_names=string_list(raw, "shortNames", "crd"),
            categories=string_list(raw, "categories", "crd"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "group": self.group,
            "version": self.version,
            "scope": self.scope.value,
        }
        if self.plural is not None:
            out["plural"] = self.plural
        if self.short_names:
            out["shortNames"] = list(self.short_names)
        if self.categories:
            out["categories"] = list(self.categories)
        return out


@dataclass(frozen=True)
class CRDRelationshipMetadata:
    """Known relationship metadata keys; anything else is kept in ``extra``."""

    reason: str = ""
    source_field: str | None = None
    schema_version: str | None = None
    pattern: str | None = None
    confidence: float | None = None  # in [0, 1], owned by the classifier
    reference_type: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _WIRE_KEYS = {
        "sourceField": "source_field",
        "schemaVersion": "schema_version",
        "pattern": "pattern",
        "referenceType": "reference_type",
    }

    @classmethod
    def from_dict(cls, value: Any, where: str) -> CRDRelationshipMetadata:
        if value is None:
            return cls()
        if not isinstance(value, Mapping):
            raise MalformedResponse(f"{where} metadata must be an object")
        data = dict(value)
        reason = data.pop("reason", "") or ""
        confidence = data.pop("confidence", None)
        if confidence is not None:
            if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
                raise MalformedResponse(f"{where} confidence must be a number")
            if not 0.0 <= float(confidence) <= 1.0:
                raise MalformedResponse(f"{where} confidence must be within [0, 1], got {confidence}")
            confidence = float(confidence)
        known = {attr: data.pop(wire, None) for wire, attr in cls._WIRE_KEYS.items()}
        return cls(reason=str(reason), confidence=confidence, extra=data, **known)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"reason": self.reason}
        for wire, attr in self._WIRE_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                out[wire] = value
        if self.confidence is not None:
            out["confidence"] = self.confidence
        out.update(self.extra)
        return out


@dataclass(frozen=True)
class CRDRelationship:
    """A type-level edge between two CRDs, identified by CRD id."""

    id: str
    source: str
    target: str
    type: CRDRelationshipType
    strength: DependencyStrength
    metadata: CRDRelationshipMetadata = field(default_factory=CRDRelationshipMetadata)

    @classmethod
    def from_dict(cls, raw: Any) -> CRDRelationship:
        if not isinstance(raw, Mapping):
            raise MalformedResponse("crd relationships must be objects")
        rel_id = _required_str(raw, "id", "crd relationship")
        where = f"crd relationship {rel_id!r}"
        try:
            rel_type = CRDRelationshipType(raw.get("type"))
        except ValueError:
            raise MalformedResponse(f"{where} has unknown relationship type {raw.get('type')!r}") from None
        try:
            strength = DependencyStrength(raw.get("strength"))
        except ValueError:
            raise MalformedResponse(f"{where} has unknown strength {raw.get('strength')!r}") from None
        return cls(
            id=rel_id,
            source=_required_str(raw, "source", where),
            target=_required_str(raw, "target", where),
            type=rel_type,
            strength=strength,
            metadata=CRDRelationshipMetadata.from_dict(raw.get("metadata"), where),
        )

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
class CRDRelationshipOptions:
    """What to ask the CRD relationship collaborator for."""

    api_groups: tuple[str, ...] = ()
    crds: tuple[str, ...] = ()
    max_relationships: int | None = None
    relationship_types: tuple[CRDRelationshipType, ...] = ()
    include_metadata: bool | None = None

    @classmethod
    def build(
        cls,
        api_groups: Iterable[str] | None = None,
        crds: Iterable[str] | None = None,
        max_relationships: int | None = None,
        relationship_types: Iterable[str] | None = None,
        include_metadata: bool | None = None,
    ) -> CRDRelationshipOptions:
        """Validate raw caller input.

        Raises:
            InvalidFilter: unknown relationship type or non-positive limit.
        """
        if max_relationships is not None and max_relationships < 1:
            raise InvalidFilter(f"max_relationships must be a positive integer, got {max_relationships}")
        parsed_types: list[CRDRelationshipType] = []
        for value in relationship_types or ():
            try:
                parsed_types.append(CRDRelationshipType(value))
            except ValueError:
                allowed = ", ".join(t.value for t in CRDRelationshipType)
                raise InvalidFilter(f"unknown relationship type {value!r}; expected one of: {allowed}") from None
        return cls(
            api_groups=tuple(g for g in (api_groups or ()) if g),
            crds=tuple(c for c in (crds or ()) if c),
            max_relationships=max_relationships,
            relationship_types=tuple(parsed_types),
            include_metadata=include_metadata,
        )

    def with_max_relationships(self, limit: int) -> CRDRelationshipOptions:
        return CRDRelationshipOptions(
            api_groups=self.api_groups,
            crds=self.crds,
            max_relationships=limit,
            relationship_types=self.relationship_types,
            include_metadata=self.include_metadata,
        )

    def to_query_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.api_groups:
            params["apiGroups"] = ",".join(self.api_groups)
        if self.crds:
            params["crds"] = ",".join(self.crds)
        if self.max_relationships:
            params["maxRelationships"] = str(self.max_relationships)
        if self.relationship_types:
            params["relationshipTypes"] = ",".join(t.value for t in self.relationship_types)
        if self.include_metadata is not None:
            params["includeMetadata"] = str(self.include_metadata).lower()
        return params

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiGroups": list(self.api_groups),
            "crds": list(self.crds),
            "maxRelationships": self.max_relationships,
            "relationshipTypes": [t.value for t in self.relationship_types],
            "includeMetadata": self.include_metadata,
        }


@dataclass(frozen=True)
class CRDResponseMetadata:
    timestamp: str
    analysis_time_ms: float = 0
    request_time_ms: float = 0
    crd_count: int = 0
    relationship_count: int = 0
    api_groups: tuple[str, ...] = ()
    analysis_options: dict[str, Any] | None = None
    degraded: bool = False
    degraded_reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "timestamp": self.timestamp,
            "analysisTimeMs": self.analysis_time_ms,
            "requestTimeMs": self.request_time_ms,
            "crdCount": self.crd_count,
            "relationshipCount": self.relationship_count,
            "apiGroups": list(self.api_groups),
        }
        if self.analysis_options is not None:
            out["analysisOptions"] = self.analysis_options
        if self.degraded:
            out["degraded"] = True
            out["degradedReason"] = self.degraded_reason
        return out


@dataclass(frozen=True)
class CRDRelationshipsResponse:
    """CRDs plus the relationships between them."""

    crds: tuple[CRDInfo, ...]
    relationships: tuple[CRDRelationship, ...]
    metadata: CRDResponseMetadata

    @property
    def is_degraded(self) -> bool:
        return self.metadata.degraded

    def as_degraded(self, reason: str) -> CRDRelationshipsResponse:
        """Return a copy tagged as placeholder data."""
        metadata = replace(self.metadata, degraded=True, degraded_reason=reason)
        return CRDRelationshipsResponse(crds=self.crds, relationships=self.relationships, metadata=metadata)

    @classmethod
    def from_dict(cls, payload: Any, *, allow_degraded: bool = False) -> CRDRelationshipsResponse:
        """Parse a collaborator payload.

        Missing metadata counts are filled in from the collections.

        Raises:
            MalformedResponse: naming the violated invariant.
        """
        if not isinstance(payload, Mapping):
            raise MalformedResponse("crd relationship payload must be an object")
        raw_meta = payload.get("metadata") or {}
        if not isinstance(raw_meta, Mapping):
            raise MalformedResponse("crd relationship metadata must be an object")
        degraded = raw_meta.get("degraded") is True
        if degraded and not allow_degraded:
            raise MalformedResponse("collaborator used the reserved placeholder marker 'degraded'")

        raw_crds = payload.get("crds") or []
        raw_rels = payload.get("relationships") or []
        if not isinstance(raw_crds, list) or not isinstance(raw_rels, list):
            raise MalformedResponse("crd relationship 'crds' and 'relationships' must be lists")

        crds = tuple(CRDInfo.from_dict(raw) for raw in raw_crds)
        crd_ids = {crd.id for crd in crds}
        if len(crd_ids) != len(crds):
            raise MalformedResponse("crd ids must be unique")
        relationships = tuple(CRDRelationship.from_dict(raw) for raw in raw_rels)
        for rel in relationships:
            for endpoint in (rel.source, rel.target):
                if endpoint not in crd_ids:
                    raise MalformedResponse(
                        f"relationship endpoints must reference listed crds: {rel.id!r} references unknown crd {endpoint!r}"
                    )

        api_groups = string_list(raw_meta, "apiGroups", "crd metadata")
        if not api_groups:
            api_groups = tuple(sorted({crd.group for crd in crds if crd.group}))
        analysis_options = raw_meta.get("analysisOptions")
        if analysis_options is not None and not isinstance(analysis_options, Mapping):
            raise MalformedResponse("crd metadata 'analysisOptions' must be an object")
        crd_count = non_negative_int(raw_meta, "crdCount", "crd metadata")
        relationship_count = non_negative_int(raw_meta, "relationshipCount", "crd metadata")
        metadata = CRDResponseMetadata(
            timestamp=str(raw_meta.get("timestamp") or datetime.now(tz=UTC).isoformat()),
            analysis_time_ms=non_negative_number(raw_meta, "analysisTimeMs", "crd metadata") or 0,
            request_time_ms=non_negative_number(raw_meta, "requestTimeMs", "crd metadata") or 0,
            crd_count=crd_count or len(crds),
            relationship_count=relationship_count or len(relationships),
            api_groups=api_groups,
            analysis_options=dict(analysis_options) if analysis_options is not None else None,
            degraded=degraded,
            degraded_reason=str(raw_meta.get("degradedReason", "")) if degraded else "",
        )
        return cls(crds=crds, relationships=relationships, metadata=metadata)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "crds": [crd.to_dict() for crd in self.crds],
            "relationships": [rel.to_dict() for rel in self.relationships],
        }


def _required_str(raw: Mapping[str, Any], key: str, what: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedResponse(f"{what} '{key}' must be a non-empty string")
    return value
