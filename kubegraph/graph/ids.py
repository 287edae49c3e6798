"""Canonical resource id encoding.

Ids are ``{kind}/{name}`` for cluster-scoped resources and
``{kind}/{name}@{namespace}`` for namespaced ones. Collaborators exchange
these strings verbatim, so the format must stay bit-exact.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from kubegraph.errors import CodecError

_KIND_SEPARATOR = "/"
_NAMESPACE_SEPARATOR = "@"


@dataclass(frozen=True)
class ResourceRef:
    """Structured reference to a resource. ``namespace`` is None when cluster-scoped."""

    kind: str
    name: str
    namespace: str | None = None

    @property
    def id(self) -> str:
        return encode_resource_id(self.kind, self.name, self.namespace)

    @property
    def cluster_scoped(self) -> bool:
        return self.namespace is None


@dataclass
class DecodeBatch:
    """Result of decoding many ids at once."""

    refs: list[ResourceRef] = field(default_factory=list)
    invalid_ids: list[str] = field(default_factory=list)

    @property
    def invalid_count(self) -> int:
        return len(self.invalid_ids)


def encode_resource_id(kind: str, name: str, namespace: str | None = None) -> str:
    """Return the canonical id for *kind*/*name* in *namespace*."""
    if namespace:
        return f"{kind}{_KIND_SEPARATOR}{name}{_NAMESPACE_SEPARATOR}{namespace}"
    return f"{kind}{_KIND_SEPARATOR}{name}"


def decode_resource_id(resource_id: str) -> ResourceRef:
    """Parse *resource_id* back into a ResourceRef.

    The namespace is whatever follows the last ``@``; the kind is whatever
    precedes the first ``/`` of the remainder.

    Raises:
        CodecError: if the id has no ``/`` or any present part is empty.
    """
    if not isinstance(resource_id, str):
        raise CodecError(str(resource_id), "id must be a string")

    namespace: str | None = None
    head = resource_id
    if _NAMESPACE_SEPARATOR in resource_id:
        head, _, namespace = resource_id.rpartition(_NAMESPACE_SEPARATOR)
        if not namespace:
            raise CodecError(resource_id, "empty namespace after '@'")

    kind, sep, name = head.partition(_KIND_SEPARATOR)
    if not sep:
        raise CodecError(resource_id, "missing '/' between kind and name")
    if not kind:
        raise CodecError(resource_id, "empty kind")
    if not name:
        raise CodecError(resource_id, "empty name")
    return ResourceRef(kind=kind, name=name, namespace=namespace)


def decode_resource_ids(resource_ids: Iterable[str]) -> DecodeBatch:
    """Decode every id, skipping and recording the ones that do not parse."""
    batch = DecodeBatch()
    for resource_id in resource_ids:
        try:
            batch.refs.append(decode_resource_id(resource_id))
        except CodecError:
            batch.invalid_ids.append(str(resource_id))
    return batch
