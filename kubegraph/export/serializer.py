"""Graph export in three formats.

structured -- JSON-able dict; lossless, ``import_structured`` rebuilds the graph.
tabular    -- CSV text, one row per edge, for spreadsheets.
report     -- Markdown summary for humans.

Only ``structured`` round-trips. The other two keep, for every edge, the
``(source, target, type, strength, reason)`` tuple and nothing more is
guaranteed.
"""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog

from kubegraph.crd.models import CRDRelationshipsResponse
from kubegraph.errors import MalformedResponse
from kubegraph.graph.models import DependencyGraph, GraphEdge
from kubegraph.graph.stats import summarize

_log = structlog.get_logger(component="export")

EDGE_COLUMNS = ("source", "target", "type", "strength", "reason")
EDGE_METADATA_COLUMNS = ("field", "controller")
NODE_COLUMNS = ("id", "kind", "name", "namespace")
CRD_COLUMNS = ("id", "name", "kind", "group", "version", "scope")
CRD_RELATIONSHIP_COLUMNS = ("source", "target", "type", "strength", "confidence", "reason")


class ExportFormat(StrEnum):
    STRUCTURED = "structured"
    TABULAR = "tabular"
    REPORT = "report"

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self]

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]


_MEDIA_TYPES = {
    ExportFormat.STRUCTURED: "application/json",
    ExportFormat.TABULAR: "text/csv",
    ExportFormat.REPORT: "text/markdown",
}

_EXTENSIONS = {
    ExportFormat.STRUCTURED: "json",
    ExportFormat.TABULAR: "csv",
    ExportFormat.REPORT: "md",
}


@dataclass(frozen=True)
class ExportOptions:
    include_raw_graph: bool = False
    include_schema_details: bool = True
    include_dependency_metadata: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {
            "includeRawGraph": self.include_raw_graph,
            "includeSchemaDetails": self.include_schema_details,
            "includeDependencyMetadata": self.include_dependency_metadata,
        }


@dataclass(frozen=True)
class ExportPayload:
    """Export result tagged with its format.

    ``content`` is a dict for ``structured`` and a string otherwise.
    """

    format: ExportFormat
    content: dict[str, Any] | str
    media_type: str
    filename: str

    def as_text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, indent=2)


def export_graph(
    graph: DependencyGraph,
    fmt: ExportFormat | str,
    options: ExportOptions | None = None,
    crd_data: CRDRelationshipsResponse | None = None,
) -> ExportPayload:
    """Serialize *graph* (and optionally CRD analysis) into *fmt*.

    Raises:
        ValueError: unknown format.
    """
    fmt = ExportFormat(fmt)
    options = options or ExportOptions()
    exported_at = datetime.now(tz=UTC)

    if fmt == ExportFormat.STRUCTURED:
        content: dict[str, Any] | str = _structured(graph, options, crd_data, exported_at)
    elif fmt == ExportFormat.TABULAR:
        content = _tabular(graph, options, crd_data)
    else:
        content = _report(graph, options, crd_data, exported_at)

    stamp = exported_at.strftime("%Y-%m-%dT%H-%M-%S")
    _log.info(
        "graph_exported",
        format=fmt.value,
        nodes=graph.metadata.node_count,
        edges=graph.metadata.edge_count,
        degraded=graph.is_degraded,
    )
    return ExportPayload(
        format=fmt,
        content=content,
        media_type=fmt.media_type,
        filename=f"dependency-graph-{stamp}.{fmt.extension}",
    )


def import_structured(payload: Mapping[str, Any] | str) -> DependencyGraph:
    """Rebuild a graph from a ``structured`` export (dict or JSON text).

    Raises:
        MalformedResponse: the payload is not a structured export.
    """
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise MalformedResponse("structured export is not valid JSON") from exc
    if not isinstance(payload, Mapping) or not isinstance(payload.get("graph"), Mapping):
        raise MalformedResponse("structured export must contain a 'graph' object")
    # exports may carry placeholder data; the marker is kept on re-import
    return DependencyGraph.from_dict(payload["graph"], allow_degraded=True)


# ---------------------------------------------------------------------------
# Formats
# ---------------------------------------------------------------------------


def _structured(
    graph: DependencyGraph,
    options: ExportOptions,
    crd_data: CRDRelationshipsResponse | None,
    exported_at: datetime,
) -> dict[str, Any]:
    from kubegraph import __version__

    out: dict[str, Any] = {
        "exportInfo": {
            "format": ExportFormat.STRUCTURED.value,
            "exportedAt": exported_at.isoformat(),
            "version": __version__,
            "options": options.to_dict(),
        },
        "statistics": summarize(graph).to_dict(),
        "graph": graph.to_dict(),
    }
    if options.include_schema_details and crd_data is not None:
        out["crdAnalysis"] = crd_data.to_dict()
    return out


def _edge_row(edge: GraphEdge, with_metadata: bool) -> list[Any]:
    row: list[Any] = [edge.source, edge.target, edge.type.value, edge.strength.value, edge.metadata.reason]
    if with_metadata:
        controller = edge.metadata.controller
        row.append(edge.metadata.field_path or "")
        row.append("" if controller is None else str(controller).lower())
    return row


def _tabular(
    graph: DependencyGraph,
    options: ExportOptions,
    crd_data: CRDRelationshipsResponse | None,
) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")

    header = list(EDGE_COLUMNS)
    if options.include_dependency_metadata:
        header.extend(EDGE_METADATA_COLUMNS)
    writer.writerow(header)
    for edge in graph.edges:
        writer.writerow(_edge_row(edge, options.include_dependency_metadata))

    if options.include_raw_graph:
        writer.writerow([])
        writer.writerow(NODE_COLUMNS)
        for node in graph.nodes:
            writer.writerow([node.id, node.kind, node.name, node.namespace or ""])

    if options.include_schema_details and crd_data is not None:
        writer.writerow([])
        writer.writerow(CRD_COLUMNS)
        for crd in crd_data.crds:
            writer.writerow([crd.id, crd.name, crd.kind, crd.group, crd.version, crd.scope.value])
        writer.writerow([])
        writer.writerow(CRD_RELATIONSHIP_COLUMNS)
        for rel in crd_data.relationships:
            confidence = rel.metadata.confidence
            writer.writerow(
                [
                    rel.source,
                    rel.target,
                    rel.type.value,
                    rel.strength.value,
                    "" if confidence is None else f"{confidence:g}",
                    rel.metadata.reason,
                ]
            )
    return buf.getvalue()


def _md_cell(value: Any) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ")


def _md_table(header: list[str], rows: list[list[Any]]) -> list[str]:
    lines = ["| " + " | ".join(header) + " |", "|" + "|".join("---" for _ in header) + "|"]
    lines.extend("| " + " | ".join(_md_cell(v) for v in row) + " |" for row in rows)
    return lines


def _report(
    graph: DependencyGraph,
    options: ExportOptions,
    crd_data: CRDRelationshipsResponse | None,
    exported_at: datetime,
) -> str:
    stats = summarize(graph)
    lines = ["# Dependency Graph Report", ""]
    lines.append(f"Generated: {exported_at.isoformat()}")
    if graph.metadata.namespace:
        lines.append(f"Namespace: {graph.metadata.namespace}")
    if graph.is_degraded:
        lines.append("")
        lines.append(f"> **Placeholder data**: {graph.metadata.degraded_reason or 'graph source unavailable'}")

    lines += ["", "## Summary", ""]
    lines.append(f"- Resources: {stats.total_nodes}")
    lines.append(f"- Dependencies: {stats.total_edges}")
    lines.append(f"- Strong dependencies: {stats.strong_dependencies}")
    lines.append(f"- Weak dependencies: {stats.weak_dependencies}")
    if stats.namespaces:
        lines.append(f"- Namespaces: {', '.join(stats.namespaces)}")
    if stats.nodes_by_type:
        lines += ["", "### Resources by kind", ""]
        lines += _md_table(["Kind", "Count"], [[k, v] for k, v in stats.nodes_by_type.items()])
    if stats.edges_by_type:
        lines += ["", "### Dependencies by type", ""]
        lines += _md_table(["Type", "Count"], [[k, v] for k, v in stats.edges_by_type.items()])

    lines += ["", "## Dependencies", ""]
    header = ["Source", "Target", "Type", "Strength", "Reason"]
    if options.include_dependency_metadata:
        header += ["Field", "Controller"]
    lines += _md_table(header, [_edge_row(edge, options.include_dependency_metadata) for edge in graph.edges])

    if options.include_schema_details and crd_data is not None:
        lines += ["", "## Custom Resource Definitions", ""]
        lines += _md_table(
            ["Name", "Kind", "Group", "Version", "Scope"],
            [[c.name, c.kind, c.group, c.version, c.scope.value] for c in crd_data.crds],
        )
        lines += ["", "### CRD relationships", ""]
        lines += _md_table(
            ["Source", "Target", "Type", "Strength", "Confidence", "Reason"],
            [
                [
                    r.source,
                    r.target,
                    r.type.value,
                    r.strength.value,
                    "" if r.metadata.confidence is None else f"{r.metadata.confidence:.0%}",
                    r.metadata.reason,
                ]
                for r in crd_data.relationships
            ],
        )

    if options.include_raw_graph:
        lines += ["", "## Raw graph", "", "```json", json.dumps(graph.to_dict(), indent=2), "```"]

    lines.append("")
    return "\n".join(lines)
