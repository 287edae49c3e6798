"""Tests for the click command-line interface."""

from __future__ import annotations

import csv
import io
import json
from pathlib import Path
from typing import Any

from click.testing import CliRunner, Result
from factories import ScriptedSource, analysis_payload, build_graph, crd_payload, node_payload

from kubegraph.app import Services
from kubegraph.cli import cli
from kubegraph.collaborators.degraded import DegradedGraphProvider
from kubegraph.crd.analysis import CRDAnalysisExport, CRDAnalysisResult, CRDExportFormat, parse_api_groups
from kubegraph.crd.models import CRDRelationshipsResponse
from kubegraph.crd.service import CRDRelationshipService
from kubegraph.errors import TransportFailure
from kubegraph.graph.models import DependencyGraph
from kubegraph.models.config import KubeGraphConfig
from kubegraph.retrieval.policy import DegradationPolicy
from kubegraph.retrieval.service import DependencyGraphService

_POLICY = DegradationPolicy(primary_timeout=0.5, fallback_timeout=0.25, fallback_limit=25)


def _services(source: ScriptedSource, placeholders: bool = False) -> Services:
    degraded = DegradedGraphProvider() if placeholders else None
    return Services(
        graph=DependencyGraphService(source, _POLICY, degraded_source=degraded),
        crd=CRDRelationshipService(source, _POLICY, degraded_source=degraded),
    )


def _invoke(source: ScriptedSource, args: list[str], placeholders: bool = False) -> Result:
    runner = CliRunner()
    return runner.invoke(cli, args, obj={"services": _services(source, placeholders)})


def _json(result: Result) -> Any:
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestGraphCommands:
    def test_graph(self, mixed_graph: DependencyGraph) -> None:
        source = ScriptedSource(mixed_graph)
        body = _json(_invoke(source, ["graph", "--namespace", "default", "--max-nodes", "40"]))
        assert body["metadata"]["nodeCount"] == 5
        graph_filter, _timeout = source.graph_calls[0]
        assert graph_filter.namespace == "default"
        assert graph_filter.max_nodes == 40

    def test_graph_local_filters(self, mixed_graph: DependencyGraph) -> None:
        body = _json(_invoke(ScriptedSource(mixed_graph), ["graph", "--resource-type", "Pod", "--search", "api-b"]))
        assert [n["name"] for n in body["nodes"]] == ["api-b"]

    def test_stats(self, mixed_graph: DependencyGraph) -> None:
        body = _json(_invoke(ScriptedSource(mixed_graph), ["stats"]))
        assert body["totalNodes"] == 5
        assert body["edgesByType"] == {"service": 2, "volume": 1}
        assert body["degraded"] is False

    def test_stats_reports_placeholder(self) -> None:
        source = ScriptedSource(TransportFailure("down"), TransportFailure("down"))
        body = _json(_invoke(source, ["stats"], placeholders=True))
        assert body["degraded"] is True

    def test_subgraph(self, ownership_chain: DependencyGraph) -> None:
        body = _json(
            _invoke(ScriptedSource(ownership_chain), ["subgraph", "Deployment/web@default", "--max-depth", "1"])
        )
        assert {n["id"] for n in body["nodes"]} == {"Deployment/web@default", "ReplicaSet/web-5d8f7c@default"}


class TestExportCommand:
    def test_tabular_to_stdout(self, mixed_graph: DependencyGraph) -> None:
        result = _invoke(ScriptedSource(mixed_graph), ["export", "--format", "tabular", "--no-dependency-metadata"])
        assert result.exit_code == 0, result.output
        rows = list(csv.reader(io.StringIO(result.stdout)))
        assert rows[0] == ["source", "target", "type", "strength", "reason"]
        assert len([row for row in rows[1:] if row]) == 3

    def test_structured_to_file(self, mixed_graph: DependencyGraph, tmp_path: Path) -> None:
        crds = CRDRelationshipsResponse.from_dict(crd_payload())
        target = tmp_path / "graph.json"
        result = _invoke(
            ScriptedSource(mixed_graph, crds),
            ["export", "--format", "structured", "--include-schema-details", "-o", str(target)],
        )
        assert result.exit_code == 0, result.output
        body = json.loads(target.read_text(encoding="utf-8"))
        assert body["statistics"]["totalEdges"] == 3
        assert "crdAnalysis" in body

    def test_report(self, mixed_graph: DependencyGraph) -> None:
        result = _invoke(ScriptedSource(mixed_graph), ["export", "--format", "report"])
        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("# Dependency Graph Report")


class TestCRDCommand:
    def test_crd(self) -> None:
        crds = CRDRelationshipsResponse.from_dict(crd_payload())
        source = ScriptedSource(crds)
        body = _json(_invoke(source, ["crd", "--api-group", "postgresql.cnpg.io", "--max-relationships", "5"]))
        assert body["metadata"]["relationshipCount"] == 1
        options, _timeout = source.crd_calls[0]
        assert options.max_relationships == 5

    def test_bad_relationship_type(self) -> None:
        result = _invoke(ScriptedSource(), ["crd", "--relationship-type", "owner"])
        assert result.exit_code == 2
        assert "unknown relationship type" in result.output


class TestCRDAnalysisCommands:
    def test_crd_groups(self) -> None:
        source = ScriptedSource(parse_api_groups([{"group": "postgresql.cnpg.io", "crdCount": 3}]))
        body = _json(_invoke(source, ["crd-groups"]))
        assert body[0]["group"] == "postgresql.cnpg.io"
        assert len(source.api_group_calls) == 1

    def test_crd_analysis(self) -> None:
        source = ScriptedSource(CRDAnalysisResult.from_dict(analysis_payload()))
        body = _json(_invoke(source, ["crd-analysis", "--max-crds", "30", "--depth", "deep", "--include-native"]))
        assert len(body["nodes"]) == 2
        options, _timeout = source.analysis_calls[0]
        assert options.max_crds == 10
        assert options.include_native_resources

    def test_crd_analysis_placeholder(self) -> None:
        source = ScriptedSource(TransportFailure("down"), TransportFailure("down"))
        body = _json(_invoke(source, ["crd-analysis"], placeholders=True))
        assert body["metadata"]["degraded"] is True

    def test_crd_export_to_file(self, tmp_path: Path) -> None:
        source = ScriptedSource(CRDAnalysisExport.from_content(CRDExportFormat.CSV, "crd,group\n"))
        target = tmp_path / "crds.csv"
        result = _invoke(source, ["crd-export", "--format", "csv", "--no-include-schema-details", "-o", str(target)])
        assert result.exit_code == 0, result.output
        assert target.read_text(encoding="utf-8") == "crd,group\n"
        options, _timeout = source.export_calls[0]
        assert options.include_schema_details is False
        assert options.focus_on_crds is None

    def test_crd_export_failure_exits_1(self) -> None:
        result = _invoke(ScriptedSource(TransportFailure("refused")), ["crd-export"])
        assert result.exit_code == 1
        assert "Failed to export CRD analysis" in result.output


class TestWatchCommand:
    def test_uses_configured_interval(self) -> None:
        config = KubeGraphConfig()
        config.view.refresh_interval_seconds = 0.02
        source = ScriptedSource(*[build_graph([node_payload("Pod", f"p{i}")], []) for i in range(10)])
        result = CliRunner().invoke(
            cli, ["watch", "--count", "2"], obj={"services": _services(source), "config": config}
        )
        assert result.exit_code == 0, result.output
        lines = result.stdout.strip().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["totalNodes"] == 1
        assert len(source.graph_calls) >= 2

    def test_errors_go_to_stderr_and_watching_continues(self) -> None:
        source = ScriptedSource(
            TransportFailure("down"), TransportFailure("down"), build_graph([node_payload("Pod", "p")], [])
        )
        result = _invoke(source, ["watch", "--interval", "0.02", "--count", "1"])
        assert result.exit_code == 0, result.output
        assert "Failed to get dependency graph" in result.stderr
        assert len(result.stdout.strip().splitlines()) == 1

    def test_interval_must_be_positive(self) -> None:
        result = _invoke(ScriptedSource(), ["watch", "--interval", "0"])
        assert result.exit_code == 2


class TestErrors:
    def test_bad_dependency_type_is_usage_error(self) -> None:
        source = ScriptedSource()
        result = _invoke(source, ["graph", "--dependency-type", "bogus"])
        assert result.exit_code == 2
        assert source.graph_calls == []

    def test_bad_start_id_is_usage_error(self, ownership_chain: DependencyGraph) -> None:
        result = _invoke(ScriptedSource(ownership_chain), ["subgraph", "nonsense"])
        assert result.exit_code == 2

    def test_collaborator_failure_exits_1(self) -> None:
        source = ScriptedSource(TransportFailure("refused"), TransportFailure("refused"))
        result = _invoke(source, ["graph"])
        assert result.exit_code == 1
        assert "Failed to get dependency graph" in result.output
        assert result.stdout == ""
