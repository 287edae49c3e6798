"""Tests for CRD API group, enhanced analysis and export shapes."""

from __future__ import annotations

from typing import Any

import pytest
from factories import analysis_payload

from kubegraph.crd.analysis import (
    AnalysisDepth,
    CRDAnalysisExport,
    CRDAnalysisOptions,
    CRDAnalysisResult,
    CRDExportFormat,
    CRDExportOptions,
    parse_api_groups,
)
from kubegraph.errors import InvalidFilter, MalformedResponse
from kubegraph.graph.models import DEGRADED_NAMESPACE, DependencyStrength


class TestAnalysisOptions:
    def test_primary_caps_crds_and_groups(self) -> None:
        options = CRDAnalysisOptions.build(api_groups=["a.io", "", "b.io", "c.io", "d.io"], max_crds=25)
        primary = options.for_primary()
        assert primary.max_crds == 10
        assert primary.api_groups == ("a.io", "b.io", "c.io")

    def test_primary_keeps_smaller_limit(self) -> None:
        assert CRDAnalysisOptions.build(max_crds=4).for_primary().max_crds == 4

    def test_query_params(self) -> None:
        options = CRDAnalysisOptions.build(api_groups=["a.io", "b.io"], max_crds=10, include_native_resources=True)
        assert options.to_query_params() == {
            "includeNative": "true",
            "depth": "shallow",
            "maxCRDs": "10",
            "apiGroups": "a.io,b.io",
        }

    def test_minimal(self) -> None:
        minimal = CRDAnalysisOptions.minimal(3)
        assert minimal.to_query_params() == {"includeNative": "false", "depth": "shallow", "maxCRDs": "3"}

    def test_unknown_depth(self) -> None:
        with pytest.raises(InvalidFilter, match="unknown analysis depth 'full'"):
            CRDAnalysisOptions.build(depth="full")

    def test_non_positive_limit(self) -> None:
        with pytest.raises(InvalidFilter):
            CRDAnalysisOptions.build(max_crds=0)

    def test_deep(self) -> None:
        assert CRDAnalysisOptions.build(depth="deep").depth is AnalysisDepth.DEEP


class TestAnalysisResult:
    def test_parses_nodes_and_edges(self) -> None:
        result = CRDAnalysisResult.from_dict(analysis_payload())
        assert [n.kind for n in result.nodes] == ["Cluster", "Backup"]
        edge = result.edges[0]
        assert edge.type == "crd-reference"
        assert edge.strength is DependencyStrength.STRONG
        assert result.metadata.api_groups == ("postgresql.cnpg.io",)
        assert not result.is_degraded

    def test_counts_are_filled_in(self) -> None:
        payload = analysis_payload()
        for key in ("crdCount", "dependencyCount", "nodeCount", "edgeCount"):
            del payload["metadata"][key]
        meta = CRDAnalysisResult.from_dict(payload).metadata
        assert (meta.crd_count, meta.dependency_count, meta.node_count, meta.edge_count) == (2, 1, 2, 1)

    def test_metadata_wire_keys(self) -> None:
        out = CRDAnalysisResult.from_dict(analysis_payload()).to_dict()
        assert out["metadata"]["analysisTime"] == 40
        assert out["metadata"]["crdCount"] == 2
        assert out["edges"][0]["source"] == "backups.postgresql.cnpg.io"

    def test_duplicate_node_ids(self) -> None:
        payload = analysis_payload()
        payload["nodes"].append(dict(payload["nodes"][0]))
        with pytest.raises(MalformedResponse, match="node ids must be unique"):
            CRDAnalysisResult.from_dict(payload)

    def test_dangling_edge(self) -> None:
        payload = analysis_payload()
        payload["edges"][0]["target"] = "poolers.postgresql.cnpg.io"
        with pytest.raises(MalformedResponse, match="unknown node 'poolers.postgresql.cnpg.io'"):
            CRDAnalysisResult.from_dict(payload)

    @pytest.mark.parametrize(
        ("key", "value"),
        [("crdCount", "two"), ("dependencyCount", -1), ("analysisTime", "fast"), ("apiGroups", "postgresql.cnpg.io")],
    )
    def test_bad_metadata_names_the_field(self, key: str, value: Any) -> None:
        payload = analysis_payload()
        payload["metadata"][key] = value
        with pytest.raises(MalformedResponse, match=f"'{key}'"):
            CRDAnalysisResult.from_dict(payload)

    def test_degraded_false_string_is_not_the_marker(self) -> None:
        payload = analysis_payload()
        payload["metadata"]["degraded"] = "false"
        assert not CRDAnalysisResult.from_dict(payload).is_degraded

    def test_as_degraded(self) -> None:
        result = CRDAnalysisResult.from_dict(analysis_payload()).as_degraded("analyser down")
        assert result.metadata.namespace == DEGRADED_NAMESPACE
        assert result.to_dict()["metadata"]["degradedReason"] == "analyser down"


class TestApiGroups:
    def test_count_defaults_to_members(self) -> None:
        member = {"name": "certificates.cert-manager.io", "kind": "Certificate"}
        groups = parse_api_groups([{"group": "cert-manager.io", "crds": [member]}])
        assert groups[0].crd_count == 1
        assert groups[0].to_dict()["crds"][0]["scope"] == ""

    def test_duplicate_groups(self) -> None:
        with pytest.raises(MalformedResponse, match="api group names must be unique"):
            parse_api_groups([{"group": "a.io"}, {"group": "a.io"}])

    def test_versions_must_be_strings(self) -> None:
        with pytest.raises(MalformedResponse, match="'versions'"):
            parse_api_groups([{"group": "a.io", "versions": "v1"}])


class TestExport:
    def test_query_params_only_send_set_flags(self) -> None:
        options = CRDExportOptions.build(fmt="csv", include_dependency_metadata=False, api_groups=["a.io", "b.io"])
        assert options.to_query_params() == {
            "format": "csv",
            "includeDependencyMetadata": "false",
            "apiGroups": "a.io,b.io",
        }

    def test_unknown_format(self) -> None:
        with pytest.raises(InvalidFilter, match="unknown export format 'xml'"):
            CRDExportOptions.build(fmt="xml")

    def test_json_content_is_pretty_printed(self) -> None:
        exported = CRDAnalysisExport.from_content(CRDExportFormat.JSON, {"crds": []})
        assert exported.as_text() == '{\n  "crds": []\n}'
        assert exported.media_type == "application/json"

    def test_json_export_must_be_structured(self) -> None:
        with pytest.raises(MalformedResponse, match="json crd export"):
            CRDAnalysisExport.from_content(CRDExportFormat.JSON, "crds")

    def test_text_export_must_be_text(self) -> None:
        with pytest.raises(MalformedResponse, match="csv crd export must be text"):
            CRDAnalysisExport.from_content(CRDExportFormat.CSV, {"rows": []})
