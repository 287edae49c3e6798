"""Collaborator interfaces.

GraphSource           -- builds dependency graphs from live cluster state.
CRDRelationshipSource -- classifies schema-level relationships between CRDs.

Implementations raise TransportFailure for anything that went wrong on the
way to the collaborator, and MalformedResponse when the collaborator
answered with data that breaks the graph invariants.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from kubegraph.crd.analysis import CRDAnalysisExport, CRDAnalysisOptions, CRDAnalysisResult, CRDApiGroup, CRDExportOptions
from kubegraph.crd.models import CRDRelationshipOptions, CRDRelationshipsResponse
from kubegraph.graph.filters import GraphFilter
from kubegraph.graph.models import DependencyGraph, ResourceWithDependencies


class GraphSource(ABC):
    """Anything that can hand out dependency graph snapshots."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Identifier used in logs and metrics."""

    @abstractmethod
    async def fetch_graph(self, graph_filter: GraphFilter, timeout: float) -> DependencyGraph:
        """Return a snapshot for *graph_filter*, giving up after *timeout* seconds."""

    @abstractmethod
    async def fetch_resource_dependencies(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        timeout: float,
    ) -> ResourceWithDependencies:
        """Return the outgoing, incoming and related dependencies of one resource."""


class CRDRelationshipSource(ABC):
    """Anything that can classify CRD-to-CRD relationships and analyse CRD dependencies."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Identifier used in logs and metrics."""

    @abstractmethod
    async def fetch_crd_relationships(
        self,
        options: CRDRelationshipOptions,
        timeout: float,
    ) -> CRDRelationshipsResponse:
        """Return CRDs and their relationships for *options*."""

    @abstractmethod
    async def fetch_api_groups(self, timeout: float) -> tuple[CRDApiGroup, ...]:
        """Return the API groups that serve CRDs."""

    @abstractmethod
    async def fetch_crd_analysis(self, options: CRDAnalysisOptions, timeout: float) -> CRDAnalysisResult:
        """Return the CRD dependency analysis for *options*."""

    @abstractmethod
    async def fetch_crd_export(self, options: CRDExportOptions, timeout: float) -> CRDAnalysisExport:
        """Return the CRD analysis rendered in *options.format*."""
