"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CollaboratorConfig:
    """Where the graph-construction and CRD relationship collaborators live."""

    base_url: str = "http://localhost:3001/api"


@dataclass
class GraphRetrievalConfig:
    """Primary and fallback limits for dependency graph retrieval."""

    timeout_seconds: float = 30.0
    fallback_timeout_seconds: float = 10.0
    fallback_max_nodes: int = 25
    default_max_nodes: int = 100
    placeholder_enabled: bool = True


@dataclass
class CRDAnalysisConfig:
    """CRD relationship requests are interactive, so their timeouts are shorter."""

    timeout_seconds: float = 5.0
    fallback_timeout_seconds: float = 3.0
    fallback_max_relationships: int = 10
    analysis_timeout_seconds: float = 8.0
    analysis_fallback_timeout_seconds: float = 3.0
    analysis_fallback_max_crds: int = 3
    placeholder_enabled: bool = True


@dataclass
class ViewConfig:
    """Live graph view configuration."""

    refresh_interval_seconds: float = 30


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeGraphConfig:
    """Top-level kubegraph configuration."""

    collaborator: CollaboratorConfig = field(default_factory=CollaboratorConfig)
    graph: GraphRetrievalConfig = field(default_factory=GraphRetrievalConfig)
    crd: CRDAnalysisConfig = field(default_factory=CRDAnalysisConfig)
    view: ViewConfig = field(default_factory=ViewConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
