"""Configuration data structures for kubegraph."""

from kubegraph.models.config import (
    APIConfig,
    CollaboratorConfig,
    CRDAnalysisConfig,
    GraphRetrievalConfig,
    KubeGraphConfig,
    LogConfig,
    ViewConfig,
)

__all__ = [
    "APIConfig",
    "CRDAnalysisConfig",
    "CollaboratorConfig",
    "GraphRetrievalConfig",
    "KubeGraphConfig",
    "LogConfig",
    "ViewConfig",
]
