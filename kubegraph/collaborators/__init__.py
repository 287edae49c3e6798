"""Collaborator clients for kubegraph.

Exports:
    GraphSource           -- ABC for graph-construction collaborators.
    CRDRelationshipSource -- ABC for CRD relationship classifiers.
    HTTPGraphCollaborator -- httpx-based client for both.
    DegradedGraphProvider -- placeholder data behind the same interfaces.
"""

from kubegraph.collaborators.base import CRDRelationshipSource, GraphSource
from kubegraph.collaborators.degraded import (
    DegradedGraphProvider,
    placeholder_crd_analysis,
    placeholder_crd_relationships,
    placeholder_graph,
)
from kubegraph.collaborators.http import HTTPGraphCollaborator

__all__ = [
    "CRDRelationshipSource",
    "DegradedGraphProvider",
    "GraphSource",
    "HTTPGraphCollaborator",
    "placeholder_crd_analysis",
    "placeholder_crd_relationships",
    "placeholder_graph",
]
