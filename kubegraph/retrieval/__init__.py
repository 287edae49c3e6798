"""Graph retrieval: degradation policy, retrieval service and the live view."""

from kubegraph.retrieval.policy import DegradationPolicy, Outcome, Stage, run_with_fallback
from kubegraph.retrieval.service import DependencyGraphService
from kubegraph.retrieval.view import GraphView

__all__ = [
    "DegradationPolicy",
    "DependencyGraphService",
    "GraphView",
    "Outcome",
    "Stage",
    "run_with_fallback",
]
