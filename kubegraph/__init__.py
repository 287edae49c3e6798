"""kubegraph: resource relationship graph engine for Kubernetes clusters."""

__version__ = "0.1.0"
