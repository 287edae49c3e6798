"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubegraph.models.config import (
    APIConfig,
    CollaboratorConfig,
    CRDAnalysisConfig,
    GraphRetrievalConfig,
    KubeGraphConfig,
    LogConfig,
    ViewConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEGRAPH_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_url(value: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError(f"Invalid collaborator URL: {value!r}. Must start with http:// or https://")
    return value.rstrip("/")


def _validate_fallback_timeout(primary: float, fallback: float, what: str) -> float:
    if fallback >= primary:
        raise ValueError(f"{what} fallback timeout ({fallback}s) must be shorter than its primary timeout ({primary}s)")
    return fallback


def load_config() -> KubeGraphConfig:
    """Load configuration from KUBEGRAPH_* environment variables."""
    graph_timeout = _env_float("GRAPH_TIMEOUT", 30.0, min_val=1.0)
    crd_timeout = _env_float("CRD_TIMEOUT", 5.0, min_val=1.0)
    analysis_timeout = _env_float("CRD_ANALYSIS_TIMEOUT", 8.0, min_val=1.0)
    return KubeGraphConfig(
        collaborator=CollaboratorConfig(
            base_url=_validate_url(_env("COLLABORATOR_URL", "http://localhost:3001/api")),
        ),
        graph=GraphRetrievalConfig(
            timeout_seconds=graph_timeout,
            fallback_timeout_seconds=_validate_fallback_timeout(
                graph_timeout, _env_float("GRAPH_FALLBACK_TIMEOUT", 10.0, min_val=0.5), "graph"
            ),
            fallback_max_nodes=_env_int("GRAPH_FALLBACK_MAX_NODES", 25, min_val=1, max_val=1000),
            default_max_nodes=_env_int("DEFAULT_MAX_NODES", 100, min_val=2, max_val=5000),
            placeholder_enabled=_env_bool("PLACEHOLDER_ENABLED", True),
        ),
        crd=CRDAnalysisConfig(
            timeout_seconds=crd_timeout,
            fallback_timeout_seconds=_validate_fallback_timeout(
                crd_timeout, _env_float("CRD_FALLBACK_TIMEOUT", 3.0, min_val=0.5), "CRD"
            ),
            fallback_max_relationships=_env_int("CRD_FALLBACK_MAX_RELATIONSHIPS", 10, min_val=1, max_val=500),
            analysis_timeout_seconds=analysis_timeout,
            analysis_fallback_timeout_seconds=_validate_fallback_timeout(
                analysis_timeout, _env_float("CRD_ANALYSIS_FALLBACK_TIMEOUT", 3.0, min_val=0.5), "CRD analysis"
            ),
            analysis_fallback_max_crds=_env_int("CRD_ANALYSIS_FALLBACK_MAX_CRDS", 3, min_val=1, max_val=9),
            placeholder_enabled=_env_bool("PLACEHOLDER_ENABLED", True),
        ),
        view=ViewConfig(
            refresh_interval_seconds=_env_int("REFRESH_INTERVAL", 30, min_val=5, max_val=3600),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
