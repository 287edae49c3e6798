"""Tests for environment-driven configuration."""

from __future__ import annotations

import os

import pytest

from kubegraph.config import load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("KUBEGRAPH_"):
            monkeypatch.delenv(key)


class TestDefaults:
    def test_defaults(self) -> None:
        config = load_config()
        assert config.collaborator.base_url == "http://localhost:3001/api"
        assert config.graph.timeout_seconds == 30.0
        assert config.graph.fallback_timeout_seconds == 10.0
        assert config.graph.fallback_max_nodes == 25
        assert config.graph.default_max_nodes == 100
        assert config.crd.timeout_seconds == 5.0
        assert config.crd.fallback_timeout_seconds == 3.0
        assert config.crd.fallback_max_relationships == 10
        assert config.crd.analysis_timeout_seconds == 8.0
        assert config.crd.analysis_fallback_timeout_seconds == 3.0
        assert config.crd.analysis_fallback_max_crds == 3
        assert config.graph.placeholder_enabled
        assert config.view.refresh_interval_seconds == 30
        assert config.api.port == 8080
        assert config.log.level == "info"


class TestOverrides:
    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBEGRAPH_COLLABORATOR_URL", "https://graph.example.com/api/")
        monkeypatch.setenv("KUBEGRAPH_GRAPH_TIMEOUT", "12")
        monkeypatch.setenv("KUBEGRAPH_GRAPH_FALLBACK_TIMEOUT", "4")
        monkeypatch.setenv("KUBEGRAPH_PLACEHOLDER_ENABLED", "false")
        monkeypatch.setenv("KUBEGRAPH_LOG_LEVEL", "DEBUG")
        config = load_config()
        assert config.collaborator.base_url == "https://graph.example.com/api"
        assert config.graph.timeout_seconds == 12.0
        assert config.graph.fallback_timeout_seconds == 4.0
        assert not config.graph.placeholder_enabled
        assert not config.crd.placeholder_enabled
        assert config.log.level == "debug"

    def test_values_are_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBEGRAPH_REFRESH_INTERVAL", "1")
        monkeypatch.setenv("KUBEGRAPH_API_PORT", "80")
        monkeypatch.setenv("KUBEGRAPH_GRAPH_FALLBACK_MAX_NODES", "0")
        config = load_config()
        assert config.view.refresh_interval_seconds == 5
        assert config.api.port == 1024
        assert config.graph.fallback_max_nodes == 1


class TestValidation:
    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBEGRAPH_LOG_LEVEL", "verbose")
        with pytest.raises(ValueError, match="Invalid log level"):
            load_config()

    def test_invalid_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBEGRAPH_COLLABORATOR_URL", "localhost:3001")
        with pytest.raises(ValueError, match="Invalid collaborator URL"):
            load_config()

    def test_fallback_timeout_must_be_shorter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBEGRAPH_CRD_TIMEOUT", "2")
        monkeypatch.setenv("KUBEGRAPH_CRD_FALLBACK_TIMEOUT", "2")
        with pytest.raises(ValueError, match="must be shorter"):
            load_config()

    def test_analysis_fallback_timeout_must_be_shorter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBEGRAPH_CRD_ANALYSIS_TIMEOUT", "3")
        with pytest.raises(ValueError, match="CRD analysis fallback timeout"):
            load_config()

    def test_analysis_fallback_limit_is_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBEGRAPH_CRD_ANALYSIS_FALLBACK_MAX_CRDS", "50")
        assert load_config().crd.analysis_fallback_max_crds == 9
