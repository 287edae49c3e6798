"""CRD relationship and CRD analysis requests under the interactive degradation policy."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

import structlog

from kubegraph.crd.analysis import (
    CRDAnalysisExport,
    CRDAnalysisOptions,
    CRDAnalysisResult,
    CRDApiGroup,
    CRDExportOptions,
)
from kubegraph.crd.models import CRDRelationshipOptions, CRDRelationshipsResponse
from kubegraph.errors import MalformedResponse, TransportFailure
from kubegraph.observability import metrics
from kubegraph.retrieval.policy import DegradationPolicy, bounded, run_with_fallback

if TYPE_CHECKING:
    from kubegraph.collaborators.base import CRDRelationshipSource

_log = structlog.get_logger(component="crd.service")

T = TypeVar("T")

# Enhanced analysis walks CRD schemas, so it gets more time than relationship
# requests; the fallback asks for three CRDs only.
DEFAULT_ANALYSIS_POLICY = DegradationPolicy(primary_timeout=8.0, fallback_timeout=3.0, fallback_limit=3)


class CRDRelationshipService:
    """Requests CRD relationships and analyses, falling back to smaller requests and then placeholders.

    Args:
        source:          Collaborator answering CRD requests.
        policy:          Timeouts and limits for relationship requests.
        degraded_source: Placeholder provider; without it exhausted fallbacks raise.
        analysis_policy: Timeouts and limits for enhanced analysis, API group and export requests.
    """

    def __init__(
        self,
        source: CRDRelationshipSource,
        policy: DegradationPolicy,
        degraded_source: CRDRelationshipSource | None = None,
        analysis_policy: DegradationPolicy | None = None,
    ) -> None:
        self._source = source
        self._policy = policy
        self._degraded_source = degraded_source
        self._analysis_policy = analysis_policy or DEFAULT_ANALYSIS_POLICY

    async def request_relationships(
        self,
        options: CRDRelationshipOptions | None = None,
    ) -> CRDRelationshipsResponse:
        """Return CRDs and their relationships.

        Raises:
            TransportFailure: both attempts failed and no placeholder is available.
            MalformedResponse: the collaborator answered with invalid data.
        """
        options = options or CRDRelationshipOptions()
        if options.max_relationships is not None:
            fallback_limit = self._policy.fallback_limit_for(options.max_relationships)
        else:
            fallback_limit = self._policy.fallback_limit

        async def primary() -> CRDRelationshipsResponse:
            return await self._source.fetch_crd_relationships(options, self._policy.primary_timeout)

        async def fallback() -> CRDRelationshipsResponse:
            assert fallback_limit is not None
            _log.info("crd_relationships_fallback", max_relationships=fallback_limit)
            return await self._source.fetch_crd_relationships(
                options.with_max_relationships(fallback_limit), self._policy.fallback_timeout
            )

        async def placeholder(reason: str) -> CRDRelationshipsResponse:
            assert self._degraded_source is not None
            response = await self._degraded_source.fetch_crd_relationships(options, self._policy.fallback_timeout)
            return response.as_degraded(reason)

        try:
            outcome = await run_with_fallback(
                "get CRD relationships",
                self._policy,
                primary,
                fallback if fallback_limit is not None else None,
                placeholder if self._degraded_source is not None else None,
            )
        except (TransportFailure, MalformedResponse) as exc:
            metrics.crd_requests_total.labels(outcome="error").inc()
            _log.error("crd_relationships_failed", error=str(exc))
            raise

        metrics.crd_requests_total.labels(outcome=outcome.stage.value).inc()
        response = outcome.value
        _log.info(
            "crd_relationships_retrieved",
            stage=outcome.stage.value,
            crds=len(response.crds),
            relationships=len(response.relationships),
        )
        return response

    async def request_analysis(self, options: CRDAnalysisOptions | None = None) -> CRDAnalysisResult:
        """Return the enhanced CRD dependency analysis.

        The primary request is narrowed to at most ten CRDs and three API
        groups; the fallback is a minimal shallow request for fewer CRDs.

        Raises:
            TransportFailure: both attempts failed and no placeholder is available.
            MalformedResponse: the collaborator answered with invalid data.
        """
        policy = self._analysis_policy
        primary_options = (options or CRDAnalysisOptions()).for_primary()
        assert primary_options.max_crds is not None
        fallback_limit = policy.fallback_limit_for(primary_options.max_crds)

        async def primary() -> CRDAnalysisResult:
            return await self._source.fetch_crd_analysis(primary_options, policy.primary_timeout)

        async def fallback() -> CRDAnalysisResult:
            assert fallback_limit is not None
            _log.info("crd_analysis_fallback", max_crds=fallback_limit)
            return await self._source.fetch_crd_analysis(
                CRDAnalysisOptions.minimal(fallback_limit), policy.fallback_timeout
            )

        async def placeholder(reason: str) -> CRDAnalysisResult:
            assert self._degraded_source is not None
            result = await self._degraded_source.fetch_crd_analysis(primary_options, policy.fallback_timeout)
            return result.as_degraded(reason)

        try:
            outcome = await run_with_fallback(
                "get CRD analysis",
                policy,
                primary,
                fallback if fallback_limit is not None else None,
                placeholder if self._degraded_source is not None else None,
            )
        except (TransportFailure, MalformedResponse) as exc:
            metrics.crd_analysis_requests_total.labels(outcome="error").inc()
            _log.error("crd_analysis_failed", error=str(exc))
            raise

        metrics.crd_analysis_requests_total.labels(outcome=outcome.stage.value).inc()
        result = outcome.value
        _log.info(
            "crd_analysis_retrieved",
            stage=outcome.stage.value,
            nodes=len(result.nodes),
            edges=len(result.edges),
        )
        return result

    async def get_api_groups(self) -> tuple[CRDApiGroup, ...]:
        """API groups that serve CRDs. No fallback."""
        timeout = self._analysis_policy.primary_timeout
        return await self._single_attempt("get CRD API groups", lambda: self._source.fetch_api_groups(timeout))

    async def export_analysis(self, options: CRDExportOptions | None = None) -> CRDAnalysisExport:
        """CRD analysis rendered by the collaborator. No fallback."""
        options = options or CRDExportOptions()
        timeout = self._analysis_policy.primary_timeout
        return await self._single_attempt(
            "export CRD analysis", lambda: self._source.fetch_crd_export(options, timeout)
        )

    async def _single_attempt(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await bounded(call, self._analysis_policy.primary_timeout, operation)
        except TransportFailure as exc:
            _log.warning("crd_request_failed", operation=operation, error=str(exc))
            raise TransportFailure(f"Failed to {operation}: {exc}") from exc
        except MalformedResponse as exc:
            raise MalformedResponse(f"Failed to {operation}: {exc}") from exc
