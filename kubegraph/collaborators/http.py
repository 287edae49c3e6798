"""HTTP client for the graph-construction and CRD relationship collaborators.

Endpoints (relative to the configured base URL)::

    GET /dependencies/graph?namespace=&includeCustom=&maxNodes=
    GET /dependencies/{kind}/{name}?namespace=
    GET /dependencies/crd-relationships?apiGroups=&crds=&maxRelationships=...
    GET /dependencies/crd/apigroups
    GET /dependencies/crd/enhanced?maxCRDs=&includeNative=&depth=&apiGroups=
    GET /dependencies/crd/export?format=&includeSchemaDetails=&...
"""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from kubegraph.collaborators.base import CRDRelationshipSource, GraphSource
from kubegraph.crd.analysis import (
    CRDAnalysisExport,
    CRDAnalysisOptions,
    CRDAnalysisResult,
    CRDApiGroup,
    CRDExportFormat,
    CRDExportOptions,
    parse_api_groups,
)
from kubegraph.crd.models import CRDRelationshipOptions, CRDRelationshipsResponse
from kubegraph.errors import MalformedResponse, TransportFailure
from kubegraph.graph.filters import GraphFilter
from kubegraph.graph.models import DependencyGraph, ResourceWithDependencies

_log = structlog.get_logger(component="collaborators.http")


class HTTPGraphCollaborator(GraphSource, CRDRelationshipSource):
    """Talks JSON over HTTP to the collaborator service.

    Args:
        base_url: Collaborator API root, e.g. ``http://localhost:3001/api``.
        client:   Optional shared ``httpx.AsyncClient``. When omitted a
                  short-lived client is opened per request.
    """

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        if not base_url:
            raise ValueError("Collaborator base_url must not be empty")
        self._base_url = base_url.rstrip("/")
        self._client = client

    @property
    def source_name(self) -> str:
        return "http"

    async def fetch_graph(self, graph_filter: GraphFilter, timeout: float) -> DependencyGraph:
        payload = await self._get_json("/dependencies/graph", graph_filter.to_query_params(), timeout)
        return DependencyGraph.from_dict(payload)

    async def fetch_resource_dependencies(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        timeout: float,
    ) -> ResourceWithDependencies:
        path = f"/dependencies/{quote(kind, safe='')}/{quote(name, safe='')}"
        params = {"namespace": namespace} if namespace else {}
        payload = await self._get_json(path, params, timeout)
        return ResourceWithDependencies.from_dict(payload)

    async def fetch_crd_relationships(
        self,
        options: CRDRelationshipOptions,
        timeout: float,
    ) -> CRDRelationshipsResponse:
        payload = await self._get_json("/dependencies/crd-relationships", options.to_query_params(), timeout)
        return CRDRelationshipsResponse.from_dict(payload)

    async def fetch_api_groups(self, timeout: float) -> tuple[CRDApiGroup, ...]:
        payload = await self._get_json("/dependencies/crd/apigroups", {}, timeout)
        return parse_api_groups(payload)

    async def fetch_crd_analysis(self, options: CRDAnalysisOptions, timeout: float) -> CRDAnalysisResult:
        payload = await self._get_json("/dependencies/crd/enhanced", options.to_query_params(), timeout)
        return CRDAnalysisResult.from_dict(payload)

    async def fetch_crd_export(self, options: CRDExportOptions, timeout: float) -> CRDAnalysisExport:
        url, response = await self._get("/dependencies/crd/export", options.to_query_params(), timeout)
        if options.format is CRDExportFormat.JSON:
            return CRDAnalysisExport.from_content(options.format, _decode_json(url, response))
        return CRDAnalysisExport.from_content(options.format, response.text)

    async def _get_json(self, path: str, params: dict[str, str], timeout: float) -> Any:
        """GET *path* and decode the JSON body, bounded by *timeout* seconds overall."""
        url, response = await self._get(path, params, timeout)
        return _decode_json(url, response)

    async def _get(self, path: str, params: dict[str, str], timeout: float) -> tuple[str, httpx.Response]:
        """GET *path*; transport errors, timeouts and non-2xx statuses become TransportFailure."""
        url = f"{self._base_url}{path}"
        try:
            response = await asyncio.wait_for(self._send(url, params, timeout), timeout=timeout)
        except TimeoutError as exc:
            _log.warning("collaborator_request_timeout", url=url, timeout=timeout)
            raise TransportFailure(f"request to {url} timed out after {timeout}s") from exc
        except httpx.TimeoutException as exc:
            _log.warning("collaborator_request_timeout", url=url, timeout=timeout)
            raise TransportFailure(f"request to {url} timed out after {timeout}s") from exc
        except httpx.HTTPError as exc:
            _log.warning("collaborator_http_error", url=url, error=str(exc))
            raise TransportFailure(f"request to {url} failed: {exc}") from exc

        if not response.is_success:
            _log.warning(
                "collaborator_non_2xx_response",
                url=url,
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise TransportFailure(f"collaborator returned HTTP {response.status_code} for {url}")
        return url, response

    async def _send(self, url: str, params: dict[str, str], timeout: float) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, params=params, timeout=timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.get(url, params=params)


def _decode_json(url: str, response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise MalformedResponse(f"collaborator response from {url} is not valid JSON") from exc
