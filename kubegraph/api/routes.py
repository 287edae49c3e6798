"""REST routes, mounted under ``/api/v1``.

GET /health
GET /graph                         filtered snapshot
GET /graph/subgraph?start=&maxDepth=
GET /graph/stats
GET /graph/export?format=
GET /dependencies/{kind}/{name}?namespace=
GET /crd-relationships
GET /crd/apigroups
GET /crd/analysis                  enhanced CRD dependency analysis
GET /crd/export?format=
GET /metrics                       Prometheus exposition

Graph endpoints share the query parameters ``namespace``, ``includeCustom``,
``resourceTypes``, ``dependencyTypes``, ``maxNodes``, ``search`` and
``strongOnly``. Engine errors are mapped to status codes in ``api.app``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubegraph.api.schemas import ErrorResponse, HealthResponse
from kubegraph.crd.analysis import CRDAnalysisOptions, CRDExportOptions
from kubegraph.crd.models import CRDRelationshipOptions
from kubegraph.export import ExportFormat, ExportOptions, export_graph
from kubegraph.graph.filters import GraphFilter, SecondaryFilter
from kubegraph.graph.stats import summarize
from kubegraph.graph.traversal import DEFAULT_MAX_DEPTH, extract_connected_subgraph

router = APIRouter()


def graph_filters(
    namespace: str | None = Query(default=None),
    include_custom: bool | None = Query(default=None, alias="includeCustom"),
    resource_types: list[str] | None = Query(default=None, alias="resourceTypes"),
    dependency_types: list[str] | None = Query(default=None, alias="dependencyTypes"),
    max_nodes: int | None = Query(default=None, alias="maxNodes"),
    search: str | None = Query(default=None),
    strong_only: bool = Query(default=False, alias="strongOnly"),
) -> tuple[GraphFilter, SecondaryFilter]:
    """Validated filters from query parameters; InvalidFilter maps to 400."""
    graph_filter = GraphFilter.build(
        namespace=namespace,
        include_custom_resources=include_custom,
        resource_types=resource_types,
        dependency_types=dependency_types,
        max_nodes=max_nodes,
    )
    secondary = SecondaryFilter.build(search=search, strong_only=strong_only)
    return graph_filter, secondary


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    from kubegraph import __version__

    config = request.app.state.config
    return HealthResponse(
        version=__version__,
        collaborator_url=config.collaborator.base_url if config is not None else "",
        placeholder_enabled=config.graph.placeholder_enabled if config is not None else True,
    )


@router.get("/graph")
async def get_graph(
    request: Request,
    filters: tuple[GraphFilter, SecondaryFilter] = Depends(graph_filters),
) -> dict[str, Any]:
    graph = await request.app.state.graph_service.retrieve(*filters)
    return graph.to_dict()


@router.get("/graph/subgraph")
async def get_subgraph(
    request: Request,
    start: str = Query(..., description="Resource id, kind/name[@namespace]"),
    max_depth: int = Query(default=DEFAULT_MAX_DEPTH, alias="maxDepth"),
    filters: tuple[GraphFilter, SecondaryFilter] = Depends(graph_filters),
) -> dict[str, Any]:
    graph = await request.app.state.graph_service.retrieve(*filters)
    return extract_connected_subgraph(graph, start, max_depth).to_dict()


@router.get("/graph/stats")
async def get_stats(
    request: Request,
    filters: tuple[GraphFilter, SecondaryFilter] = Depends(graph_filters),
) -> dict[str, Any]:
    graph = await request.app.state.graph_service.retrieve(*filters)
    out = summarize(graph).to_dict()
    out["degraded"] = graph.is_degraded
    return out


@router.get("/graph/export")
async def export(
    request: Request,
    fmt: ExportFormat = Query(default=ExportFormat.STRUCTURED, alias="format"),
    include_raw_graph: bool = Query(default=False, alias="includeRawGraph"),
    include_schema_details: bool = Query(default=False, alias="includeSchemaDetails"),
    include_dependency_metadata: bool = Query(default=True, alias="includeDependencyMetadata"),
    filters: tuple[GraphFilter, SecondaryFilter] = Depends(graph_filters),
) -> Response:
    graph = await request.app.state.graph_service.retrieve(*filters)
    crd_data = None
    crd_service = request.app.state.crd_service
    if include_schema_details and crd_service is not None:
        crd_data = await crd_service.request_relationships()
    payload = export_graph(
        graph,
        fmt,
        ExportOptions(
            include_raw_graph=include_raw_graph,
            include_schema_details=include_schema_details,
            include_dependency_metadata=include_dependency_metadata,
        ),
        crd_data=crd_data,
    )
    return Response(
        content=payload.as_text(),
        media_type=payload.media_type,
        headers={"Content-Disposition": f'attachment; filename="{payload.filename}"'},
    )


@router.get("/dependencies/{kind}/{name}")
async def get_resource_dependencies(
    request: Request,
    kind: str,
    name: str,
    namespace: str | None = Query(default=None),
) -> dict[str, Any]:
    result = await request.app.state.graph_service.get_resource_dependencies(kind, name, namespace)
    return result.to_dict()


def _crd_not_configured() -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content=ErrorResponse(error="NOT_CONFIGURED", detail="CRD relationship analysis is not configured.").model_dump(),
    )


@router.get("/crd-relationships")
async def get_crd_relationships(
    request: Request,
    api_groups: list[str] | None = Query(default=None, alias="apiGroups"),
    crds: list[str] | None = Query(default=None),
    max_relationships: int | None = Query(default=None, alias="maxRelationships"),
    relationship_types: list[str] | None = Query(default=None, alias="relationshipTypes"),
    include_metadata: bool | None = Query(default=None, alias="includeMetadata"),
) -> Any:
    crd_service = request.app.state.crd_service
    if crd_service is None:
        return _crd_not_configured()
    options = CRDRelationshipOptions.build(
        api_groups=api_groups,
        crds=crds,
        max_relationships=max_relationships,
        relationship_types=relationship_types,
        include_metadata=include_metadata,
    )
    response = await crd_service.request_relationships(options)
    return response.to_dict()


@router.get("/crd/apigroups")
async def get_crd_api_groups(request: Request) -> Any:
    crd_service = request.app.state.crd_service
    if crd_service is None:
        return _crd_not_configured()
    groups = await crd_service.get_api_groups()
    return [group.to_dict() for group in groups]


@router.get("/crd/analysis")
async def get_crd_analysis(
    request: Request,
    api_groups: list[str] | None = Query(default=None, alias="apiGroups"),
    max_crds: int | None = Query(default=None, alias="maxCRDs"),
    include_native: bool = Query(default=False, alias="includeNative"),
    depth: str | None = Query(default=None),
) -> Any:
    crd_service = request.app.state.crd_service
    if crd_service is None:
        return _crd_not_configured()
    options = CRDAnalysisOptions.build(
        api_groups=api_groups,
        max_crds=max_crds,
        include_native_resources=include_native,
        depth=depth,
    )
    result = await crd_service.request_analysis(options)
    return result.to_dict()


@router.get("/crd/export")
async def export_crd_analysis(
    request: Request,
    fmt: str | None = Query(default=None, alias="format"),
    include_schema_details: bool | None = Query(default=None, alias="includeSchemaDetails"),
    include_dependency_metadata: bool | None = Query(default=None, alias="includeDependencyMetadata"),
    focus_on_crds: bool | None = Query(default=None, alias="focusOnCRDs"),
    api_groups: list[str] | None = Query(default=None, alias="apiGroups"),
) -> Any:
    crd_service = request.app.state.crd_service
    if crd_service is None:
        return _crd_not_configured()
    options = CRDExportOptions.build(
        fmt=fmt,
        include_schema_details=include_schema_details,
        include_dependency_metadata=include_dependency_metadata,
        focus_on_crds=focus_on_crds,
        api_groups=api_groups,
    )
    exported = await crd_service.export_analysis(options)
    return Response(content=exported.as_text(), media_type=exported.media_type)


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
