"""FastAPI application factory for kubegraph.

Usage::

    from kubegraph.api.app import create_app

    app = create_app(
        graph_service=graph_service,
        crd_service=crd_service,
        config=config,
    )

Used by the production bootstrap (``kubegraph.app``) and by unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from kubegraph.api.routes import router
from kubegraph.api.schemas import ErrorResponse
from kubegraph.errors import CodecError, InvalidFilter, MalformedResponse, TransportFailure

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, detail=detail).model_dump())


def create_app(
    graph_service: Any,
    crd_service: Any = None,
    config: Any = None,
) -> FastAPI:
    """Create and configure the kubegraph FastAPI application.

    Args:
        graph_service: DependencyGraphService instance.
        crd_service:   Optional CRDRelationshipService; CRD routes answer 404 without it.
        config:        KubeGraphConfig, used for health metadata.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kubegraph import __version__

    app = FastAPI(
        title="kubegraph",
        summary="Kubernetes resource relationship graph API",
        version=__version__,
        description=(
            "kubegraph retrieves resource dependency graphs from a graph-construction "
            "collaborator, filters them, extracts connected sub-graphs, aggregates "
            "statistics and exports them."
        ),
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.graph_service = graph_service
    app.state.crd_service = crd_service
    app.state.config = config

    app.include_router(router, prefix=_API_PREFIX)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Map Pydantic validation errors to our error envelope."""
        errors = exc.errors()
        first_field = ""
        first_msg = ""
        if errors:
            locs = errors[0].get("loc", ())
            first_field = str(locs[-1]) if locs else ""
            first_msg = str(errors[0].get("msg", ""))
        detail = f"{first_field}: {first_msg}" if first_field else first_msg
        return _error(400, "INVALID_REQUEST", detail)

    @app.exception_handler(InvalidFilter)
    async def invalid_filter_handler(_request: Request, exc: InvalidFilter) -> JSONResponse:
        return _error(400, "INVALID_FILTER", str(exc))

    @app.exception_handler(CodecError)
    async def codec_error_handler(_request: Request, exc: CodecError) -> JSONResponse:
        return _error(400, "INVALID_RESOURCE_ID", str(exc))

    @app.exception_handler(MalformedResponse)
    async def malformed_response_handler(request: Request, exc: MalformedResponse) -> JSONResponse:
        _log.warning("malformed_collaborator_response", path=str(request.url.path), error=str(exc))
        return _error(502, "MALFORMED_RESPONSE", str(exc))

    @app.exception_handler(TransportFailure)
    async def transport_failure_handler(request: Request, exc: TransportFailure) -> JSONResponse:
        _log.warning("collaborator_unavailable", path=str(request.url.path), error=str(exc))
        return _error(503, "COLLABORATOR_UNAVAILABLE", str(exc))

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; stack traces never leave the process."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return _error(500, "INTERNAL_ERROR", "An unexpected error occurred.")

    return app
