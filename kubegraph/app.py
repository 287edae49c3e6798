"""Application bootstrap for kubegraph.

Wires components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → collaborator client → services → REST

Shutdown is graceful: components are stopped in reverse startup order and
each stop error is logged independently so one failure does not prevent the
rest from shutting down.
"""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from kubegraph.collaborators import DegradedGraphProvider, HTTPGraphCollaborator
from kubegraph.config import load_config
from kubegraph.crd.service import CRDRelationshipService
from kubegraph.models.config import KubeGraphConfig
from kubegraph.observability.logging import get_logger, setup_logging
from kubegraph.retrieval.policy import DegradationPolicy
from kubegraph.retrieval.service import DependencyGraphService

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


@dataclass
class Services:
    graph: DependencyGraphService
    crd: CRDRelationshipService


def build_services(config: KubeGraphConfig, client: httpx.AsyncClient | None = None) -> Services:
    """Build the retrieval and CRD services from *config*.

    Placeholders come from a DegradedGraphProvider only when enabled in
    configuration; otherwise exhausted fallbacks raise TransportFailure.
    """
    collaborator = HTTPGraphCollaborator(config.collaborator.base_url, client=client)
    degraded = DegradedGraphProvider()

    graph_policy = DegradationPolicy(
        primary_timeout=config.graph.timeout_seconds,
        fallback_timeout=config.graph.fallback_timeout_seconds,
        fallback_limit=config.graph.fallback_max_nodes,
        allow_placeholder=config.graph.placeholder_enabled,
    )
    crd_policy = DegradationPolicy(
        primary_timeout=config.crd.timeout_seconds,
        fallback_timeout=config.crd.fallback_timeout_seconds,
        fallback_limit=config.crd.fallback_max_relationships,
        allow_placeholder=config.crd.placeholder_enabled,
    )
    analysis_policy = DegradationPolicy(
        primary_timeout=config.crd.analysis_timeout_seconds,
        fallback_timeout=config.crd.analysis_fallback_timeout_seconds,
        fallback_limit=config.crd.analysis_fallback_max_crds,
        allow_placeholder=config.crd.placeholder_enabled,
    )
    return Services(
        graph=DependencyGraphService(
            collaborator,
            graph_policy,
            default_max_nodes=config.graph.default_max_nodes,
            degraded_source=degraded if config.graph.placeholder_enabled else None,
        ),
        crd=CRDRelationshipService(
            collaborator,
            crd_policy,
            degraded_source=degraded if config.crd.placeholder_enabled else None,
            analysis_policy=analysis_policy,
        ),
    )


class KubeGraphApp:
    """Application root. Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self) -> None:
        self.config: KubeGraphConfig | None = None
        self.services: Services | None = None

        self._http_client: httpx.AsyncClient | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        self.config = load_config()

        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("kubegraph starting", version=_kubegraph_version())

        await self._start_services()
        await self._start_rest()

        self._running = True
        self._log.info("kubegraph started", port=self.config.api.port)

    async def _start_services(self) -> None:
        """Open the shared collaborator client and build the services."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting services", collaborator=self.config.collaborator.base_url)
        try:
            self._http_client = httpx.AsyncClient()
            self.services = build_services(self.config, client=self._http_client)
            self._log.info(
                "services started",
                collaborator=self.config.collaborator.base_url,
                placeholder_enabled=self.config.graph.placeholder_enabled,
            )
        except Exception as exc:
            raise _ComponentError("services", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server."""
        assert self._log is not None
        assert self.config is not None
        assert self.services is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from kubegraph.api import build_app

            fastapi_app = build_app(
                graph_service=self.services.graph,
                crd_service=self.services.crd,
                config=self.config,
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubegraph shutting down")

        self._running = False

        if self._rest_server is not None:
            # uvicorn watches this flag and drains connections on its own
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
        if self._background_tasks:
            _done, pending = await asyncio.wait(self._background_tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                task.cancel()
            if pending:
                log.warning("component stop timed out", component="rest", timeout=_SHUTDOWN_GRACE_SECONDS)
                await asyncio.gather(*pending, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._close_http_client()
        self.services = None

        log.info("kubegraph stopped")

    async def _close_http_client(self) -> None:
        if self._http_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._http_client.aclose()
        except Exception as exc:
            log.error("component stop raised an error", component="http_client", error=str(exc))
        self._http_client = None


def _kubegraph_version() -> str:
    from kubegraph import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubeGraphApp()
    loop = asyncio.get_running_loop()

    shutdown_triggered = False

    def _request_shutdown() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            return
        shutdown_triggered = True
        asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app._running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()
