"""Live graph view: the one "current" snapshot a consumer is looking at.

Only the most recently issued request may bind: issuing a new refresh
cancels the one in flight, and a result that arrives after it has been
superseded is discarded. Auto-refresh never starts on its own; the owner
calls ``start_auto_refresh()`` while the view is active and ``stop()`` on
teardown.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from kubegraph.errors import GraphEngineError
from kubegraph.graph.filters import GraphFilter, SecondaryFilter, apply_secondary_filters
from kubegraph.graph.models import DependencyGraph
from kubegraph.graph.stats import GraphStatistics, summarize
from kubegraph.graph.traversal import DEFAULT_MAX_DEPTH, SubgraphResult, extract_connected_subgraph
from kubegraph.observability import metrics
from kubegraph.retrieval.service import DependencyGraphService

_log = structlog.get_logger(component="retrieval.view")

SnapshotCallback = Callable[[DependencyGraph], None]
ErrorCallback = Callable[[GraphEngineError], None]


class GraphView:
    """Binds the latest retrieved snapshot and narrows it locally.

    Args:
        service:      Retrieval service used for every refresh.
        graph_filter: Collaborator-side filter.
        secondary:    Local narrowing, re-applied without a round trip.
        on_snapshot:  Called with each newly bound (filtered) snapshot.
        on_error:     Called with the error of the latest request, if it failed.
    """

    def __init__(
        self,
        service: DependencyGraphService,
        graph_filter: GraphFilter | None = None,
        secondary: SecondaryFilter | None = None,
        on_snapshot: SnapshotCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._service = service
        self._filter = graph_filter or GraphFilter()
        self._secondary = secondary
        self._on_snapshot = on_snapshot
        self._on_error = on_error

        self._sequence = 0
        self._in_flight: asyncio.Task[DependencyGraph] | None = None
        self._auto_refresh: asyncio.Task[None] | None = None

        self._raw: DependencyGraph | None = None
        self.snapshot: DependencyGraph | None = None
        self.last_error: GraphEngineError | None = None

    @property
    def sequence(self) -> int:
        """Token of the most recently issued request."""
        return self._sequence

    @property
    def auto_refresh_running(self) -> bool:
        return self._auto_refresh is not None and not self._auto_refresh.done()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def refresh(self) -> DependencyGraph | None:
        """Issue a new request and bind its result if it is still the latest.

        Returns the bound snapshot, or ``None`` when this request was
        superseded before it finished.

        Raises:
            GraphEngineError: the latest request failed.
        """
        self._sequence += 1
        token = self._sequence
        if self._in_flight is not None and not self._in_flight.done():
            self._in_flight.cancel()

        task = asyncio.create_task(self._service.retrieve(self._filter), name=f"graph-refresh-{token}")
        self._in_flight = task
        try:
            raw = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if token != self._sequence and not (current is not None and current.cancelling()):
                self._discard(token)
                return None
            raise
        except GraphEngineError as exc:
            if token != self._sequence:
                self._discard(token)
                return None
            self.last_error = exc
            if self._on_error is not None:
                self._on_error(exc)
            raise
        finally:
            if self._in_flight is task:
                self._in_flight = None

        if token != self._sequence:
            self._discard(token)
            return None
        self.last_error = None
        self._raw = raw
        return self._bind()

    async def update_filter(self, graph_filter: GraphFilter) -> DependencyGraph | None:
        """Replace the collaborator-side filter and refresh."""
        self._filter = graph_filter
        return await self.refresh()

    def set_secondary_filter(self, secondary: SecondaryFilter | None) -> DependencyGraph | None:
        """Replace the local filter and re-apply it to the last raw snapshot."""
        self._secondary = secondary
        if self._raw is None:
            return None
        return self._bind()

    # ------------------------------------------------------------------
    # Auto-refresh
    # ------------------------------------------------------------------

    def start_auto_refresh(self, interval: float) -> None:
        """Refresh every *interval* seconds until ``stop()``."""
        if interval <= 0:
            raise ValueError("auto-refresh interval must be positive")
        if self.auto_refresh_running:
            return
        self._auto_refresh = asyncio.create_task(self._auto_refresh_loop(interval), name="graph-auto-refresh")
        _log.info("auto_refresh_started", interval=interval)

    async def _auto_refresh_loop(self, interval: float) -> None:
        while True:
            try:
                await self.refresh()
            except GraphEngineError as exc:
                _log.warning("auto_refresh_failed", error=str(exc))
            except Exception as exc:
                _log.error("auto_refresh_crashed", error=str(exc), exc_info=True)
            await asyncio.sleep(interval)

    async def stop(self) -> None:
        """Cancel auto-refresh and any request in flight. Safe to call twice."""
        self._sequence += 1
        tasks = [t for t in (self._auto_refresh, self._in_flight) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._auto_refresh is not None:
            _log.info("auto_refresh_stopped")
        self._auto_refresh = None
        self._in_flight = None

    # ------------------------------------------------------------------
    # Queries on the bound snapshot
    # ------------------------------------------------------------------

    def focus(self, resource_id: str, max_depth: int = DEFAULT_MAX_DEPTH) -> SubgraphResult:
        """Connected neighbourhood of *resource_id* in the bound snapshot."""
        return extract_connected_subgraph(self.snapshot or DependencyGraph.empty(), resource_id, max_depth)

    def statistics(self) -> GraphStatistics:
        return summarize(self.snapshot)

    # ------------------------------------------------------------------

    def _bind(self) -> DependencyGraph:
        assert self._raw is not None
        self.snapshot = apply_secondary_filters(self._raw, self._secondary)
        if self._on_snapshot is not None:
            self._on_snapshot(self.snapshot)
        return self.snapshot

    def _discard(self, token: int) -> None:
        metrics.stale_responses_total.inc()
        _log.debug("stale_response_discarded", token=token, latest=self._sequence)
