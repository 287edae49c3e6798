"""kubegraph command-line interface.

Every command reads configuration from ``KUBEGRAPH_*`` environment variables,
talks to the collaborator once (``watch`` keeps refreshing) and prints JSON (or the export payload) to
stdout. Engine errors exit with status 1 and the error message on stderr.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import click

from kubegraph.crd.analysis import AnalysisDepth, CRDAnalysisOptions, CRDExportFormat, CRDExportOptions
from kubegraph.crd.models import CRDRelationshipOptions
from kubegraph.errors import GraphEngineError
from kubegraph.export import ExportFormat, ExportOptions, export_graph
from kubegraph.graph.filters import GraphFilter, SecondaryFilter
from kubegraph.graph.stats import summarize
from kubegraph.graph.traversal import DEFAULT_MAX_DEPTH, extract_connected_subgraph
from kubegraph.models.config import KubeGraphConfig
from kubegraph.retrieval.view import GraphView

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])


def _graph_filter_options(func: F) -> F:
    """Shared collaborator-side and local filter options."""
    options = [
        click.option("--namespace", "-n", default=None, help="Only resources in this namespace."),
        click.option("--include-custom/--no-include-custom", default=None, help="Include custom resources."),
        click.option("--resource-type", "resource_types", multiple=True, help="Resource kind allow-list."),
        click.option("--dependency-type", "dependency_types", multiple=True, help="Dependency type allow-list."),
        click.option("--max-nodes", type=int, default=None, help="Node limit requested from the collaborator."),
        click.option("--search", default=None, help="Substring match over name, kind and namespace."),
        click.option("--strong-only", is_flag=True, default=False, help="Drop weak dependencies."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_filters(kwargs: dict[str, Any]) -> tuple[GraphFilter, SecondaryFilter]:
    graph_filter = GraphFilter.build(
        namespace=kwargs.pop("namespace"),
        include_custom_resources=kwargs.pop("include_custom"),
        resource_types=kwargs.pop("resource_types"),
        dependency_types=kwargs.pop("dependency_types"),
        max_nodes=kwargs.pop("max_nodes"),
    )
    secondary = SecondaryFilter.build(search=kwargs.pop("search"), strong_only=kwargs.pop("strong_only"))
    return graph_filter, secondary


def _services(ctx: click.Context) -> Any:
    """Services from the context object, built from configuration on first use."""
    obj = ctx.ensure_object(dict)
    if "services" not in obj:
        from kubegraph.app import build_services

        obj["services"] = build_services(_config(ctx))
    return obj["services"]


def _config(ctx: click.Context) -> KubeGraphConfig:
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        from kubegraph.config import load_config

        try:
            obj["config"] = load_config()
        except ValueError as exc:
            raise click.ClickException(f"Invalid configuration: {exc}") from exc
    return obj["config"]


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except GraphEngineError as exc:
        raise click.ClickException(str(exc)) from exc


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))


@click.group()
@click.option("--log-level", default=None, help="Override KUBEGRAPH_LOG_LEVEL.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """kubegraph: Kubernetes resource relationship graphs."""
    from kubegraph.observability.logging import setup_logging

    ctx.ensure_object(dict)
    setup_logging(log_level or "warning")


@cli.command()
@_graph_filter_options
@click.pass_context
def graph(ctx: click.Context, **kwargs: Any) -> None:
    """Print the filtered dependency graph."""
    try:
        graph_filter, secondary = _build_filters(kwargs)
    except GraphEngineError as exc:
        raise click.BadParameter(str(exc)) from exc
    snapshot = _run(_services(ctx).graph.retrieve(graph_filter, secondary))
    _echo_json(snapshot.to_dict())


@cli.command()
@click.argument("resource_id")
@click.option("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, show_default=True, help="Hops from the resource.")
@_graph_filter_options
@click.pass_context
def subgraph(ctx: click.Context, resource_id: str, max_depth: int, **kwargs: Any) -> None:
    """Print everything within MAX_DEPTH hops of RESOURCE_ID (kind/name[@namespace])."""
    try:
        graph_filter, secondary = _build_filters(kwargs)
    except GraphEngineError as exc:
        raise click.BadParameter(str(exc)) from exc
    snapshot = _run(_services(ctx).graph.retrieve(graph_filter, secondary))
    try:
        result = extract_connected_subgraph(snapshot, resource_id, max_depth)
    except GraphEngineError as exc:
        raise click.BadParameter(str(exc)) from exc
    _echo_json(result.to_dict())


@cli.command()
@_graph_filter_options
@click.pass_context
def stats(ctx: click.Context, **kwargs: Any) -> None:
    """Print graph statistics."""
    try:
        graph_filter, secondary = _build_filters(kwargs)
    except GraphEngineError as exc:
        raise click.BadParameter(str(exc)) from exc
    snapshot = _run(_services(ctx).graph.retrieve(graph_filter, secondary))
    out = summarize(snapshot).to_dict()
    out["degraded"] = snapshot.is_degraded
    _echo_json(out)


@cli.command(name="export")
@click.option(
    "--format",
    "fmt",
    type=click.Choice([f.value for f in ExportFormat]),
    default=ExportFormat.STRUCTURED.value,
    show_default=True,
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), default=None, help="Write to a file.")
@click.option("--include-raw-graph", is_flag=True, default=False)
@click.option("--include-schema-details", is_flag=True, default=False, help="Add CRD relationship analysis.")
@click.option("--no-dependency-metadata", is_flag=True, default=False)
@_graph_filter_options
@click.pass_context
def export_command(
    ctx: click.Context,
    fmt: str,
    output: str | None,
    include_raw_graph: bool,
    include_schema_details: bool,
    no_dependency_metadata: bool,
    **kwargs: Any,
) -> None:
    """Export the graph as structured JSON, CSV or a Markdown report."""
    try:
        graph_filter, secondary = _build_filters(kwargs)
    except GraphEngineError as exc:
        raise click.BadParameter(str(exc)) from exc
    services = _services(ctx)

    async def _collect() -> tuple[Any, Any]:
        snapshot = await services.graph.retrieve(graph_filter, secondary)
        crd_data = await services.crd.request_relationships() if include_schema_details else None
        return snapshot, crd_data

    snapshot, crd_data = _run(_collect())
    payload = export_graph(
        snapshot,
        fmt,
        ExportOptions(
            include_raw_graph=include_raw_graph,
            include_schema_details=include_schema_details,
            include_dependency_metadata=not no_dependency_metadata,
        ),
        crd_data=crd_data,
    )
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(payload.as_text())
        click.echo(f"Wrote {payload.format.value} export to {output}", err=True)
    else:
        click.echo(payload.as_text())


@cli.command()
@click.option("--api-group", "api_groups", multiple=True)
@click.option("--crd", "crds", multiple=True)
@click.option("--max-relationships", type=int, default=None)
@click.option("--relationship-type", "relationship_types", multiple=True)
@click.option("--include-metadata/--no-include-metadata", default=None)
@click.pass_context
def crd(
    ctx: click.Context,
    api_groups: tuple[str, ...],
    crds: tuple[str, ...],
    max_relationships: int | None,
    relationship_types: tuple[str, ...],
    include_metadata: bool | None,
) -> None:
    """Print CRD-to-CRD relationships."""
    try:
        options = CRDRelationshipOptions.build(
            api_groups=api_groups,
            crds=crds,
            max_relationships=max_relationships,
            relationship_types=relationship_types,
            include_metadata=include_metadata,
        )
    except GraphEngineError as exc:
        raise click.BadParameter(str(exc)) from exc
    response = _run(_services(ctx).crd.request_relationships(options))
    _echo_json(response.to_dict())


@cli.command(name="crd-groups")
@click.pass_context
def crd_groups(ctx: click.Context) -> None:
    """Print the API groups that serve CRDs."""
    groups = _run(_services(ctx).crd.get_api_groups())
    _echo_json([group.to_dict() for group in groups])


@cli.command(name="crd-analysis")
@click.option("--api-group", "api_groups", multiple=True, help="Only the first three are sent.")
@click.option("--max-crds", type=int, default=None, help="Capped at 10.")
@click.option("--include-native", is_flag=True, default=False, help="Include native resource kinds.")
@click.option("--depth", type=click.Choice([d.value for d in AnalysisDepth]), default=None)
@click.pass_context
def crd_analysis(
    ctx: click.Context,
    api_groups: tuple[str, ...],
    max_crds: int | None,
    include_native: bool,
    depth: str | None,
) -> None:
    """Print the enhanced CRD dependency analysis."""
    try:
        options = CRDAnalysisOptions.build(
            api_groups=api_groups,
            max_crds=max_crds,
            include_native_resources=include_native,
            depth=depth,
        )
    except GraphEngineError as exc:
        raise click.BadParameter(str(exc)) from exc
    result = _run(_services(ctx).crd.request_analysis(options))
    _echo_json(result.to_dict())


@cli.command(name="crd-export")
@click.option(
    "--format",
    "fmt",
    type=click.Choice([f.value for f in CRDExportFormat]),
    default=CRDExportFormat.JSON.value,
    show_default=True,
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), default=None, help="Write to a file.")
@click.option("--include-schema-details/--no-include-schema-details", default=None)
@click.option("--include-dependency-metadata/--no-include-dependency-metadata", default=None)
@click.option("--focus-on-crds/--no-focus-on-crds", default=None)
@click.option("--api-group", "api_groups", multiple=True)
@click.pass_context
def crd_export(
    ctx: click.Context,
    fmt: str,
    output: str | None,
    include_schema_details: bool | None,
    include_dependency_metadata: bool | None,
    focus_on_crds: bool | None,
    api_groups: tuple[str, ...],
) -> None:
    """Export the CRD analysis as rendered by the collaborator."""
    options = CRDExportOptions.build(
        fmt=fmt,
        include_schema_details=include_schema_details,
        include_dependency_metadata=include_dependency_metadata,
        focus_on_crds=focus_on_crds,
        api_groups=api_groups,
    )
    exported = _run(_services(ctx).crd.export_analysis(options))
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(exported.as_text())
        click.echo(f"Wrote {exported.format.value} CRD export to {output}", err=True)
    else:
        click.echo(exported.as_text())


@cli.command()
@click.option(
    "--interval", type=float, default=None, help="Seconds between refreshes [default: KUBEGRAPH_REFRESH_INTERVAL]."
)
@click.option("--count", type=int, default=None, help="Stop after this many snapshots.")
@_graph_filter_options
@click.pass_context
def watch(ctx: click.Context, interval: float | None, count: int | None, **kwargs: Any) -> None:
    """Refresh the graph on an interval and print one stats line per snapshot."""
    try:
        graph_filter, secondary = _build_filters(kwargs)
    except GraphEngineError as exc:
        raise click.BadParameter(str(exc)) from exc
    if interval is None:
        interval = _config(ctx).view.refresh_interval_seconds
    if interval <= 0:
        raise click.BadParameter("interval must be positive", param_hint="--interval")
    services = _services(ctx)

    async def _watch() -> None:
        done = asyncio.Event()
        seen = 0

        def on_snapshot(snapshot: Any) -> None:
            nonlocal seen
            if done.is_set():
                return
            seen += 1
            out = summarize(snapshot).to_dict()
            out["degraded"] = snapshot.is_degraded
            click.echo(json.dumps(out, sort_keys=True))
            if count is not None and seen >= count:
                done.set()

        def on_error(exc: GraphEngineError) -> None:
            click.echo(f"Error: {exc}", err=True)

        view = GraphView(services.graph, graph_filter, secondary, on_snapshot=on_snapshot, on_error=on_error)
        view.start_auto_refresh(interval)
        try:
            await done.wait()
        finally:
            await view.stop()

    try:
        _run(_watch())
    except KeyboardInterrupt:
        pass


@cli.command()
def serve() -> None:
    """Run the REST API until SIGTERM or SIGINT."""
    from kubegraph.app import main

    asyncio.run(main())
