"""knnvec CLI application with Typer."""

import logging
import time
from pathlib import Path
from typing import Annotated

import numpy as np
import typer

from knnvec import __version__
from knnvec.app.adapters.methods import available_methods
from knnvec.app.adapters.spaces import available_spaces
from knnvec.app.bundle import read_manifest
from knnvec.bootstrap import bootstrap_application
from knnvec.config import get_settings, set_settings
from knnvec.errors import KnnVecError
from knnvec.utils.cli_output import json_response

app = typer.Typer(
    name="knnvec",
    help="Approximate nearest-neighbor vector index",
    add_completion=True,
    no_args_is_help=True,
)
index_app = typer.Typer(help="Build, query and inspect saved index bundles")
app.add_typer(index_app, name="index")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"knnvec version {__version__}")
        raise typer.Exit()


def _fail(exc: Exception) -> typer.Exit:
    typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
    return typer.Exit(code=1)


def _load_array(path: Path, what: str) -> np.ndarray:
    if not path.exists():
        typer.secho(f"Error: {what} file not found: {path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    try:
        return np.load(path, allow_pickle=False)
    except (OSError, ValueError) as exc:
        typer.secho(f"Error: Cannot read {what} file {path}: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Override data directory"),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)"),
    ] = None,
) -> None:
    """knnvec - approximate nearest-neighbor vector index."""
    settings = get_settings()
    if data_dir:
        settings.data_dir = data_dir
    if log_level:
        level = log_level.upper()
        if level not in logging.getLevelNamesMapping():
            typer.secho(f"Error: Unknown log level {log_level!r}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=2)
        settings.log_level = level
    set_settings(settings)


@app.command("spaces")
def list_spaces() -> None:
    """List available distance spaces."""
    for name in available_spaces():
        typer.echo(name)


@app.command("methods")
def list_methods() -> None:
    """List available index methods."""
    for name in available_methods():
        typer.echo(name)


@index_app.command("build")
def index_build(
    vectors: Annotated[Path, typer.Argument(help="2-D .npy array of float vectors")],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Bundle directory (bare names go under the data dir)"),
    ],
    ids: Annotated[
        Path | None,
        typer.Option("--ids", help="1-D .npy array of integer ids (defaults to row numbers)"),
    ] = None,
    space: Annotated[
        str | None,
        typer.Option("--space", "-s", help="Distance space name"),
    ] = None,
    space_param: Annotated[
        list[str] | None,
        typer.Option("--space-param", help="Space parameter key=value (repeatable)"),
    ] = None,
    method: Annotated[
        str | None,
        typer.Option("--method", "-m", help="Index method name"),
    ] = None,
    param: Annotated[
        list[str] | None,
        typer.Option("--param", "-p", help="Build parameter key=value (repeatable)"),
    ] = None,
) -> None:
    """Build an index from a vector file and save it as a bundle."""
    container = bootstrap_application()
    data = _load_array(vectors, "vectors")
    identifiers = _load_array(ids, "ids") if ids is not None else np.arange(len(data))

    start = time.perf_counter()
    try:
        handle = container.new_handle(space, space_param, method)
        handle.add_data_point_batch(identifiers, data)
        handle.create_index(param or [])
        directory = container.save(handle, output)
    except KnnVecError as exc:
        raise _fail(exc) from exc
    elapsed = time.perf_counter() - start

    typer.secho(
        f"Indexed {handle.get_data_point_qty()} vectors with '{handle.method_name}' "
        f"({handle.space_name}) in {elapsed:.2f}s",
        fg=typer.colors.GREEN,
    )
    typer.secho(f"Bundle stored at {directory}", fg=typer.colors.BLUE)
    handle.close()


@index_app.command("query")
def index_query(
    bundle: Annotated[Path, typer.Argument(help="Bundle directory")],
    queries: Annotated[Path, typer.Argument(help="2-D .npy array of query vectors")],
    k: Annotated[int, typer.Option("--k", "-k", help="Neighbors per query", min=1)] = 10,
    threads: Annotated[
        int | None,
        typer.Option("--threads", "-t", help="Worker threads (defaults to settings)", min=1),
    ] = None,
    query_param: Annotated[
        list[str] | None,
        typer.Option("--query-param", "-q", help="Query-time parameter key=value (repeatable)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results as JSON"),
    ] = False,
) -> None:
    """Answer kNN queries against a saved bundle."""
    container = bootstrap_application()
    data = _load_array(queries, "queries")
    if data.ndim == 1:
        data = data.reshape(1, -1)

    try:
        handle = container.open(bundle)
    except KnnVecError as exc:
        raise _fail(exc) from exc
    try:
        if query_param:
            handle.set_query_time_params(query_param)
        rows = handle.knn_query_batch_lists(threads, k, data)
    except KnnVecError as exc:
        raise _fail(exc) from exc
    finally:
        handle.close()

    if json_output:
        typer.echo(json_response("knn_results", 1, k=k, total_queries=len(rows), results=rows))
        return

    for position, ids in enumerate(rows):
        typer.echo(f"{position}\t{' '.join(str(identifier) for identifier in ids)}")


@index_app.command("info")
def index_info(
    bundle: Annotated[Path, typer.Argument(help="Bundle directory")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output manifest as JSON"),
    ] = False,
) -> None:
    """Show the manifest of a saved bundle."""
    container = bootstrap_application()
    try:
        manifest = read_manifest(container.resolve_bundle_dir(bundle))
    except KnnVecError as exc:
        raise _fail(exc) from exc

    if json_output:
        typer.echo(json_response("index_manifest", 1, **manifest.model_dump(mode="json")))
        return

    typer.echo(f"Method:        {manifest.method}")
    typer.echo(f"Space:         {manifest.space} {' '.join(manifest.space_params)}".rstrip())
    typer.echo(f"Build params:  {' '.join(manifest.build_params) or '(defaults)'}")
    typer.echo(f"Points:        {manifest.point_count}")
    typer.echo(f"Dimensions:    {manifest.dim}")
    typer.echo(f"Producer:      knnvec {manifest.producer_version}")
    typer.echo(f"Created:       {manifest.created_at}")


if __name__ == "__main__":
    app()
