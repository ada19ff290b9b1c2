"""
Command-line interface for the Rynn API.

Provides 'rynn serve' to start the server and 'rynn routes' to inspect
which plugin modules load and where they are bound.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from fastapi import APIRouter
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from . import __version__
from .api.config import Config
from .api.models import CatalogCategory, ModuleFailure
from .api.server import LOG_FORMAT, load_modules, run_server

app = typer.Typer(
    name="rynn",
    help="Rynn API - plugin-based HTTP API host",
    no_args_is_help=True,
    add_completion=False,
)


def _load_config(**overrides: Any) -> Config:
    """Build config from the environment, with command-line values on top."""
    return Config(**{key: value for key, value in overrides.items() if value is not None})


def _setup_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def _render_catalog(console: Console, categories: List[CatalogCategory]) -> None:
    table = Table(title="Loaded Routes")
    table.add_column("Category", style="cyan")
    table.add_column("Name")
    table.add_column("Method", style="green")
    table.add_column("Path")
    table.add_column("Author", style="dim")

    for category in categories:
        for item in category.items:
            table.add_row(category.name, item.name, item.method.upper(), item.path, item.author or "")

    console.print(table)


def _display_source(source: str, root: str) -> str:
    try:
        return str(Path(source).relative_to(root))
    except ValueError:
        return source


def _render_failures(console: Console, failures: List[ModuleFailure], root: str) -> None:
    table = Table(title="Skipped Modules")
    table.add_column("Source")
    table.add_column("Reason", style="red")
    table.add_column("Details")

    for failure in failures:
        table.add_row(_display_source(failure.source, root), failure.kind.value, failure.message)

    console.print(table)


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Listen port")] = None,
    api_dir: Annotated[
        Optional[str], typer.Option("--api-dir", help="Plugin module directory")
    ] = None,
    settings_path: Annotated[
        Optional[str], typer.Option("--settings", help="Settings document path")
    ] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level")] = None,
) -> None:
    """Start the API server."""
    config = _load_config(
        host=host,
        port=port,
        api_dir=api_dir,
        settings_path=settings_path,
        log_level=log_level,
    )
    _setup_logging(config.log_level)
    run_server(config)


@app.command()
def routes(
    api_dir: Annotated[
        Optional[str], typer.Option("--api-dir", help="Plugin module directory")
    ] = None,
    extension: Annotated[
        Optional[str], typer.Option("--extension", help="Plugin module file extension")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Machine-output mode")] = False,
    log_level: Annotated[str, typer.Option("--log-level", help="Logging level")] = "WARNING",
) -> None:
    """Discover plugin modules and list the routes they would bind.

    Exits with status 1 when any module was skipped.
    """
    config = _load_config(api_dir=api_dir, module_extension=extension)
    _setup_logging(log_level)

    binder, report = load_modules(config, APIRouter())
    categories = binder.catalog.build()

    if json_output:
        data: Dict[str, Any] = {
            "version": __version__,
            "categories": [category.model_dump() for category in categories],
            "skipped": [failure.model_dump(mode="json") for failure in report.failures],
        }
        typer.echo(json.dumps(data, indent=2))
    else:
        console = Console()
        if categories:
            _render_catalog(console, categories)
        else:
            console.print(f"No modules loaded from {config.api_dir}")
        if report.failures:
            _render_failures(console, report.failures, config.api_dir)

    if report.failures:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
