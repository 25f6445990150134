"""Typer-based CLI for the scx analyzer."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .analyzer import analyze_project
from .config_manager import load_project_config
from .errors import ScxError
from .manifests import read_manifests
from .models import DiagnosticLevel, Model

app = typer.Typer(
    help="Server/client component X-ray for built app-router projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console(stderr=True)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"scx-analyzer v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """Analyze server/client boundaries, bundles and caching of a built project."""
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _summary_table(model: Model) -> Table:
    table = Table(title="Routes", show_header=True, show_lines=False)
    table.add_column("Route", style="cyan")
    table.add_column("Bytes", justify="right")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Warnings", justify="right", style="yellow")
    table.add_column("Suggestions", justify="right", style="green")

    for route in model.routes:
        reachable = _reachable(model, route.root_node_id)
        diagnostics = [d for n in reachable for d in n.diagnostics]
        suggestions = sum(len(n.suggestions) for n in reachable)
        table.add_row(
            route.route,
            str(route.total_bytes) if route.total_bytes is not None else "-",
            str(sum(1 for d in diagnostics if d.level == DiagnosticLevel.ERROR)),
            str(sum(1 for d in diagnostics if d.level == DiagnosticLevel.WARN)),
            str(suggestions),
        )
    return table


def _reachable(model: Model, node_id: str):
    seen, stack, found = set(), [node_id], []
    while stack:
        current = stack.pop()
        if current in seen or current not in model.nodes:
            continue
        seen.add(current)
        node = model.nodes[current]
        found.append(node)
        stack.extend(node.children)
    return found


@app.command("analyze")
def analyze(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root to analyze."),
    dist_dir: Optional[str] = typer.Option(None, "--dist-dir", help="Build output directory (default .next)."),
    app_dir: Optional[str] = typer.Option(None, "--app-dir", help="App router source directory (default app)."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the model JSON to this file."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
):
    """Analyze a built project and emit the model as JSON."""
    _configure_logging(verbose)
    try:
        model = analyze_project(project_path, dist_dir=dist_dir, app_dir=app_dir)
    except ScxError as exc:
        console.print(f"[red]✗[/red] {exc.message}")
        raise typer.Exit(code=1)

    payload = json.dumps(model.to_dict(), indent=2)
    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(payload + "\n", encoding="utf-8")
        console.print(f"[green]✓[/green] Wrote model to {out}")
    else:
        typer.echo(payload)
    console.print(_summary_table(model))


@app.command("routes")
def routes(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Project root."),
    dist_dir: Optional[str] = typer.Option(None, "--dist-dir", help="Build output directory (default .next)."),
):
    """List the routes found in the build manifests."""
    _configure_logging(False)
    config = load_project_config(project_path).with_overrides(dist_dir=dist_dir)
    try:
        manifests = read_manifests(project_path, config.dist_dir)
    except ScxError as exc:
        console.print(f"[red]✗[/red] {exc.message}")
        raise typer.Exit(code=1)

    table = Table(title="Manifest routes", show_header=True)
    table.add_column("Route", style="cyan")
    table.add_column("Chunks", justify="right")
    table.add_column("Bytes", justify="right")
    table.add_column("Revalidate", justify="right")
    table.add_column("Tags")
    for asset in manifests.routes:
        table.add_row(
            asset.route,
            str(len(asset.chunks)),
            str(asset.total_bytes) if asset.total_bytes is not None else "-",
            ", ".join(str(s) for s in asset.cache.revalidate_seconds) if asset.cache else "-",
            ", ".join(asset.cache.tags) if asset.cache else "-",
        )
    Console().print(table)


if __name__ == "__main__":
    app()
