"""Command line interface for the case study gallery."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from casegallery.config import AppConfig
from casegallery.filters import FilterConfigError
from casegallery.index.catalog import Catalog

console = Console()
app = typer.Typer(help="Case study gallery - index and serve CASESTUDY.md documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load_catalog(root: Path, workers: int) -> Catalog:
    try:
        return Catalog.initialize(root, max_workers=workers)
    except FilterConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def scan(
    root: Path = typer.Argument(..., help="Content root to scan.", resolve_path=True),
    workers: int = typer.Option(AppConfig().scan_workers, help="Concurrent extraction workers"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Scan a content root once and list the case studies found."""
    _setup_logging(verbose)
    catalog = _load_catalog(root, workers)

    console.print(f"Scanning [bold]{catalog.root}[/bold]...")
    stats = catalog.scanner.scan()
    status = catalog.get_status()
    if status.last_error:
        console.print(f"[red]Scan failed: {status.last_error}[/red]")
        raise typer.Exit(code=1)

    records = catalog.scanner.snapshot.records
    if not records:
        console.print("[yellow]No case studies found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Image")
    for record in records:
        table.add_row(record.id, escape(record.title), escape(record.image_path or "-"))
    console.print(table)
    if stats is not None:
        console.print(
            f"Found: {stats.found}, excluded: {stats.excluded}, "
            f"extracted: {stats.extracted}, failed: {stats.failed}"
        )


@app.command()
def filters(
    root: Path = typer.Argument(..., help="Content root holding the filter config.", resolve_path=True),
) -> None:
    """Show the exclusion rules in effect for a content root."""
    rules = _load_catalog(root, 1).scanner.rules

    console.print("[bold]Excluded paths[/bold]")
    for pattern in rules.exclude_paths:
        console.print(f"  {pattern}", markup=False)
    for filename, patterns in rules.exclude_patterns.items():
        console.print(f"[bold]Excluded for {filename}[/bold]")
        for pattern in patterns:
            console.print(f"  {pattern}", markup=False)


@app.command()
def serve(
    root: Path = typer.Option(None, "--root", help="Content root (defaults to MD_ROOT)"),
    host: str = typer.Option(None, help="Host interface"),
    port: int = typer.Option(None, help="Server port"),
) -> None:
    """Start the web gallery."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from casegallery.web.app import create_app

    config = AppConfig.from_env()
    if root is not None:
        config.md_root = root
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port

    if not config.resolve_md_root(Path.cwd()).is_dir():
        console.print("[yellow]Warning: content root not found, the gallery will be empty.[/yellow]")

    console.print(f"Starting gallery on http://{config.host}:{config.port} (root: {config.md_root})")
    console.print(f"Background scanning interval: {config.scan_interval_ms}ms")
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":  # pragma: no cover
    app()
