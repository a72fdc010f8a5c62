"""CLI interface for folio."""

import logging
import time
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from folio.config import FolioConfig, load_config
from folio.content.index import ContentIndex
from folio.content.parser import MarkdownParser

app = typer.Typer(
    name="folio",
    help="Index, validate, render, and watch a directory of markdown content.",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from folio import __version__

        console.print(f"folio {__version__}")
        raise typer.Exit()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_index(ctx: typer.Context) -> ContentIndex:
    config: FolioConfig = ctx.obj
    index = config.build_index()
    index.initialize()
    return index


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .folio.toml file."),
    ] = None,
    content_root: Annotated[
        Optional[Path],
        typer.Option("--content", help="Content root (overrides config)."),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Folio - file-backed content index."""
    config = load_config(config_path)
    if content_root is not None:
        config.content.root = str(content_root)
    _setup_logging(config.logging.level)
    ctx.obj = config


@app.command("index")
def index_command(ctx: typer.Context) -> None:
    """Scan the content root and list every indexed record."""
    index = _load_index(ctx)

    table = Table(title=f"{len(index)} records")
    table.add_column("Slug")
    table.add_column("Kind")
    table.add_column("Title")
    table.add_column("Order", justify="right")
    table.add_column("Date")
    table.add_column("Published")
    for record in sorted(index.records(), key=lambda r: (r.kind, r.sort_order, r.slug)):
        table.add_row(
            record.slug,
            record.kind.value,
            record.title,
            str(record.sort_order),
            record.published_date.strftime("%Y-%m-%d"),
            "yes" if record.is_published else "no",
        )
    console.print(table)


@app.command("validate")
def validate_command(
    files: Annotated[list[Path], typer.Argument(help="Markdown files to validate.")],
) -> None:
    """Validate markdown files and report every error found."""
    parser = MarkdownParser()
    failed = 0
    for path in files:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            console.print(f"[red]✗ {path}: {exc}[/red]")
            failed += 1
            continue
        result = parser.validate(text)
        if result.valid:
            console.print(f"[green]✓ {path}[/green]")
        else:
            failed += 1
            console.print(f"[red]✗ {path}[/red]")
            for error in result.errors:
                console.print(f"    {error}")
    if failed:
        console.print(f"[red]{failed} of {len(files)} file(s) failed validation[/red]")
        raise typer.Exit(code=1)


@app.command("render")
def render_command(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Slug of the record to render.")],
) -> None:
    """Render one record's body to HTML."""
    index = _load_index(ctx)
    rendered = index.render(slug)
    if rendered is None:
        console.print(f"[red]Not found: {slug}[/red]")
        raise typer.Exit(code=1)
    typer.echo(rendered.html)


@app.command("watch")
def watch_command(ctx: typer.Context) -> None:
    """Index the content root and keep it in sync until interrupted."""
    config: FolioConfig = ctx.obj
    index = _load_index(ctx)
    if not config.watcher.enabled:
        console.print("[yellow]Watcher disabled in config[/yellow]")
        return
    index.start_watching()
    console.print(f"[cyan]Watching {index.content_root} (Ctrl-C to stop)[/cyan]")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        index.stop_watching()
    console.print(f"[green]Stopped with {len(index)} records indexed[/green]")
