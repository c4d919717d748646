"""Helpers shared by the CLI commands."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from docingest.cli.errors import err_config, err_storage_unavailable
from docingest.config import ConfigError, DocIngestConfig
from docingest.errors import StorageUnavailable
from docingest.pipeline import Pipeline, build_pipeline
from docingest.results import DocumentResult

console = Console()


def get_config(ctx: typer.Context) -> DocIngestConfig:
    """Config loaded by the app callback (defaults if invoked without it)."""
    cfg = ctx.obj if isinstance(ctx.obj, DocIngestConfig) else None
    return cfg or DocIngestConfig()


@contextmanager
def pipeline_or_exit(cfg: DocIngestConfig, db: Path | None) -> Iterator[Pipeline]:
    """Open the pipeline; print an actionable error and exit 1 if that fails."""
    try:
        pipeline = build_pipeline(cfg, db)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    except StorageUnavailable as exc:
        console.print(err_storage_unavailable(str(exc)))
        raise typer.Exit(1) from exc
    try:
        yield pipeline
    finally:
        pipeline.close()


def print_result(result: DocumentResult, as_json: bool, show_text: bool = False) -> None:
    """Render a DocumentResult as JSON (stdout) or a rich table."""
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    colour = {"chunked": "green", "parse_failed": "yellow", "store_failed": "red"}.get(
        result.status, "cyan"
    )
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("field", style="dim")
    table.add_column("value")
    table.add_row("id", result.id)
    table.add_row("status", f"[{colour}]{result.status}[/]")
    table.add_row("message", result.message)
    table.add_row("filename", result.filename)
    table.add_row("size", f"{result.size:,} bytes")
    table.add_row("uploaded_at", result.uploaded_at)
    table.add_row("chunks", str(result.chunk_count))
    if result.parse_error:
        table.add_row("parse_error", f"[yellow]{result.parse_error}[/]")
    console.print(table)
    if show_text and result.content:
        console.print()
        console.print(result.content, markup=False, highlight=False)
