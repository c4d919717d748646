"""docingest health: report metadata and blob store reachability."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel

from docingest.cli._shared import console, get_config, pipeline_or_exit
from docingest.health import check_health


def health_cmd(
    ctx: typer.Context,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the metadata database (default from config)."),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON.")] = False,
) -> None:
    """Check that the metadata store and blob store are reachable."""
    with pipeline_or_exit(get_config(ctx), db) as pipeline:
        report = check_health(pipeline.repo, pipeline.blob_store)

    if as_json:
        typer.echo(json.dumps(asdict(report), indent=2))
    else:
        colour = "green" if report.healthy else "red"
        lines = [
            f"Status:   [{colour}]{report.status}[/]",
            f"Database: {report.database}",
            f"Storage:  {report.storage} ({report.storage_backend})",
        ]
        lines.extend(f"[red]✗[/] {e}" for e in report.errors)
        console.print(Panel("\n".join(lines), title="[bold]Health[/]", expand=False))

    if not report.healthy:
        raise typer.Exit(1)
