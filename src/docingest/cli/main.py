"""docingest CLI entry point."""

from __future__ import annotations

import importlib.metadata
from pathlib import Path
from typing import Annotated

import typer

from docingest.cli._shared import console
from docingest.cli.documents import chunks_cmd, get_cmd, list_cmd, rechunk_cmd, resume_cmd
from docingest.cli.errors import err_config
from docingest.cli.health import health_cmd
from docingest.cli.upload import upload_cmd
from docingest.config import ConfigError, load_config
from docingest.logging import configure_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("docingest")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docingest {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="docingest",
    help=(
        "docingest: PDF ingestion pipeline.\n\n"
        "  docingest upload   Store a PDF, extract its text and chunk it.\n"
        "  docingest get      Show an ingested document and its status."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    config_dir: Annotated[
        Path | None,
        typer.Option("--config-dir", hidden=True, help="Directory holding docingest.yaml (default: CWD)."),
    ] = None,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override ~/.docingest/config.yaml (for testing)."),
    ] = None,
) -> None:
    """docingest: PDF ingestion pipeline."""
    try:
        cfg = load_config(config_dir, global_config_path=global_config)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    configure_logging(cfg.logging.level, cfg.logging.json)
    ctx.obj = cfg


app.command("upload")(upload_cmd)
app.command("get")(get_cmd)
app.command("chunks")(chunks_cmd)
app.command("list")(list_cmd)
app.command("resume")(resume_cmd)
app.command("rechunk")(rechunk_cmd)
app.command("health")(health_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docingest version."""
    typer.echo(f"docingest {_installed_version()}")


if __name__ == "__main__":
    app()
