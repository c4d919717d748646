"""docingest upload: ingest one PDF through the full pipeline.

The command succeeds (exit 0) whenever a document record is created, even if
the record ends in store_failed or parse_failed; inspect ``status`` and
``parse_error`` in the output. Validation failures exit 1 and write nothing.

Usage:
  docingest upload report.pdf
  docingest upload report.pdf --json
  docingest upload scan.bin --content-type application/pdf
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Annotated

import typer

from docingest.cli._shared import console, get_config, pipeline_or_exit, print_result
from docingest.cli.errors import (
    err_aborted,
    err_file_unreadable,
    err_internal,
    err_invalid_upload,
    err_storage_unavailable,
)
from docingest.errors import IngestionAborted, InternalInvariantViolation, InvalidInput, StorageUnavailable
from docingest.results import DocumentResult


def upload_cmd(
    ctx: typer.Context,
    file: Annotated[
        Path,
        typer.Argument(help="PDF file to ingest."),
    ],
    content_type: Annotated[
        str | None,
        typer.Option("--content-type", help="Declared content type (default: guessed from the extension)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the metadata database (default from config)."),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Abort the running stage after this many seconds."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON."),
    ] = False,
    show_text: Annotated[
        bool,
        typer.Option("--text", help="Also print the extracted text."),
    ] = False,
) -> None:
    """Upload a PDF: store it, extract its text and chunk it."""
    cfg = get_config(ctx)

    try:
        data = file.read_bytes()
    except OSError as exc:
        console.print(err_file_unreadable(str(file), exc.strerror or str(exc)))
        raise typer.Exit(1) from exc

    declared = content_type or mimetypes.guess_type(file.name)[0] or "application/octet-stream"

    with pipeline_or_exit(cfg, db) as pipeline:
        try:
            record = pipeline.orchestrator.ingest(data, file.name, declared, timeout=timeout)
        except InvalidInput as exc:
            console.print(err_invalid_upload(str(exc)))
            raise typer.Exit(1) from exc
        except IngestionAborted as exc:
            console.print(err_aborted(exc.document_id, exc.stage))
            raise typer.Exit(2) from exc
        except StorageUnavailable as exc:
            console.print(err_storage_unavailable(str(exc)))
            raise typer.Exit(1) from exc
        except InternalInvariantViolation as exc:
            console.print(err_internal(str(exc)))
            raise typer.Exit(3) from exc

    print_result(DocumentResult.from_record(record, include_content=show_text or as_json), as_json, show_text)
