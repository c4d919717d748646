"""docingest get / chunks / list / resume / rechunk: work with ingested documents."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from docingest.cli._shared import console, get_config, pipeline_or_exit, print_result
from docingest.cli.errors import (
    err_aborted,
    err_document_not_found,
    err_file_unreadable,
    err_internal,
    err_not_resumable,
    err_storage_unavailable,
)
from docingest.db.models import DocumentStatus
from docingest.errors import (
    IngestionAborted,
    InternalInvariantViolation,
    InvalidInput,
    NotFound,
    StorageUnavailable,
)
from docingest.results import DocumentResult

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the metadata database (default from config)."),
]
_JsonOption = Annotated[bool, typer.Option("--json", help="Print the result as JSON.")]


def get_cmd(
    ctx: typer.Context,
    document_id: Annotated[str, typer.Argument(help="Document id returned by upload.")],
    db: _DbOption = None,
    as_json: _JsonOption = False,
    show_text: Annotated[bool, typer.Option("--text", help="Also print the extracted text.")] = False,
) -> None:
    """Show a previously ingested document."""
    with pipeline_or_exit(get_config(ctx), db) as pipeline:
        try:
            record = pipeline.orchestrator.fetch(document_id)
        except NotFound as exc:
            console.print(err_document_not_found(document_id))
            raise typer.Exit(1) from exc
    print_result(DocumentResult.from_record(record, include_content=show_text or as_json), as_json, show_text)


def chunks_cmd(
    ctx: typer.Context,
    document_id: Annotated[str, typer.Argument(help="Document id.")],
    db: _DbOption = None,
    as_json: _JsonOption = False,
) -> None:
    """List the chunks of a document."""
    with pipeline_or_exit(get_config(ctx), db) as pipeline:
        try:
            record = pipeline.orchestrator.fetch(document_id)
        except NotFound as exc:
            console.print(err_document_not_found(document_id))
            raise typer.Exit(1) from exc

    if as_json:
        typer.echo(json.dumps(record.to_dict(include_chunks=True)["chunks"], indent=2))
        return

    if not record.chunks:
        console.print(f"[yellow]No chunks[/]: document is {record.status.value}.")
        return

    table = Table(title=f"Chunks for {record.filename}")
    table.add_column("#", justify="right")
    table.add_column("range")
    table.add_column("chars", justify="right")
    table.add_column("preview")
    for chunk in record.chunks:
        preview = chunk.text[:60].replace("\n", " ")
        table.add_row(
            str(chunk.index),
            f"[{chunk.start_offset}, {chunk.end_offset})",
            str(len(chunk)),
            preview + ("…" if len(chunk.text) > 60 else ""),
        )
    console.print(table)


def list_cmd(
    ctx: typer.Context,
    status: Annotated[
        str | None,
        typer.Option("--status", help="Only show documents in this status."),
    ] = None,
    db: _DbOption = None,
    as_json: _JsonOption = False,
) -> None:
    """List ingested documents, oldest first."""
    wanted: DocumentStatus | None = None
    if status is not None:
        try:
            wanted = DocumentStatus(status)
        except ValueError as exc:
            valid = ", ".join(s.value for s in DocumentStatus)
            console.print(f"[red]Error:[/] Unknown status '{status}'. Valid: {valid}")
            raise typer.Exit(1) from exc

    with pipeline_or_exit(get_config(ctx), db) as pipeline:
        records = pipeline.repo.list_documents(status=wanted)
        counts = {r.id: pipeline.repo.count_chunks(r.id) for r in records}

    if as_json:
        rows = []
        for r in records:
            row = {k: v for k, v in r.to_dict().items() if k != "parsed_text"}
            row["chunk_count"] = counts[r.id]
            rows.append(row)
        typer.echo(json.dumps(rows, indent=2))
        return

    if not records:
        console.print("[dim]No documents.[/]")
        return

    table = Table(title="Documents")
    table.add_column("id")
    table.add_column("filename")
    table.add_column("status")
    table.add_column("size", justify="right")
    table.add_column("chunks", justify="right")
    table.add_column("uploaded_at")
    for r in records:
        table.add_row(r.id, r.filename, r.status.value, f"{r.size_bytes:,}", str(counts[r.id]), r.created_at)
    console.print(table)


def resume_cmd(
    ctx: typer.Context,
    document_id: Annotated[str, typer.Argument(help="Document id to continue.")],
    file: Annotated[
        Path | None,
        typer.Option("--file", help="Original PDF, required when the document was never stored."),
    ] = None,
    db: _DbOption = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Abort the running stage after this many seconds."),
    ] = None,
    as_json: _JsonOption = False,
) -> None:
    """Continue a document from its last completed stage."""
    data: bytes | None = None
    if file is not None:
        try:
            data = file.read_bytes()
        except OSError as exc:
            console.print(err_file_unreadable(str(file), exc.strerror or str(exc)))
            raise typer.Exit(1) from exc

    with pipeline_or_exit(get_config(ctx), db) as pipeline:
        try:
            record = pipeline.orchestrator.resume(document_id, data, timeout=timeout)
        except NotFound as exc:
            console.print(err_document_not_found(document_id))
            raise typer.Exit(1) from exc
        except InvalidInput as exc:
            console.print(err_not_resumable(document_id, str(exc)))
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

    print_result(DocumentResult.from_record(record, include_content=as_json), as_json)


def rechunk_cmd(
    ctx: typer.Context,
    document_id: Annotated[str, typer.Argument(help="Document id to re-chunk.")],
    max_chunk_size: Annotated[
        int | None,
        typer.Option("--max-chunk-size", help="Characters per chunk (default from config)."),
    ] = None,
    overlap: Annotated[
        int | None,
        typer.Option("--overlap", help="Characters shared by consecutive chunks (default from config)."),
    ] = None,
    db: _DbOption = None,
    as_json: _JsonOption = False,
) -> None:
    """Replace a document's chunks using a new size/overlap policy."""
    with pipeline_or_exit(get_config(ctx), db) as pipeline:
        try:
            record = pipeline.orchestrator.rechunk(document_id, max_chunk_size, overlap)
        except NotFound as exc:
            console.print(err_document_not_found(document_id))
            raise typer.Exit(1) from exc
        except InvalidInput as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(1) from exc

    print_result(DocumentResult.from_record(record, include_content=as_json), as_json)
