"""docingest CLI error messages: cause plus the action that fixes it.

Usage:
    from docingest.cli.errors import err_document_not_found
    console.print(err_document_not_found(doc_id))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_invalid_upload(reason: str) -> str:
    """Upload rejected before anything was written."""
    return (
        f"[red]Error:[/] Upload rejected: {reason}\n"
        "  Only PDF files (.pdf, Content-Type application/pdf) are accepted.\n"
        "  Nothing was stored."
    )


def err_document_not_found(document_id: str) -> str:
    return (
        f"[red]Error:[/] No document with id '{document_id}'.\n"
        "  Run:  docingest list  to see ingested documents."
    )


def err_config(detail: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {detail}\n"
        "  Fix docingest.yaml (or the DOCINGEST_* environment variables) and retry."
    )


def err_storage_unavailable(detail: str) -> str:
    return (
        f"[red]Error:[/] Storage unavailable: {detail}\n"
        "  Run:  docingest health  to check the metadata and blob stores."
    )


def err_aborted(document_id: str, stage: str) -> str:
    return (
        f"[yellow]Aborted:[/] {stage} stage did not finish for document '{document_id}'.\n"
        f"  The document kept its last completed status. Continue with:\n"
        f"    docingest resume {document_id}"
    )


def err_not_resumable(document_id: str, reason: str) -> str:
    return (
        f"[red]Error:[/] Cannot continue document '{document_id}': {reason}\n"
        f"  If it was never stored, pass the original file:\n"
        f"    docingest resume {document_id} --file <path.pdf>"
    )


def err_internal(detail: str) -> str:
    return (
        f"[red]Internal error:[/] {detail}\n"
        "  The document was left at its last completed status. Check the logs."
    )


def err_file_unreadable(path: str, detail: str) -> str:
    return f"[red]Error:[/] Cannot read '{path}': {detail}"
