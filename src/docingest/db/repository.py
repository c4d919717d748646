"""Repository for document records and their chunks.

Single interface for the metadata collaborator: create, fetch-by-id, status
transitions and chunk batches. Each write is one transaction; status updates
are compare-and-set on the status read under the lock, so two writers can
never both advance the same record.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from docingest.db.models import (
    Chunk,
    DocumentRecord,
    DocumentStatus,
    check_transition,
    utc_now,
)
from docingest.errors import InternalInvariantViolation, NotFound, StorageUnavailable

_BACKEND = "sqlite"

_DOCUMENT_COLUMNS = (
    "id, filename, original_name, size_bytes, content_type, blob_ref, status, "
    "parsed_text, parse_error, created_at, updated_at"
)


class Repository:
    """Data access layer for documents and chunks.

    Wraps an open sqlite3.Connection (owned by the caller) and serialises
    access to it, so one Repository can be shared by concurrent ingests.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see docingest.db.migrations.initialize).
        """
        self._conn = conn
        self._lock = threading.RLock()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Lock, run one transaction, map driver I/O errors to StorageUnavailable."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.OperationalError as exc:
                raise StorageUnavailable(f"metadata store write failed: {exc}", backend=_BACKEND) from exc

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(self, record: DocumentRecord) -> None:
        """Insert a new document record (normally in ``received`` state)."""
        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.filename,
                    record.original_name,
                    record.size_bytes,
                    record.content_type,
                    record.blob_ref,
                    record.status.value,
                    record.parsed_text,
                    record.parse_error,
                    record.created_at,
                    record.updated_at,
                ),
            )

    def get_document(self, document_id: str, with_chunks: bool = True) -> DocumentRecord:
        """Return the record for *document_id*.

        Raises:
            NotFound: No record has that id.
        """
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
            if row is None:
                raise NotFound(f"document '{document_id}' not found", backend=_BACKEND)
            record = _row_to_document(row)
            if with_chunks:
                record.chunks = self.get_chunks(document_id)
        return record

    def list_documents(
        self, status: DocumentStatus | None = None, limit: int | None = None
    ) -> list[DocumentRecord]:
        """Return records (without chunks) ordered by creation time, oldest first."""
        sql = f"SELECT {_DOCUMENT_COLUMNS} FROM documents"
        params: list[object] = []
        if status is not None:
            sql += " WHERE status = ?"
            params.append(status.value)
        sql += " ORDER BY created_at"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_document(r) for r in rows]

    def transition(
        self,
        document_id: str,
        target: DocumentStatus,
        *,
        blob_ref: str | None = None,
        parsed_text: str | None = None,
        parse_error: str | None = None,
    ) -> DocumentRecord:
        """Move a record to *target*, assigning the fields that state requires.

        ``stored`` needs *blob_ref*, ``parsed`` needs non-empty *parsed_text*,
        ``parse_failed`` needs *parse_error*. ``chunked`` is reached only
        through :meth:`replace_chunks`.

        Raises:
            NotFound: No record has that id.
            InternalInvariantViolation: Illegal transition, missing field, or
                the status changed underneath this call.
        """
        if target is DocumentStatus.CHUNKED:
            raise InternalInvariantViolation("chunked is reached through replace_chunks()")
        _check_required_fields(target, blob_ref, parsed_text, parse_error)

        assignments: dict[str, object] = {"status": target.value, "updated_at": utc_now()}
        if blob_ref is not None:
            assignments["blob_ref"] = blob_ref
        if parsed_text is not None:
            assignments["parsed_text"] = parsed_text
        if parse_error is not None:
            assignments["parse_error"] = parse_error
        set_clause = ", ".join(f"{col} = ?" for col in assignments)

        with self._transaction() as conn:
            current = self._current_status(document_id)
            check_transition(current, target)
            cur = conn.execute(
                f"UPDATE documents SET {set_clause} WHERE id = ? AND status = ?",
                (*assignments.values(), document_id, current.value),
            )
            if cur.rowcount != 1:
                raise InternalInvariantViolation(
                    f"document '{document_id}' changed status during transition to {target.value}"
                )
        return self.get_document(document_id)

    def replace_chunks(self, document_id: str, chunks: list[Chunk]) -> DocumentRecord:
        """Atomically replace the chunk set and mark the record ``chunked``.

        Allowed from ``parsed`` (first chunking) and ``chunked`` (re-chunking).
        """
        _check_chunk_batch(document_id, chunks)
        with self._transaction() as conn:
            current = self._current_status(document_id)
            check_transition(current, DocumentStatus.CHUNKED)
            conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            conn.executemany(
                """
                INSERT INTO chunks (document_id, chunk_index, text, start_offset, end_offset)
                VALUES (?, ?, ?, ?, ?)
                """,
                [(c.document_id, c.index, c.text, c.start_offset, c.end_offset) for c in chunks],
            )
            cur = conn.execute(
                "UPDATE documents SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (DocumentStatus.CHUNKED.value, utc_now(), document_id, current.value),
            )
            if cur.rowcount != 1:
                raise InternalInvariantViolation(
                    f"document '{document_id}' changed status during chunking"
                )
        return self.get_document(document_id)

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def get_chunks(self, document_id: str) -> list[Chunk]:
        """Return the chunks of *document_id* in index order (may be empty)."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT document_id, chunk_index, text, start_offset, end_offset
                FROM chunks WHERE document_id = ? ORDER BY chunk_index
                """,
                (document_id,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self, document_id: str) -> int:
        with self._lock:
            return self._conn.execute(
                "SELECT COUNT(*) FROM chunks WHERE document_id = ?", (document_id,)
            ).fetchone()[0]

    # ------------------------------------------------------------------
    # Liveness
    # ------------------------------------------------------------------

    def ping(self) -> None:
        """Raise StorageUnavailable if the database cannot answer a query."""
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"metadata store unreachable: {exc}", backend=_BACKEND) from exc

    def _current_status(self, document_id: str) -> DocumentStatus:
        row = self._conn.execute(
            "SELECT status FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        if row is None:
            raise NotFound(f"document '{document_id}' not found", backend=_BACKEND)
        return DocumentStatus(row["status"])


# ------------------------------------------------------------------
# Validation helpers
# ------------------------------------------------------------------


def _check_required_fields(
    target: DocumentStatus,
    blob_ref: str | None,
    parsed_text: str | None,
    parse_error: str | None,
) -> None:
    if target is DocumentStatus.STORED and not blob_ref:
        raise InternalInvariantViolation("stored requires a blob_ref")
    if target is DocumentStatus.PARSED and not (parsed_text and parsed_text.strip()):
        raise InternalInvariantViolation("parsed requires non-empty parsed_text")
    if target is DocumentStatus.PARSE_FAILED and not parse_error:
        raise InternalInvariantViolation("parse_failed requires a parse_error")
    if parsed_text is not None and parse_error is not None:
        raise InternalInvariantViolation("parsed_text and parse_error are mutually exclusive")


def _check_chunk_batch(document_id: str, chunks: list[Chunk]) -> None:
    if not chunks:
        raise InternalInvariantViolation(f"empty chunk batch for document '{document_id}'")
    for expected, chunk in enumerate(chunks):
        if chunk.document_id != document_id:
            raise InternalInvariantViolation(
                f"chunk {chunk.index} belongs to '{chunk.document_id}', not '{document_id}'"
            )
        if chunk.index != expected:
            raise InternalInvariantViolation(
                f"chunk indices must be contiguous from 0; got {chunk.index} at position {expected}"
            )
        if not chunk.text or chunk.end_offset <= chunk.start_offset:
            raise InternalInvariantViolation(f"chunk {chunk.index} is empty")


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_document(row: sqlite3.Row) -> DocumentRecord:
    return DocumentRecord(
        id=row["id"],
        filename=row["filename"],
        original_name=row["original_name"],
        size_bytes=row["size_bytes"],
        content_type=row["content_type"],
        blob_ref=row["blob_ref"],
        status=DocumentStatus(row["status"]),
        parsed_text=row["parsed_text"],
        parse_error=row["parse_error"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        document_id=row["document_id"],
        index=row["chunk_index"],
        text=row["text"],
        start_offset=row["start_offset"],
        end_offset=row["end_offset"],
    )
