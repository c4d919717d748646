"""Ingestion orchestrator: drives one document through store → parse → chunk.

State machine:

    received ──store ok──▶ stored ──extract ok──▶ parsed ──chunk ok──▶ chunked
        │                     │
        └─store fails─▶ store_failed     └─extract fails─▶ parse_failed

Rules:
- Upload validation runs before anything is written; failures raise
  InvalidInput and leave no record.
- The record is created in ``received`` before the blob write, so a crash
  during the write still leaves an auditable row.
- Each transition is committed before the next stage starts. Once a record
  exists, store and extraction failures become its terminal status and
  ``ingest`` returns normally.
- A chunker failure is an invariant violation: logged, raised, and the record
  stays at ``parsed``.
- With a timeout or cancel event, each stage runs on a worker thread. When
  the deadline passes the orchestrator stops waiting, commits nothing for the
  stage and raises IngestionAborted. A stage abandoned this way may still
  finish in the background; blob names are per-record and overwritten on
  resume, so that is harmless.
- Nothing is retried automatically; ``resume`` continues from the last
  committed status when the caller asks.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, TypeVar

import structlog

from docingest.db.models import TERMINAL_STATUSES, DocumentRecord, DocumentStatus
from docingest.db.repository import Repository
from docingest.errors import (
    ExtractionError,
    IngestionAborted,
    InternalInvariantViolation,
    InvalidInput,
    NotFound,
    StorageError,
)
from docingest.ingest.chunker import TextChunker
from docingest.ingest.extractor import PdfTextExtractor
from docingest.ingest.validation import validate_upload
from docingest.storage.base import BlobStore

logger = structlog.get_logger(logger_name=__name__)

T = TypeVar("T")

STAGE_STORE = "store"
STAGE_PARSE = "parse"
STAGE_CHUNK = "chunk"

_DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
_CANCEL_POLL_SECONDS = 0.05


class _Deadline:
    """Timeout and/or cancel event shared by the stages of one call."""

    def __init__(self, timeout: float | None, cancel: threading.Event | None) -> None:
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._cancel = cancel

    @property
    def bounded(self) -> bool:
        return self._expires_at is not None or self._cancel is not None

    @property
    def cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return self.cancelled or (remaining is not None and remaining <= 0.0)

    def wait_slice(self) -> float | None:
        """How long to block on a stage before re-checking the deadline."""
        remaining = self.remaining()
        if self._cancel is None:
            return remaining
        if remaining is None:
            return _CANCEL_POLL_SECONDS
        return min(remaining, _CANCEL_POLL_SECONDS)


class IngestionOrchestrator:
    """Runs documents through the pipeline and commits each status change.

    All collaborators are injected; the composition root
    (``docingest.pipeline``) owns their lifecycle. One orchestrator may be
    shared by concurrent ``ingest`` calls.

    Args:
        repo: Metadata store.
        blob_store: Raw-bytes store (any backend).
        extractor: Text extractor; defaults to ``PdfTextExtractor``.
        chunker: Chunking policy; defaults to ``TextChunker()``.
        max_file_size: Upload size limit in bytes.
        default_timeout: Timeout (seconds) used when a call passes none.
    """

    def __init__(
        self,
        repo: Repository,
        blob_store: BlobStore,
        extractor: PdfTextExtractor | None = None,
        chunker: TextChunker | None = None,
        *,
        max_file_size: int = _DEFAULT_MAX_FILE_SIZE,
        default_timeout: float | None = None,
    ) -> None:
        self._repo = repo
        self._blob_store = blob_store
        self._extractor = extractor or PdfTextExtractor()
        self._chunker = chunker or TextChunker()
        self.max_file_size = max_file_size
        self.default_timeout = default_timeout
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def ingest(
        self,
        raw_bytes: bytes,
        filename: str,
        content_type: str,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> DocumentRecord:
        """Validate, record, store, parse and chunk one uploaded document.

        Returns:
            The record at its final status for this call (``chunked``,
            ``parse_failed`` or ``store_failed``).

        Raises:
            InvalidInput: The upload failed validation; nothing was written.
            IngestionAborted: Timeout or cancellation; the record keeps its
                last committed status.
            InternalInvariantViolation: The chunker rejected parsed text.
        """
        upload = validate_upload(raw_bytes, filename, content_type, self.max_file_size)
        record = DocumentRecord.new(
            filename=upload.filename,
            original_name=upload.original_name,
            size_bytes=upload.size_bytes,
            content_type=upload.content_type,
        )
        self._repo.create_document(record)
        log = logger.bind(document_id=record.id)
        log.info("document_received", filename=record.filename, size_bytes=record.size_bytes)

        deadline = _Deadline(timeout if timeout is not None else self.default_timeout, cancel)
        return self._advance(record, raw_bytes, deadline, log)

    def resume(
        self,
        document_id: str,
        raw_bytes: bytes | None = None,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> DocumentRecord:
        """Continue a record from its last committed status.

        ``received`` records need *raw_bytes* (nothing was stored yet);
        ``stored`` records refetch their blob; ``parsed`` records are
        re-chunked. Terminal records are returned unchanged.
        """
        record = self._repo.get_document(document_id)
        if record.status is DocumentStatus.RECEIVED:
            if raw_bytes is None:
                raise InvalidInput(
                    f"document '{document_id}' was never stored; resume needs the original bytes"
                )
            if len(raw_bytes) != record.size_bytes:
                raise InvalidInput(
                    f"resume bytes are {len(raw_bytes)} long; record '{document_id}' "
                    f"expects {record.size_bytes}"
                )
        log = logger.bind(document_id=record.id)
        log.info("document_resumed", status=record.status.value)
        deadline = _Deadline(timeout if timeout is not None else self.default_timeout, cancel)
        return self._advance(record, raw_bytes, deadline, log)

    def rechunk(
        self,
        document_id: str,
        max_chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> DocumentRecord:
        """Replace the chunk set of a ``parsed`` or ``chunked`` record wholesale."""
        record = self._repo.get_document(document_id, with_chunks=False)
        if record.status not in (DocumentStatus.PARSED, DocumentStatus.CHUNKED):
            raise InvalidInput(
                f"document '{document_id}' is {record.status.value}; only parsed or chunked "
                "documents can be re-chunked"
            )
        try:
            chunker = TextChunker(
                max_chunk_size if max_chunk_size is not None else self._chunker.max_chunk_size,
                overlap if overlap is not None else self._chunker.overlap,
            )
        except ValueError as exc:
            raise InvalidInput(str(exc)) from exc
        log = logger.bind(document_id=record.id)
        return self._chunk(record, chunker, _Deadline(None, None), log)

    def fetch(self, document_id: str) -> DocumentRecord:
        """Return the record for *document_id* (raises NotFound)."""
        return self._repo.get_document(document_id)

    def fetch_blob(self, document_id: str) -> bytes:
        """Return the raw bytes stored for *document_id*."""
        record = self._repo.get_document(document_id, with_chunks=False)
        if record.blob_ref is None:
            raise NotFound(f"document '{document_id}' has no stored blob ({record.status.value})")
        return self._blob_store.fetch(record.blob_ref)

    def close(self) -> None:
        """Stop the stage worker pool without waiting for abandoned stages."""
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _advance(
        self,
        record: DocumentRecord,
        raw_bytes: bytes | None,
        deadline: _Deadline,
        log: Any,
    ) -> DocumentRecord:
        while record.status not in TERMINAL_STATUSES:
            if record.status is DocumentStatus.RECEIVED:
                record = self._store(record, raw_bytes, deadline, log)
            elif record.status is DocumentStatus.STORED:
                record = self._parse(record, raw_bytes, deadline, log)
            elif record.status is DocumentStatus.PARSED:
                record = self._chunk(record, self._chunker, deadline, log)
            else:
                raise InternalInvariantViolation(f"no stage handles status {record.status.value}")
        return record

    def _store(
        self, record: DocumentRecord, raw_bytes: bytes | None, deadline: _Deadline, log: Any
    ) -> DocumentRecord:
        if raw_bytes is None:
            raise InternalInvariantViolation(f"document '{record.id}' has no bytes to store")
        name = f"{record.id}/{record.filename}"
        try:
            blob_ref = self._run_stage(
                STAGE_STORE, record.id, deadline,
                self._blob_store.store, name, raw_bytes, record.content_type,
            )
        except (StorageError, InvalidInput) as exc:
            log.warning("blob_store_failed", stage=STAGE_STORE, error=str(exc))
            return self._repo.transition(record.id, DocumentStatus.STORE_FAILED)

        record = self._repo.transition(record.id, DocumentStatus.STORED, blob_ref=blob_ref)
        log.info("document_stored", stage=STAGE_STORE, blob_ref=blob_ref, status=record.status.value)
        return record

    def _parse(
        self, record: DocumentRecord, raw_bytes: bytes | None, deadline: _Deadline, log: Any
    ) -> DocumentRecord:
        if raw_bytes is None:
            # Resuming a stored record: the blob is the source of truth.
            raw_bytes = self._run_stage(
                STAGE_PARSE, record.id, deadline, self._blob_store.fetch, record.blob_ref
            )
        try:
            text = self._run_stage(
                STAGE_PARSE, record.id, deadline,
                self._extractor.extract, raw_bytes, record.content_type,
            )
            if not text or not text.strip():
                raise ExtractionError("extractor returned no text")
        except ExtractionError as exc:
            log.warning("extraction_failed", stage=STAGE_PARSE, error=str(exc))
            return self._repo.transition(
                record.id, DocumentStatus.PARSE_FAILED, parse_error=str(exc)
            )

        record = self._repo.transition(record.id, DocumentStatus.PARSED, parsed_text=text)
        log.info("document_parsed", stage=STAGE_PARSE, chars=len(text), status=record.status.value)
        return record

    def _chunk(
        self, record: DocumentRecord, chunker: TextChunker, deadline: _Deadline, log: Any
    ) -> DocumentRecord:
        try:
            chunks = self._run_stage(
                STAGE_CHUNK, record.id, deadline, chunker.chunk, record.parsed_text or "", record.id
            )
        except InternalInvariantViolation:
            log.error("chunking_failed", stage=STAGE_CHUNK, status=record.status.value, exc_info=True)
            raise

        record = self._repo.replace_chunks(record.id, chunks)
        log.info(
            "document_chunked",
            stage=STAGE_CHUNK,
            chunk_count=len(chunks),
            max_chunk_size=chunker.max_chunk_size,
            overlap=chunker.overlap,
            status=record.status.value,
        )
        return record

    # ------------------------------------------------------------------
    # Deadline handling
    # ------------------------------------------------------------------

    def _run_stage(
        self,
        stage: str,
        document_id: str,
        deadline: _Deadline,
        fn: Callable[..., T],
        *args: Any,
    ) -> T:
        if deadline.expired():
            raise self._aborted(stage, document_id, deadline)
        if not deadline.bounded:
            return fn(*args)

        future: Future[T] = self._get_executor().submit(fn, *args)
        while True:
            try:
                return future.result(timeout=deadline.wait_slice())
            except FutureTimeout:
                if deadline.expired():
                    future.cancel()
                    raise self._aborted(stage, document_id, deadline) from None

    def _aborted(self, stage: str, document_id: str, deadline: _Deadline) -> IngestionAborted:
        reason = "cancelled" if deadline.cancelled else "timed out"
        logger.warning("stage_aborted", document_id=document_id, stage=stage, reason=reason)
        return IngestionAborted(
            f"{stage} stage {reason} for document '{document_id}'", document_id, stage
        )

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="docingest-stage")
            return self._executor
