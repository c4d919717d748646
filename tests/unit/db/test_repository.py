"""Tests for the document Repository."""

from __future__ import annotations

import sqlite3
import threading

import pytest

from docingest.db.models import Chunk, DocumentRecord, DocumentStatus
from docingest.errors import InternalInvariantViolation, NotFound, StorageUnavailable


def _record(name="doc.pdf") -> DocumentRecord:
    return DocumentRecord.new(name, name, 100, "application/pdf")


def _chunks(doc_id: str, texts=("hello ", "o world")) -> list[Chunk]:
    out, start = [], 0
    for i, text in enumerate(texts):
        out.append(Chunk(doc_id, i, text, start, start + len(text)))
        start += len(text) - 1
    return out


def _parsed(repo, text="hello world") -> DocumentRecord:
    record = _record()
    repo.create_document(record)
    repo.transition(record.id, DocumentStatus.STORED, blob_ref=f"{record.id}/doc.pdf")
    return repo.transition(record.id, DocumentStatus.PARSED, parsed_text=text)


# ------------------------------------------------------------------
# Documents
# ------------------------------------------------------------------

def test_create_and_get_document(repo):
    record = _record()
    repo.create_document(record)

    result = repo.get_document(record.id)
    assert result.id == record.id
    assert result.filename == "doc.pdf"
    assert result.size_bytes == 100
    assert result.status is DocumentStatus.RECEIVED
    assert result.created_at == record.created_at
    assert result.chunks == []


def test_get_document_not_found(repo):
    with pytest.raises(NotFound, match="missing") as excinfo:
        repo.get_document("missing")
    assert excinfo.value.backend == "sqlite"


def test_create_duplicate_id_raises(repo):
    record = _record()
    repo.create_document(record)
    with pytest.raises(sqlite3.IntegrityError):
        repo.create_document(record)


def test_list_documents_empty(repo):
    assert repo.list_documents() == []


def test_list_documents_filters_by_status(repo):
    a, b = _record("a.pdf"), _record("b.pdf")
    repo.create_document(a)
    repo.create_document(b)
    repo.transition(b.id, DocumentStatus.STORE_FAILED)

    assert [r.id for r in repo.list_documents()] == [a.id, b.id]
    assert [r.id for r in repo.list_documents(status=DocumentStatus.STORE_FAILED)] == [b.id]
    assert len(repo.list_documents(limit=1)) == 1


# ------------------------------------------------------------------
# Transitions
# ------------------------------------------------------------------

def test_transition_to_stored_sets_blob_ref(repo):
    record = _record()
    repo.create_document(record)

    result = repo.transition(record.id, DocumentStatus.STORED, blob_ref="x/doc.pdf")
    assert result.status is DocumentStatus.STORED
    assert result.blob_ref == "x/doc.pdf"
    assert result.updated_at >= result.created_at


def test_transition_to_parse_failed_sets_error(repo):
    record = _record()
    repo.create_document(record)
    repo.transition(record.id, DocumentStatus.STORED, blob_ref="x")

    result = repo.transition(record.id, DocumentStatus.PARSE_FAILED, parse_error="bad xref")
    assert result.status is DocumentStatus.PARSE_FAILED
    assert result.parse_error == "bad xref"
    assert result.parsed_text is None


def test_transition_missing_required_field(repo):
    record = _record()
    repo.create_document(record)

    with pytest.raises(InternalInvariantViolation, match="blob_ref"):
        repo.transition(record.id, DocumentStatus.STORED)
    repo.transition(record.id, DocumentStatus.STORED, blob_ref="x")
    with pytest.raises(InternalInvariantViolation, match="parsed_text"):
        repo.transition(record.id, DocumentStatus.PARSED, parsed_text="   ")
    with pytest.raises(InternalInvariantViolation, match="parse_error"):
        repo.transition(record.id, DocumentStatus.PARSE_FAILED)
    assert repo.get_document(record.id).status is DocumentStatus.STORED


def test_illegal_transition_leaves_record_unchanged(repo):
    record = _record()
    repo.create_document(record)

    with pytest.raises(InternalInvariantViolation, match="illegal"):
        repo.transition(record.id, DocumentStatus.PARSED, parsed_text="text")
    assert repo.get_document(record.id).status is DocumentStatus.RECEIVED


def test_terminal_record_cannot_move(repo):
    record = _record()
    repo.create_document(record)
    repo.transition(record.id, DocumentStatus.STORE_FAILED)

    with pytest.raises(InternalInvariantViolation):
        repo.transition(record.id, DocumentStatus.STORED, blob_ref="x")


def test_chunked_only_via_replace_chunks(repo):
    record = _parsed(repo)
    with pytest.raises(InternalInvariantViolation, match="replace_chunks"):
        repo.transition(record.id, DocumentStatus.CHUNKED)


def test_transition_unknown_document(repo):
    with pytest.raises(NotFound):
        repo.transition("missing", DocumentStatus.STORE_FAILED)


def test_concurrent_transitions_only_one_wins(repo):
    record = _record()
    repo.create_document(record)
    outcomes: list[str] = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        try:
            repo.transition(record.id, DocumentStatus.STORED, blob_ref="x")
            outcomes.append("ok")
        except InternalInvariantViolation:
            outcomes.append("rejected")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 7


# ------------------------------------------------------------------
# Chunks
# ------------------------------------------------------------------

def test_replace_chunks_marks_chunked(repo):
    record = _parsed(repo)
    chunks = _chunks(record.id)

    result = repo.replace_chunks(record.id, chunks)
    assert result.status is DocumentStatus.CHUNKED
    assert [c.text for c in result.chunks] == ["hello ", "o world"]
    assert repo.count_chunks(record.id) == 2


def test_replace_chunks_is_wholesale(repo):
    record = _parsed(repo)
    repo.replace_chunks(record.id, _chunks(record.id))

    replacement = [Chunk(record.id, 0, "hello world", 0, 11)]
    result = repo.replace_chunks(record.id, replacement)
    assert result.status is DocumentStatus.CHUNKED
    assert [c.text for c in repo.get_chunks(record.id)] == ["hello world"]


def test_replace_chunks_requires_parsed(repo):
    record = _record()
    repo.create_document(record)
    with pytest.raises(InternalInvariantViolation):
        repo.replace_chunks(record.id, _chunks(record.id))
    assert repo.count_chunks(record.id) == 0


def test_replace_chunks_rejects_bad_batch(repo):
    record = _parsed(repo)

    with pytest.raises(InternalInvariantViolation, match="empty chunk batch"):
        repo.replace_chunks(record.id, [])
    with pytest.raises(InternalInvariantViolation, match="contiguous"):
        repo.replace_chunks(record.id, [Chunk(record.id, 1, "x", 0, 1)])
    with pytest.raises(InternalInvariantViolation, match="belongs to"):
        repo.replace_chunks(record.id, [Chunk("other", 0, "x", 0, 1)])
    with pytest.raises(InternalInvariantViolation, match="empty"):
        repo.replace_chunks(record.id, [Chunk(record.id, 0, "", 0, 0)])
    assert repo.get_document(record.id).status is DocumentStatus.PARSED


def test_replace_chunks_is_atomic_on_failure(repo, tmp_db):
    record = _parsed(repo)
    repo.replace_chunks(record.id, _chunks(record.id))
    # Force a driver error inside the transaction
    tmp_db.execute("DROP TABLE chunks")
    tmp_db.commit()

    with pytest.raises(StorageUnavailable):
        repo.replace_chunks(record.id, [Chunk(record.id, 0, "hello world", 0, 11)])
    assert repo.get_document(record.id, with_chunks=False).status is DocumentStatus.CHUNKED


def test_get_chunks_empty(repo):
    record = _record()
    repo.create_document(record)
    assert repo.get_chunks(record.id) == []
    assert repo.count_chunks(record.id) == 0


# ------------------------------------------------------------------
# Liveness
# ------------------------------------------------------------------

def test_ping_ok(repo):
    repo.ping()


def test_ping_closed_connection(repo, tmp_db):
    tmp_db.close()
    with pytest.raises(StorageUnavailable, match="unreachable"):
        repo.ping()
