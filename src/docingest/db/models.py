"""Domain models for the docingest metadata store.

``DocumentStatus`` is a closed enumeration. Every table keyed by status
(``_TRANSITIONS`` here, the result messages in ``docingest.results``) covers
all members; this is checked at import time so a new state cannot be added
without deciding how each consumer treats it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from docingest.errors import InternalInvariantViolation


class DocumentStatus(str, Enum):
    RECEIVED = "received"
    STORED = "stored"
    PARSED = "parsed"
    PARSE_FAILED = "parse_failed"
    CHUNKED = "chunked"
    STORE_FAILED = "store_failed"


# Forward-only. CHUNKED → CHUNKED is a wholesale chunk-set replacement.
_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.RECEIVED: frozenset({DocumentStatus.STORED, DocumentStatus.STORE_FAILED}),
    DocumentStatus.STORED: frozenset({DocumentStatus.PARSED, DocumentStatus.PARSE_FAILED}),
    DocumentStatus.PARSED: frozenset({DocumentStatus.CHUNKED}),
    DocumentStatus.CHUNKED: frozenset({DocumentStatus.CHUNKED}),
    DocumentStatus.PARSE_FAILED: frozenset(),
    DocumentStatus.STORE_FAILED: frozenset(),
}

if set(_TRANSITIONS) != set(DocumentStatus):
    raise RuntimeError("transition table must cover every DocumentStatus")

TERMINAL_STATUSES: frozenset[DocumentStatus] = frozenset(
    {DocumentStatus.CHUNKED, DocumentStatus.PARSE_FAILED, DocumentStatus.STORE_FAILED}
)


def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
    """Return True if *current* → *target* is a legal status move."""
    return target in _TRANSITIONS[current]


def check_transition(current: DocumentStatus, target: DocumentStatus) -> None:
    """Raise InternalInvariantViolation for an illegal status move."""
    if not can_transition(current, target):
        raise InternalInvariantViolation(
            f"illegal status transition {current.value} -> {target.value}"
        )


def utc_now() -> str:
    """ISO-8601 UTC timestamp with microseconds (sorts lexically)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


@dataclass
class Chunk:
    document_id: str
    index: int
    text: str
    start_offset: int
    end_offset: int

    def __len__(self) -> int:
        return self.end_offset - self.start_offset


@dataclass
class DocumentRecord:
    """Metadata and pipeline state for one ingested document."""

    id: str
    filename: str
    original_name: str
    size_bytes: int
    content_type: str
    status: DocumentStatus = DocumentStatus.RECEIVED
    blob_ref: str | None = None
    parsed_text: str | None = None
    parse_error: str | None = None
    chunks: list[Chunk] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def new(
        cls, filename: str, original_name: str, size_bytes: int, content_type: str
    ) -> DocumentRecord:
        """Build a fresh ``received`` record with a new UUID and timestamps."""
        now = utc_now()
        return cls(
            id=str(uuid.uuid4()),
            filename=filename,
            original_name=original_name,
            size_bytes=size_bytes,
            content_type=content_type,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self, include_chunks: bool = False) -> dict:
        data = {
            "id": self.id,
            "filename": self.filename,
            "original_name": self.original_name,
            "size_bytes": self.size_bytes,
            "content_type": self.content_type,
            "status": self.status.value,
            "blob_ref": self.blob_ref,
            "parsed_text": self.parsed_text,
            "parse_error": self.parse_error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if include_chunks:
            data["chunks"] = [
                {
                    "index": c.index,
                    "text": c.text,
                    "start_offset": c.start_offset,
                    "end_offset": c.end_offset,
                }
                for c in self.chunks
            ]
        return data
