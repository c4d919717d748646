"""Structured result returned by the request boundary for upload and fetch."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from docingest.db.models import DocumentRecord, DocumentStatus

_MESSAGES: dict[DocumentStatus, str] = {
    DocumentStatus.RECEIVED: "File received; storage has not completed",
    DocumentStatus.STORED: "File stored; text extraction has not completed",
    DocumentStatus.PARSED: "File parsed; chunking has not completed",
    DocumentStatus.CHUNKED: "File uploaded, parsed and chunked successfully",
    DocumentStatus.PARSE_FAILED: "File uploaded successfully but failed to parse content",
    DocumentStatus.STORE_FAILED: "File could not be stored",
}

if set(_MESSAGES) != set(DocumentStatus):
    raise RuntimeError("result messages must cover every DocumentStatus")


def status_message(status: DocumentStatus) -> str:
    return _MESSAGES[status]


@dataclass
class DocumentResult:
    id: str
    status: str
    message: str
    filename: str
    size: int
    uploaded_at: str
    chunk_count: int = 0
    content: str | None = None
    parse_error: str | None = None

    @classmethod
    def from_record(cls, record: DocumentRecord, include_content: bool = True) -> DocumentResult:
        return cls(
            id=record.id,
            status=record.status.value,
            message=status_message(record.status),
            filename=record.filename,
            size=record.size_bytes,
            uploaded_at=record.created_at,
            chunk_count=len(record.chunks),
            content=record.parsed_text if include_content else None,
            parse_error=record.parse_error,
        )

    def to_dict(self) -> dict:
        """JSON-ready dict; ``None`` fields are omitted."""
        return {k: v for k, v in asdict(self).items() if v is not None}
