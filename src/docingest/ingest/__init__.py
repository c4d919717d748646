"""docingest ingest pipeline: validation, extraction, chunking and orchestration."""

from docingest.ingest.chunker import TextChunker, chunk_text, merge_chunks
from docingest.ingest.extractor import PdfTextExtractor
from docingest.ingest.orchestrator import IngestionOrchestrator
from docingest.ingest.validation import ValidatedUpload, validate_upload

__all__ = [
    "IngestionOrchestrator",
    "PdfTextExtractor",
    "TextChunker",
    "ValidatedUpload",
    "chunk_text",
    "merge_chunks",
    "validate_upload",
]
