"""Upload checks run before any write."""

from __future__ import annotations

import re
from dataclasses import dataclass

from docingest.errors import InvalidInput
from docingest.ingest.extractor import PDF_CONTENT_TYPE, has_pdf_signature, normalize_content_type

_ALLOWED_EXTENSIONS = (".pdf",)


@dataclass(frozen=True)
class ValidatedUpload:
    filename: str
    original_name: str
    content_type: str
    size_bytes: int


def base_filename(name: str) -> str:
    """Last path component of *name*, accepting both ``/`` and ``\\`` separators."""
    return re.split(r"[\\/]", name.strip())[-1]


def validate_upload(
    data: bytes, filename: str, content_type: str, max_file_size: int
) -> ValidatedUpload:
    """Check name, declared type, size and signature of an upload.

    Returns:
        The sanitized base filename plus the captured metadata.

    Raises:
        InvalidInput: Any check fails.
    """
    base = base_filename(filename or "")
    if not base or base in (".", ".."):
        raise InvalidInput("a file name is required")
    if not base.lower().endswith(_ALLOWED_EXTENSIONS):
        raise InvalidInput(f"file must be a PDF (got '{base}')")

    normalized = normalize_content_type(content_type or "")
    if normalized != PDF_CONTENT_TYPE:
        raise InvalidInput(f"Content-Type must be {PDF_CONTENT_TYPE} (got '{content_type}')")

    size = len(data)
    if size == 0:
        raise InvalidInput("file is empty")
    if size > max_file_size:
        raise InvalidInput(f"file is {size} bytes; the limit is {max_file_size} bytes")
    if not has_pdf_signature(data):
        raise InvalidInput("file content is not a PDF (missing %PDF- signature)")

    return ValidatedUpload(
        filename=base,
        original_name=filename,
        content_type=normalized,
        size_bytes=size,
    )
