"""PDF text extraction via pypdf.

Failure contract:
  wrong signature / declared type  → UnsupportedFormat
  unreadable or encrypted document → MalformedDocument
  readable but no text             → EmptyContent
Empty text is never returned.
"""

from __future__ import annotations

from io import BytesIO

import pypdf
import structlog

from docingest.errors import EmptyContent, MalformedDocument, UnsupportedFormat

logger = structlog.get_logger(logger_name=__name__)

PDF_CONTENT_TYPE = "application/pdf"
PDF_SIGNATURE = b"%PDF-"


def has_pdf_signature(data: bytes) -> bool:
    return data[: len(PDF_SIGNATURE)] == PDF_SIGNATURE


def normalize_content_type(content_type: str) -> str:
    """``"Application/PDF; charset=binary"`` → ``"application/pdf"``."""
    return content_type.split(";", 1)[0].strip().lower()


class PdfTextExtractor:
    """Extract plain text from PDF bytes.

    Strategy:
    - Open the bytes with ``pypdf.PdfReader``.
    - Extract text page by page; pages that yield no text (scanned images,
      blank pages) are skipped.
    - Join the stripped page texts with a blank line.
    """

    name = "pypdf"

    def extract(self, data: bytes, declared_content_type: str = PDF_CONTENT_TYPE) -> str:
        if normalize_content_type(declared_content_type) != PDF_CONTENT_TYPE:
            raise UnsupportedFormat(
                f"unsupported content type '{declared_content_type}'", backend=self.name
            )
        if not has_pdf_signature(data):
            raise UnsupportedFormat("missing %PDF- file signature", backend=self.name)

        try:
            text = self._extract_text(data)
        except MalformedDocument:
            raise
        except Exception as exc:  # noqa: BLE001 - any pypdf failure means an unreadable document
            raise MalformedDocument(f"failed to read PDF: {exc}", backend=self.name) from exc

        if not text.strip():
            raise EmptyContent("no text content found in PDF", backend=self.name)
        return text

    def _extract_text(self, data: bytes) -> str:
        reader = pypdf.PdfReader(BytesIO(data))
        if reader.is_encrypted and not reader.decrypt(""):
            raise MalformedDocument("PDF is encrypted", backend=self.name)

        parts: list[str] = []
        for page in reader.pages:
            page_text = page.extract_text() or ""
            stripped = page_text.strip()
            if stripped:
                parts.append(stripped)
        logger.debug("pdf_text_extracted", pages=len(reader.pages), text_pages=len(parts))
        return "\n\n".join(parts)
