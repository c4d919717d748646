"""Exception hierarchy for docingest.

All pipeline exceptions inherit from :class:`DocIngestError`, which carries
an optional ``backend`` name so handlers can tell which collaborator
(``"local"``, ``"gcs"``, ``"sqlite"``, ``"pypdf"``) raised it.

    DocIngestError
    +-- InvalidInput                 (rejected before any write)
    +-- StorageError
    |   +-- StorageUnavailable       (blob or metadata store unreachable / I/O)
    +-- NotFound                     (blob or record missing)
    +-- ExtractionError              (maps to the parse_failed state)
    |   +-- MalformedDocument
    |   +-- EmptyContent
    |   +-- UnsupportedFormat        (also an InvalidInput)
    +-- InternalInvariantViolation   (logged and raised, never a record state)
    +-- IngestionAborted             (timeout / cancellation between commits)

Configuration errors live in :mod:`docingest.config` as ``ConfigError``.
"""

from __future__ import annotations


class DocIngestError(Exception):
    """Base exception for all docingest errors.

    ``str()`` prefixes the backend name in brackets, e.g.
    ``[gcs] bucket 'docs' unreachable``.
    """

    def __init__(self, message: str = "An unexpected error occurred", backend: str | None = None) -> None:
        self._message = message
        self._backend = backend
        super().__init__(message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def backend(self) -> str | None:
        return self._backend

    def __str__(self) -> str:
        if self._backend:
            return f"[{self._backend}] {self._message}"
        return self._message


class InvalidInput(DocIngestError):
    """Bad content type, extension, size or signature. No side effects."""


class StorageError(DocIngestError):
    """Base for store-side failures."""


class StorageUnavailable(StorageError):
    """A store could not be reached or an I/O operation failed."""


class NotFound(DocIngestError):
    """A blob reference or document id does not exist."""


class ExtractionError(DocIngestError):
    """Text extraction failed; the record moves to ``parse_failed``."""


class MalformedDocument(ExtractionError):
    """The document carries the right signature but cannot be read."""


class EmptyContent(ExtractionError):
    """The document was read but contains no extractable text."""


class UnsupportedFormat(ExtractionError, InvalidInput):
    """The bytes or declared content type are not a PDF."""


class InternalInvariantViolation(DocIngestError):
    """A component received input its upstream contract rules out."""


class IngestionAborted(DocIngestError):
    """A stage was abandoned because of a timeout or cancellation.

    The record keeps its last committed status; ``resume`` continues it.
    """

    def __init__(self, message: str, document_id: str, stage: str) -> None:
        super().__init__(message)
        self.document_id = document_id
        self.stage = stage
