"""Blob store interface shared by every storage backend."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BlobStore(ABC):
    """Abstract base for raw-document storage.

    Contract shared by all backends:

    - ``store`` returns a ``blob_ref`` that ``fetch`` accepts.
    - Storing under an existing name overwrites it atomically; a reader sees
      either the old bytes or the new bytes, never a mix.
    - ``store`` is safe to call concurrently for distinct names.
    - ``fetch`` raises ``NotFound`` for an unknown reference and
      ``StorageUnavailable`` for any I/O or transport failure.
    """

    name: str = "blob"

    @abstractmethod
    def store(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Persist *data* under *name* and return its blob reference."""

    @abstractmethod
    def fetch(self, blob_ref: str) -> bytes:
        """Return the bytes stored under *blob_ref*."""

    @abstractmethod
    def ping(self) -> None:
        """Raise StorageUnavailable if the backend cannot be reached."""

    def close(self) -> None:
        """Release backend resources. No-op unless the backend holds a client."""
