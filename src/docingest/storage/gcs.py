"""Google Cloud Storage blob store.

Object key == stored name == blob_ref. GCS object writes are atomic and
replace any existing object of the same key, which gives the overwrite
semantics the pipeline relies on for idempotent retries.
"""

from __future__ import annotations

import structlog
from google.api_core import exceptions as gexc
from google.auth import exceptions as auth_exc
from google.cloud import storage

from docingest.errors import InvalidInput, NotFound, StorageUnavailable
from docingest.storage.base import BlobStore

logger = structlog.get_logger(logger_name=__name__)

# requests' transport errors subclass OSError, so OSError covers the HTTP layer.
_TRANSPORT_ERRORS = (gexc.GoogleAPIError, auth_exc.GoogleAuthError, OSError)


class GcsBlobStore(BlobStore):
    """Blobs as objects in one GCS bucket.

    Args:
        client: A ``google.cloud.storage.Client`` built by the composition root.
        bucket_name: Target bucket; must already exist.
        timeout: Per-request timeout in seconds passed to the client library.
    """

    name = "gcs"

    def __init__(self, client: storage.Client, bucket_name: str, timeout: float = 60.0) -> None:
        if not bucket_name:
            raise InvalidInput("a bucket name is required", backend=self.name)
        self._client = client
        self._bucket = client.bucket(bucket_name)
        self.bucket_name = bucket_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, bucket_name: str, project: str | None = None) -> GcsBlobStore:
        """Build a store with a default-credentials client."""
        try:
            client = storage.Client(project=project)
        except _TRANSPORT_ERRORS as exc:
            raise StorageUnavailable(f"failed to create GCS client: {exc}", backend=cls.name) from exc
        return cls(client, bucket_name)

    def store(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        if not name or name.startswith("/"):
            raise InvalidInput(f"invalid object key {name!r}", backend=self.name)
        blob = self._bucket.blob(name)
        try:
            blob.upload_from_string(data, content_type=content_type, timeout=self.timeout)
        except _TRANSPORT_ERRORS as exc:
            raise StorageUnavailable(
                f"failed to upload '{name}' to bucket '{self.bucket_name}': {exc}", backend=self.name
            ) from exc
        logger.debug("blob_stored", backend=self.name, blob_ref=name, size=len(data))
        return name

    def fetch(self, blob_ref: str) -> bytes:
        blob = self._bucket.blob(blob_ref)
        try:
            return blob.download_as_bytes(timeout=self.timeout)
        except gexc.NotFound as exc:
            raise NotFound(
                f"object '{blob_ref}' not found in bucket '{self.bucket_name}'", backend=self.name
            ) from exc
        except _TRANSPORT_ERRORS as exc:
            raise StorageUnavailable(
                f"failed to read '{blob_ref}' from bucket '{self.bucket_name}': {exc}", backend=self.name
            ) from exc

    def ping(self) -> None:
        try:
            exists = self._bucket.exists(timeout=self.timeout)
        except _TRANSPORT_ERRORS as exc:
            raise StorageUnavailable(f"bucket '{self.bucket_name}' unreachable: {exc}", backend=self.name) from exc
        if not exists:
            raise StorageUnavailable(f"bucket '{self.bucket_name}' does not exist", backend=self.name)

    def close(self) -> None:
        self._client.close()
