"""Blob storage backends and configuration-driven selection."""

from __future__ import annotations

from docingest.config import ConfigError, StorageCfg
from docingest.storage.base import BlobStore
from docingest.storage.local import LocalBlobStore, sanitize_relative_path


def build_blob_store(cfg: StorageCfg) -> BlobStore:
    """Construct the backend named by ``cfg.backend``.

    The gcs module is imported lazily; the Google client libraries load only
    when that backend is selected.
    """
    if cfg.backend == "local":
        return LocalBlobStore(cfg.local_root)
    if cfg.backend == "gcs":
        from docingest.storage.gcs import GcsBlobStore

        return GcsBlobStore.from_settings(cfg.gcs_bucket, project=cfg.gcs_project)
    raise ConfigError(f"Unknown storage backend: {cfg.backend!r}")


__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "build_blob_store",
    "sanitize_relative_path",
]
