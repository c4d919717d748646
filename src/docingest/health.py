"""Liveness probe: can the metadata store and the blob store be reached?"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from docingest.db.repository import Repository
from docingest.errors import StorageUnavailable
from docingest.storage.base import BlobStore

logger = structlog.get_logger(logger_name=__name__)

CONNECTED = "connected"
UNREACHABLE = "unreachable"


@dataclass
class HealthReport:
    status: str
    database: str
    storage: str
    storage_backend: str
    errors: list[str] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"


def check_health(repo: Repository, blob_store: BlobStore) -> HealthReport:
    """Ping both stores and summarise the result."""
    errors: list[str] = []

    database = CONNECTED
    try:
        repo.ping()
    except StorageUnavailable as exc:
        database = UNREACHABLE
        errors.append(str(exc))

    storage = CONNECTED
    try:
        blob_store.ping()
    except StorageUnavailable as exc:
        storage = UNREACHABLE
        errors.append(str(exc))

    status = "healthy" if not errors else "unhealthy"
    if errors:
        logger.warning("health_check_failed", errors=errors)
    return HealthReport(
        status=status,
        database=database,
        storage=storage,
        storage_backend=blob_store.name,
        errors=errors,
    )
