"""docingest metadata store."""

from docingest.db.connection import Database
from docingest.db.migrations import MIGRATIONS, initialize, run_migrations
from docingest.db.models import Chunk, DocumentRecord, DocumentStatus
from docingest.db.repository import Repository

__all__ = [
    "Chunk",
    "Database",
    "DocumentRecord",
    "DocumentStatus",
    "MIGRATIONS",
    "Repository",
    "initialize",
    "run_migrations",
]
