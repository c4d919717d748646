"""Composition root: builds and owns the pipeline's collaborators."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from docingest.config import DocIngestConfig
from docingest.db.connection import Database
from docingest.db.migrations import initialize
from docingest.db.repository import Repository
from docingest.ingest.chunker import TextChunker
from docingest.ingest.extractor import PdfTextExtractor
from docingest.ingest.orchestrator import IngestionOrchestrator
from docingest.storage import build_blob_store
from docingest.storage.base import BlobStore


@dataclass
class Pipeline:
    conn: sqlite3.Connection
    repo: Repository
    blob_store: BlobStore
    orchestrator: IngestionOrchestrator

    def close(self) -> None:
        self.orchestrator.close()
        self.blob_store.close()
        self.conn.close()


def build_pipeline(cfg: DocIngestConfig, db_path: Path | None = None) -> Pipeline:
    """Open the database (running migrations) and wire every component.

    Args:
        cfg: Merged configuration.
        db_path: Overrides ``cfg.database.path`` (CLI ``--db`` flag).
    """
    db = Database(db_path if db_path is not None else Path(cfg.database.path))
    conn = db.connect()
    try:
        initialize(conn)
        blob_store = build_blob_store(cfg.storage)
    except Exception:
        conn.close()
        raise

    repo = Repository(conn)
    orchestrator = IngestionOrchestrator(
        repo,
        blob_store,
        PdfTextExtractor(),
        TextChunker(cfg.chunking.max_chunk_size, cfg.chunking.overlap),
        max_file_size=cfg.ingest.max_file_size,
        default_timeout=cfg.ingest.timeout_seconds,
    )
    return Pipeline(conn=conn, repo=repo, blob_store=blob_store, orchestrator=orchestrator)


@contextmanager
def open_pipeline(cfg: DocIngestConfig, db_path: Path | None = None) -> Iterator[Pipeline]:
    """Context-managed :func:`build_pipeline`; closes everything on exit."""
    pipeline = build_pipeline(cfg, db_path)
    try:
        yield pipeline
    finally:
        pipeline.close()
