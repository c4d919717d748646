"""Tests for the liveness probe."""

from __future__ import annotations

from unittest.mock import MagicMock

from docingest.db.repository import Repository
from docingest.errors import StorageUnavailable
from docingest.health import CONNECTED, UNREACHABLE, check_health


def test_healthy_with_real_stores(repo, blob_store):
    report = check_health(repo, blob_store)

    assert report.healthy
    assert report.status == "healthy"
    assert report.database == CONNECTED
    assert report.storage == CONNECTED
    assert report.storage_backend == "local"
    assert report.errors == []


def test_unreachable_blob_store(repo):
    store = MagicMock()
    store.name = "gcs"
    store.ping.side_effect = StorageUnavailable("bucket 'docs' does not exist", backend="gcs")

    report = check_health(repo, store)

    assert not report.healthy
    assert report.database == CONNECTED
    assert report.storage == UNREACHABLE
    assert report.storage_backend == "gcs"
    assert report.errors == ["[gcs] bucket 'docs' does not exist"]


def test_unreachable_database(tmp_db, blob_store):
    repo = Repository(tmp_db)
    tmp_db.close()

    report = check_health(repo, blob_store)

    assert report.status == "unhealthy"
    assert report.database == UNREACHABLE
    assert report.storage == CONNECTED
    assert len(report.errors) == 1
