"""Tests for the docingest CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from docingest.cli.main import app
from docingest.errors import StorageUnavailable

runner = CliRunner()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "DOCINGEST_DB_PATH",
        "DOCINGEST_STORAGE_BACKEND",
        "DOCINGEST_GCS_BUCKET",
        "DOCINGEST_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    with patch("docingest.cli.main.configure_logging"):
        yield


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "docingest.yaml").write_text(
        yaml.dump(
            {
                "database": {"path": str(tmp_path / "meta.db")},
                "storage": {"backend": "local", "local_root": str(tmp_path / "blobs")},
                "chunking": {"max_chunk_size": 20, "overlap": 5},
            }
        ),
        encoding="utf-8",
    )
    return tmp_path


def _invoke(project: Path, *args: str):
    return runner.invoke(
        app,
        [
            "--config-dir", str(project),
            "--global-config", str(project / "no-global.yaml"),
            *args,
        ],
    )


def _upload_json(project: Path, pdf: Path) -> dict:
    result = _invoke(project, "upload", str(pdf), "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


@pytest.fixture
def pdf_file(project: Path, make_pdf) -> Path:
    path = project / "hello.pdf"
    path.write_bytes(make_pdf(["Hello world. This is a test document."]))
    return path


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "docingest" in result.output


def test_version_command(project: Path) -> None:
    result = _invoke(project, "version")
    assert result.exit_code == 0
    assert "docingest" in result.output


# ---------------------------------------------------------------------------
# upload
# ---------------------------------------------------------------------------


def test_upload_json_chunked(project: Path, pdf_file: Path) -> None:
    data = _upload_json(project, pdf_file)

    assert data["status"] == "chunked"
    assert data["message"] == "File uploaded, parsed and chunked successfully"
    assert data["filename"] == "hello.pdf"
    assert data["size"] == pdf_file.stat().st_size
    assert data["chunk_count"] >= 2
    assert "Hello world." in data["content"]
    assert "parse_error" not in data
    assert (project / "blobs" / data["id"] / "hello.pdf").read_bytes() == pdf_file.read_bytes()


def test_upload_table_output(project: Path, pdf_file: Path) -> None:
    result = _invoke(project, "upload", str(pdf_file))
    assert result.exit_code == 0
    assert "chunked" in result.output


def test_upload_blank_pdf_is_parse_failed(project: Path, make_pdf) -> None:
    blank = project / "blank.pdf"
    blank.write_bytes(make_pdf([""]))

    data = _upload_json(project, blank)

    assert data["status"] == "parse_failed"
    assert data["message"] == "File uploaded successfully but failed to parse content"
    assert "no text" in data["parse_error"]


def test_upload_non_pdf_rejected(project: Path) -> None:
    notes = project / "notes.txt"
    notes.write_text("plain text", encoding="utf-8")

    result = _invoke(project, "upload", str(notes))

    assert result.exit_code == 1
    assert "Upload rejected" in result.output
    assert not (project / "blobs").exists() or list((project / "blobs").iterdir()) == []


def test_upload_wrong_content_type_rejected(project: Path, pdf_file: Path) -> None:
    result = _invoke(project, "upload", str(pdf_file), "--content-type", "text/plain")
    assert result.exit_code == 1
    assert "Content-Type" in result.output


def test_upload_missing_file(project: Path) -> None:
    result = _invoke(project, "upload", str(project / "missing.pdf"))
    assert result.exit_code == 1
    assert "Cannot read" in result.output


# ---------------------------------------------------------------------------
# get / chunks / list
# ---------------------------------------------------------------------------


def test_get_returns_uploaded_document(project: Path, pdf_file: Path) -> None:
    uploaded = _upload_json(project, pdf_file)

    result = _invoke(project, "get", uploaded["id"], "--json")

    assert result.exit_code == 0
    fetched = json.loads(result.stdout)
    assert fetched == uploaded


def test_get_unknown_id(project: Path) -> None:
    result = _invoke(project, "get", "does-not-exist")
    assert result.exit_code == 1
    assert "No document" in result.output


def test_chunks_json(project: Path, pdf_file: Path) -> None:
    uploaded = _upload_json(project, pdf_file)

    result = _invoke(project, "chunks", uploaded["id"], "--json")

    assert result.exit_code == 0
    chunks = json.loads(result.stdout)
    assert len(chunks) == uploaded["chunk_count"]
    assert chunks[0]["start_offset"] == 0
    assert chunks[-1]["end_offset"] == len(uploaded["content"])
    for prev, cur in zip(chunks, chunks[1:]):
        assert prev["end_offset"] - cur["start_offset"] == 5


def test_list_documents(project: Path, pdf_file: Path) -> None:
    _upload_json(project, pdf_file)

    result = _invoke(project, "list", "--json")
    assert result.exit_code == 0
    rows = json.loads(result.stdout)
    assert [r["filename"] for r in rows] == ["hello.pdf"]
    assert rows[0]["status"] == "chunked"
    assert rows[0]["chunk_count"] >= 1
    assert "parsed_text" not in rows[0]

    result = _invoke(project, "list", "--status", "parse_failed")
    assert result.exit_code == 0
    assert "No documents" in result.output


def test_list_invalid_status(project: Path) -> None:
    result = _invoke(project, "list", "--status", "archived")
    assert result.exit_code == 1
    assert "Unknown status" in result.output


# ---------------------------------------------------------------------------
# resume / rechunk
# ---------------------------------------------------------------------------


def test_resume_terminal_document_is_unchanged(project: Path, pdf_file: Path) -> None:
    uploaded = _upload_json(project, pdf_file)

    result = _invoke(project, "resume", uploaded["id"], "--json")

    assert result.exit_code == 0
    assert json.loads(result.stdout)["status"] == "chunked"


def test_resume_unknown_id(project: Path) -> None:
    result = _invoke(project, "resume", "does-not-exist")
    assert result.exit_code == 1


def test_rechunk_with_new_policy(project: Path, pdf_file: Path) -> None:
    uploaded = _upload_json(project, pdf_file)

    result = _invoke(
        project, "rechunk", uploaded["id"], "--max-chunk-size", "1000", "--overlap", "10", "--json"
    )

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["status"] == "chunked"
    assert data["chunk_count"] == 1


def test_rechunk_invalid_policy(project: Path, pdf_file: Path) -> None:
    uploaded = _upload_json(project, pdf_file)

    result = _invoke(project, "rechunk", uploaded["id"], "--overlap", "50")

    assert result.exit_code == 1
    assert "overlap" in result.output


# ---------------------------------------------------------------------------
# health / config
# ---------------------------------------------------------------------------


def test_health_ok(project: Path) -> None:
    result = _invoke(project, "health", "--json")

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["status"] == "healthy"
    assert report["database"] == "connected"
    assert report["storage"] == "connected"
    assert report["storage_backend"] == "local"


def test_health_unreachable_store(project: Path) -> None:
    with patch("docingest.storage.local.LocalBlobStore.ping") as ping:
        ping.side_effect = StorageUnavailable("storage directory missing", backend="local")
        result = _invoke(project, "health")

    assert result.exit_code == 1
    assert "unhealthy" in result.output


def test_invalid_config_exits_1(tmp_path: Path) -> None:
    (tmp_path / "docingest.yaml").write_text(
        yaml.dump({"chunking": {"max_chunk_size": 10, "overlap": 10}}), encoding="utf-8"
    )

    result = _invoke(tmp_path, "list")

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_logging_configured_from_config(project: Path) -> None:
    with patch("docingest.cli.main.configure_logging") as configure:
        _invoke(project, "version")
    configure.assert_called_once_with("INFO", False)
