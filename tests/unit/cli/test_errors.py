"""Tests for docingest CLI error messages."""

from __future__ import annotations

import pytest

from docingest.cli.errors import (
    err_aborted,
    err_config,
    err_document_not_found,
    err_file_unreadable,
    err_internal,
    err_invalid_upload,
    err_not_resumable,
    err_storage_unavailable,
)


def _has_action(msg: str) -> bool:
    """Every error must carry an actionable instruction."""
    lower = msg.lower()
    return any(kw in lower for kw in ["run:", "docingest ", "fix ", "check", "only pdf"])


@pytest.mark.parametrize(
    "msg",
    [
        err_invalid_upload("file is empty"),
        err_document_not_found("abc"),
        err_config("bad overlap"),
        err_storage_unavailable("[gcs] down"),
        err_aborted("abc", "parse"),
        err_not_resumable("abc", "never stored"),
        err_internal("chunker received empty text"),
    ],
)
def test_errors_are_actionable(msg: str) -> None:
    assert _has_action(msg)


def test_err_invalid_upload_says_nothing_stored() -> None:
    msg = err_invalid_upload("file is empty")
    assert "file is empty" in msg
    assert "Nothing was stored" in msg


def test_err_document_not_found_contains_id() -> None:
    assert "doc-42" in err_document_not_found("doc-42")


def test_err_aborted_points_to_resume() -> None:
    msg = err_aborted("doc-42", "store")
    assert "store" in msg
    assert "docingest resume doc-42" in msg


def test_err_not_resumable_suggests_file() -> None:
    assert "--file" in err_not_resumable("doc-42", "never stored")


def test_err_file_unreadable() -> None:
    msg = err_file_unreadable("missing.pdf", "No such file or directory")
    assert "missing.pdf" in msg
    assert "No such file" in msg
