"""Filesystem blob store rooted at a local directory."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

import structlog

from docingest.errors import InvalidInput, NotFound, StorageUnavailable
from docingest.storage.base import BlobStore

logger = structlog.get_logger(logger_name=__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_relative_path(name: str) -> str:
    """Turn *name* into a safe relative POSIX path.

    Both ``/`` and ``\\`` separate segments; empty, ``.`` and ``..`` segments
    are dropped and characters outside ``[A-Za-z0-9._-]`` become ``_``.

    Examples:
        "abc/report.pdf"          -> "abc/report.pdf"
        "../../etc/passwd"        -> "etc/passwd"
        "id/my report (v2).pdf"   -> "id/my_report__v2_.pdf"

    Raises:
        InvalidInput: Nothing addressable is left after sanitising.
    """
    segments = [
        _UNSAFE_CHARS.sub("_", seg)
        for seg in re.split(r"[\\/]+", name)
        if seg not in ("", ".", "..")
    ]
    if not segments:
        raise InvalidInput(f"blob name {name!r} has no usable path segments", backend="local")
    return "/".join(segments)


class LocalBlobStore(BlobStore):
    """Blobs as files under *root*, addressed by sanitized relative path.

    Writes land in a temp file beside the target and are moved into place with
    ``os.replace``, so same-name writes overwrite atomically.
    """

    name = "local"

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(
                f"cannot create storage directory '{self.root}': {exc}", backend=self.name
            ) from exc
        self._resolved_root = self.root.resolve()

    def store(self, name: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        blob_ref = sanitize_relative_path(name)
        target = self._path_for(blob_ref)
        tmp_name: str | None = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp-", suffix=".part")
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as exc:
            raise StorageUnavailable(f"failed to write blob '{blob_ref}': {exc}", backend=self.name) from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        logger.debug("blob_stored", backend=self.name, blob_ref=blob_ref, size=len(data))
        return blob_ref

    def fetch(self, blob_ref: str) -> bytes:
        path = self._path_for(sanitize_relative_path(blob_ref))
        try:
            return path.read_bytes()
        except (FileNotFoundError, IsADirectoryError) as exc:
            raise NotFound(f"blob '{blob_ref}' not found", backend=self.name) from exc
        except OSError as exc:
            raise StorageUnavailable(f"failed to read blob '{blob_ref}': {exc}", backend=self.name) from exc

    def ping(self) -> None:
        if not self.root.is_dir() or not os.access(self.root, os.W_OK):
            raise StorageUnavailable(
                f"storage directory '{self.root}' is missing or not writable", backend=self.name
            )

    def _path_for(self, blob_ref: str) -> Path:
        path = (self._resolved_root / blob_ref).resolve()
        if not path.is_relative_to(self._resolved_root):
            raise InvalidInput(f"blob reference {blob_ref!r} escapes the storage root", backend=self.name)
        return path
