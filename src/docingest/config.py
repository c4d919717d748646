"""docingest configuration loader.

Priority (high → low):
  1. CLI flags           (handled at the call site, not in this module)
  2. Environment variables  (DOCINGEST_DB_PATH, DOCINGEST_STORAGE_BACKEND,
                             DOCINGEST_GCS_BUCKET, DOCINGEST_LOG_LEVEL)
  3. Per-project docingest.yaml  (in the working directory)
  4. Global ~/.docingest/config.yaml  (defaults only, no credentials)
  5. Hardcoded defaults

Global config must never contain credentials; Google Cloud Storage picks them
up from the environment (GOOGLE_APPLICATION_CREDENTIALS).
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docingest"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "docingest.yaml"

# Key names that look like credentials are forbidden in global config.
# Matches: api_key, apikey, api-key, api_secret, _token (suffix), standalone token,
# _secret (suffix), standalone secret, password, passwd, credential(s), private_key.
_CREDENTIAL_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential"
    r"|private[_\-]?key",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["database", "storage", "chunking", "ingest", "logging"]
)

STORAGE_BACKENDS: frozenset[str] = frozenset(["local", "gcs"])

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class DatabaseCfg:
    """Metadata store location (docingest.yaml: database:)."""

    path: str = ".docingest.db"


@dataclass
class StorageCfg:
    """Blob store backend selection (docingest.yaml: storage:).

    Attributes:
        backend: ``local`` (filesystem) or ``gcs`` (Google Cloud Storage).
        local_root: Root directory for the local backend.
        gcs_bucket: Bucket name for the gcs backend (required when selected).
        gcs_project: Optional GCP project passed to the storage client.
    """

    backend: str = "local"
    local_root: str = ".docingest/blobs"
    gcs_bucket: str = ""
    gcs_project: str | None = None


@dataclass
class ChunkingCfg:
    """Chunk size and overlap, in characters (docingest.yaml: chunking:)."""

    max_chunk_size: int = 1_000
    overlap: int = 200


@dataclass
class IngestCfg:
    """Upload limits and stage timeout (docingest.yaml: ingest:)."""

    max_file_size: int = 10 * 1024 * 1024
    timeout_seconds: float | None = None


@dataclass
class LoggingCfg:
    """structlog settings (docingest.yaml: logging:)."""

    level: str = "INFO"
    json: bool = False


@dataclass
class DocIngestConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_credentials(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any credential-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _CREDENTIAL_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must come from the environment, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use, for example:\n"
                        f"    export GOOGLE_APPLICATION_CREDENTIALS=/path/to/key.json"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}', ignored.",
                UserWarning,
                stacklevel=4,
            )


def validate_chunking(max_chunk_size: int, overlap: int) -> None:
    """Raise ConfigError unless ``0 < overlap < max_chunk_size``."""
    if max_chunk_size < 2:
        raise ConfigError(f"chunking.max_chunk_size must be >= 2, got {max_chunk_size}")
    if not 0 < overlap < max_chunk_size:
        raise ConfigError(
            f"chunking.overlap must satisfy 0 < overlap < max_chunk_size "
            f"({max_chunk_size}), got {overlap}"
        )


def _validate(cfg: DocIngestConfig) -> None:
    validate_chunking(cfg.chunking.max_chunk_size, cfg.chunking.overlap)

    if cfg.storage.backend not in STORAGE_BACKENDS:
        raise ConfigError(
            f"storage.backend must be one of {sorted(STORAGE_BACKENDS)}, "
            f"got '{cfg.storage.backend}'"
        )
    if cfg.storage.backend == "gcs" and not cfg.storage.gcs_bucket:
        raise ConfigError(
            "storage.gcs_bucket is required when storage.backend is 'gcs'.\n"
            "  Set it in docingest.yaml or export DOCINGEST_GCS_BUCKET=<bucket>"
        )
    if cfg.ingest.max_file_size < 1:
        raise ConfigError(f"ingest.max_file_size must be >= 1, got {cfg.ingest.max_file_size}")
    if cfg.ingest.timeout_seconds is not None and cfg.ingest.timeout_seconds <= 0:
        raise ConfigError(
            f"ingest.timeout_seconds must be positive, got {cfg.ingest.timeout_seconds}"
        )
    if cfg.logging.level.upper() not in _LOG_LEVELS:
        raise ConfigError(
            f"logging.level must be one of {sorted(_LOG_LEVELS)}, got '{cfg.logging.level}'"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DocIngestConfig:
    """Build a *DocIngestConfig* from a merged raw YAML dict."""
    cfg = DocIngestConfig()

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "storage" in data:
        s = data["storage"] or {}
        cfg.storage = StorageCfg(
            backend=str(s.get("backend", cfg.storage.backend)).lower(),
            local_root=str(s.get("local_root", cfg.storage.local_root)),
            gcs_bucket=str(s.get("gcs_bucket") or cfg.storage.gcs_bucket),
            gcs_project=s.get("gcs_project") or cfg.storage.gcs_project,
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            max_chunk_size=int(c.get("max_chunk_size", cfg.chunking.max_chunk_size)),
            overlap=int(c.get("overlap", cfg.chunking.overlap)),
        )

    if "ingest" in data:
        i = data["ingest"] or {}
        timeout = i.get("timeout_seconds", cfg.ingest.timeout_seconds)
        cfg.ingest = IngestCfg(
            max_file_size=int(i.get("max_file_size", cfg.ingest.max_file_size)),
            timeout_seconds=float(timeout) if timeout is not None else None,
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=str(lg.get("level", cfg.logging.level)),
            json=bool(lg.get("json", cfg.logging.json)),
        )

    return cfg


def _apply_env_overrides(cfg: DocIngestConfig) -> DocIngestConfig:
    """Apply DOCINGEST_* environment variable overrides."""
    if path := os.environ.get("DOCINGEST_DB_PATH"):
        cfg.database.path = path
    if backend := os.environ.get("DOCINGEST_STORAGE_BACKEND"):
        cfg.storage.backend = backend.lower()
    if bucket := os.environ.get("DOCINGEST_GCS_BUCKET"):
        cfg.storage.gcs_bucket = bucket
    if level := os.environ.get("DOCINGEST_LOG_LEVEL"):
        cfg.logging.level = level
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocIngestConfig:
    """Load and return a merged *DocIngestConfig*.

    Applies layers in order: global → per-project → env vars, then validates.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docingest.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *DocIngestConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains credential-like fields, or if a
            merged value is out of range (chunking policy, backend, limits).
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_credentials(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg
