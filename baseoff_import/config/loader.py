from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..ingest.reader import DEFAULT_ALLOWED_EXTENSIONS, DEFAULT_MAX_FILE_SIZE_MB
from ..models.import_job import DEFAULT_ERROR_LOG_LIMIT

"""Config loader.

Responsibilities:
- Load YAML (default ``config/import.yml``); a missing file is an error only
  when the path was given explicitly
- Validate against the bundled JSON schema (unknown keys rejected)
- Apply defaults and resolve the effective batch size
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "TablesConfig",
    "ImportConfig",
    "BATCH_PRESETS",
    "DEFAULT_CONFIG_PATH",
    "load_config",
    "resolve_batch_size",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")

BATCH_PRESETS: dict[str, int] = {
    "conservative": 250,
    "balanced": 500,
    "aggressive": 1000,
}
DEFAULT_PRESET = "balanced"
MAX_BATCH_SIZE = 5000


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class TablesConfig:
    clients: str = "baseoff_clients"
    contracts: str = "baseoff_contracts"
    jobs: str = "import_jobs"


@dataclass(frozen=True)
class ImportConfig:
    batch_preset: str = DEFAULT_PRESET
    batch_size: int = BATCH_PRESETS[DEFAULT_PRESET]
    max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB
    allowed_extensions: tuple[str, ...] = DEFAULT_ALLOWED_EXTENSIONS
    progress_interval_rows: int = 1000
    pause_seconds: float = 0.0
    error_log_limit: int = DEFAULT_ERROR_LOG_LIMIT
    storage_root: str = "./storage"
    storage_bucket: str = "imports"
    delete_source_on_success: bool = True
    tables: TablesConfig = field(default_factory=TablesConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def resolve_batch_size(preset: str | None = None, batch_size: int | None = None) -> int:
    """Explicit size wins over the preset; both are range checked."""
    if batch_size is not None:
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ConfigError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}: {batch_size}")
        return batch_size
    name = preset or DEFAULT_PRESET
    try:
        return BATCH_PRESETS[name]
    except KeyError:
        raise ConfigError(
            f"unknown batch preset '{name}' (expected one of {', '.join(BATCH_PRESETS)})"
        ) from None


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {location}: {e.message}") from e


def load_config(path: Path | None = None) -> ImportConfig:
    explicit = path is not None
    path = path if path is not None else DEFAULT_CONFIG_PATH
    if not path.exists():
        if explicit:
            raise ConfigError(f"config file not found: {path}")
        return ImportConfig()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    preset = data.get("batch_preset", DEFAULT_PRESET)
    db_raw = data.get("database", {})
    tables_raw = data.get("tables", {})
    defaults = ImportConfig()
    return ImportConfig(
        batch_preset=preset,
        batch_size=resolve_batch_size(preset, data.get("batch_size")),
        max_file_size_mb=data.get("max_file_size_mb", defaults.max_file_size_mb),
        allowed_extensions=tuple(
            e.lower() for e in data.get("allowed_extensions", defaults.allowed_extensions)
        ),
        progress_interval_rows=data.get("progress_interval_rows", defaults.progress_interval_rows),
        pause_seconds=float(data.get("pause_seconds", defaults.pause_seconds)),
        error_log_limit=data.get("error_log_limit", defaults.error_log_limit),
        storage_root=data.get("storage_root", defaults.storage_root),
        storage_bucket=data.get("storage_bucket", defaults.storage_bucket),
        delete_source_on_success=data.get(
            "delete_source_on_success", defaults.delete_source_on_success
        ),
        tables=TablesConfig(**tables_raw),
        database=DatabaseConfig(**db_raw),
    )
