"""
User configuration for PneumaFlow.

Settings live in ``~/.pneumaflow/config.toml`` as ``[section]`` tables::

    [storage]
    data_dir = "/srv/cpap/parquet"
    compression = "zstd"

    [ingest]
    batch_size = 50000
    sample_rate = "auto"

    [query]
    max_points = 5000

    [logging]
    level = "INFO"

CLI ``--db`` / ``--data-dir`` options override the file per invocation.
"""

import logging
import os
import tomllib

from pathlib import Path
from typing import Any

import tomli_w

from pydantic import BaseModel, Field, field_validator

from pneumaflow.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONFIG_FILE,
    DEFAULT_DATA_DIR,
    DEFAULT_DATABASE_PATH,
    DEFAULT_SAMPLE_RATE_HZ,
    MICRO_MAX_POINTS,
    PARQUET_COMPRESSION,
    SAMPLE_RATE_AUTO,
)

logger = logging.getLogger(__name__)

SUPPORTED_COMPRESSIONS = ("zstd", "snappy", "gzip", "brotli", "lz4", "none")

# Keys accepted by `config set`, per section
CONFIG_KEYS: dict[str, tuple[str, ...]] = {
    "storage": ("data_dir", "database_path", "compression"),
    "ingest": ("batch_size", "sample_rate", "default_sample_rate_hz"),
    "query": ("max_points", "max_scan_rows"),
    "logging": ("enabled", "level", "max_size_mb", "backup_count"),
}


def get_config_path() -> Path:
    return DEFAULT_CONFIG_FILE


def load_config() -> dict[str, Any]:
    """
    Read the config file as ``{section: {key: value}}``.

    A missing file reads as empty. A file that is not valid TOML, and any
    top-level entry that is not a table, is logged and ignored.
    """
    config_path = get_config_path()
    try:
        with open(config_path, "rb") as f:
            raw = tomllib.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Ignoring unreadable config {config_path}: {e}")
        return {}

    config: dict[str, Any] = {}
    for section, values in raw.items():
        if isinstance(values, dict):
            config[section] = values
        else:
            logger.warning(f"Ignoring config entry '{section}': not a [section] table")
    return config


def save_config(config: dict[str, Any]) -> Path:
    """
    Write the config file, replacing it atomically.

    Returns:
        Path of the written file

    Raises:
        OSError: If the directory or file cannot be written
    """
    config_path = get_config_path()
    payload = tomli_w.dumps(config).encode("utf-8")
    temp_path = config_path.with_suffix(".toml.tmp")

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_bytes(payload)
        os.replace(temp_path, config_path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
    return config_path


def set_config_value(dotted_key: str, value: Any) -> None:
    """
    Set a single value in the config file.

    Args:
        dotted_key: Key in ``section.name`` form (e.g. ``ingest.batch_size``)
        value: Value to store

    Raises:
        ValueError: If the key is not one of CONFIG_KEYS
    """
    section, _, name = dotted_key.partition(".")
    if name not in CONFIG_KEYS.get(section, ()):
        known = ", ".join(f"{s}.{k}" for s, keys in CONFIG_KEYS.items() for k in keys)
        raise ValueError(f"Unknown config key '{dotted_key}'. Known keys: {known}")

    config = load_config()
    config.setdefault(section, {})[name] = value
    save_config(config)


class Settings(BaseModel):
    """Resolved runtime settings for storage, ingestion and queries."""

    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR, description="Root directory for Parquet sessions"
    )
    database_path: str = Field(
        default=DEFAULT_DATABASE_PATH, description="SQLite aggregate database path"
    )
    compression: str = Field(
        default=PARQUET_COMPRESSION, description="Parquet column compression codec"
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE, ge=1, description="Samples per part-file flush"
    )
    sample_rate: float | str = Field(
        default=SAMPLE_RATE_AUTO,
        description="Fixed sampling rate in Hz, or 'auto' to derive from data",
    )
    default_sample_rate_hz: float = Field(
        default=DEFAULT_SAMPLE_RATE_HZ,
        gt=0,
        description="Fallback rate when it cannot be derived",
    )
    max_points: int = Field(
        default=MICRO_MAX_POINTS, ge=3, description="Upper bound on micro points"
    )
    max_scan_rows: int | None = Field(
        default=None, ge=1, description="Row budget for a single micro range scan"
    )

    @field_validator("compression")
    @classmethod
    def _check_compression(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_COMPRESSIONS:
            raise ValueError(
                f"Unsupported compression '{value}'. "
                f"Valid codecs are: {', '.join(SUPPORTED_COMPRESSIONS)}"
            )
        return value

    @field_validator("sample_rate")
    @classmethod
    def _check_sample_rate(cls, value: float | str) -> float | str:
        if isinstance(value, str):
            if value.lower() == SAMPLE_RATE_AUTO:
                return SAMPLE_RATE_AUTO
            value = float(value)
        if value <= 0:
            raise ValueError(f"Sample rate must be positive, got {value}")
        return float(value)

    @property
    def fixed_sample_rate(self) -> float | None:
        """Configured fixed rate, or None when the rate is derived from data."""
        if self.sample_rate == SAMPLE_RATE_AUTO:
            return None
        return float(self.sample_rate)


def load_settings(
    database_path: str | None = None,
    data_dir: str | Path | None = None,
    sample_rate: str | None = None,
) -> Settings:
    """
    Build settings from the config file with optional CLI overrides.

    Args:
        database_path: Overrides ``storage.database_path``
        data_dir: Overrides ``storage.data_dir``
        sample_rate: Overrides ``ingest.sample_rate`` (Hz or "auto")

    Returns:
        Resolved Settings
    """
    config = load_config()

    values: dict[str, Any] = {}
    for section in ("storage", "ingest", "query"):
        table = config.get(section, {})
        values.update((key, table[key]) for key in CONFIG_KEYS[section] if key in table)

    if database_path:
        values["database_path"] = database_path
    if data_dir:
        values["data_dir"] = data_dir
    if sample_rate:
        values["sample_rate"] = sample_rate

    return Settings(**values)
