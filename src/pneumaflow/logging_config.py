"""
Logging setup for the CLI.

Console output goes to stderr. A rotating file under ``~/.pneumaflow/logs``
keeps the debug trail of ingestion runs. Both are driven by the
``[logging]`` config section, and individual loggers can be tuned through
a ``[logging.levels]`` table::

    [logging]
    enabled = true
    level = "DEBUG"
    max_size_mb = 10
    backup_count = 5

    [logging.levels]
    "pneumaflow.ingest" = "INFO"
    "pneumaflow.storage" = "WARNING"
"""

import logging
import logging.config
import sys

from pathlib import Path
from typing import Any

from pneumaflow.config import load_config
from pneumaflow.constants import (
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_MAX_BYTES,
)

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Applied before any [logging.levels] overrides
DEFAULT_LOGGER_LEVELS = {
    "pneumaflow": "DEBUG",
    "sqlalchemy.engine": "WARNING",
}

_logging_configured = False


def logger_levels(section: dict[str, Any]) -> tuple[dict[str, str], list[str]]:
    """
    Resolve per-logger levels from the ``[logging]`` section.

    Returns:
        Tuple of (logger name -> level name, rejected ``name=level`` entries)
    """
    levels = dict(DEFAULT_LOGGER_LEVELS)
    rejected: list[str] = []

    overrides = section.get("levels", {})
    if not isinstance(overrides, dict):
        return levels, [f"levels={overrides!r}"]

    known = logging.getLevelNamesMapping()
    for name, level in overrides.items():
        level_name = str(level).upper()
        if level_name in known:
            levels[name] = level_name
        else:
            rejected.append(f"{name}={level!r}")
    return levels, rejected


def build_logging_config(
    section: dict[str, Any],
    *,
    verbose: bool = False,
    log_path: Path | None = None,
) -> dict[str, Any]:
    """
    Build the dictConfig dictionary.

    Args:
        section: The ``[logging]`` config table
        verbose: DEBUG on the console, with timestamps and logger names
        log_path: Rotating log file; None disables file logging

    Returns:
        Dictionary suitable for logging.config.dictConfig()
    """
    levels, _ = logger_levels(section)

    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG" if verbose else "INFO",
            "formatter": "verbose" if verbose else "console",
            "stream": "ext://sys.stderr",
        },
    }

    if log_path is not None and section.get("enabled", True):
        max_size_mb = section.get("max_size_mb", DEFAULT_LOG_MAX_BYTES / (1024 * 1024))
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": str(section.get("level", "DEBUG")).upper(),
            "formatter": "file",
            "filename": str(log_path),
            "maxBytes": int(float(max_size_mb) * 1024 * 1024),
            "backupCount": int(section.get("backup_count", DEFAULT_LOG_BACKUP_COUNT)),
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": CONSOLE_FORMAT},
            "verbose": {"format": VERBOSE_CONSOLE_FORMAT},
            "file": {"format": FILE_FORMAT},
        },
        "handlers": handlers,
        "loggers": {name: {"level": level} for name, level in levels.items()},
        "root": {"level": "WARNING", "handlers": list(handlers)},
    }


def setup_logging(*, verbose: bool = False) -> Path | None:
    """
    Configure logging for a CLI run.

    Only the first call takes effect.

    Args:
        verbose: If True, log DEBUG to the console

    Returns:
        Path of the active log file, or None when file logging is off
    """
    global _logging_configured

    if _logging_configured:
        return None

    section = load_config().get("logging", {})
    log_path: Path | None = None
    if section.get("enabled", True):
        try:
            DEFAULT_LOG_DIR.mkdir(mode=0o700, parents=True, exist_ok=True)
            log_path = DEFAULT_LOG_DIR / DEFAULT_LOG_FILE
        except OSError as e:
            sys.stderr.write(f"WARNING: File logging disabled: {e}\n")

    try:
        logging.config.dictConfig(
            build_logging_config(section, verbose=verbose, log_path=log_path)
        )
    except (ValueError, TypeError) as e:
        sys.stderr.write(f"WARNING: Invalid [logging] config, using defaults: {e}\n")
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO, format=CONSOLE_FORMAT
        )
        log_path = None

    _, rejected = logger_levels(section)
    for entry in rejected:
        logging.getLogger(__name__).warning(f"Ignoring unknown log level {entry}")

    _logging_configured = True
    return log_path
