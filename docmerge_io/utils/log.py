"""Logging helpers for the docmerge_io package."""

# Module responsibilities:
# - Attach rotating file + stream handlers to the ``docmerge_io`` logger once.
# - Provide get_logger() returning children of that package logger.

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

_LOG_CONFIGURED = False


def _default_log_dir() -> Path:
    home = os.getenv("DOCMERGE_HOME")
    base = Path(home).expanduser() if home else Path.home() / "DocMerge"
    return base / "logs"


def _configure_logging(log_dir: Optional[Path] = None) -> None:
    """Configure the package logger once."""
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    directory = log_dir or _default_log_dir()
    directory.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.handlers.RotatingFileHandler(
        directory / "docmerge_io.log", maxBytes=2_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(logging.WARNING)

    package_logger = logging.getLogger("docmerge_io")
    package_logger.setLevel(logging.INFO)
    package_logger.addHandler(file_handler)
    package_logger.addHandler(console_handler)
    package_logger.propagate = False

    _LOG_CONFIGURED = True


def get_logger(name: str, log_dir: Optional[Path] = None) -> logging.Logger:
    """Return a package-scoped logger.

    Args:
        name: Logger name suffix appended to the package root logger namespace.
        log_dir: Optional override for the logging directory.

    Returns:
        Configured logger scoped under ``docmerge_io``.
    """

    _configure_logging(log_dir)
    return logging.getLogger(f"docmerge_io.{name}")
