"""
RESPONSIBILITIES
- Resolve and create the ~/DocMerge directory scaffold used for persistence.
- Provide helpers for locating store files.
PROCESS OVERVIEW
1. resolve_root() expands user input, then DOCMERGE_HOME, then ~/DocMerge.
2. ensure_structure() materializes store/logs directories.
3. store_file_path() returns the canonical store location for a workbook.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

_DEFAULT_SUBDIRS: tuple[str, ...] = ("store", "logs")


def resolve_root(root: str | os.PathLike[str] | None = None) -> Path:
    """Return the persistence root."""

    if root is not None:
        base = Path(root)
    elif os.getenv("DOCMERGE_HOME"):
        base = Path(os.environ["DOCMERGE_HOME"])
    else:
        base = Path.home() / "DocMerge"
    return base.expanduser().resolve()


def ensure_structure(root: str | os.PathLike[str] | None = None, *, subdirs: Iterable[str] | None = None) -> dict[str, Path]:
    """Ensure persistence directories exist and return a mapping."""

    base = resolve_root(root)
    requested = tuple(subdirs) if subdirs is not None else _DEFAULT_SUBDIRS
    resolved: dict[str, Path] = {}
    for name in requested:
        target = base / name
        target.mkdir(parents=True, exist_ok=True)
        resolved[name] = target
    return resolved


def store_file_path(filename: str, root: str | os.PathLike[str] | None = None) -> Path:
    """Return the absolute path for a store workbook under "store"."""

    return ensure_structure(root)["store"] / filename
