"""
RESPONSIBILITIES
- Define shared exceptions for persistence-layer failures.
- Define the ConfigStore interface for named mapping configurations.
PROCESS OVERVIEW
1. save -> stamp version/last_modified and overwrite whatever is stored under the name.
2. load -> return the stored MappingSet or raise NotFound.
3. list -> summarize stored configurations (name, last_modified, field_count).
4. delete -> remove a name; absent names are a no-op.
5. healthcheck -> verify the backing store is reachable and writable.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

from docmerge.core.errors import DocMergeError, NotFound
from docmerge_io.schema import CONFIG_VERSION, MappingSet
from docmerge_persist.schemas.configrec import ConfigSummary


class StoreError(DocMergeError):
    """Base exception type for persistence-layer failures."""


class StoreInitializationError(StoreError):
    """Raised when a store cannot be initialized due to missing prerequisites."""


class StoreValidationError(StoreError):
    """Raised when stored or incoming data fails validation rules."""


class StoreLockedError(StoreError):
    """Raised when a target workbook stays locked by another writer."""


@dataclass(slots=True)
class PersistHealth:
    """Structured report produced by health checks."""

    dependencies: dict[str, bool]
    writable_paths: dict[str, bool]
    locked_paths: list[str]
    issues: list[str] = field(default_factory=list)

    def is_healthy(self) -> bool:
        """Return True when no issues are observed."""

        return not self.issues and all(self.dependencies.values()) and all(
            self.writable_paths.values()
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class ConfigStore(ABC):
    """CRUD over named mapping configurations.

    Identity is the name with surrounding whitespace removed: saving under an
    existing name replaces the whole configuration (last write wins, no merge).
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def save(self, name: str, mapping_set: MappingSet) -> MappingSet:
        """Upsert ``mapping_set`` under ``name`` and return the stamped copy."""

        name = self._key(name)
        stamped = mapping_set.model_copy(
            update={"name": name, "version": CONFIG_VERSION, "last_modified": _utcnow()},
            deep=True,
        )
        self._write(name, stamped)
        self.logger.info("Saved configuration %s (%d fields)", name, stamped.field_count)
        return stamped

    def load(self, name: str) -> MappingSet:
        found = self._read(self._key(name))
        if found is None:
            raise NotFound(f"configuration not found: {name}")
        return found

    def exists(self, name: str) -> bool:
        return self._read(self._key(name)) is not None

    def delete(self, name: str) -> None:
        """Remove ``name``; deleting an absent name is not an error."""

        self._remove(self._key(name))

    @staticmethod
    def _key(name: str) -> str:
        key = (name or "").strip()
        if not key:
            raise StoreValidationError("configuration name must not be empty")
        return key

    @abstractmethod
    def list(self) -> list[ConfigSummary]:
        """Return summaries of all stored configurations sorted by name."""

    @abstractmethod
    def healthcheck(self) -> PersistHealth:
        """Run diagnostics for the store and return a structured report."""

    @abstractmethod
    def _write(self, name: str, mapping_set: MappingSet) -> None:
        """Persist a stamped configuration, replacing any previous one."""

    @abstractmethod
    def _read(self, name: str) -> MappingSet | None:
        """Return the stored configuration or None."""

    @abstractmethod
    def _remove(self, name: str) -> None:
        """Drop the stored configuration if present."""
