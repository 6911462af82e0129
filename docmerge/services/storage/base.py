from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from docmerge.core.errors import ConfigError


@dataclass(frozen=True)
class FileRef:
    """Reference to a persisted document."""

    id: str
    name: str
    url: str | None = None


@dataclass(frozen=True)
class FolderRef:
    id: str
    name: str
    parent_id: str | None = None


@dataclass(frozen=True)
class TemplateInfo:
    id: str
    name: str
    size: int


class IDocumentStore(ABC):
    """Interface for template retrieval and generated document persistence."""

    @abstractmethod
    def fetch_template(self, template_id: str) -> bytes:
        """Return template bytes; raises NotFound when absent."""

    @abstractmethod
    def list_templates(self) -> list[TemplateInfo]:
        """Return the available templates."""

    @abstractmethod
    def persist(self, folder_id: str | None, filename: str, data: bytes) -> FileRef:
        """Store a generated document; raises StorageFailure on error."""

    @abstractmethod
    def read(self, file_ref: FileRef) -> bytes:
        """Return the bytes of a previously persisted document."""

    @abstractmethod
    def list_folders(self) -> list[FolderRef]:
        """Return output folders."""

    @abstractmethod
    def create_folder(self, name: str, parent_id: str | None = None) -> FolderRef:
        """Create an output folder (existing folders are returned as-is)."""


def store_from_config(cfg: dict[str, Any] | None, default_root: Path) -> IDocumentStore:
    stype = (cfg or {}).get("type", "local").lower()
    if stype in {"local", "filesystem", "fs"}:
        from .local import LocalDocumentStore

        root = (cfg or {}).get("root")
        return LocalDocumentStore(Path(root).expanduser() if root else default_root)
    raise ConfigError(f"unknown document store type: {stype}")
