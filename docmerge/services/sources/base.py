from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from docmerge.core.errors import ConfigError
from docmerge_io.excel_reader import SheetInfo
from docmerge_io.records import Record


@dataclass(frozen=True)
class SourceInfo:
    id: str
    name: str


@dataclass(frozen=True)
class SourceDescription:
    name: str
    sheets: list[SheetInfo] = field(default_factory=list)

    def sheet(self, name: str) -> SheetInfo | None:
        return next((s for s in self.sheets if s.name == name), None)


class IDataSource(ABC):
    """Interface for tabular record sources."""

    @abstractmethod
    def list_sources(self) -> list[SourceInfo]:
        """Return the sources this collaborator can serve."""

    @abstractmethod
    def describe(self, source_id: str) -> SourceDescription:
        """Return sheet names, usable headers and row counts for a source."""

    @abstractmethod
    def fetch_records(
        self,
        source_id: str,
        sheet_name: str,
        rows: Iterable[int] | None = None,
    ) -> list[Record]:
        """Return records of one sheet; ``rows`` holds 1-based data row indices."""


def source_from_config(cfg: dict[str, Any] | None, default_root: Path) -> IDataSource:
    stype = (cfg or {}).get("type", "workbook").lower()
    if stype in {"workbook", "excel", "local"}:
        from .workbook import WorkbookDataSource

        root = (cfg or {}).get("root")
        return WorkbookDataSource(Path(root).expanduser() if root else default_root)
    raise ConfigError(f"unknown data source type: {stype}")
