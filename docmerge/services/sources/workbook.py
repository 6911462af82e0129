from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from docmerge.core.errors import NotFound, SourceUnreadable
from docmerge.core.logger import get_logger
from docmerge_io.excel_reader import CSV_SUFFIXES, EXCEL_SUFFIXES, describe_sheets, read_records
from docmerge_io.records import Record

from .base import IDataSource, SourceDescription, SourceInfo


class WorkbookDataSource(IDataSource):
    """Serves Excel/CSV files found directly under ``root``.

    A source id is the file name relative to ``root``.
    """

    def __init__(self, root: Path, logger: logging.Logger | None = None) -> None:
        self.root = Path(root).expanduser().resolve()
        self.logger = logger or get_logger()

    def _resolve(self, source_id: str) -> Path:
        path = (self.root / source_id).resolve()
        if self.root.resolve() not in path.parents or not path.is_file():
            raise NotFound(f"data source not found: {source_id}")
        if path.suffix.lower() not in EXCEL_SUFFIXES | CSV_SUFFIXES:
            raise NotFound(f"unsupported data source: {source_id}")
        return path

    def list_sources(self) -> list[SourceInfo]:
        if not self.root.exists():
            return []
        found = [
            SourceInfo(id=p.name, name=p.stem)
            for p in sorted(self.root.iterdir())
            if p.is_file()
            and p.suffix.lower() in EXCEL_SUFFIXES | CSV_SUFFIXES
            and not p.name.startswith("~$")
        ]
        return found

    def describe(self, source_id: str) -> SourceDescription:
        path = self._resolve(source_id)
        try:
            sheets = describe_sheets(path)
        except Exception as e:  # noqa: BLE001 - pandas/openpyxl raise assorted errors on damaged files
            raise SourceUnreadable(f"cannot read data source {source_id}: {e}") from e
        return SourceDescription(name=path.stem, sheets=sheets)

    def fetch_records(
        self,
        source_id: str,
        sheet_name: str,
        rows: Iterable[int] | None = None,
    ) -> list[Record]:
        path = self._resolve(source_id)
        try:
            records = read_records(path, sheet_name, rows)
        except KeyError as e:
            raise NotFound(str(e)) from e
        except Exception as e:  # noqa: BLE001 - pandas/openpyxl raise assorted errors on damaged files
            raise SourceUnreadable(f"cannot read data source {source_id}: {e}") from e
        self.logger.info("Fetched %d records from %s/%s", len(records), source_id, sheet_name)
        return records
