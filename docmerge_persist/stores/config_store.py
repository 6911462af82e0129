"""
RESPONSIBILITIES
- Persist named mapping configurations in ~/DocMerge/store/mapping_configs.xlsx.
- Provide an in-memory store with the same semantics for embedding and tests.
PROCESS OVERVIEW
1. init_store() ensures the workbook and sheet exist.
2. _write() replaces the rows for the name under the workbook lock, so
   concurrent saves interleave only as whole-configuration overwrites.
3. _read()/list() read rows; delete() rewrites the sheet without the name.
4. healthcheck() verifies dependencies, directory write access and lock state.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from docmerge_io.schema import MappingSet
from docmerge_persist.schemas.configrec import CONFIG_COLUMNS, ConfigRow, ConfigSummary, rows_from_sheet
from docmerge_persist.stores.base_store import (
    ConfigStore,
    PersistHealth,
    StoreInitializationError,
    StoreValidationError,
)
from docmerge_persist.utils.excel_io import ensure_workbook, read_sheet, workbook_lock, write_sheet
from docmerge_persist.utils.log import get_logger
from docmerge_persist.utils.paths import store_file_path

CONFIG_WORKBOOK = "mapping_configs.xlsx"
CONFIG_SHEET = "configs"


class XLSXConfigStore(ConfigStore):
    """Workbook-backed configuration store, one row per payload part of each configuration."""

    sheet_name = CONFIG_SHEET
    columns = CONFIG_COLUMNS

    def __init__(self, root: Path | str | None = None, *, logger: logging.Logger | None = None) -> None:
        resolved_root = Path(root).expanduser().resolve() if root else None
        super().__init__(logger=logger or get_logger("config_store", resolved_root))
        self._root = resolved_root
        self.path = store_file_path(CONFIG_WORKBOOK, self._root)

    def init_store(self) -> Path:
        self.logger.debug("Ensuring configuration workbook exists at %s", self.path)
        try:
            ensure_workbook(self.path, self.sheet_name, self.columns)
        except OSError as exc:
            raise StoreInitializationError(str(exc)) from exc
        return self.path

    def _rows(self, *, use_lock: bool = True) -> list[ConfigRow]:
        raw = read_sheet(self.path, self.sheet_name, self.columns, use_lock=use_lock)
        return rows_from_sheet(raw)

    def _write(self, name: str, mapping_set: MappingSet) -> None:
        self.init_store()
        new_row = ConfigRow.from_mapping_set(mapping_set)
        with workbook_lock(self.path):
            rows = [row for row in self._rows(use_lock=False) if row.name != name]
            rows.append(new_row)
            write_sheet(
                self.path,
                self.sheet_name,
                [item for row in rows for item in row.to_sheet_rows()],
                self.columns,
                use_lock=False,
            )

    def _read(self, name: str) -> MappingSet | None:
        for row in self._rows():
            if row.name == name:
                try:
                    return row.to_mapping_set()
                except ValueError as exc:
                    raise StoreValidationError(str(exc)) from exc
        return None

    def list(self) -> list[ConfigSummary]:
        return sorted((row.to_summary() for row in self._rows()), key=lambda item: item.name)

    def _remove(self, name: str) -> None:
        if not self.path.exists():
            return
        with workbook_lock(self.path):
            rows = self._rows(use_lock=False)
            remaining = [row for row in rows if row.name != name]
            if len(remaining) == len(rows):
                self.logger.debug("Delete of absent configuration %s ignored", name)
                return
            write_sheet(
                self.path,
                self.sheet_name,
                [item for row in remaining for item in row.to_sheet_rows()],
                self.columns,
                use_lock=False,
            )
        self.logger.info("Deleted configuration %s", name)

    def healthcheck(self) -> PersistHealth:
        issues: list[str] = []
        try:
            self.init_store()
        except (StoreInitializationError, OSError) as exc:
            issues.append(str(exc))
        lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        locked = [str(lock_path)] if lock_path.exists() else []
        parent = self.path.parent
        return PersistHealth(
            dependencies={"openpyxl": True},
            writable_paths={str(parent): parent.exists()},
            locked_paths=locked,
            issues=issues,
        )


class InMemoryConfigStore(ConfigStore):
    """Process-local configuration store guarded by a lock."""

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        super().__init__(logger=logger)
        self._items: dict[str, MappingSet] = {}
        self._lock = threading.Lock()

    def _write(self, name: str, mapping_set: MappingSet) -> None:
        with self._lock:
            self._items[name] = mapping_set.model_copy(deep=True)

    def _read(self, name: str) -> MappingSet | None:
        with self._lock:
            found = self._items.get(name)
        return found.model_copy(deep=True) if found is not None else None

    def list(self) -> list[ConfigSummary]:
        with self._lock:
            items = list(self._items.values())
        return sorted(
            (ConfigSummary(name=i.name, last_modified=i.last_modified, field_count=i.field_count) for i in items),
            key=lambda item: item.name,
        )

    def _remove(self, name: str) -> None:
        with self._lock:
            self._items.pop(name, None)

    def healthcheck(self) -> PersistHealth:
        return PersistHealth(dependencies={}, writable_paths={}, locked_paths=[])


def init_config_store(root: Path | None = None) -> Path:
    return XLSXConfigStore(root).init_store()
