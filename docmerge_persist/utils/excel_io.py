"""
RESPONSIBILITIES
- Manage locked, atomic read/write operations for store workbooks via openpyxl.
PROCESS OVERVIEW
1. workbook_lock() acquires an in-process lock and then a sidecar lock file,
   waiting up to a timeout for other writers to finish.
2. ensure_workbook() guarantees the sheet/header skeleton exists.
3. read_sheet() loads rows into dictionaries keyed by canonical columns.
4. write_sheet() replaces the sheet content through a temporary file swap so
   readers only ever see a complete workbook.
"""

from __future__ import annotations

import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Sequence

from openpyxl import Workbook, load_workbook

from docmerge_persist.stores.base_store import StoreLockedError

LOCK_TIMEOUT_SEC = 10.0
_POLL_INTERVAL_SEC = 0.05

_IN_PROCESS_LOCKS: dict[Path, threading.RLock] = {}
_LOCK_REGISTRY_GUARD = threading.Lock()
# Guarded by the per-path in-process lock.
_LOCK_DEPTH: dict[Path, int] = {}


def _inprocess_lock(path: Path) -> threading.RLock:
    with _LOCK_REGISTRY_GUARD:
        return _IN_PROCESS_LOCKS.setdefault(path, threading.RLock())


def _acquire_lock_file(lock_path: Path, deadline: float) -> int:
    while True:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            if time.monotonic() >= deadline:
                raise StoreLockedError(f"Workbook appears locked: {lock_path}") from None
            time.sleep(_POLL_INTERVAL_SEC)
            continue
        os.write(fd, str(os.getpid()).encode("ascii"))
        return fd


@contextmanager
def workbook_lock(path: Path, *, timeout: float = LOCK_TIMEOUT_SEC) -> Iterator[None]:
    """Hold the single-writer lock guarding ``path``.

    Re-entrant within a thread; other threads and processes wait up to
    ``timeout`` seconds before StoreLockedError is raised.
    """

    path = path.resolve()
    inproc = _inprocess_lock(path)
    if not inproc.acquire(timeout=timeout):
        raise StoreLockedError(f"Timeout acquiring in-process lock for {path}")
    lock_path = path.with_suffix(path.suffix + ".lock")
    fd: int | None = None
    depth = _LOCK_DEPTH.get(path, 0)
    try:
        # Nested acquisition in the same thread reuses the lock file.
        if depth == 0:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = _acquire_lock_file(lock_path, time.monotonic() + timeout)
        _LOCK_DEPTH[path] = depth + 1
        yield
    finally:
        if fd is not None:
            os.close(fd)
            if lock_path.exists():
                os.unlink(lock_path)
        if depth == 0:
            _LOCK_DEPTH.pop(path, None)
        else:
            _LOCK_DEPTH[path] = depth
        inproc.release()


def _atomic_save(workbook: Workbook, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    workbook.save(tmp_path)
    os.replace(tmp_path, path)


def _new_workbook(sheet_name: str, columns: Sequence[str]) -> Workbook:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_name
    worksheet.append(list(columns))
    return workbook


def ensure_workbook(path: Path, sheet_name: str, columns: Sequence[str]) -> None:
    """Create the workbook or the sheet with a header row when missing."""

    with workbook_lock(path):
        if not path.exists():
            _atomic_save(_new_workbook(sheet_name, columns), path)
            return
        workbook = load_workbook(path)
        try:
            if sheet_name in workbook.sheetnames:
                return
            workbook.create_sheet(title=sheet_name).append(list(columns))
            _atomic_save(workbook, path)
        finally:
            workbook.close()


def _read_rows(path: Path, sheet_name: str, columns: Sequence[str]) -> list[dict[str, object]]:
    if not path.exists():
        return []
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        if sheet_name not in workbook.sheetnames:
            return []
        rows = workbook[sheet_name].iter_rows(values_only=True)
        header_row = next(rows, None)
        if header_row is None:
            return []
        index_map = {
            str(cell).strip(): idx for idx, cell in enumerate(header_row) if cell is not None
        }
        records: list[dict[str, object]] = []
        for values in rows:
            if not values or all(cell is None or str(cell).strip() == "" for cell in values):
                continue
            record: dict[str, object] = {}
            for column in columns:
                idx = index_map.get(column)
                value = values[idx] if idx is not None and idx < len(values) else None
                record[column] = "" if value is None else value
            records.append(record)
        return records
    finally:
        workbook.close()


def read_sheet(path: Path, sheet_name: str, columns: Sequence[str], *, use_lock: bool = True) -> list[dict[str, object]]:
    """Return worksheet content as dictionaries keyed by *columns*."""

    if use_lock:
        with workbook_lock(path):
            return _read_rows(path, sheet_name, columns)
    return _read_rows(path, sheet_name, columns)


def write_sheet(
    path: Path,
    sheet_name: str,
    rows: Iterable[Mapping[str, object]],
    columns: Sequence[str],
    *,
    use_lock: bool = True,
) -> None:
    """Replace the worksheet content atomically."""

    def _write() -> None:
        workbook = _new_workbook(sheet_name, columns)
        worksheet = workbook.active
        for row in rows:
            worksheet.append([row.get(column, "") for column in columns])
        _atomic_save(workbook, path)

    if use_lock:
        with workbook_lock(path):
            _write()
    else:
        _write()
