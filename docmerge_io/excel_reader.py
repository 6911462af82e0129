"""Spreadsheet input helpers."""

# Module responsibilities:
# - Wrap pandas readers for Excel/CSV with strong validation.
# - Turn sheet rows into typed Records keyed by cleaned headers.
# - Emit structured logs for traceability.

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from .records import Record
from .utils.log import get_logger

logger = get_logger("excel_reader")

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
CSV_SUFFIXES = {".csv"}


@dataclass(frozen=True)
class SheetInfo:
    name: str
    headers: List[str]
    row_count: int


def sheet_names(path: Path) -> List[str]:
    """Return sheet names; a CSV file exposes a single sheet named after its stem."""

    _check_source(path)
    if path.suffix.lower() in CSV_SUFFIXES:
        return [path.stem]
    with pd.ExcelFile(path) as book:
        return [str(name) for name in book.sheet_names]


def _check_source(path: Path) -> None:
    if not path.exists():
        raise FileNotFoundError(f"Source workbook not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in EXCEL_SUFFIXES | CSV_SUFFIXES:
        raise ValueError(f"unsupported input file: {path}")


def _read_raw(path: Path, sheet: str, **kwargs: object) -> pd.DataFrame:
    try:
        if path.suffix.lower() in CSV_SUFFIXES:
            return pd.read_csv(path, header=None, skip_blank_lines=False, **kwargs)
        return pd.read_excel(path, sheet_name=sheet, header=None, **kwargs)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()


def clean_headers(raw_headers: Iterable[object]) -> List[Tuple[int, str]]:
    """Return ``(column position, header)`` pairs, dropping empty and repeated headers."""

    seen: set[str] = set()
    kept: List[Tuple[int, str]] = []
    for idx, raw in enumerate(raw_headers):
        if raw is None or (not isinstance(raw, str) and pd.isna(raw)):
            continue
        header = str(raw).strip()
        if not header or header in seen:
            continue
        seen.add(header)
        kept.append((idx, header))
    return kept


def _load_sheet(path: Path, sheet: str) -> Tuple[List[Tuple[int, str]], pd.DataFrame]:
    header_frame = _read_raw(path, sheet, nrows=1)
    if header_frame.empty:
        return [], pd.DataFrame()
    columns = clean_headers(header_frame.iloc[0].tolist())
    # Data rows are read separately so pandas infers types per column.
    data = _read_raw(path, sheet, skiprows=1)
    if not data.empty:
        data = data.dropna(how="all")
    return columns, data


def describe_sheets(path: Path) -> List[SheetInfo]:
    """List sheets with their usable headers and data row counts."""

    infos: List[SheetInfo] = []
    for name in sheet_names(path):
        columns, data = _load_sheet(path, name)
        infos.append(SheetInfo(name=name, headers=[h for _, h in columns], row_count=len(data.index)))
    logger.info("Workbook described", extra={"path": str(path), "sheets": [i.name for i in infos]})
    return infos


def read_records(
    path: Path,
    sheet: Optional[str] = None,
    rows: Optional[Iterable[int]] = None,
) -> List[Record]:
    """Load typed records from one sheet.

    Args:
        path: Workbook or CSV path.
        sheet: Sheet name; defaults to the first sheet.
        rows: Optional 1-based data row indices (row 1 is the first row under
            the header). ``None`` selects every row.

    Returns:
        Records in sheet order; ``row_id`` is ``"<sheet>!<spreadsheet row>"``.

    Raises:
        FileNotFoundError: When the file does not exist.
        KeyError: When the sheet does not exist.
    """

    names = sheet_names(path)
    target = sheet if sheet is not None else names[0]
    if target not in names:
        raise KeyError(f"Sheet '{target}' not found in {path.name}")

    logger.info("Reading records", extra={"path": str(path), "sheet": target})
    columns, data = _load_sheet(path, target)
    selected = set(rows) if rows is not None else None

    records: List[Record] = []
    for position, values in data.iterrows():
        data_row = int(position) + 1
        if selected is not None and data_row not in selected:
            continue
        raw = {
            header: (values.iloc[idx] if idx < len(values) else None)
            for idx, header in columns
        }
        records.append(Record.from_raw(f"{target}!{data_row + 1}", raw))

    logger.info("Records loaded", extra={"sheet": target, "rows": len(records)})
    return records
