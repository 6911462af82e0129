"""
RESPONSIBILITIES
- Define the row layout used to persist mapping configurations in a workbook.
- Convert between MappingSet objects and flat sheet rows.
PROCESS OVERVIEW
1. ConfigRow.from_mapping_set() flattens a stamped MappingSet into columns
   plus a JSON payload holding the full configuration.
2. ConfigRow.to_sheet_rows() splits the payload into numbered parts, since a
   worksheet cell holds at most 32,767 characters.
3. rows_from_sheet() regroups the parts per name; to_mapping_set() rebuilds it.
4. ConfigSummary is the lightweight view returned by list().
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, MutableMapping

from pydantic import ValidationError

from docmerge_io.schema import MappingSet

CONFIG_COLUMNS: tuple[str, ...] = (
    "name",
    "version",
    "field_count",
    "last_modified",
    "part",
    "payload",
)

# Below the openpyxl cell limit of 32,767 characters.
PAYLOAD_CHUNK = 32_000


@dataclass(frozen=True, slots=True)
class ConfigSummary:
    name: str
    last_modified: datetime | None
    field_count: int


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    text = str(value).strip() if value is not None else ""
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _as_int(value: object) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def split_payload(payload: str, size: int = PAYLOAD_CHUNK) -> list[str]:
    """Cut ``payload`` into parts of at most ``size`` characters.

    openpyxl stores a string starting with ``=`` as a formula, so a cut is
    moved back until the next part starts with another character.
    """

    parts: list[str] = []
    start = 0
    while start < len(payload):
        end = min(start + size, len(payload))
        while end < len(payload) and payload[end] == "=" and end - start > 1:
            end -= 1
        parts.append(payload[start:end])
        start = end
    return parts or [""]


@dataclass(slots=True)
class ConfigRow:
    name: str
    version: str
    field_count: int
    last_modified: datetime | None
    payload: str

    @classmethod
    def from_mapping_set(cls, mapping_set: MappingSet) -> "ConfigRow":
        return cls(
            name=mapping_set.name,
            version=mapping_set.version,
            field_count=mapping_set.field_count,
            last_modified=mapping_set.last_modified,
            payload=json.dumps(mapping_set.to_payload(), ensure_ascii=False, sort_keys=True),
        )

    @classmethod
    def from_sheet(cls, row: Mapping[str, object]) -> "ConfigRow":
        return cls(
            name=str(row.get("name") or ""),
            version=str(row.get("version", "")),
            field_count=_as_int(row.get("field_count")),
            last_modified=_parse_timestamp(row.get("last_modified")),
            payload=str(row.get("payload") or ""),
        )

    def to_sheet_rows(self) -> list[MutableMapping[str, object]]:
        stamp = self.last_modified.isoformat() if self.last_modified else ""
        return [
            {
                "name": self.name,
                "version": self.version,
                "field_count": self.field_count,
                "last_modified": stamp,
                "part": index,
                "payload": chunk,
            }
            for index, chunk in enumerate(split_payload(self.payload))
        ]

    def to_summary(self) -> ConfigSummary:
        return ConfigSummary(name=self.name, last_modified=self.last_modified, field_count=self.field_count)

    def to_mapping_set(self) -> MappingSet:
        """Rebuild the stored MappingSet; raises ValueError for corrupt payloads."""

        try:
            return MappingSet.model_validate(json.loads(self.payload))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ValueError(f"corrupt payload for configuration '{self.name}': {exc}") from exc


def rows_from_sheet(raw_rows: Iterable[Mapping[str, object]]) -> list[ConfigRow]:
    """Join the payload parts of each name back into one ConfigRow.

    Rows keep the order in which their name first appears; rows without a
    name are skipped.
    """

    grouped: dict[str, list[tuple[int, ConfigRow]]] = {}
    for raw in raw_rows:
        row = ConfigRow.from_sheet(raw)
        if not row.name.strip():
            continue
        grouped.setdefault(row.name, []).append((_as_int(raw.get("part")), row))
    merged: list[ConfigRow] = []
    for parts in grouped.values():
        parts.sort(key=lambda item: item[0])
        head = parts[0][1]
        head.payload = "".join(row.payload for _, row in parts)
        merged.append(head)
    return merged
