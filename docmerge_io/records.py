"""Typed records handed from data sources to the formatter and compositor."""

# Module responsibilities:
# - Resolve raw spreadsheet cells into a tagged value once, at the source boundary.
# - Keep records immutable so a batch never writes back into its input.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Union

import pandas as pd

Scalar = Union[str, Decimal, datetime, date, None]


class ValueKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    ABSENT = "absent"


@dataclass(frozen=True)
class CellValue:
    """A single typed cell value."""

    kind: ValueKind
    value: Scalar = None

    @classmethod
    def text_value(cls, value: str) -> "CellValue":
        return cls(ValueKind.TEXT, value)

    @classmethod
    def number_value(cls, value: Union[int, float, Decimal]) -> "CellValue":
        return cls(ValueKind.NUMBER, _to_decimal(value))

    @classmethod
    def date_value(cls, value: Union[datetime, date]) -> "CellValue":
        return cls(ValueKind.DATE, value)

    @classmethod
    def absent(cls) -> "CellValue":
        return cls(ValueKind.ABSENT, None)

    @classmethod
    def from_raw(cls, raw: object) -> "CellValue":
        """Classify a raw cell as read by pandas/openpyxl."""

        if isinstance(raw, CellValue):
            return raw
        if raw is None:
            return cls.absent()
        if isinstance(raw, str):
            return cls.text_value(raw)
        if pd.api.types.is_scalar(raw) and pd.isna(raw):
            return cls.absent()
        if pd.api.types.is_bool(raw):
            return cls.text_value("TRUE" if raw else "FALSE")
        if isinstance(raw, pd.Timestamp):
            return cls.date_value(raw.to_pydatetime())
        if isinstance(raw, (datetime, date)):
            return cls.date_value(raw)
        if isinstance(raw, Decimal) or pd.api.types.is_number(raw):
            try:
                return cls.number_value(raw)  # type: ignore[arg-type]
            except (InvalidOperation, ValueError, TypeError):
                return cls.text_value(str(raw))
        return cls.text_value(str(raw))

    @property
    def is_absent(self) -> bool:
        return self.kind is ValueKind.ABSENT

    def as_text(self) -> str:
        """Canonical string representation (empty for absent values)."""

        if self.kind is ValueKind.ABSENT or self.value is None:
            return ""
        if self.kind is ValueKind.NUMBER:
            return canonical_number(self.value)  # type: ignore[arg-type]
        if self.kind is ValueKind.DATE:
            return self.value.isoformat()  # type: ignore[union-attr]
        return str(self.value)


def _to_decimal(value: Union[int, float, Decimal]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    # str() keeps the shortest repr, avoiding binary float noise.
    return Decimal(str(value))


def canonical_number(value: Decimal) -> str:
    if not value.is_finite():
        return str(value)
    if value == value.to_integral_value():
        return format(value.to_integral_value(), "f")
    return format(value.normalize(), "f")


@dataclass(frozen=True)
class Record:
    """One unit of work: column name -> typed value, plus a row identifier."""

    row_id: str
    values: Mapping[str, CellValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @classmethod
    def from_raw(cls, row_id: str, raw: Mapping[str, object]) -> "Record":
        return cls(row_id=row_id, values={str(k): CellValue.from_raw(v) for k, v in raw.items()})

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def get(self, key: str) -> Optional[CellValue]:
        return self.values.get(key)

    def text(self, key: str) -> str:
        """Canonical text for ``key``; empty when missing or absent."""

        value = self.values.get(key)
        return value.as_text() if value is not None else ""
