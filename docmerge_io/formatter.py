"""Render typed cell values into the exact text drawn on a document."""

# Module responsibilities:
# - Apply a mapping's format rules (default value, date pattern, fixed decimals).
# - Render dates in one configured reference time zone.
# - Never fail: every value yields some plain string.

from __future__ import annotations

import re
from datetime import date, datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Callable, Dict, Optional, Union
from zoneinfo import ZoneInfo

from .records import CellValue, ValueKind, canonical_number
from .schema import FieldMapping
from .utils.log import get_logger

logger = get_logger("formatter")

DEFAULT_DATE_FORMAT = "MM/dd/yyyy"

_MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_TOKEN_RE = re.compile(r"'[^']*'|[A-Za-z]+")
_RUN_RE = re.compile(r"([A-Za-z])\1*")


def _hour12(dt: datetime) -> int:
    return dt.hour % 12 or 12


_TOKENS: Dict[str, Callable[[datetime], str]] = {
    "yyyy": lambda dt: f"{dt.year:04d}",
    "YYYY": lambda dt: f"{dt.year:04d}",
    "yy": lambda dt: f"{dt.year % 100:02d}",
    "YY": lambda dt: f"{dt.year % 100:02d}",
    "MMMM": lambda dt: _MONTHS[dt.month - 1],
    "MMM": lambda dt: _MONTHS[dt.month - 1][:3],
    "MM": lambda dt: f"{dt.month:02d}",
    "M": lambda dt: str(dt.month),
    "dd": lambda dt: f"{dt.day:02d}",
    "DD": lambda dt: f"{dt.day:02d}",
    "d": lambda dt: str(dt.day),
    "D": lambda dt: str(dt.day),
    "EEEE": lambda dt: _WEEKDAYS[dt.weekday()],
    "EEE": lambda dt: _WEEKDAYS[dt.weekday()][:3],
    "HH": lambda dt: f"{dt.hour:02d}",
    "H": lambda dt: str(dt.hour),
    "hh": lambda dt: f"{_hour12(dt):02d}",
    "h": lambda dt: str(_hour12(dt)),
    "mm": lambda dt: f"{dt.minute:02d}",
    "m": lambda dt: str(dt.minute),
    "ss": lambda dt: f"{dt.second:02d}",
    "s": lambda dt: str(dt.second),
    "a": lambda dt: "AM" if dt.hour < 12 else "PM",
}


def render_date_pattern(moment: datetime, pattern: str) -> str:
    """Render ``moment`` with a spreadsheet-style pattern such as ``dd/MM/yyyy``.

    Text in single quotes is copied literally (``''`` yields a quote). An
    unquoted word is rendered only when every run of one repeated letter in it
    is a known token (``yyyyMMdd``); any other word, such as ``Due``, is kept
    as written.
    Patterns containing ``%`` are handed to ``strftime`` unchanged.
    """

    if "%" in pattern:
        return moment.strftime(pattern)

    def _replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if token.startswith("'"):
            return token[1:-1] or "'"
        runs = [run.group(0) for run in _RUN_RE.finditer(token)]
        if not all(run in _TOKENS for run in runs):
            return token
        return "".join(_TOKENS[run](moment) for run in runs)

    return _TOKEN_RE.sub(_replace, pattern)


class ValueFormatter:
    """Formats cell values for one reference time zone.

    The zone is fixed at construction so that two runs with the same
    settings render identical text for identical records.
    """

    def __init__(self, timezone: Union[str, tzinfo] = "UTC") -> None:
        self.tz: tzinfo = ZoneInfo(timezone) if isinstance(timezone, str) else timezone

    def format(self, value: Optional[CellValue], mapping: FieldMapping) -> str:
        if value is None or value.kind is ValueKind.ABSENT or value.value is None:
            return mapping.default_value
        try:
            if value.kind is ValueKind.DATE:
                return self._format_date(value.value, mapping.date_format)  # type: ignore[arg-type]
            if value.kind is ValueKind.NUMBER and mapping.number_format:
                return format_fixed(value.value, mapping.decimal_places)  # type: ignore[arg-type]
        except (ValueError, ArithmeticError, TypeError, OverflowError) as exc:
            logger.warning(
                "Falling back to canonical text",
                extra={"field": mapping.field, "error": str(exc)},
            )
        return value.as_text()

    def _format_date(self, raw: Union[datetime, date], pattern: Optional[str]) -> str:
        if isinstance(raw, datetime):
            moment = raw.astimezone(self.tz) if raw.tzinfo is not None else raw
        else:
            moment = datetime(raw.year, raw.month, raw.day)
        try:
            return render_date_pattern(moment, pattern or DEFAULT_DATE_FORMAT)
        except ValueError:
            return render_date_pattern(moment, DEFAULT_DATE_FORMAT)


def format_fixed(value: Decimal, places: int) -> str:
    """Fixed-point text with exactly ``places`` fractional digits."""

    if not value.is_finite():
        return canonical_number(value)
    exponent = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        ctx.prec = max(28, value.adjusted() + places + 2)
        try:
            quantized = value.quantize(exponent, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return canonical_number(value)
    if quantized == 0:
        quantized = abs(quantized)
    return format(quantized, "f")


_DEFAULT_FORMATTER = ValueFormatter()


def format_value(value: Optional[CellValue], mapping: FieldMapping) -> str:
    """Format with the UTC reference formatter."""

    return _DEFAULT_FORMATTER.format(value, mapping)
