"""`docmerge_io` exports the mapping model, formatter, compositor and readers."""

# Module responsibilities:
# - Re-export the document composition API so consumers have a stable surface.

from __future__ import annotations

from .compositor import compose, register_font, render_overlay
from .excel_reader import SheetInfo, describe_sheets, read_records
from .formatter import ValueFormatter, format_value
from .mapping import (
    dump_mapping_set,
    load_mapping_set,
    parse_mapping_set,
    validate_mapping,
    validate_mapping_set,
)
from .pdf_io import PdfInfo, read_info
from .records import CellValue, Record, ValueKind
from .schema import (
    CONFIG_VERSION,
    Align,
    DeliverySettings,
    FieldMapping,
    MappingSet,
    OutputSettings,
    Position,
    Size,
)

__all__ = [
    "compose",
    "render_overlay",
    "register_font",
    "SheetInfo",
    "describe_sheets",
    "read_records",
    "ValueFormatter",
    "format_value",
    "validate_mapping",
    "validate_mapping_set",
    "parse_mapping_set",
    "load_mapping_set",
    "dump_mapping_set",
    "PdfInfo",
    "read_info",
    "CellValue",
    "Record",
    "ValueKind",
    "CONFIG_VERSION",
    "Align",
    "DeliverySettings",
    "FieldMapping",
    "MappingSet",
    "OutputSettings",
    "Position",
    "Size",
]

__version__ = "0.1.0"
