"""Tabular data source collaborators."""

from .base import IDataSource, SourceDescription, SourceInfo, source_from_config
from .workbook import WorkbookDataSource

__all__ = [
    "IDataSource",
    "SourceDescription",
    "SourceInfo",
    "WorkbookDataSource",
    "source_from_config",
]
