"""Batch document generation."""

from .models import BatchReport, Failure, GenerationResult, ReportBuilder, Success
from .orchestrator import BatchOrchestrator, document_number_for, render_message
from .report import write_report

__all__ = [
    "BatchOrchestrator",
    "BatchReport",
    "Failure",
    "GenerationResult",
    "ReportBuilder",
    "Success",
    "document_number_for",
    "render_message",
    "write_report",
]
