"""Reporting utilities for batch runs."""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from docmerge.core.errors import StorageFailure

from .models import BatchReport, Success

RESULT_COLUMNS = [
    "row_id",
    "document_number",
    "status",
    "stage",
    "reason",
    "file_id",
    "delivery_attempted",
    "delivery_error",
]


def report_frame(report: BatchReport) -> pd.DataFrame:
    rows = []
    for item in report.results:
        outcome = item.outcome
        if isinstance(outcome, Success):
            rows.append(
                {
                    "row_id": item.row_id,
                    "document_number": item.document_number,
                    "status": "ok",
                    "stage": "",
                    "reason": "",
                    "file_id": outcome.file_ref.id,
                    "delivery_attempted": outcome.delivery_attempted,
                    "delivery_error": outcome.delivery_error or "",
                }
            )
        else:
            rows.append(
                {
                    "row_id": item.row_id,
                    "document_number": item.document_number,
                    "status": "failed",
                    "stage": outcome.stage,
                    "reason": outcome.reason,
                    "file_id": "",
                    "delivery_attempted": False,
                    "delivery_error": "",
                }
            )
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def render_markdown(report: BatchReport, title: str, csv_name: str) -> str:
    lines = [f"# {title}", ""]
    lines.append(f"- Processed records: {report.total_processed}")
    lines.append(f"- Generated documents: {report.succeeded}")
    lines.append(f"- Failed records: {report.failed}")
    lines.append(f"- Delivery errors: {len(report.delivery_failures)}")
    lines.append("")

    if report.failures:
        lines.append("## Failed records")
        for item in report.failures:
            lines.append(f"- **{item.row_id}** ({item.document_number}) at {item.outcome.stage}: {item.outcome.reason}")
        lines.append("")

    if report.delivery_failures:
        lines.append("## Delivery errors")
        for item in report.delivery_failures:
            lines.append(f"- **{item.row_id}** ({item.document_number}): {item.outcome.delivery_error}")
        lines.append("")

    lines.append(f"Per-record results exported to `{csv_name}`.")
    return "\n".join(lines)


def write_report(output_dir: Path, report: BatchReport, title: str = "Batch Generation Report") -> tuple[Path, Path]:
    """Generate Markdown summary and a CSV with one line per record.

    Raises StorageFailure when the directory or either file cannot be written.
    """

    output_dir = Path(output_dir)
    csv_path = output_dir / "batch_results.csv"
    report_path = output_dir / "batch_report.md"
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        report_frame(report).to_csv(csv_path, index=False)
        report_path.write_text(render_markdown(report, title, csv_path.name), encoding="utf-8")
    except OSError as exc:
        raise StorageFailure(f"cannot write batch report to {output_dir}: {exc}") from exc
    return report_path, csv_path
