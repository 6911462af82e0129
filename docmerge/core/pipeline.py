from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .errors import ConfigError, InvalidMapping, StorageFailure
from .logger import get_logger
from .settings import Settings, load_settings
from docmerge.services.batch import BatchOrchestrator, BatchReport, GenerationResult, write_report
from docmerge.services.delivery.base import IDelivery
from docmerge.services.sources.base import IDataSource
from docmerge.services.storage.base import IDocumentStore
from docmerge_io.compositor import register_font
from docmerge_io.formatter import ValueFormatter
from docmerge_io.mapping import validate_mapping_set
from docmerge_persist.stores.base_store import ConfigStore


ProgressCB = Callable[[str, str], None]


@dataclass
class PipelineResult:
    config_name: str
    source_id: str
    sheet_name: str
    report: BatchReport
    report_path: Path | None = None
    results_csv_path: Path | None = None

    @property
    def has_failures(self) -> bool:
        return self.report.failed > 0


class Pipeline:
    """Coordinates Load config -> Fetch template -> Fetch records -> Generate -> Report."""

    def __init__(
        self,
        config_store: ConfigStore,
        document_store: IDocumentStore,
        data_source: IDataSource,
        delivery: IDelivery | None = None,
        settings: Settings | None = None,
        logger=None,
    ) -> None:
        self.config_store = config_store
        self.document_store = document_store
        self.data_source = data_source
        self.delivery = delivery
        self.settings = settings or load_settings()
        self.logger = logger or get_logger()

    def _font_name(self) -> str:
        if self.settings.font_path:
            try:
                return register_font(self.settings.font_name, self.settings.font_path)
            except Exception as e:  # noqa: BLE001
                raise ConfigError(f"cannot register font {self.settings.font_path}: {e}") from e
        return self.settings.font_name

    def run(
        self,
        config_name: str,
        source_id: str,
        sheet_name: str,
        rows: Iterable[int] | None = None,
        document_number_field: str | None = None,
        deliver: bool = True,
        report_dir: Path | None = None,
        progress_cb: ProgressCB | None = None,
    ) -> PipelineResult:
        def progress(stage: str, detail: str = ""):
            if progress_cb:
                progress_cb(stage, detail)
            self.logger.info("%s - %s", stage, detail)

        # Everything up to the first record is fatal.
        progress("1/4 config", f"loading {config_name}")
        mapping_set = self.config_store.load(config_name)
        validate_mapping_set(mapping_set)
        if not mapping_set.pdf_template_id:
            raise InvalidMapping(f"configuration {config_name} has no pdf template")

        progress("2/4 template", mapping_set.pdf_template_id)
        template_bytes = self.document_store.fetch_template(mapping_set.pdf_template_id)

        progress("3/4 records", f"{source_id}/{sheet_name}")
        records = self.data_source.fetch_records(source_id, sheet_name, rows)

        def record_progress(index: int, total: int, result: GenerationResult) -> None:
            status = "ok" if result.succeeded else f"failed ({result.outcome.stage})"
            progress("4/4 generate", f"{index}/{total} {result.document_number}: {status}")

        orchestrator = BatchOrchestrator(
            self.document_store,
            self.delivery if deliver else None,
            formatter=ValueFormatter(self.settings.timezone),
            dpi=self.settings.render_dpi,
            font_name=self._font_name(),
            default_subject=self.settings.default_subject,
            default_body=self.settings.default_body,
            logger=self.logger,
            progress_cb=record_progress,
        )
        report = orchestrator.run(records, template_bytes, mapping_set, document_number_field)

        # Documents already exist at this point; a report write error is logged, not raised.
        report_path = csv_path = None
        try:
            report_path, csv_path = write_report(
                Path(report_dir) if report_dir else self.settings.reports_dir,
                report,
                title=f"Batch Generation Report: {config_name}",
            )
            self.logger.info("Report written to %s", report_path)
        except StorageFailure as e:
            self.logger.error("Batch report not written: %s", e)

        return PipelineResult(
            config_name=config_name,
            source_id=source_id,
            sheet_name=sheet_name,
            report=report,
            report_path=report_path,
            results_csv_path=csv_path,
        )
