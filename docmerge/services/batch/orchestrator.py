"""Batch generation: compose, persist and optionally deliver one record at a time."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable

from docmerge.core.errors import CompositionError
from docmerge.core.logger import get_logger
from docmerge.core.settings import DEFAULT_BODY, DEFAULT_SUBJECT
from docmerge.services.delivery.base import IDelivery
from docmerge.services.storage.base import IDocumentStore
from docmerge_io.compositor import DEFAULT_DPI, compose
from docmerge_io.formatter import ValueFormatter
from docmerge_io.mapping import validate_mapping_set
from docmerge_io.records import Record
from docmerge_io.schema import DeliverySettings, MappingSet

from .models import BatchReport, Failure, GenerationResult, ReportBuilder, Success

ProgressCB = Callable[[int, int, GenerationResult], None]

_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")


def document_number_for(record: Record, field: str | None, index: int) -> str:
    """Record value of ``field`` when non-empty, else ``Document_<index>`` (1-based)."""

    if field:
        value = record.text(field).strip()
        if value:
            return value
    return f"Document_{index}"


def render_message(template: str, document_number: str, record: Record) -> str:
    """Fill ``{documentNumber}`` and ``{<field>}`` placeholders; unknown ones stay as-is."""

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1).strip()
        if key == "documentNumber":
            return document_number
        if key in record:
            return record.text(key)
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, template)


class BatchOrchestrator:
    """Drives composition and the storage/delivery collaborators over a record set.

    Records are handled strictly in sequence: each one is composed, persisted
    and optionally delivered before the next starts. A failing record is
    recorded in the report and never stops the batch.
    """

    def __init__(
        self,
        store: IDocumentStore,
        delivery: IDelivery | None = None,
        *,
        formatter: ValueFormatter | None = None,
        dpi: float = DEFAULT_DPI,
        font_name: str | None = None,
        default_subject: str = DEFAULT_SUBJECT,
        default_body: str = DEFAULT_BODY,
        logger: logging.Logger | None = None,
        progress_cb: ProgressCB | None = None,
    ) -> None:
        self.store = store
        self.delivery = delivery
        self.formatter = formatter or ValueFormatter()
        self.dpi = dpi
        self.font_name = font_name
        self.default_subject = default_subject
        self.default_body = default_body
        self.logger = logger or get_logger()
        self.progress_cb = progress_cb

    def run(
        self,
        records: Iterable[Record],
        template_bytes: bytes,
        mapping_set: MappingSet,
        document_number_field: str | None = None,
        delivery: DeliverySettings | None = None,
    ) -> BatchReport:
        """Generate one document per record and return the completed report.

        Raises:
            InvalidMapping: Before any record is processed, when the mapping
                set is malformed.
        """

        validate_mapping_set(mapping_set)
        delivery_settings = delivery if delivery is not None else mapping_set.delivery_settings
        number_field = document_number_field or mapping_set.output_settings.document_number_field
        items = list(records)
        total = len(items)
        builder = ReportBuilder()

        self.logger.info("Batch start: %s, %d records", mapping_set.name, total)
        for index, record in enumerate(items, start=1):
            result = self._process(index, record, template_bytes, mapping_set, number_field, delivery_settings)
            builder.append(result)
            if self.progress_cb:
                self.progress_cb(index, total, result)

        report = builder.freeze()
        self.logger.info(
            "Batch done: %s, %d processed (%d ok / %d failed / %d delivery errors)",
            mapping_set.name,
            report.total_processed,
            report.succeeded,
            report.failed,
            len(report.delivery_failures),
        )
        return report

    def _process(
        self,
        index: int,
        record: Record,
        template_bytes: bytes,
        mapping_set: MappingSet,
        number_field: str | None,
        delivery_settings: DeliverySettings,
    ) -> GenerationResult:
        document_number = document_number_for(record, number_field, index)

        def _failed(stage: str, exc: Exception) -> GenerationResult:
            self.logger.warning("Row %s (%s) failed at %s: %s", record.row_id, document_number, stage, exc)
            return GenerationResult(record.row_id, document_number, Failure(reason=str(exc), stage=stage))

        try:
            data = compose(
                template_bytes,
                record,
                mapping_set,
                formatter=self.formatter,
                dpi=self.dpi,
                font_name=self.font_name,
            )
        except CompositionError as exc:
            return _failed("compose", exc)

        filename = f"{document_number}.{mapping_set.output_settings.extension}"
        try:
            file_ref = self.store.persist(mapping_set.output_settings.folder_id, filename, data)
        except Exception as exc:  # noqa: BLE001 - any storage error is a per-record failure
            return _failed("persist", exc)

        attempted, error = self._deliver(record, document_number, file_ref, delivery_settings)
        self.logger.info("Row %s -> %s", record.row_id, file_ref.name)
        return GenerationResult(
            record.row_id,
            document_number,
            Success(file_ref=file_ref, delivery_attempted=attempted, delivery_error=error),
        )

    def _deliver(self, record, document_number, file_ref, settings: DeliverySettings) -> tuple[bool, str | None]:
        if self.delivery is None or not settings.enabled or not settings.recipient_field:
            return False, None
        recipient = record.text(settings.recipient_field).strip()
        if not recipient:
            self.logger.info("Row %s has no recipient; delivery skipped", record.row_id)
            return False, None
        subject = render_message(settings.subject or self.default_subject, document_number, record)
        body = render_message(settings.body or self.default_body, document_number, record)
        try:
            self.delivery.deliver(
                recipient,
                subject,
                body,
                file_ref,
                cc=list(settings.cc) or None,
                bcc=list(settings.bcc) or None,
            )
        except Exception as exc:  # noqa: BLE001 - delivery errors never fail generation
            self.logger.warning("Delivery of %s to %s failed: %s", file_ref.name, recipient, exc)
            return True, str(exc)
        return True, None
