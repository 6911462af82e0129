from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from docmerge.core.errors import DeliveryError, InvalidMapping, RenderFailure, StorageFailure
from docmerge.services.batch import orchestrator
from docmerge.services.batch import (
    BatchOrchestrator,
    Failure,
    Success,
    document_number_for,
    render_message,
    write_report,
)
from docmerge.services.delivery.base import IDelivery, require_recipient
from docmerge.services.storage.base import FileRef, FolderRef, IDocumentStore, TemplateInfo
from docmerge_io.schema import MappingSet


class MemoryStore(IDocumentStore):
    def __init__(self, fail_names: set[str] | None = None) -> None:
        self.files: dict[str, bytes] = {}
        self.fail_names = fail_names or set()

    def fetch_template(self, template_id: str) -> bytes:
        raise NotImplementedError

    def list_templates(self) -> list[TemplateInfo]:
        return []

    def persist(self, folder_id, filename, data):
        if filename in self.fail_names:
            raise StorageFailure(f"disk full while writing {filename}")
        key = f"{folder_id}/{filename}" if folder_id else filename
        self.files[key] = data
        return FileRef(id=key, name=filename)

    def read(self, file_ref):
        return self.files[file_ref.id]

    def list_folders(self) -> list[FolderRef]:
        return []

    def create_folder(self, name, parent_id=None):
        return FolderRef(id=name, name=name, parent_id=parent_id)


class RecordingDelivery(IDelivery):
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[dict] = []
        self.fail_for = fail_for or set()

    def deliver(self, recipient, subject, body, file_ref, cc=None, bcc=None):
        recipient = require_recipient(recipient)
        if recipient in self.fail_for:
            raise DeliveryError(f"mailbox unavailable: {recipient}")
        self.sent.append(
            {"recipient": recipient, "subject": subject, "body": body, "file": file_ref.name, "cc": cc, "bcc": bcc}
        )


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


def test_every_record_produces_one_document(store, template_pdf, invoice_set, make_record) -> None:
    records = [make_record(f"Sheet1!{i + 2}", Number=f"INV-{i}", Customer=f"C{i}") for i in range(3)]
    report = BatchOrchestrator(store).run(records, template_pdf, invoice_set)

    assert report.total_processed == 3
    assert report.succeeded == 3
    assert [r.row_id for r in report.results] == ["Sheet1!2", "Sheet1!3", "Sheet1!4"]
    assert sorted(store.files) == ["INV-0.pdf", "INV-1.pdf", "INV-2.pdf"]
    assert all(store.files[name].startswith(b"%PDF") for name in store.files)


def test_document_number_falls_back_to_position(store, template_pdf, invoice_set, make_record) -> None:
    records = [
        make_record("Sheet1!2", Number="A-1"),
        make_record("Sheet1!3", Number="   "),
        make_record("Sheet1!4"),
    ]
    report = BatchOrchestrator(store).run(records, template_pdf, invoice_set)

    assert [r.document_number for r in report.results] == ["A-1", "Document_2", "Document_3"]
    assert "Document_3.pdf" in store.files


def test_explicit_number_field_overrides_settings(store, template_pdf, invoice_set, make_record) -> None:
    report = BatchOrchestrator(store).run(
        [make_record(Number="N-1", Customer="Acme")], template_pdf, invoice_set, document_number_field="Customer"
    )
    assert report.results[0].document_number == "Acme"


def test_persist_failure_is_isolated(template_pdf, invoice_set, make_record) -> None:
    store = MemoryStore(fail_names={"B.pdf"})
    records = [make_record(Number=n) for n in ("A", "B", "C")]
    report = BatchOrchestrator(store).run(records, template_pdf, invoice_set)

    assert report.total_processed == 3
    assert report.failed == 1
    failure = report.results[1].outcome
    assert isinstance(failure, Failure)
    assert failure.stage == "persist"
    assert "disk full" in failure.reason
    assert isinstance(report.results[2].outcome, Success)


def test_unreadable_template_fails_each_record(store, invoice_set, make_record) -> None:
    records = [make_record(Number=n) for n in ("A", "B")]
    report = BatchOrchestrator(store).run(records, b"garbage", invoice_set)

    assert report.total_processed == 2
    assert report.failed == 2
    assert {r.outcome.stage for r in report.failures} == {"compose"}
    assert store.files == {}


def test_compose_failure_is_isolated(monkeypatch, store, template_pdf, invoice_set, make_record) -> None:
    real_compose = orchestrator.compose
    broken_rows = {"Sheet1!4"}

    def _compose(template_bytes, record, mapping_set, **kwargs):
        if record.row_id in broken_rows:
            raise RenderFailure(f"failed to render document for row {record.row_id}: font missing")
        return real_compose(template_bytes, record, mapping_set, **kwargs)

    monkeypatch.setattr(orchestrator, "compose", _compose)
    records = [make_record(f"Sheet1!{i + 2}", Number=f"N-{i}") for i in range(5)]
    report = BatchOrchestrator(store).run(records, template_pdf, invoice_set)

    assert report.total_processed == 5
    assert len(report.results) == 5
    assert [r.row_id for r in report.results] == [r.row_id for r in records]
    failures = [r for r in report.results if isinstance(r.outcome, Failure)]
    assert [r.row_id for r in failures] == ["Sheet1!4"]
    assert failures[0].outcome.stage == "compose"
    assert "font missing" in failures[0].outcome.reason
    assert report.succeeded == 4
    assert sum(isinstance(r.outcome, Success) for r in report.results) == 4
    assert sorted(store.files) == ["N-0.pdf", "N-1.pdf", "N-3.pdf", "N-4.pdf"]


def test_invalid_mapping_is_fatal(store, template_pdf, make_record) -> None:
    bad = MappingSet.model_validate(
        {"name": "bad", "mappings": [{"field": "", "size": {"width": 10, "height": 10}}]}
    )
    progress = []
    with pytest.raises(InvalidMapping):
        BatchOrchestrator(store, progress_cb=lambda *args: progress.append(args)).run(
            [make_record(Number="A")], template_pdf, bad
        )
    assert progress == []
    assert store.files == {}


def test_delivery_outcomes(store, template_pdf, invoice_set, make_record) -> None:
    delivery = RecordingDelivery(fail_for={"broken@example.com"})
    records = [
        make_record(Number="A", Email="ada@example.com", Customer="Ada"),
        make_record(Number="B", Email=""),
        make_record(Number="C", Email="broken@example.com"),
    ]
    report = BatchOrchestrator(store, delivery).run(records, template_pdf, invoice_set)

    first, blank, broken = (r.outcome for r in report.results)
    assert isinstance(first, Success) and first.delivered
    assert isinstance(blank, Success)
    assert blank.delivery_attempted is False
    assert isinstance(broken, Success)
    assert broken.delivery_attempted is True
    assert "mailbox unavailable" in broken.delivery_error
    assert report.succeeded == 3
    assert [r.document_number for r in report.delivery_failures] == ["C"]

    assert len(delivery.sent) == 1
    assert delivery.sent[0]["subject"] == "Document A"
    assert delivery.sent[0]["body"] == "Please find attached document A."
    assert delivery.sent[0]["file"] == "A.pdf"


def test_delivery_disabled_or_missing_collaborator(store, template_pdf, invoice_set, make_record) -> None:
    record = make_record(Number="A", Email="ada@example.com")
    report = BatchOrchestrator(store).run([record], template_pdf, invoice_set)
    assert report.results[0].outcome.delivery_attempted is False

    delivery = RecordingDelivery()
    disabled = invoice_set.delivery_settings.model_copy(update={"enabled": False})
    report = BatchOrchestrator(store, delivery).run([record], template_pdf, invoice_set, delivery=disabled)
    assert report.results[0].outcome.delivery_attempted is False
    assert delivery.sent == []


def test_custom_subject_body_and_copies(store, template_pdf, invoice_set, make_record) -> None:
    settings = invoice_set.delivery_settings.model_copy(
        update={
            "subject": "Invoice {documentNumber} for {Customer}",
            "body": "Dear {Customer}, see {unknown}.",
            "cc": ["cc@example.com"],
        }
    )
    delivery = RecordingDelivery()
    BatchOrchestrator(store, delivery).run(
        [make_record(Number="A", Customer="Acme", Email="a@example.com")],
        template_pdf,
        invoice_set,
        delivery=settings,
    )
    sent = delivery.sent[0]
    assert sent["subject"] == "Invoice A for Acme"
    assert sent["body"] == "Dear Acme, see {unknown}."
    assert sent["cc"] == ["cc@example.com"]
    assert sent["bcc"] is None


def test_progress_callback_and_folder(store, template_pdf, invoice_set, make_record) -> None:
    ms = invoice_set.model_copy(update={"output_settings": invoice_set.output_settings.model_copy(update={"folder_id": "march"})})
    seen = []
    BatchOrchestrator(store, progress_cb=lambda i, total, result: seen.append((i, total, result.document_number))).run(
        [make_record(Number="A"), make_record(Number="B")], template_pdf, ms
    )
    assert seen == [(1, 2, "A"), (2, 2, "B")]
    assert sorted(store.files) == ["march/A.pdf", "march/B.pdf"]


def test_helpers(make_record) -> None:
    record = make_record(Number=42.0, Name="Ada")
    assert document_number_for(record, "Number", 1) == "42"
    assert document_number_for(record, None, 5) == "Document_5"
    assert render_message("{documentNumber}/{ Name }/{Nope}", "42", record) == "42/Ada/{Nope}"


def test_write_report(tmp_path: Path, template_pdf, invoice_set, make_record) -> None:
    store = MemoryStore(fail_names={"B.pdf"})
    report = BatchOrchestrator(store).run(
        [make_record("S!2", Number="A"), make_record("S!3", Number="B")], template_pdf, invoice_set
    )
    md_path, csv_path = write_report(tmp_path / "reports", report)

    text = md_path.read_text(encoding="utf-8")
    assert "- Processed records: 2" in text
    assert "- Failed records: 1" in text
    assert "**S!3** (B) at persist" in text

    frame = pd.read_csv(csv_path, keep_default_na=False)
    assert list(frame["status"]) == ["ok", "failed"]
    assert list(frame["row_id"]) == ["S!2", "S!3"]


def test_write_report_failure_is_storage_failure(tmp_path: Path, template_pdf, invoice_set, make_record) -> None:
    report = BatchOrchestrator(MemoryStore()).run([make_record(Number="A")], template_pdf, invoice_set)
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(StorageFailure):
        write_report(blocker / "reports", report)
