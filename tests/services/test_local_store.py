from __future__ import annotations

from pathlib import Path

import pytest

from docmerge.core.errors import NotFound, StorageFailure
from docmerge.services.storage import LocalDocumentStore, store_from_config
from docmerge.services.storage.base import FileRef
from docmerge.services.storage.local import safe_filename


@pytest.fixture()
def store(tmp_path: Path) -> LocalDocumentStore:
    (tmp_path / "templates" / "forms").mkdir(parents=True)
    (tmp_path / "templates" / "invoice.pdf").write_bytes(b"%PDF-fake")
    (tmp_path / "templates" / "forms" / "w9.pdf").write_bytes(b"%PDF-w9")
    (tmp_path / "templates" / "notes.txt").write_text("ignored")
    return LocalDocumentStore(tmp_path)


def test_templates_listed_and_fetched(store: LocalDocumentStore) -> None:
    infos = store.list_templates()
    assert [i.id for i in infos] == ["forms/w9.pdf", "invoice.pdf"]
    assert infos[1].size == len(b"%PDF-fake")
    assert store.fetch_template("forms/w9.pdf") == b"%PDF-w9"


def test_missing_or_escaping_template(store: LocalDocumentStore) -> None:
    with pytest.raises(NotFound):
        store.fetch_template("nope.pdf")
    with pytest.raises(NotFound):
        store.fetch_template("../secret.pdf")


def test_persist_and_read_back(store: LocalDocumentStore) -> None:
    ref = store.persist(None, "INV/001.pdf", b"data")
    assert ref.name == "INV_001.pdf"
    assert ref.id == "INV_001.pdf"
    assert ref.url and ref.url.startswith("file://")
    assert store.read(ref) == b"data"

    again = store.persist(None, "INV/001.pdf", b"newer")
    assert again == ref
    assert store.read(ref) == b"newer"
    assert not list((store.out_dir).glob("*.tmp"))


def test_folders(store: LocalDocumentStore) -> None:
    march = store.create_folder("2024-03")
    nested = store.create_folder("batch-1", parent_id=march.id)
    assert nested.id == "2024-03/batch-1"
    assert nested.parent_id == "2024-03"
    assert store.create_folder("2024-03") == march

    ids = [f.id for f in store.list_folders()]
    assert ids == ["2024-03", "2024-03/batch-1"]

    ref = store.persist(nested.id, "A.pdf", b"x")
    assert ref.id == "2024-03/batch-1/A.pdf"


def test_persist_into_unknown_folder_fails(store: LocalDocumentStore) -> None:
    with pytest.raises(StorageFailure):
        store.persist("missing", "A.pdf", b"x")
    with pytest.raises(StorageFailure):
        store.persist("../..", "A.pdf", b"x")
    with pytest.raises(StorageFailure):
        store.read(FileRef(id="never-written.pdf", name="never-written.pdf"))


def test_safe_filename() -> None:
    assert safe_filename('a<b>:c"d.pdf') == "a_b__c_d.pdf"
    assert safe_filename("  ...  ") == "document"


def test_store_from_config(tmp_path: Path) -> None:
    assert isinstance(store_from_config(None, tmp_path), LocalDocumentStore)
    assert store_from_config({"type": "local", "root": str(tmp_path / "x")}, tmp_path).root == (tmp_path / "x").resolve()
