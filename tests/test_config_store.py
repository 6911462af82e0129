from __future__ import annotations

import threading
from datetime import timezone
from pathlib import Path

import pytest

from docmerge.core.errors import NotFound
from docmerge_io.schema import CONFIG_VERSION, MappingSet
from docmerge_persist.schemas.configrec import PAYLOAD_CHUNK, ConfigRow, split_payload
from docmerge_persist.stores.base_store import StoreLockedError, StoreValidationError
from docmerge_persist.stores.config_store import InMemoryConfigStore, XLSXConfigStore, init_config_store
from docmerge_persist.utils.excel_io import workbook_lock


@pytest.fixture(params=["xlsx", "memory"])
def store(request, tmp_path: Path):
    if request.param == "xlsx":
        return XLSXConfigStore(tmp_path / "persist")
    return InMemoryConfigStore()


def test_init_creates_workbook(tmp_path: Path) -> None:
    path = init_config_store(tmp_path / "persist")
    assert path.exists()
    assert path.name == "mapping_configs.xlsx"
    assert path.parent.name == "store"


def test_save_load_round_trip(store, invoice_set: MappingSet) -> None:
    saved = store.save("invoice-v2", invoice_set)
    assert saved.name == "invoice-v2"
    assert saved.version == CONFIG_VERSION
    assert saved.last_modified is not None
    assert saved.last_modified.tzinfo is not None
    assert saved.last_modified.utcoffset() == timezone.utc.utcoffset(None)

    loaded = store.load("invoice-v2")
    assert loaded.mappings == invoice_set.mappings
    assert loaded.output_settings == invoice_set.output_settings
    assert loaded.delivery_settings == invoice_set.delivery_settings
    assert loaded.last_modified == saved.last_modified
    assert store.exists("invoice-v2")


def test_save_overwrites_whole_configuration(store, invoice_set: MappingSet) -> None:
    store.save("invoice", invoice_set)
    trimmed = invoice_set.model_copy(update={"mappings": invoice_set.mappings[:1]})
    store.save("invoice", trimmed)

    summaries = store.list()
    assert [s.name for s in summaries] == ["invoice"]
    assert summaries[0].field_count == 1
    assert store.load("invoice").field_count == 1


def test_list_is_sorted_and_delete_is_idempotent(store, invoice_set: MappingSet) -> None:
    store.save("zeta", invoice_set)
    store.save("alpha", MappingSet(name="ignored"))

    assert [s.name for s in store.list()] == ["alpha", "zeta"]
    assert store.list()[0].field_count == 0

    store.delete("zeta")
    store.delete("zeta")
    store.delete("ghost")
    assert [s.name for s in store.list()] == ["alpha"]
    with pytest.raises(NotFound):
        store.load("zeta")


def test_empty_name_rejected(store, invoice_set: MappingSet) -> None:
    with pytest.raises(StoreValidationError):
        store.save("  ", invoice_set)


def test_load_unknown_name(store) -> None:
    with pytest.raises(NotFound):
        store.load("missing")
    assert not store.exists("missing")


def test_xlsx_healthcheck(tmp_path: Path) -> None:
    health = XLSXConfigStore(tmp_path / "persist").healthcheck()
    assert health.is_healthy()
    assert health.locked_paths == []


def test_lock_held_by_other_thread_times_out(tmp_path: Path) -> None:
    target = tmp_path / "locked.xlsx"
    acquired = threading.Event()
    release = threading.Event()

    def _holder() -> None:
        with workbook_lock(target):
            acquired.set()
            release.wait(5)

    holder = threading.Thread(target=_holder)
    holder.start()
    try:
        assert acquired.wait(5)
        with pytest.raises(StoreLockedError):
            with workbook_lock(target, timeout=0.2):
                pass
    finally:
        release.set()
        holder.join(5)

    with workbook_lock(target, timeout=1):
        assert target.with_suffix(".xlsx.lock").exists()


def _large_set(count: int = 200) -> MappingSet:
    return MappingSet.model_validate(
        {
            "name": "big",
            "pdfTemplateId": "form.pdf",
            "mappings": [
                {
                    "field": f"Field {i:03d}",
                    "position": {"x": 10 + i, "y": 20 + i},
                    "size": {"width": 120, "height": 18},
                    "dateFormat": "dd/MM/yyyy",
                    "defaultValue": f"=SUM(A{i}:A{i + 10}) placeholder text",
                }
                for i in range(count)
            ],
        }
    )


def test_large_configuration_round_trip(store) -> None:
    big = _large_set()
    assert len(ConfigRow.from_mapping_set(big).payload) > PAYLOAD_CHUNK

    store.save("big", big)
    store.save("small", MappingSet(name="small"))
    loaded = store.load("big")

    assert loaded.field_count == 200
    assert loaded.mappings == big.mappings
    assert [(s.name, s.field_count) for s in store.list()] == [("big", 200), ("small", 0)]

    store.save("big", big.model_copy(update={"mappings": big.mappings[:3]}))
    assert store.load("big").field_count == 3
    assert [s.name for s in store.list()] == ["big", "small"]


def test_split_payload_never_starts_part_with_formula_marker() -> None:
    parts = split_payload("ab==cd", size=3)
    assert "".join(parts) == "ab==cd"
    assert all(len(part) <= 3 for part in parts)
    assert not any(part.startswith("=") for part in parts[1:])
    assert split_payload("") == [""]


def test_names_are_matched_without_surrounding_whitespace(store, invoice_set: MappingSet) -> None:
    saved = store.save(" inv", invoice_set)
    assert saved.name == "inv"
    assert store.load(" inv").field_count == 3
    assert store.load("inv").field_count == 3

    store.save("inv ", invoice_set.model_copy(update={"mappings": invoice_set.mappings[:1]}))
    assert [(s.name, s.field_count) for s in store.list()] == [("inv", 1)]

    store.delete("  inv")
    assert not store.exists("inv")
