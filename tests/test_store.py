from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

import rootify.store as store_module
from rootify.csv_io import parse_import_preview, preview_to_mapping
from rootify.store import EXPORT_HEADER, RootStore, StoreError


def test_add_then_delete():
    s = RootStore()
    assert s.add("证券", "securities")
    assert s.get_all() == {"证券": "securities"}
    assert s.delete("证券")
    assert "证券" not in s.get_all()


def test_add_trims_and_rejects_empty():
    s = RootStore()
    assert s.add("  交易 ", " transaction ")
    assert s.get_all() == {"交易": "transaction"}
    assert s.add("", "x") is False
    assert s.add("日期", "   ") is False
    assert len(s) == 1


def test_add_existing_key_overwrites():
    s = RootStore()
    s.add("交易", "trade")
    s.add("交易", "transaction")
    assert s.get_all() == {"交易": "transaction"}


def test_delete_absent_is_noop():
    s = RootStore(roots={"交易": "transaction"})
    assert s.delete("日期") is False
    assert len(s) == 1


def test_clear():
    s = RootStore(roots={"交易": "transaction", "日期": "date"})
    s.clear()
    assert s.get_all() == {}
    s.clear()


def test_import_merge_is_idempotent():
    s = RootStore(roots={"交易": "trade"})
    m = {"交易": "transaction", "日期": "date"}
    assert s.import_merge(m) == 2
    once = s.get_all()
    s.import_merge(m)
    assert s.get_all() == once == {"交易": "transaction", "日期": "date"}


def test_snapshot_unaffected_by_later_writes():
    s = RootStore(roots={"交易": "transaction"})
    snap = s.snapshot()
    s.add("日期", "date")
    s.delete("交易")
    assert dict(snap) == {"交易": "transaction"}
    assert dict(s.snapshot()) == {"日期": "date"}


def test_export_format_keeps_insertion_order():
    s = RootStore()
    s.add("日期", "date")
    s.add("交易", "transaction")
    assert s.export_all() == f'{EXPORT_HEADER}\n"日期","date"\n"交易","transaction"\n'


def test_export_empty_is_header_only():
    assert RootStore().export_all() == EXPORT_HEADER + "\n"


def test_export_parse_import_round_trip():
    s = RootStore()
    s.import_merge({"交易": "transaction", "备注": 'note, "free text"', "日期": "date"})
    before = s.get_all()

    items = parse_import_preview(s.export_all(), {})
    fresh = RootStore()
    fresh.import_merge(preview_to_mapping(items))
    assert fresh.get_all() == before


def test_persists_and_reloads(tmp_path: Path):
    path = tmp_path / "roots.json"
    s = RootStore.load(path)
    s.add("交易", "transaction")
    s.import_merge({"日期": "date"})

    assert json.loads(path.read_text(encoding="utf-8")) == {"交易": "transaction", "日期": "date"}
    assert RootStore.load(path).get_all() == {"交易": "transaction", "日期": "date"}


def test_load_accepts_list_shape(tmp_path: Path):
    path = tmp_path / "roots.json"
    path.write_text(
        json.dumps([{"chinese": "交易", "english": "transaction"}, {"chinese": "", "english": "x"}]),
        encoding="utf-8",
    )
    assert RootStore.load(path).get_all() == {"交易": "transaction"}


def test_load_rejects_garbage(tmp_path: Path):
    path = tmp_path / "roots.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreError):
        RootStore.load(path)


def test_failed_write_leaves_state_unchanged(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    s = RootStore(tmp_path / "roots.json", {"交易": "transaction"})

    def boom(path, payload):
        raise StoreError("disk full")

    monkeypatch.setattr(store_module, "write_json_atomic", boom)
    with pytest.raises(StoreError):
        s.import_merge({"日期": "date"})
    with pytest.raises(StoreError):
        s.clear()
    assert s.get_all() == {"交易": "transaction"}


def test_round_trip_keeps_embedded_newlines():
    s = RootStore()
    s.import_merge({"备注": "line one\nline two", "交易": "transaction"})

    fresh = RootStore()
    fresh.import_merge(preview_to_mapping(parse_import_preview(s.export_all(), {})))
    assert fresh.get_all() == {"备注": "line one\nline two", "交易": "transaction"}


def test_concurrent_writers_lose_no_updates(tmp_path: Path):
    path = tmp_path / "roots.json"
    s = RootStore.load(path)
    workers = 8
    per_worker = 25
    start = threading.Barrier(workers)

    def write(w: int):
        start.wait()
        for i in range(per_worker):
            if i % 2:
                s.add(f"词{w}_{i}", f"w{w}_{i}")
            else:
                s.import_merge({f"词{w}_{i}": f"w{w}_{i}", f"共{i}": f"shared_{i}"})

    threads = [threading.Thread(target=write, args=(w,)) for w in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    roots = s.get_all()
    for w in range(workers):
        for i in range(per_worker):
            assert roots[f"词{w}_{i}"] == f"w{w}_{i}"
    assert len(roots) == workers * per_worker + len(range(0, per_worker, 2))
    assert json.loads(path.read_text(encoding="utf-8")) == roots
    assert RootStore.load(path).get_all() == roots
