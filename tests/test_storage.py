from __future__ import annotations

import json
from pathlib import Path

import pytest

from infochat.models import HistoryEntry
from infochat.storage import (
    SCHEMA_VERSION,
    FsKeyValueStore,
    HistoryStore,
    InMemoryKeyValueStore,
    make_store,
)


def _entry(entry_id: int, message: str) -> HistoryEntry:
    return HistoryEntry(
        id=entry_id,
        message=message,
        preview=message,
        timestamp="2025-01-01T00:00:00+00:00",
    )


class _BrokenStore(InMemoryKeyValueStore):
    def get(self, key):
        raise OSError("disk gone")

    def set(self, key, value):
        raise OSError("read-only filesystem")


def test_load_missing_key_returns_empty(tmp_path: Path) -> None:
    store = HistoryStore(FsKeyValueStore(tmp_path), key="history")

    assert store.load() == []


def test_save_then_load_round_trips_in_order(tmp_path: Path) -> None:
    store = HistoryStore(FsKeyValueStore(tmp_path), key="history")
    entries = [_entry(3, "third"), _entry(2, "second"), _entry(1, "first")]

    store.save(entries)

    assert store.load() == entries
    payload = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
    assert payload["version"] == SCHEMA_VERSION
    assert [item["message"] for item in payload["entries"]] == ["third", "second", "first"]


def test_clear_persists_empty_history(tmp_path: Path) -> None:
    store = HistoryStore(FsKeyValueStore(tmp_path), key="history")
    store.save([_entry(1, "hello")])

    store.clear()

    assert HistoryStore(FsKeyValueStore(tmp_path), key="history").load() == []


def test_load_quarantines_corrupt_file(tmp_path: Path) -> None:
    kv = FsKeyValueStore(tmp_path)
    path = kv.path_for("history")
    path.write_text("{ invalid json", encoding="utf-8")

    entries = HistoryStore(kv, key="history").load()

    assert entries == []
    assert not path.exists()
    quarantined = list(tmp_path.glob("history.json.corrupt-*"))
    assert len(quarantined) == 1


def test_load_quarantines_unexpected_layout_in_memory() -> None:
    kv = InMemoryKeyValueStore({"history": json.dumps("just a string")})

    assert HistoryStore(kv, key="history").load() == []
    assert kv.get("history") is None
    assert any(key.startswith("history.corrupt-") for key in kv.keys())


def test_load_accepts_legacy_bare_list() -> None:
    legacy = [
        {
            "id": 1735689600000,
            "message": "A timeline of space flight",
            "timestamp": "2025-01-01T00:00:00.000Z",
            "preview": "A timeline of space flight",
        }
    ]
    kv = InMemoryKeyValueStore({"history": json.dumps(legacy)})

    entries = HistoryStore(kv, key="history").load()

    assert len(entries) == 1
    assert entries[0].id == 1735689600000
    assert entries[0].message == "A timeline of space flight"


def test_load_ignores_unknown_schema_version() -> None:
    payload = {"version": 99, "entries": [_entry(1, "future").to_dict()]}
    kv = InMemoryKeyValueStore({"history": json.dumps(payload)})

    assert HistoryStore(kv, key="history").load() == []


def test_load_skips_malformed_records() -> None:
    payload = {
        "version": SCHEMA_VERSION,
        "entries": [
            _entry(2, "kept").to_dict(),
            {"id": 1},
            "not a record",
            {"id": "abc", "message": "bad id"},
        ],
    }
    kv = InMemoryKeyValueStore({"history": json.dumps(payload)})

    entries = HistoryStore(kv, key="history").load()

    assert [entry.message for entry in entries] == ["kept"]


def test_load_trims_to_limit() -> None:
    payload = {
        "version": SCHEMA_VERSION,
        "entries": [_entry(i, f"m{i}").to_dict() for i in range(30, 0, -1)],
    }
    kv = InMemoryKeyValueStore({"history": json.dumps(payload)})

    entries = HistoryStore(kv, key="history", limit=20).load()

    assert len(entries) == 20
    assert entries[0].message == "m30"


def test_storage_failures_are_swallowed() -> None:
    store = HistoryStore(_BrokenStore(), key="history")

    store.save([_entry(1, "lost")])

    assert store.load() == []


def test_make_store_selects_backend(tmp_path: Path) -> None:
    assert isinstance(make_store(storage="memory"), InMemoryKeyValueStore)
    fs_store = make_store(storage="fs", base_dir=tmp_path / "data")
    assert isinstance(fs_store, FsKeyValueStore)
    assert fs_store.base_dir == (tmp_path / "data").resolve()


def test_fs_store_sanitises_keys(tmp_path: Path) -> None:
    kv = FsKeyValueStore(tmp_path)

    kv.set("../escape/key", "value")

    assert kv.get("../escape/key") == "value"
    assert kv.path_for("../escape/key").parent == tmp_path.resolve()


@pytest.mark.parametrize("raw_id", ["1e400", "Infinity", "-Infinity", "NaN"])
def test_load_skips_records_with_non_finite_ids(raw_id: str) -> None:
    raw = (
        '{"version": 1, "entries": ['
        f'{{"id": {raw_id}, "message": "broken"}}, '
        '{"id": 7, "message": "kept"}]}'
    )
    kv = InMemoryKeyValueStore({"history": raw})

    entries = HistoryStore(kv, key="history").load()

    assert [entry.message for entry in entries] == ["kept"]


def test_load_quarantines_deeply_nested_payload() -> None:
    kv = InMemoryKeyValueStore({"history": "[" * 100_000 + "]" * 100_000})

    assert HistoryStore(kv, key="history").load() == []
    assert kv.get("history") is None
