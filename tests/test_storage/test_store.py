"""Unit tests for the JSON record store.

Test organisation
-----------------
- :class:`TestLoadSave`: file creation, parsing, atomic overwrite.
- :class:`TestTransaction`: single write per cycle, no write on failure.
- :class:`TestHealthCheck`: recreated and corrupt files, the watcher thread.
- :class:`TestConcurrency`: parallel read-modify-write cycles lose nothing.
"""

from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path

import pytest

from guild_ledger.errors import (
    CorruptStorageError,
    InvalidArgumentError,
    StorageWriteError,
)
from guild_ledger.storage import RecordStore


class TestLoadSave:
    @pytest.mark.unit
    def test_load_creates_empty_document(self, store: RecordStore, storage_path: Path):
        assert not storage_path.exists()

        assert store.load() == {}
        assert json.loads(storage_path.read_text(encoding="utf-8")) == {}

    @pytest.mark.unit
    def test_save_then_load(self, store: RecordStore):
        store.save({"g1": {"m1": {"money": 5}}})

        assert store.load() == {"g1": {"m1": {"money": 5}}}
        assert store.all() == store.load()

    @pytest.mark.unit
    def test_load_returns_independent_copies(self, store: RecordStore):
        store.save({"g1": {}})
        snapshot = store.load()
        snapshot["g2"] = {}

        assert store.load() == {"g1": {}}

    @pytest.mark.unit
    def test_save_keeps_non_ascii(self, store: RecordStore, storage_path: Path):
        store.save({"g1": {"shop": [{"itemName": "Меч"}]}})

        assert "Меч" in storage_path.read_text(encoding="utf-8")

    @pytest.mark.unit
    def test_save_rejects_non_dict(self, store: RecordStore):
        with pytest.raises(InvalidArgumentError):
            store.save(["not", "a", "dict"])  # type: ignore[arg-type]

    @pytest.mark.unit
    def test_unserializable_save_leaves_file_untouched(
        self, store: RecordStore, storage_path: Path
    ):
        store.save({"g1": {"m1": {"money": 1}}})
        before = storage_path.read_text(encoding="utf-8")

        with pytest.raises(StorageWriteError):
            store.save({"g1": {"m1": {"money": object()}}})

        assert storage_path.read_text(encoding="utf-8") == before
        assert [p.name for p in storage_path.parent.iterdir()] == [storage_path.name]

    @pytest.mark.unit
    def test_failed_replace_leaves_file_untouched(
        self, store: RecordStore, storage_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        store.save({"g1": {"m1": {"money": 1}}})
        before = storage_path.read_text(encoding="utf-8")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(StorageWriteError) as excinfo:
            store.save({"g1": {"m1": {"money": 2}}})

        assert "disk full" in str(excinfo.value)
        assert excinfo.value.context.operation == "store.save"
        assert storage_path.read_text(encoding="utf-8") == before

    @pytest.mark.unit
    def test_invalid_json_raises_corrupt(self, store: RecordStore, storage_path: Path):
        storage_path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CorruptStorageError):
            store.load()

    @pytest.mark.unit
    def test_non_object_document_raises_corrupt(self, store: RecordStore, storage_path: Path):
        storage_path.write_text("[1, 2, 3]", encoding="utf-8")

        with pytest.raises(CorruptStorageError, match="JSON object"):
            store.load()

    @pytest.mark.unit
    def test_invalid_utf8_raises_corrupt(self, store: RecordStore, storage_path: Path):
        storage_path.write_bytes(b"\xff\xfe")

        with pytest.raises(CorruptStorageError, match="wrong data"):
            store.load()

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "document",
        [
            {"g1": "not a guild"},
            {"g1": {"shop": "oops"}},
            {"g1": {"shop": [{"itemName": "sword", "price": "50"}]}},
            {"g1": {"shopCounter": "3"}},
            {"g1": {"settings": {"dailyAmount": "lots"}}},
            {"g1": {"m1": "abc"}},
            {"g1": {"m1": {"money": "5"}}},
            {"g1": {"m1": {"bank": 1.5}}},
            {"g1": {"m1": {"money": True}}},
            {"g1": {"m1": {"inventory": "abc"}}},
            {"g1": {"m1": {"history": [{"id": "1"}]}}},
            {"g1": {"m1": {"dailyCooldown": "yesterday"}}},
        ],
    )
    def test_wrong_record_shapes_raise_corrupt(
        self, store: RecordStore, storage_path: Path, document
    ):
        storage_path.write_text(json.dumps(document), encoding="utf-8")

        with pytest.raises(CorruptStorageError, match="document layout"):
            store.load()

    @pytest.mark.unit
    def test_partial_records_load(self, store: RecordStore, storage_path: Path):
        document = {
            "g1": {
                "shop": [{"itemName": "sword"}],
                "settings": {"workAmount": [10, 50]},
                "m1": {"money": None, "inventory": [{"id": 1}], "nickname": "Ann"},
                "m2": {},
            }
        }
        storage_path.write_text(json.dumps(document), encoding="utf-8")

        assert store.load() == document

    @pytest.mark.unit
    def test_rejects_non_positive_countdown(self, storage_path: Path):
        with pytest.raises(InvalidArgumentError):
            RecordStore(storage_path, update_countdown_ms=0)


class TestTransaction:
    @pytest.mark.unit
    def test_commits_changes(self, store: RecordStore):
        with store.transaction() as doc:
            doc["g1"] = {"m1": {"money": 10}}

        assert store.load() == {"g1": {"m1": {"money": 10}}}

    @pytest.mark.unit
    def test_exception_discards_changes(self, store: RecordStore):
        store.save({"g1": {"m1": {"money": 10}}})

        with pytest.raises(RuntimeError):
            with store.transaction() as doc:
                doc["g1"]["m1"]["money"] = 999
                raise RuntimeError("boom")

        assert store.load() == {"g1": {"m1": {"money": 10}}}

    @pytest.mark.unit
    def test_unchanged_snapshot_is_not_written(
        self, store: RecordStore, monkeypatch: pytest.MonkeyPatch
    ):
        store.save({"g1": {}})
        writes = []
        original = store._write_locked
        monkeypatch.setattr(
            store, "_write_locked", lambda doc, op: (writes.append(op), original(doc, op))
        )

        with store.transaction() as doc:
            _ = doc.get("g1")

        assert writes == []

    @pytest.mark.unit
    def test_one_write_per_transaction(
        self, store: RecordStore, monkeypatch: pytest.MonkeyPatch
    ):
        writes = []
        store.load()
        original = store._write_locked
        monkeypatch.setattr(
            store, "_write_locked", lambda doc, op: (writes.append(op), original(doc, op))
        )

        with store.transaction("test.multi") as doc:
            doc["a"] = {}
            doc["b"] = {}
            doc["c"] = {}

        assert writes == ["test.multi"]

    @pytest.mark.unit
    def test_reentrant_load_inside_transaction(self, store: RecordStore):
        with store.transaction() as doc:
            doc["g1"] = {}
            assert store.load() == {}

        assert store.load() == {"g1": {}}


class TestHealthCheck:
    @pytest.mark.unit
    def test_recreates_missing_file(self, store: RecordStore, storage_path: Path):
        store.save({"g1": {}})
        storage_path.unlink()

        store.check_health()

        assert storage_path.exists()
        assert store.load() == {}

    @pytest.mark.unit
    def test_raises_on_corrupt_file(self, store: RecordStore, storage_path: Path):
        storage_path.write_text("garbage", encoding="utf-8")

        with pytest.raises(CorruptStorageError):
            store.check_health()

    @pytest.mark.unit
    def test_watcher_reports_corruption(self, storage_path: Path):
        seen: list[CorruptStorageError] = []
        detected = threading.Event()

        def on_corrupt(error: CorruptStorageError) -> None:
            seen.append(error)
            detected.set()

        store = RecordStore(storage_path, update_countdown_ms=10, on_corrupt=on_corrupt)
        store.load()
        storage_path.write_text("{broken", encoding="utf-8")

        store.start_watcher()
        try:
            assert detected.wait(timeout=5)
            assert store.watcher_running
        finally:
            store.stop_watcher()

        assert isinstance(seen[0], CorruptStorageError)
        assert not store.watcher_running

    @pytest.mark.unit
    def test_watcher_survives_undecodable_file(self, storage_path: Path):
        seen: list[CorruptStorageError] = []
        detected = threading.Event()

        def on_corrupt(error: CorruptStorageError) -> None:
            seen.append(error)
            detected.set()

        store = RecordStore(storage_path, update_countdown_ms=10, on_corrupt=on_corrupt)
        store.load()
        storage_path.write_bytes(b"\xff\xfe")

        store.start_watcher()
        try:
            assert detected.wait(timeout=5)
            time.sleep(0.05)
            assert store.watcher_running
        finally:
            store.stop_watcher()

        assert isinstance(seen[0].cause, UnicodeDecodeError)

    @pytest.mark.unit
    def test_watcher_recreates_removed_file(self, storage_path: Path):
        store = RecordStore(storage_path, update_countdown_ms=10)
        store.save({"g1": {}})
        storage_path.unlink()

        store.start_watcher()
        try:
            deadline = time.monotonic() + 5
            while not storage_path.exists() and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            store.stop_watcher()

        assert storage_path.exists()


class TestConcurrency:
    @pytest.mark.unit
    def test_parallel_increments_lose_no_updates(self, store: RecordStore):
        workers, rounds = 8, 25

        def work() -> None:
            for _ in range(rounds):
                with store.transaction() as doc:
                    counter = doc.setdefault("g1", {}).setdefault("m1", {"money": 0})
                    counter["money"] += 1

        threads = [threading.Thread(target=work) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.load()["g1"]["m1"]["money"] == workers * rounds
