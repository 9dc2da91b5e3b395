"""
Tests for the persistent key-value stores.
"""
from unittest.mock import Mock

import pytest

from sharenite_mirror.cache.store import JsonFileStore, MemoryStore, load_json, save_json
from sharenite_mirror.errors import PersistFailure


def test_json_file_store_round_trip(tmp_path):
    store = JsonFileStore(tmp_path / "data")

    assert save_json(store, "sharenite-data", {"games": [1, 2]}) is True

    assert load_json(JsonFileStore(tmp_path / "data"), "sharenite-data") == {"games": [1, 2]}
    assert (tmp_path / "data" / "sharenite-data.json").exists()
    assert not (tmp_path / "data" / "sharenite-data.json.tmp").exists()


def test_json_file_store_sanitizes_keys(tmp_path):
    store = JsonFileStore(tmp_path)

    store.write("a/b c", "{}")

    assert (tmp_path / "a_b_c.json").exists()
    assert store.read("a/b c") == "{}"


def test_missing_key_returns_default(tmp_path):
    store = JsonFileStore(tmp_path)

    assert store.read("nope") is None
    assert load_json(store, "nope", default={}) == {}


def test_delete_is_idempotent(tmp_path):
    store = JsonFileStore(tmp_path)
    store.write("k", "1")

    store.delete("k")
    store.delete("k")

    assert store.read("k") is None


def test_corrupt_blob_yields_default():
    store = MemoryStore({"k": "{not json"})

    assert load_json(store, "k", default=[]) == []


def test_save_json_reports_persist_failure():
    store = Mock()
    store.write.side_effect = PersistFailure("disk full")

    assert save_json(store, "k", {"a": 1}) is False


def test_write_failure_raises_persist_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    store = JsonFileStore(blocker / "data")

    with pytest.raises(PersistFailure):
        store.write("k", "1")
