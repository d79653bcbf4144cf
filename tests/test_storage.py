from __future__ import annotations

import json

import pytest

from streamgo import storage


def test_key_value_store_round_trips_through_disk(tmp_path):
    path = str(tmp_path / "local_storage.json")
    kv = storage.KeyValueStore(path, debounce=False)
    kv.set_item("externalPlayer", "vlc")
    kv.set_item("externalPlayerPath", "/opt/vlc")
    kv.remove_item("externalPlayerPath")

    reopened = storage.KeyValueStore(path, debounce=False)
    assert reopened.get_item("externalPlayer") == "vlc"
    assert reopened.get_item("externalPlayerPath") is None
    assert reopened.keys() == ["externalPlayer"]


def test_non_string_values_are_dropped_on_load(tmp_path):
    path = tmp_path / "local_storage.json"
    path.write_text(json.dumps({"externalPlayer": "mpchc", "count": 3, "nested": {"a": 1}}), encoding="utf-8")

    kv = storage.KeyValueStore(str(path), debounce=False)
    assert kv.keys() == ["externalPlayer"]


def test_corrupt_file_restores_from_backup(tmp_path):
    path = str(tmp_path / "state.json")
    storage.write_json_sync(path, {"lastStreams": "{}"})
    with open(path, "w", encoding="utf-8") as f:
        f.write("{truncated")

    assert storage.read_json(path, {}) == {"lastStreams": "{}"}
    with open(path, "r", encoding="utf-8") as f:
        assert json.load(f) == {"lastStreams": "{}"}


def test_missing_file_and_backup_give_fallback(tmp_path):
    assert storage.read_json(str(tmp_path / "nope.json"), {"x": 1}) == {"x": 1}


def test_debounced_write_lands_on_flush(tmp_path):
    path = str(tmp_path / "debounced.json")
    storage.write_json_debounced(path, {"a": "1"}, delay_ms=60000)
    storage.write_json_debounced(path, {"a": "2"}, delay_ms=60000)

    storage.flush_all_writes()
    assert storage.read_json(path) == {"a": "2"}


def test_data_path_requires_init(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "_user_data_dir", None)
    with pytest.raises(RuntimeError):
        storage.data_path("local_storage.json")

    storage.init_data_dir(str(tmp_path / "profile"))
    assert storage.data_path("local_storage.json") == str(tmp_path / "profile" / "local_storage.json")
