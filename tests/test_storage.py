import sys
from pathlib import Path

import orjson

sys.path.append(str(Path(__file__).resolve().parent.parent))

from bundlepad.storage import JsonFileStore, MemoryStore, PersistenceAdapter
from bundlepad.vfs import VirtualFileSystem, default_vfs


class BrokenStore:
    def get(self, key):
        raise OSError("storage unavailable")

    def set(self, key, value):
        raise OSError("storage unavailable")


def _vfs_adapter(store):
    return PersistenceAdapter(store, "vfs", VirtualFileSystem.to_dict, VirtualFileSystem.from_dict, default_vfs)


def test_missing_key_loads_default():
    assert _vfs_adapter(MemoryStore()).load() == default_vfs()


def test_save_then_load_round_trip():
    store = MemoryStore()
    adapter = _vfs_adapter(store)
    vfs = default_vfs().add_file("/extra.css", "a {}")
    adapter.save(vfs)
    assert orjson.loads(store.data["vfs"])["activeFile"] == "/extra.css"
    assert _vfs_adapter(store).load() == vfs


def test_malformed_blob_falls_back_to_default():
    store = MemoryStore({"vfs": "{not json"})
    assert _vfs_adapter(store).load() == default_vfs()
    store = MemoryStore({"vfs": orjson.dumps({"files": {}, "entryPoint": "/x"}).decode()})
    assert _vfs_adapter(store).load() == default_vfs()


def test_storage_errors_are_not_propagated():
    adapter = _vfs_adapter(BrokenStore())
    assert adapter.load() == default_vfs()
    adapter.save(default_vfs())


def test_json_file_store_keeps_independent_keys(tmp_path):
    path = tmp_path / "nested" / "state.json"
    store = JsonFileStore(path)
    assert store.get("a") is None
    store.set("a", "1")
    store.set("b", "2")
    reopened = JsonFileStore(path)
    assert reopened.get("a") == "1"
    assert reopened.get("b") == "2"


def test_json_file_store_recovers_from_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("garbage", encoding="utf-8")
    store = JsonFileStore(path)
    adapter = PersistenceAdapter(store, "flag", bool, bool, lambda: False)
    assert adapter.load() is False
    adapter.save(True)
    assert adapter.load() is True
