import json

import pytest

from archive.errors import StorageWriteError
from archive.repository import FundRepository
from archive.seed import DEFAULT_FUNDS, default_funds
from security.audit.event_logger import AuditLogger
from storage.database import StorageConfig, create_store
from storage.kv_store import (
    FUNDS_KEY,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    document_content_key,
)
from storage.relational.sql_store import SqlKeyValueStore


def test_in_memory_basic_operations():
    store = InMemoryKeyValueStore()
    store.set("a", "1")
    assert store.get("a") == "1"
    assert "a" in store
    store.delete("a")
    store.delete("a")
    assert store.get("a") is None
    assert store.keys() == []


def test_read_json_falls_back_on_corrupt_value():
    store = InMemoryKeyValueStore({"broken": "{not json"})
    assert store.read_json("broken", []) == []
    assert store.read_json("missing", {"x": 1}) == {"x": 1}


def test_json_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "data" / "archive.json"
    first = JsonFileKeyValueStore(path)
    first.write_json("archiveFunds", [{"id": "f1"}])

    second = JsonFileKeyValueStore(path)
    assert second.read_json("archiveFunds") == [{"id": "f1"}]
    assert json.loads(path.read_text(encoding="utf-8"))["archiveFunds"] == '[{"id": "f1"}]'


def test_json_file_store_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "archive.json"
    path.write_text("not json at all", encoding="utf-8")
    store = JsonFileKeyValueStore(path)
    assert store.keys() == []


def test_sql_store_round_trip(tmp_path):
    store = SqlKeyValueStore(f"sqlite:///{tmp_path / 'archive.db'}")
    store.set("k", "v1")
    store.set("k", "v2")
    assert store.get("k") == "v2"
    assert store.keys() == ["k"]
    store.delete("k")
    assert store.get("k") is None
    store.dispose()


def test_create_store_selects_backend(tmp_path):
    assert isinstance(create_store(StorageConfig(backend="memory")), InMemoryKeyValueStore)
    json_store = create_store(StorageConfig(backend="json", path=str(tmp_path / "a.json")))
    assert isinstance(json_store, JsonFileKeyValueStore)


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError):
        StorageConfig(backend="redis")


def test_audit_limit_must_be_positive(monkeypatch):
    with pytest.raises(ValueError):
        StorageConfig(backend="memory", audit_limit=0)

    monkeypatch.setenv("ARCHIVE_AUDIT_LIMIT", "0")
    with pytest.raises(ValueError):
        StorageConfig(backend="memory")


def test_explicit_audit_limit_wins_over_environment(monkeypatch):
    monkeypatch.setenv("ARCHIVE_AUDIT_LIMIT", "500")
    assert StorageConfig(backend="memory", audit_limit=3).audit_limit == 3


def test_audit_log_is_bounded():
    store = InMemoryKeyValueStore()
    audit = AuditLogger(store, max_events=2)
    for n in range(5):
        audit.record("u1", f"action_{n}")
    assert [e.action for e in audit.get_events()] == ["action_3", "action_4"]

    with pytest.raises(ValueError):
        AuditLogger(store, max_events=0)


def test_document_content_key():
    assert document_content_key("abc") == "archiveDocument:abc"


def test_missing_funds_are_seeded_and_written_back(store):
    repo = FundRepository(store, seed=default_funds())
    assert [f.id for f in repo.funds] == ["f1"]
    assert store.read_json(FUNDS_KEY)[0]["name"] == DEFAULT_FUNDS[0]["name"]


def test_corrupt_funds_are_replaced_by_seed():
    store = InMemoryKeyValueStore({FUNDS_KEY: "{{{"})
    repo = FundRepository(store, seed=default_funds())
    assert [f.id for f in repo.funds] == ["f1"]
    assert isinstance(store.read_json(FUNDS_KEY), list)


def test_non_list_funds_are_replaced_by_seed():
    store = InMemoryKeyValueStore({FUNDS_KEY: json.dumps({"id": "f1"})})
    repo = FundRepository(store, seed=[])
    assert repo.funds == []


def test_default_funds_returns_independent_copies():
    first = default_funds()
    first[0]["name"] = "changed"
    assert default_funds()[0]["name"] == DEFAULT_FUNDS[0]["name"]


class FailingStore(InMemoryKeyValueStore):
    def set(self, key, value):
        raise OSError("disk full")


def test_failed_write_raises_and_keeps_previous_tree():
    store = FailingStore({FUNDS_KEY: json.dumps(default_funds())})
    repo = FundRepository(store)
    funds = repo.snapshot()
    funds[0].name = "Renamed"

    with pytest.raises(StorageWriteError):
        repo.save(funds)
    assert repo.funds[0].name == DEFAULT_FUNDS[0]["name"]
