import json
import threading

import pytest

from admin_auth.storage import (
    JsonFileDocumentStore,
    MemoryDocumentStore,
    StorageError,
    create_document_store,
)


@pytest.fixture(params=["memory", "json"])
def doc_store(request, tmp_path):
    if request.param == "memory":
        return MemoryDocumentStore()
    return JsonFileDocumentStore(str(tmp_path / "store"))


def test_create_only_writes_absent_documents(doc_store):
    assert doc_store.create("things", "a", {"value": 1}) is True
    assert doc_store.create("things", "a", {"value": 2}) is False
    assert doc_store.get("things", "a") == {"value": 1}


def test_get_returns_a_copy(doc_store):
    doc_store.set("things", "a", {"items": [1]})
    document = doc_store.get("things", "a")
    document["items"].append(2)

    assert doc_store.get("things", "a") == {"items": [1]}


def test_update_merges_and_reports_missing_documents(doc_store):
    doc_store.set("things", "a", {"value": 1, "name": "x"})

    assert doc_store.update("things", "a", {"value": 2}) is True
    assert doc_store.get("things", "a") == {"value": 2, "name": "x"}
    assert doc_store.update("things", "missing", {"value": 3}) is False


def test_conditional_delete_only_when_filters_match(doc_store):
    doc_store.set("things", "a", {"challenge": "abc"})

    assert doc_store.delete("things", "a", [("challenge", "==", "other")]) is False
    assert doc_store.get("things", "a") is not None
    assert doc_store.delete("things", "a", [("challenge", "==", "abc")]) is True
    assert doc_store.delete("things", "a") is False


def test_query_applies_filters_and_limit(doc_store):
    for index in range(5):
        doc_store.add("things", {"index": index, "group": "even" if index % 2 == 0 else "odd"})

    evens = doc_store.query("things", [("group", "==", "even")])
    assert sorted(document["index"] for _doc_id, document in evens) == [0, 2, 4]

    limited = doc_store.query("things", [("index", ">", 0)], limit=2)
    assert len(limited) == 2

    assert doc_store.query("things", [("missing", "==", 1)]) == []


def test_query_rejects_unknown_operator(doc_store):
    with pytest.raises(ValueError):
        doc_store.query("things", [("index", "~", 1)])


def test_delete_where_returns_removed_count(doc_store):
    doc_store.set("things", "old", {"expiresAt": 10.0})
    doc_store.set("things", "new", {"expiresAt": 30.0})

    assert doc_store.delete_where("things", [("expiresAt", "<=", 20.0)]) == 1
    assert doc_store.get("things", "old") is None
    assert doc_store.get("things", "new") is not None


def test_only_one_concurrent_delete_succeeds(doc_store):
    doc_store.set("things", "token", {"value": 1})
    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(doc_store.delete("things", "token"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1


def test_json_store_persists_across_instances(tmp_path):
    path = str(tmp_path / "store")
    JsonFileDocumentStore(path).set("things", "a", {"value": 1})

    assert JsonFileDocumentStore(path).get("things", "a") == {"value": 1}
    with open(tmp_path / "store" / "things.json", "r", encoding="utf-8") as handle:
        assert json.load(handle) == {"a": {"value": 1}}


def test_json_store_reports_corrupted_collections(tmp_path):
    path = tmp_path / "store"
    path.mkdir()
    (path / "things.json").write_text("not json", encoding="utf-8")

    with pytest.raises(StorageError):
        JsonFileDocumentStore(str(path)).get("things", "a")


def test_json_store_rejects_path_like_collection_names(tmp_path):
    with pytest.raises(ValueError):
        JsonFileDocumentStore(str(tmp_path)).get("../escape", "a")


def test_create_document_store_picks_backend(tmp_path):
    assert isinstance(create_document_store(None), MemoryDocumentStore)
    assert isinstance(create_document_store(str(tmp_path)), JsonFileDocumentStore)


def test_json_stores_sharing_a_directory_never_resurrect_deleted_documents(tmp_path, monkeypatch):
    path = str(tmp_path / "store")
    server = JsonFileDocumentStore(path)
    purger = JsonFileDocumentStore(path)
    server.set("admin_sessions", "spent", {"expiresAt": 100.0})
    server.set("admin_sessions", "stale", {"expiresAt": 1.0})

    deleted = []
    blocked = []
    redeemer = threading.Thread(target=lambda: deleted.append(server.delete("admin_sessions", "spent")))
    original_load = purger._load

    def load_while_server_redeems(collection):
        documents = original_load(collection)
        redeemer.start()
        redeemer.join(timeout=0.5)
        blocked.append(redeemer.is_alive())
        return documents

    monkeypatch.setattr(purger, "_load", load_while_server_redeems)
    assert purger.delete_where("admin_sessions", [("expiresAt", "<=", 50.0)]) == 1
    redeemer.join(timeout=5)

    assert blocked == [True]
    assert deleted == [True]
    assert server.get("admin_sessions", "spent") is None
    assert purger.get("admin_sessions", "stale") is None


def test_json_store_reports_lock_timeouts(tmp_path):
    from filelock import FileLock

    path = tmp_path / "store"
    store = JsonFileDocumentStore(str(path), lock_timeout=0.05)
    holder = FileLock(str(path / "things.json.lock"))
    holder.acquire()
    try:
        with pytest.raises(StorageError):
            store.get("things", "a")
    finally:
        holder.release()

    assert store.get("things", "a") is None
