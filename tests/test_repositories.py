from dataclasses import replace
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from bson.errors import InvalidDocument
from pymongo.errors import DocumentTooLarge, ServerSelectionTimeoutError

from todo_api import db as db_module
from todo_api.db import MongoRepository
from todo_api.errors import INVALID_DOCUMENT, MALFORMED_ID, NOT_FOUND, STORAGE_UNAVAILABLE
from todo_api.repositories import InMemoryRepository, build_repository, to_storage_time
from todo_api.settings import get_settings


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction):
        return sorted(self._docs, key=lambda d: d[key], reverse=direction == DESCENDING)


class FakeCollection:
    """In-process stand-in for the subset of pymongo.collection.Collection used by MongoRepository."""

    def __init__(self):
        self.docs = {}
        self.indexes = []

    def create_index(self, keys):
        self.indexes.append(keys)

    def insert_one(self, doc):
        oid = ObjectId()
        self.docs[oid] = {**doc, "_id": oid}
        return SimpleNamespace(inserted_id=oid)

    def find(self, query):
        assert query == {}
        return FakeCursor([dict(d) for d in self.docs.values()])

    def find_one(self, query):
        doc = self.docs.get(query["_id"])
        return dict(doc) if doc else None

    def find_one_and_update(self, query, update, return_document):
        assert return_document is ReturnDocument.AFTER
        doc = self.docs.get(query["_id"])
        if doc is None:
            return None
        doc.update(update["$set"])
        return dict(doc)

    def find_one_and_delete(self, query):
        return self.docs.pop(query["_id"], None)


class DownCollection(FakeCollection):
    def _fail(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("localhost:27017: connection refused")

    create_index = insert_one = find = find_one = find_one_and_update = find_one_and_delete = _fail


class OversizedCollection(FakeCollection):
    def insert_one(self, doc):
        raise DocumentTooLarge("BSON document too large (16793600 bytes)")

    def find_one_and_update(self, query, update, return_document):
        raise InvalidDocument("cannot encode object")


@pytest.fixture(params=["memory", "mongodb"])
def repo(request):
    if request.param == "memory":
        return InMemoryRepository()
    return MongoRepository(FakeCollection())


class TestRepositoryContract:
    def test_create_rejects_lone_surrogate(self, repo):
        result = repo.create({"content": "\ud800"})
        assert result.error.code == INVALID_DOCUMENT
        assert result.error.meta["field"] == "content"
        assert repo.list().value == []

    def test_create_assigns_id_and_date(self, repo):
        before = datetime.now(timezone.utc) - timedelta(seconds=1)
        result = repo.create({"content": "buy milk"})
        assert result.ok
        todo = result.value
        assert ObjectId.is_valid(todo["id"])
        assert todo["content"] == "buy milk"
        assert todo["date"] >= before
        assert todo["date"].tzinfo is not None

    def test_create_requires_content(self, repo):
        result = repo.create({})
        assert not result.ok
        assert result.error.code == INVALID_DOCUMENT
        assert result.error.meta["field"] == "content"

    def test_create_rejects_unknown_field(self, repo):
        result = repo.create({"content": "x", "done": True})
        assert result.error.code == INVALID_DOCUMENT
        assert result.error.meta["field"] == "done"

    def test_create_rejects_non_string_content(self, repo):
        assert repo.create({"content": 5}).error.code == INVALID_DOCUMENT

    def test_list_newest_first(self, repo):
        base = datetime(2023, 3, 1, tzinfo=timezone.utc)
        for days in (1, 3, 2):
            repo.create({"content": str(days), "date": base + timedelta(days=days)})
        assert [t["content"] for t in repo.list().value] == ["3", "2", "1"]

    def test_update_merges_fields(self, repo):
        created = repo.create({"content": "a"}).value
        updated = repo.update(created["id"], {"content": "b"}).value
        assert updated == {**created, "content": "b"}
        assert repo.list().value == [updated]

    def test_update_without_fields_returns_current(self, repo):
        created = repo.create({"content": "a"}).value
        assert repo.update(created["id"], {}).value == created

    def test_update_unknown_and_malformed(self, repo):
        assert repo.update(str(ObjectId()), {"content": "b"}).error.code == NOT_FOUND
        assert repo.update("xyz", {"content": "b"}).error.code == MALFORMED_ID

    def test_delete_returns_snapshot_once(self, repo):
        created = repo.create({"content": "a"}).value
        assert repo.delete(created["id"]).value == created
        assert repo.list().value == []
        second = repo.delete(created["id"])
        assert second.error.code == NOT_FOUND
        assert second.error.message == "Record to delete not found."

    def test_delete_malformed(self, repo):
        assert repo.delete("1234").error.code == MALFORMED_ID


class TestStorageTime:
    def test_naive_taken_as_utc_and_truncated_to_millis(self):
        value = to_storage_time(datetime(2024, 1, 1, 12, 0, 0, 123456))
        assert value == datetime(2024, 1, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        value = to_storage_time(datetime(2024, 1, 1, 12, 0, tzinfo=plus_two))
        assert value == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert value.utcoffset() == timedelta(0)


class TestMongoRepository:
    def test_driver_errors_become_storage_errors(self):
        repo = MongoRepository(DownCollection())
        for result in (
            repo.create({"content": "x"}),
            repo.list(),
            repo.update(str(ObjectId()), {"content": "x"}),
            repo.delete(str(ObjectId())),
        ):
            assert result.error.code == STORAGE_UNAVAILABLE
            assert result.error.meta["driverError"] == "ServerSelectionTimeoutError"

    def test_encoding_errors_become_invalid_document(self):
        repo = MongoRepository(OversizedCollection())
        created = repo.create({"content": "x" * 64})
        assert created.error.code == INVALID_DOCUMENT
        assert created.error.meta["driverError"] == "DocumentTooLarge"

        updated = repo.update(str(ObjectId()), {"content": "y"})
        assert updated.error.code == INVALID_DOCUMENT
        assert updated.error.meta["driverError"] == "InvalidDocument"

    def test_foreign_documents_reported_not_raised(self):
        collection = FakeCollection()
        repo = MongoRepository(collection)
        good = repo.create({"content": "mine"}).value
        stray = ObjectId()
        collection.docs[stray] = {"_id": stray, "date": good["date"], "title": "written elsewhere"}

        listed = repo.list()
        assert listed.error.code == INVALID_DOCUMENT
        assert listed.error.meta["id"] == str(stray)

        assert repo.update(str(stray), {}).error.code == INVALID_DOCUMENT
        assert repo.delete(str(stray)).error.code == INVALID_DOCUMENT
        # the well-formed record is still reachable by id
        assert repo.delete(good["id"]).value == good

    def test_stores_plain_documents(self):
        collection = FakeCollection()
        repo = MongoRepository(collection)
        created = repo.create({"content": "x"}).value
        stored = collection.docs[ObjectId(created["id"])]
        assert set(stored) == {"_id", "content", "date"}

    def test_connect_creates_index_and_close_closes_client(self, monkeypatch):
        collection = FakeCollection()

        class FakeClient:
            closed = False

            def __init__(self, url, **kwargs):
                self.url = url
                self.kwargs = kwargs

            def __getitem__(self, name):
                return {"todo": collection}

            def close(self):
                FakeClient.closed = True

        monkeypatch.setattr(db_module, "MongoClient", FakeClient)
        repo = MongoRepository.connect("mongodb://db:27017", "todos", "todo")
        assert collection.indexes == [[("date", DESCENDING)]]
        repo.close()
        assert FakeClient.closed

    def test_connect_tolerates_unreachable_server(self, monkeypatch):
        class FakeClient:
            def __init__(self, url, **kwargs):
                pass

            def __getitem__(self, name):
                return {"todo": DownCollection()}

        monkeypatch.setattr(db_module, "MongoClient", FakeClient)
        repo = MongoRepository.connect("mongodb://db:27017", "todos", "todo")
        assert repo.list().error.code == STORAGE_UNAVAILABLE


class TestBuildRepository:
    def test_memory_backend(self):
        settings = replace(get_settings(), persistence_backend="memory")
        assert isinstance(build_repository(settings), InMemoryRepository)

    def test_mongodb_backend(self, monkeypatch):
        calls = []

        def fake_connect(url, database, collection):
            calls.append((url, database, collection))
            return MongoRepository(FakeCollection())

        monkeypatch.setattr(MongoRepository, "connect", staticmethod(fake_connect))
        settings = replace(
            get_settings(),
            persistence_backend="mongodb",
            mongodb_url="mongodb://db:27017",
            mongodb_database="app",
            mongodb_collection="items",
        )
        assert isinstance(build_repository(settings), MongoRepository)
        assert calls == [("mongodb://db:27017", "app", "items")]
