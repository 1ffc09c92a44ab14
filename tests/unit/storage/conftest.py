"""In-memory Motor stand-ins shared by the document store tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

import docstore_commons.db.connection as connection_module
from docstore_commons.db.connection import MongoConnection
from docstore_commons.db.mongodb import MongoDbClient


def _matches(document: dict[str, Any], query: dict[str, Any]) -> bool:
    return all(document.get(key) == value for key, value in query.items())


@dataclass(slots=True)
class FakeInsertManyResult:
    inserted_ids: list[Any]


@dataclass(slots=True)
class FakeDeleteResult:
    deleted_count: int


class FakeBulkWriteError(Exception):
    """Carries a ``details`` mapping like pymongo's BulkWriteError."""

    def __init__(self, details: dict[str, Any]) -> None:
        self.details = details
        super().__init__("batch op errors occurred")


class FakeCursor:
    def __init__(
        self,
        documents: list[dict[str, Any]],
        *,
        error: Exception | None = None,
        fail_after: int | None = None,
    ) -> None:
        self._documents = documents
        self._error = error
        self._fail_after = fail_after
        self._skip = 0
        self._limit = 0
        self._iterator: Any = None
        self.pulled = 0
        self.closed = False

    def skip(self, count: int) -> FakeCursor:
        self._skip = count
        return self

    def limit(self, count: int) -> FakeCursor:
        self._limit = count
        return self

    def _selected(self) -> list[dict[str, Any]]:
        documents = self._documents[self._skip :]
        if self._limit:
            documents = documents[: self._limit]
        return documents

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        del length
        if self._error is not None:
            raise self._error
        return [dict(document) for document in self._selected()]

    def __aiter__(self) -> FakeCursor:
        self._iterator = iter(self._selected())
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self._error is not None and self.pulled >= (self._fail_after or 0):
            raise self._error
        try:
            document = next(self._iterator)
        except StopIteration:
            raise StopAsyncIteration from None
        self.pulled += 1
        return dict(document)

    def close(self) -> None:
        self.closed = True


class FakeIndexCursor:
    def __init__(self, indexes: list[dict[str, Any]], error: Exception | None) -> None:
        self._indexes = indexes
        self._error = error

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        del length
        if self._error is not None:
            raise self._error
        return list(self._indexes)


class FakeCollection:
    def __init__(self, name: str, calls: list[str]) -> None:
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self.indexes: dict[str, dict[str, Any]] = {"_id_": {"key": [("_id", 1)]}}
        self.find_calls: list[dict[str, Any]] = []
        self.insert_calls = 0
        self.cursors: list[FakeCursor] = []
        self.cursor_error: Exception | None = None
        self.cursor_fail_after: int | None = None
        self.insert_error: Exception | None = None
        self.list_indexes_error: Exception | None = None
        self.create_index_error: Exception | None = None
        self._calls = calls
        self._next_id = 1

    def find(self, query: dict[str, Any], **options: Any) -> FakeCursor:
        self.find_calls.append({"query": query, **options})
        matches = [document for document in self.documents if _matches(document, query)]
        cursor = FakeCursor(matches, error=self.cursor_error, fail_after=self.cursor_fail_after)
        self.cursors.append(cursor)
        return cursor

    async def insert_many(self, documents: list[dict[str, Any]]) -> FakeInsertManyResult:
        self.insert_calls += 1
        if self.insert_error is not None:
            raise self.insert_error
        inserted_ids = []
        for document in documents:
            stored = dict(document)
            if "_id" not in stored:
                stored["_id"] = self._next_id
                self._next_id += 1
            self.documents.append(stored)
            inserted_ids.append(stored["_id"])
        return FakeInsertManyResult(inserted_ids=inserted_ids)

    async def delete_one(self, query: dict[str, Any]) -> FakeDeleteResult:
        for index, document in enumerate(self.documents):
            if _matches(document, query):
                self.documents.pop(index)
                return FakeDeleteResult(deleted_count=1)
        return FakeDeleteResult(deleted_count=0)

    def list_indexes(self) -> FakeIndexCursor:
        self._calls.append(f"list_indexes:{self.name}")
        payload = [{"name": name, **spec} for name, spec in self.indexes.items()]
        return FakeIndexCursor(payload, self.list_indexes_error)

    async def create_index(self, keys: list[tuple[str, Any]], **options: Any) -> str:
        name = options["name"]
        self._calls.append(f"create_index:{self.name}.{name}")
        if self.create_index_error is not None:
            raise self.create_index_error
        self.indexes[name] = {"key": list(keys), **{k: v for k, v in options.items() if k != "name"}}
        return name


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}
        self.existing: set[str] = set()
        self.calls: list[str] = []
        self.command_error: Exception | None = None
        self.list_collections_error: Exception | None = None
        self.create_collection_errors: dict[str, Exception] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name, self.calls)
        return self.collections[name]

    def seed_collection(self, name: str) -> FakeCollection:
        self.existing.add(name)
        return self[name]

    async def list_collection_names(self) -> list[str]:
        self.calls.append("list_collection_names")
        if self.list_collections_error is not None:
            raise self.list_collections_error
        return sorted(self.existing)

    async def create_collection(self, name: str) -> FakeCollection:
        self.calls.append(f"create_collection:{name}")
        if name in self.create_collection_errors:
            raise self.create_collection_errors[name]
        self.existing.add(name)
        return self[name]

    async def command(self, command_name: str) -> dict[str, float]:
        assert command_name == "ping"
        if self.command_error is not None:
            raise self.command_error
        return {"ok": 1.0}


class FakeAdminDatabase:
    def __init__(self) -> None:
        self.ping_error: Exception | None = None
        self.ping_delay: float = 0.0
        self.commands: list[str] = []

    async def command(self, command_name: str) -> dict[str, float]:
        self.commands.append(command_name)
        if self.ping_delay:
            await asyncio.sleep(self.ping_delay)
        if self.ping_error is not None:
            raise self.ping_error
        return {"ok": 1.0}


class FakeMongoClient:
    def __init__(self, database: FakeDatabase) -> None:
        self._database = database
        self.admin = FakeAdminDatabase()
        self.selected: list[str] = []
        self.select_error: Exception | None = None
        self.close_calls = 0

    def __getitem__(self, name: str) -> FakeDatabase:
        self.selected.append(name)
        if self.select_error is not None:
            raise self.select_error
        return self._database

    def close(self) -> None:
        self.close_calls += 1


@dataclass
class FakeMotorAsyncioModule:
    client: FakeMongoClient
    calls: list[dict[str, Any]] = field(default_factory=list)

    def AsyncIOMotorClient(self, uri: str, **kwargs: Any) -> FakeMongoClient:
        self.calls.append({"uri": uri, **kwargs})
        return self.client


@pytest.fixture()
def fake_database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def fake_client(fake_database: FakeDatabase) -> FakeMongoClient:
    return FakeMongoClient(fake_database)


@pytest.fixture()
def fake_motor(
    monkeypatch: pytest.MonkeyPatch,
    fake_client: FakeMongoClient,
) -> FakeMotorAsyncioModule:
    module = FakeMotorAsyncioModule(fake_client)
    monkeypatch.setattr(connection_module, "_import_motor_asyncio", lambda: module)
    return module


@pytest.fixture()
def mongo_client(fake_client: FakeMongoClient, fake_database: FakeDatabase) -> MongoDbClient:
    connection = MongoConnection(
        client=fake_client,
        database=fake_database,
        database_name="app",
        target="localhost:27017",
    )
    return MongoDbClient(_connection=connection)


@pytest.fixture()
def bulk_write_error() -> type[FakeBulkWriteError]:
    return FakeBulkWriteError
