"""CRUD facade over a reconciled MongoDB connection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import UTC, datetime
from time import perf_counter
from typing import Any, Literal, overload

from docstore_commons.db.connection import MongoConnection
from docstore_commons.db.cursor import DocumentCursor
from docstore_commons.db.document import DocumentQueryError, DocumentWriteError, failure
from docstore_commons.health import HealthStatus
from docstore_commons.observability.metrics import (
    MetricsRecorder,
    record_documents,
    track_operation,
)

logger = logging.getLogger(__name__)

CREATED_AT_FIELD = "createdAt"
UPDATED_AT_FIELD = "updatedAt"

_RESOURCE_NAME = "mongodb"


def utc_now() -> datetime:
    return datetime.now(UTC)


def stamp_document(document: Mapping[str, Any], now: datetime) -> dict[str, Any]:
    """Return a copy with ``createdAt`` defaulted and ``updatedAt`` overwritten."""
    stamped = dict(document)
    if stamped.get(CREATED_AT_FIELD) is None:
        stamped[CREATED_AT_FIELD] = now
    stamped[UPDATED_AT_FIELD] = now
    return stamped


@dataclass(slots=True)
class MongoDbClient:
    """Managed MongoDB handle with a small, normalized CRUD surface.

    The client owns the connection it was built with. It defines no close
    operation of its own; the owner closes the underlying Motor client via
    :attr:`client` when done.
    """

    _connection: MongoConnection
    ping_timeout_seconds: float = 2.0
    _metrics: MetricsRecorder | None = None

    @property
    def client(self) -> Any:
        """Expose underlying Motor client for advanced usage."""
        return self._connection.client

    @property
    def database_name(self) -> str:
        return self._connection.database_name

    def get_collection(self, name: str) -> Any:
        """Return a raw collection handle for operations this facade does not cover."""
        return self._connection.database[name]

    def get_raw_db(self) -> Any:
        """Return the raw database handle."""
        return self._connection.database

    def _track(self, operation: str, collection: str | None = None) -> AbstractContextManager[None]:
        return track_operation(
            _RESOURCE_NAME, operation, collection=collection, metrics=self._metrics
        )

    def _count(self, operation: str, collection: str, count: int) -> None:
        record_documents(
            resource=_RESOURCE_NAME,
            operation=operation,
            collection=collection,
            count=count,
            metrics=self._metrics,
        )

    @overload
    async def find_many(
        self,
        collection: str,
        query: Mapping[str, Any] | None = ...,
        options: Mapping[str, Any] | None = ...,
        *,
        limit: int = ...,
        offset: int = ...,
        materialize: Literal[True] = ...,
    ) -> list[dict[str, Any]]: ...

    @overload
    async def find_many(
        self,
        collection: str,
        query: Mapping[str, Any] | None = ...,
        options: Mapping[str, Any] | None = ...,
        *,
        limit: int = ...,
        offset: int = ...,
        materialize: Literal[False],
    ) -> DocumentCursor: ...

    async def find_many(
        self,
        collection: str,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        limit: int = -1,
        offset: int = 0,
        materialize: bool = True,
    ) -> list[dict[str, Any]] | DocumentCursor:
        """Find documents matching ``query``.

        Args:
            collection: Collection name.
            query: Filter document; ``None`` matches everything.
            options: Extra keyword options for the store's ``find`` (``projection``,
                ``sort``, ...).
            limit: Maximum number of documents; values ``<= 0`` mean no cap.
            offset: Number of matched documents to skip; values ``<= 0`` skip none.
            materialize: ``True`` returns a fully collected list; ``False`` returns
                a lazy :class:`DocumentCursor` that pulls from the store on demand.

        Raises:
            DocumentQueryError: If the read fails, including mid-stream while
                collecting results.
        """
        if not materialize:
            # Opening a cursor does not touch the server; the read itself is
            # recorded by the cursor once it finishes.
            with self._track("find_cursor", collection):
                cursor = self._open_cursor(collection, query, options, limit=limit, offset=offset)
            return DocumentCursor(cursor, collection=collection, metrics=self._metrics)

        with self._track("find_many", collection):
            try:
                cursor = self._open_cursor(collection, query, options, limit=limit, offset=offset)
                documents = await cursor.to_list(length=None)
            except DocumentQueryError:
                raise
            except Exception as exc:
                raise failure(logger, DocumentQueryError, "find_many", collection, exc) from exc

        self._count("find_many", collection, len(documents))
        return [dict(document) for document in documents]

    def _open_cursor(
        self,
        collection: str,
        query: Mapping[str, Any] | None,
        options: Mapping[str, Any] | None,
        *,
        limit: int,
        offset: int,
    ) -> Any:
        try:
            cursor = self.get_collection(collection).find(dict(query or {}), **dict(options or {}))
            if offset > 0:
                cursor = cursor.skip(offset)
            if limit > 0:
                cursor = cursor.limit(limit)
        except Exception as exc:
            raise failure(logger, DocumentQueryError, "find_many", collection, exc) from exc
        return cursor

    async def find_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Return the first matching document, or ``None`` when nothing matches."""
        documents = await self.find_many(collection, query, options, limit=1)
        return documents[0] if documents else None

    async def insert_many(
        self,
        collection: str,
        documents: Sequence[Mapping[str, Any]],
    ) -> list[Any]:
        """Insert documents in one bulk call and return ids aligned with the input.

        Each document is copied and stamped: ``createdAt`` is set when absent and
        ``updatedAt`` is always set, both to the same timestamp for the batch.

        Raises:
            DocumentWriteError: If the bulk insert fails in whole or in part.
        """
        if not documents:
            return []

        now = utc_now()
        prepared = [stamp_document(document, now) for document in documents]

        with self._track("insert_many", collection):
            try:
                result = await self.get_collection(collection).insert_many(prepared)
            except Exception as exc:
                raise failure(
                    logger,
                    DocumentWriteError,
                    "insert_many",
                    collection,
                    exc,
                    details=getattr(exc, "details", None),
                ) from exc

        inserted_ids = list(result.inserted_ids)
        self._count("insert_many", collection, len(inserted_ids))
        logger.debug("%s: inserted %d document(s)", collection, len(inserted_ids))
        return inserted_ids

    async def insert_one(self, collection: str, document: Mapping[str, Any]) -> Any:
        """Insert a single document and return its id."""
        inserted_ids = await self.insert_many(collection, [document])
        return inserted_ids[0]

    async def delete_one(self, collection: str, query: Mapping[str, Any]) -> int:
        """Delete at most one matching document and return the removed count (0 or 1)."""
        with self._track("delete_one", collection):
            try:
                result = await self.get_collection(collection).delete_one(dict(query))
            except Exception as exc:
                raise failure(logger, DocumentWriteError, "delete_one", collection, exc) from exc

        deleted = int(result.deleted_count)
        self._count("delete_one", collection, deleted)
        return deleted

    async def ping(self) -> bool:
        """Run MongoDB ping command against the bound database."""
        with self._track("ping"):
            await asyncio.wait_for(
                self._connection.database.command("ping"),
                timeout=self.ping_timeout_seconds,
            )
        return True

    async def health_check(self) -> HealthStatus:
        """Verify MongoDB liveness with a ping command."""
        started = perf_counter()
        try:
            await self.ping()
        except Exception as exc:
            return HealthStatus.failed(started, exc, database=self.database_name)
        return HealthStatus.passed(started, database=self.database_name)
