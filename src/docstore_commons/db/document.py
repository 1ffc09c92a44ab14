"""Common document store contract and typed errors."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar, Protocol, TypeVar, runtime_checkable

from docstore_commons.errors import DocstoreCommonsError
from docstore_commons.health import HealthStatus
from docstore_commons.observability.logging import log_tagged_error

CONNECT_ERROR_TAG = "docstore.connect.failed"
SCHEMA_ERROR_TAG = "docstore.schema.failed"
QUERY_ERROR_TAG = "docstore.query.failed"
WRITE_ERROR_TAG = "docstore.write.failed"


class DocumentStoreError(DocstoreCommonsError):
    """Base exception for document store operations.

    ``tag`` is the stable log tag under which the failure is reported.
    """

    tag: ClassVar[str] = "docstore.failed"

    def __init__(
        self,
        operation: str,
        collection: str | None,
        message: str,
    ) -> None:
        self.operation = operation
        self.collection = collection
        target = "<unknown>" if collection is None else collection
        super().__init__(f"Document {operation} failed for '{target}': {message}")


class DocumentConnectionError(DocumentStoreError):
    """Raised when opening the connection or the liveness ping fails."""

    tag = CONNECT_ERROR_TAG


class DocumentSchemaError(DocumentStoreError):
    """Raised when listing or creating collections/indexes fails during reconciliation."""

    tag = SCHEMA_ERROR_TAG


class DocumentQueryError(DocumentStoreError):
    """Raised when a read fails, including failures while pulling from a cursor."""

    tag = QUERY_ERROR_TAG


class DocumentWriteError(DocumentStoreError):
    """Raised when an insert or delete fails in whole or in part.

    ``details`` carries whatever the store reported about the failed write
    (for bulk inserts this includes the number of documents inserted).
    """

    tag = WRITE_ERROR_TAG

    def __init__(
        self,
        operation: str,
        collection: str | None,
        message: str,
        *,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        self.details = dict(details) if details else {}
        super().__init__(operation, collection, message)


ErrorT = TypeVar("ErrorT", bound=DocumentStoreError)


def failure(
    logger: logging.Logger,
    error_type: type[ErrorT],
    operation: str,
    collection: str | None,
    exc: BaseException,
    **kwargs: Any,
) -> ErrorT:
    """Log ``exc`` once under ``error_type.tag`` and build the typed error to raise."""
    target = "<database>" if collection is None else collection
    log_tagged_error(logger, error_type.tag, "%s failed for %s", operation, target, exc=exc)
    return error_type(operation, collection, str(exc), **kwargs)


@runtime_checkable
class DocumentStore(Protocol):
    """Common contract for document database facades.

    Implementations should raise ``DocumentStoreError`` subclasses for backend failures.
    """

    async def find_many(
        self,
        collection: str,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        limit: int = -1,
        offset: int = 0,
        materialize: bool = True,
    ) -> Any:
        """Find documents, materialized into a list or as a lazy cursor."""
        ...

    async def find_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Find the first document matching the query."""
        ...

    async def insert_many(
        self,
        collection: str,
        documents: Sequence[Mapping[str, Any]],
    ) -> list[Any]:
        """Insert documents and return their ids in input order."""
        ...

    async def insert_one(self, collection: str, document: Mapping[str, Any]) -> Any:
        """Insert a single document and return the inserted ID."""
        ...

    async def delete_one(self, collection: str, query: Mapping[str, Any]) -> int:
        """Delete a single document and return the deleted count."""
        ...

    async def health_check(self) -> HealthStatus:
        """Run backend health check."""
        ...
