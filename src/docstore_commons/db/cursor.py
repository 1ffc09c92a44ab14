"""Lazy, single-pass cursor over matched documents."""

from __future__ import annotations

import inspect
import logging
from time import perf_counter
from typing import Any

from docstore_commons.db.document import DocumentQueryError, failure
from docstore_commons.observability.metrics import (
    MetricsRecorder,
    record_documents,
    record_operation,
)

logger = logging.getLogger(__name__)

_RESOURCE_NAME = "mongodb"
_OPERATION = "find_many"


class DocumentCursor:
    """Forward-only async iterator returned by ``find_many(materialize=False)``.

    Each pull awaits the store. The cursor is not restartable: once it is
    exhausted, closed or has failed, further iteration yields nothing.

    The ``find_many`` observation is recorded once, when the cursor is
    drained, closed or fails, and counts the documents actually pulled.
    """

    def __init__(
        self,
        cursor: Any,
        *,
        collection: str,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._cursor = cursor
        self._iterator: Any = None
        self._collection = collection
        self._metrics = metrics
        self._started = perf_counter()
        self._yielded = 0
        self._exhausted = False

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def exhausted(self) -> bool:
        """Whether no further documents will be produced."""
        return self._exhausted

    def __aiter__(self) -> DocumentCursor:
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self._exhausted:
            raise StopAsyncIteration

        try:
            if self._iterator is None:
                self._iterator = self._cursor.__aiter__()
            document = await self._iterator.__anext__()
        except StopAsyncIteration:
            self._finish()
            raise
        except Exception as exc:
            error = failure(logger, DocumentQueryError, _OPERATION, self._collection, exc)
            self._finish(error)
            await self._close_quietly()
            raise error from exc

        self._yielded += 1
        return dict(document)

    async def to_list(self) -> list[dict[str, Any]]:
        """Drain the remaining documents into a list."""
        return [document async for document in self]

    async def close(self) -> None:
        """Release the server-side cursor early."""
        if not self._exhausted:
            self._finish()
        await self._release()

    def _finish(self, error: BaseException | None = None) -> None:
        self._exhausted = True
        record_operation(
            resource=_RESOURCE_NAME,
            operation=_OPERATION,
            collection=self._collection,
            started=self._started,
            error=error,
            metrics=self._metrics,
        )
        record_documents(
            resource=_RESOURCE_NAME,
            operation=_OPERATION,
            collection=self._collection,
            count=self._yielded,
            metrics=self._metrics,
        )

    async def _release(self) -> None:
        close = getattr(self._cursor, "close", None)
        if callable(close):
            result = close()
            if inspect.isawaitable(result):
                await result

    async def _close_quietly(self) -> None:
        try:
            await self._release()
        except Exception as exc:
            logger.warning("Failed to close cursor for %s: %s", self._collection, exc)
