"""Connection establishment for MongoDB backed by the Motor async client."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from docstore_commons.config.models import MongoDbSettings
from docstore_commons.db.document import CONNECT_ERROR_TAG, DocumentConnectionError
from docstore_commons.errors import MissingDependencyError
from docstore_commons.observability.logging import log_tagged_error
from docstore_commons.observability.metrics import MetricsRecorder, track_operation

logger = logging.getLogger(__name__)

_RESOURCE_NAME = "mongodb"


def _import_motor_asyncio() -> Any:
    try:
        from motor import motor_asyncio
    except ImportError as exc:  # pragma: no cover - exercised when motor is absent
        raise MissingDependencyError(
            "MongoDB connections require dependency 'motor'. "
            "Install with: pip install docstore-commons"
        ) from exc
    return motor_asyncio


@dataclass(slots=True)
class MongoConnection:
    """Live client plus the database handle it is bound to.

    Whoever receives a connection from :func:`connect` owns it and is
    responsible for calling :meth:`release`.
    """

    client: Any
    database: Any
    database_name: str
    target: str
    released: bool = False

    def release(self) -> None:
        """Close the underlying client. Safe to call more than once."""
        if self.released:
            return
        self.released = True
        self.client.close()


async def connect(
    settings: MongoDbSettings,
    *,
    metrics: MetricsRecorder | None = None,
) -> MongoConnection:
    """Open a client, verify it with an admin ping and bind it to the database.

    Any failure while opening, pinging or binding closes whatever was opened
    and is raised as :class:`DocumentConnectionError`. Cancellation also
    closes the client before propagating. No retry is attempted.
    """
    target = settings.target
    client: Any = None

    logger.debug("Connecting to database: %s", target)
    with track_operation(_RESOURCE_NAME, "connect", metrics=metrics):
        try:
            motor_asyncio = _import_motor_asyncio()
            client = motor_asyncio.AsyncIOMotorClient(
                settings.connection_uri(),
                serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
                connectTimeoutMS=settings.connect_timeout_ms,
                appname=settings.app_name,
            )
            await asyncio.wait_for(
                client.admin.command("ping"),
                timeout=settings.ping_timeout_seconds,
            )
            database = client[settings.database]
        except MissingDependencyError:
            raise
        except Exception as exc:
            log_tagged_error(logger, CONNECT_ERROR_TAG, "Error connecting to %s", target, exc=exc)
            if client is not None:
                _close_quietly(client)
            raise DocumentConnectionError("connect", None, f"{target}: {exc}") from exc
        except BaseException:
            if client is not None:
                _close_quietly(client)
            raise

    logger.debug("Connected to database: %s", target)
    return MongoConnection(
        client=client,
        database=database,
        database_name=settings.database,
        target=target,
    )


def _close_quietly(client: Any) -> None:
    # Close errors are logged only; the connection failure is what propagates.
    try:
        client.close()
    except Exception:
        logger.warning("Failed to close client after connection error", exc_info=True)
