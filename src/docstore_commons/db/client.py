"""Client factory: connect, reconcile the schema, hand back the CRUD facade."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import SecretStr

from docstore_commons.config.models import MongoDbSettings
from docstore_commons.db.connection import connect
from docstore_commons.db.mongodb import MongoDbClient
from docstore_commons.db.schema import CollectionSpec, SchemaDescriptor, reconcile
from docstore_commons.observability.metrics import MetricsRecorder

logger = logging.getLogger(__name__)

SchemaInput = SchemaDescriptor | Iterable[CollectionSpec | Mapping[str, Any]]


async def create_client(
    settings: MongoDbSettings,
    schema: SchemaInput | None = None,
    *,
    metrics: MetricsRecorder | None = None,
) -> MongoDbClient:
    """Connect, converge the database onto ``schema`` and return a ready client.

    The returned client owns the connection. If reconciliation fails the
    connection is released and the ``DocumentSchemaError`` propagates; a
    partially reconciled client is never returned.

    Raises:
        DocumentConnectionError: If the connection or liveness ping fails.
        DocumentSchemaError: If a collection or index could not be listed/created.
    """
    descriptor = _as_descriptor(schema)
    connection = await connect(settings, metrics=metrics)
    try:
        result = await reconcile(connection.database, descriptor, metrics=metrics)
    except BaseException:
        connection.release()
        raise

    if result.changed:
        logger.info(
            "Schema reconciled for %s: %d collection(s), %d index(es) created",
            connection.database_name,
            len(result.created_collections),
            len(result.created_indexes),
        )

    return MongoDbClient(
        _connection=connection,
        ping_timeout_seconds=settings.ping_timeout_seconds,
        _metrics=metrics,
    )


async def create_client_from_params(
    host: str,
    port: int,
    username: str | None,
    password: str | None,
    database: str,
    schema: SchemaInput | None = None,
    *,
    metrics: MetricsRecorder | None = None,
    **settings_overrides: Any,
) -> MongoDbClient:
    """Positional-parameter variant of :func:`create_client`."""
    settings = MongoDbSettings(
        host=host,
        port=port,
        username=username,
        password=SecretStr(password) if password is not None else None,
        database=database,
        **settings_overrides,
    )
    return await create_client(settings, schema, metrics=metrics)


def _as_descriptor(schema: SchemaInput | None) -> SchemaDescriptor:
    if schema is None:
        return SchemaDescriptor()
    if isinstance(schema, SchemaDescriptor):
        return schema
    return SchemaDescriptor.from_collections(schema)
