"""Document database connection, schema reconciliation and CRUD facade."""

from docstore_commons.db.client import create_client, create_client_from_params
from docstore_commons.db.connection import MongoConnection, connect
from docstore_commons.db.cursor import DocumentCursor
from docstore_commons.db.document import (
    DocumentConnectionError,
    DocumentQueryError,
    DocumentSchemaError,
    DocumentStore,
    DocumentStoreError,
    DocumentWriteError,
)
from docstore_commons.db.mongodb import MongoDbClient
from docstore_commons.db.schema import (
    CollectionSpec,
    IndexSpec,
    SchemaDescriptor,
    SchemaReconcileResult,
    load_schema,
    reconcile,
)

__all__ = [
    "CollectionSpec",
    "DocumentConnectionError",
    "DocumentCursor",
    "DocumentQueryError",
    "DocumentSchemaError",
    "DocumentStore",
    "DocumentStoreError",
    "DocumentWriteError",
    "IndexSpec",
    "MongoConnection",
    "MongoDbClient",
    "SchemaDescriptor",
    "SchemaReconcileResult",
    "connect",
    "create_client",
    "create_client_from_params",
    "load_schema",
    "reconcile",
]
