"""MongoDB connection, schema reconciliation and document CRUD helpers."""

from docstore_commons.blob import S3BlobStorage, create_blob_storage
from docstore_commons.config import (
    AppSettings,
    BlobSettings,
    MongoDbSettings,
    ResourceSettings,
    SecuritySettings,
    load_config,
)
from docstore_commons.db import (
    CollectionSpec,
    DocumentConnectionError,
    DocumentCursor,
    DocumentQueryError,
    DocumentSchemaError,
    DocumentStore,
    DocumentStoreError,
    DocumentWriteError,
    IndexSpec,
    MongoDbClient,
    SchemaDescriptor,
    create_client,
    create_client_from_params,
    load_schema,
)
from docstore_commons.errors import DocstoreCommonsError, MissingDependencyError
from docstore_commons.health import HealthStatus
from docstore_commons.observability import bootstrap_logging, configure_prometheus_metrics
from docstore_commons.security import Encryptor, hash_password, verify_password

__all__ = [
    "AppSettings",
    "BlobSettings",
    "CollectionSpec",
    "DocstoreCommonsError",
    "DocumentConnectionError",
    "DocumentCursor",
    "DocumentQueryError",
    "DocumentSchemaError",
    "DocumentStore",
    "DocumentStoreError",
    "DocumentWriteError",
    "Encryptor",
    "HealthStatus",
    "IndexSpec",
    "MissingDependencyError",
    "MongoDbClient",
    "MongoDbSettings",
    "ResourceSettings",
    "S3BlobStorage",
    "SchemaDescriptor",
    "SecuritySettings",
    "bootstrap_logging",
    "configure_prometheus_metrics",
    "create_blob_storage",
    "create_client",
    "create_client_from_params",
    "hash_password",
    "load_config",
    "load_schema",
    "verify_password",
]
