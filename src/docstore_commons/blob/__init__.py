"""Prefix-scoped blob storage."""

from docstore_commons.blob.s3 import (
    BlobAuthError,
    BlobError,
    BlobNotFoundError,
    BlobOperationError,
    BlobTransientError,
    S3BlobStorage,
    S3CompatibleClient,
    create_blob_storage,
    normalize_prefix,
)

__all__ = [
    "BlobAuthError",
    "BlobError",
    "BlobNotFoundError",
    "BlobOperationError",
    "BlobTransientError",
    "S3BlobStorage",
    "S3CompatibleClient",
    "create_blob_storage",
    "normalize_prefix",
]
