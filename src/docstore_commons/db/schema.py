"""Declarative collection/index schema and additive reconciliation.

Reconciliation only ever creates: a collection or index already present under
the declared name is left alone, even when its definition differs from the
descriptor, and anything not declared is never touched. Changing an index
definition therefore means declaring it under a new name.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docstore_commons.config.errors import ConfigValidationError
from docstore_commons.config.loader import load_json_file, validate_model
from docstore_commons.config.placeholders import resolve_placeholders
from docstore_commons.db.document import DocumentSchemaError, failure
from docstore_commons.observability.metrics import MetricsRecorder, track_operation

logger = logging.getLogger(__name__)

_RESOURCE_NAME = "mongodb"


class IndexSpec(BaseModel):
    """One required index, identified by ``name``."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Stable index name")
    key: dict[str, Any] = Field(..., min_length=1, description="Field -> direction/type")
    properties: dict[str, Any] = Field(
        default_factory=dict, description="Index options such as unique or sparse"
    )

    @model_validator(mode="after")
    def validate_name_property(self) -> IndexSpec:
        declared = self.properties.get("name")
        if declared is not None and declared != self.name:
            raise ValueError(
                f"index properties name '{declared}' does not match index name '{self.name}'"
            )
        return self

    def create_index_arguments(self) -> tuple[list[tuple[str, Any]], dict[str, Any]]:
        """Return ``(keys, options)`` for ``create_index``, pinning the index name."""
        options = {k: v for k, v in self.properties.items() if k != "name"}
        options["name"] = self.name
        return list(self.key.items()), options


class CollectionSpec(BaseModel):
    """A required collection and the indexes it must carry."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Collection name")
    indexes: list[IndexSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_index_names(self) -> CollectionSpec:
        duplicates = _duplicates(index.name for index in self.indexes)
        if duplicates:
            raise ValueError(
                f"duplicate index names in collection '{self.name}': {', '.join(duplicates)}"
            )
        return self


class SchemaDescriptor(BaseModel):
    """Ordered set of collections the database must contain."""

    model_config = ConfigDict(frozen=True)

    collections: list[CollectionSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_collection_names(self) -> SchemaDescriptor:
        duplicates = _duplicates(collection.name for collection in self.collections)
        if duplicates:
            raise ValueError(f"duplicate collection names: {', '.join(duplicates)}")
        return self

    @classmethod
    def from_collections(
        cls,
        collections: Iterable[CollectionSpec | Mapping[str, Any]],
    ) -> SchemaDescriptor:
        """Build a descriptor from specs or plain ``{"name", "indexes"}`` mappings."""
        return cls.model_validate({"collections": list(collections)})


@dataclass(slots=True)
class SchemaReconcileResult:
    """What a reconciliation run created. Empty lists mean nothing was missing."""

    created_collections: list[str] = field(default_factory=list)
    created_indexes: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created_collections or self.created_indexes)


def load_schema(path: Path | str, *, strict_placeholders: bool = True) -> SchemaDescriptor:
    """Load a descriptor from JSON holding a list of collections or ``{"collections": [...]}``.

    ``${VAR}`` placeholders anywhere in the file (for example a tenant prefix
    in collection names) are resolved from the environment first.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        PlaceholderResolutionError: If a placeholder names an unset variable
            and ``strict_placeholders`` is true.
        ConfigValidationError: If the content is not a valid descriptor.
    """
    raw = load_json_file(Path(path))
    payload = {"collections": raw} if isinstance(raw, list) else raw
    if not isinstance(payload, dict):
        raise ConfigValidationError(
            [{"loc": "<root>", "msg": "expected a list of collections or an object"}]
        )
    return validate_model(
        SchemaDescriptor, resolve_placeholders(payload, strict=strict_placeholders)
    )


async def reconcile(
    database: Any,
    schema: SchemaDescriptor,
    *,
    metrics: MetricsRecorder | None = None,
) -> SchemaReconcileResult:
    """Create every declared collection and index that does not exist yet.

    Steps run sequentially in descriptor order and every remote call is
    awaited before this coroutine returns.

    Raises:
        DocumentSchemaError: If listing or creating a collection/index fails.
            Whatever was created before the failure stays created.
    """
    result = SchemaReconcileResult()

    with track_operation(_RESOURCE_NAME, "reconcile", metrics=metrics):
        existing = set(
            await _remote("list_collections", None, database.list_collection_names)
        )
        logger.debug("Existing collections: %s", sorted(existing))

        for collection in schema.collections:
            if collection.name not in existing:
                logger.debug("Creating collection '%s'", collection.name)
                await _remote(
                    "create_collection",
                    collection.name,
                    database.create_collection,
                    collection.name,
                )
                result.created_collections.append(collection.name)
            else:
                logger.debug("Collection '%s' already exists", collection.name)

            created = await _reconcile_indexes(database, collection)
            result.created_indexes.extend(created)

    return result


async def _reconcile_indexes(database: Any, collection: CollectionSpec) -> list[str]:
    handle = database[collection.name]
    existing = await _list_index_names(handle, collection.name)
    created: list[str] = []

    for index in collection.indexes:
        qualified = f"{collection.name}.{index.name}"
        if index.name in existing:
            logger.debug("Index %s already exists", qualified)
            continue

        logger.debug("Creating index %s", qualified)
        keys, options = index.create_index_arguments()
        await _remote("create_index", collection.name, handle.create_index, keys, **options)
        created.append(qualified)

    return created


async def _list_index_names(handle: Any, collection_name: str) -> set[str]:
    indexes = await _remote("list_indexes", collection_name, _fetch_indexes, handle)
    return {index["name"] for index in indexes if index is not None and index.get("name")}


async def _fetch_indexes(handle: Any) -> list[Any]:
    return await handle.list_indexes().to_list(length=None)


async def _remote(
    operation: str,
    collection: str | None,
    call: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> Any:
    try:
        return await call(*args, **kwargs)
    except Exception as exc:
        raise failure(logger, DocumentSchemaError, operation, collection, exc) from exc


def _duplicates(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for name in names:
        if name in seen and name not in duplicates:
            duplicates.append(name)
        seen.add(name)
    return duplicates
