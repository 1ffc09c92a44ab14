"""Tests for schema descriptors and additive reconciliation."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from docstore_commons.config import (
    ConfigFileNotFoundError,
    ConfigValidationError,
    PlaceholderResolutionError,
)
from docstore_commons.db import (
    CollectionSpec,
    DocumentSchemaError,
    IndexSpec,
    SchemaDescriptor,
    load_schema,
    reconcile,
)
from docstore_commons.db.document import SCHEMA_ERROR_TAG
from docstore_commons.observability.metrics import NoopMetricsRecorder

SCHEMA = SchemaDescriptor.from_collections(
    [
        {
            "name": "users",
            "indexes": [
                {"name": "by_email", "key": {"email": 1}, "properties": {"unique": True}},
            ],
        },
        {
            "name": "orders",
            "indexes": [
                {"name": "by_user", "key": {"userId": 1, "createdAt": -1}},
                {"name": "by_status", "key": {"status": 1}},
            ],
        },
    ]
)


class TestDescriptorValidation:
    def test_index_arguments_pin_name(self) -> None:
        index = IndexSpec(
            name="by_email",
            key={"email": 1, "tenant": 1},
            properties={"unique": True, "name": "by_email"},
        )

        keys, options = index.create_index_arguments()

        assert keys == [("email", 1), ("tenant", 1)]
        assert options == {"unique": True, "name": "by_email"}

    def test_conflicting_name_property_rejected(self) -> None:
        with pytest.raises(ValidationError, match="does not match"):
            IndexSpec(name="by_email", key={"email": 1}, properties={"name": "other"})

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            IndexSpec(name="empty", key={})

    def test_duplicate_index_names_rejected(self) -> None:
        with pytest.raises(ValidationError, match="duplicate index names"):
            CollectionSpec(
                name="users",
                indexes=[
                    IndexSpec(name="by_email", key={"email": 1}),
                    IndexSpec(name="by_email", key={"email": -1}),
                ],
            )

    def test_duplicate_collection_names_rejected(self) -> None:
        with pytest.raises(ValidationError, match="duplicate collection names: users"):
            SchemaDescriptor.from_collections([{"name": "users"}, {"name": "users"}])


class TestLoadSchema:
    def test_loads_list_form(self, tmp_path: Path) -> None:
        path = tmp_path / "schema.json"
        path.write_text(json.dumps([{"name": "users", "indexes": []}]), encoding="utf-8")

        schema = load_schema(path)

        assert [collection.name for collection in schema.collections] == ["users"]

    def test_loads_mapping_form(self, tmp_path: Path) -> None:
        path = tmp_path / "schema.json"
        path.write_text(
            json.dumps(
                {
                    "collections": [
                        {"name": "users", "indexes": [{"name": "by_email", "key": {"email": 1}}]}
                    ]
                }
            ),
            encoding="utf-8",
        )

        schema = load_schema(str(path))

        assert schema.collections[0].indexes[0].name == "by_email"

    def test_invalid_descriptor_raises_config_validation_error(self, tmp_path: Path) -> None:
        path = tmp_path / "schema.json"
        path.write_text(json.dumps([{"indexes": []}]), encoding="utf-8")

        with pytest.raises(ConfigValidationError) as exc_info:
            load_schema(path)

        assert exc_info.value.errors[0]["loc"] == "collections -> 0 -> name"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigFileNotFoundError):
            load_schema(tmp_path / "missing.json")

    def test_resolves_placeholders(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TENANT", "acme")
        path = tmp_path / "schema.json"
        path.write_text(json.dumps([{"name": "${TENANT}_users"}]), encoding="utf-8")

        assert load_schema(path).collections[0].name == "acme_users"

    def test_unset_placeholder_raises(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("TENANT", raising=False)
        path = tmp_path / "schema.json"
        path.write_text(json.dumps([{"name": "${TENANT}_users"}]), encoding="utf-8")

        with pytest.raises(PlaceholderResolutionError):
            load_schema(path)

    def test_scalar_payload_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "schema.json"
        path.write_text(json.dumps("users"), encoding="utf-8")

        with pytest.raises(ConfigValidationError) as exc_info:
            load_schema(path)

        assert exc_info.value.errors[0]["loc"] == "<root>"


class TestReconcile:
    async def test_creates_missing_collections_and_indexes(self, fake_database) -> None:
        result = await reconcile(fake_database, SCHEMA)

        assert result.created_collections == ["users", "orders"]
        assert result.created_indexes == ["users.by_email", "orders.by_user", "orders.by_status"]
        assert result.changed is True
        assert fake_database["users"].indexes["by_email"] == {
            "key": [("email", 1)],
            "unique": True,
        }
        assert fake_database["orders"].indexes["by_user"]["key"] == [
            ("userId", 1),
            ("createdAt", -1),
        ]

    async def test_steps_run_sequentially_in_descriptor_order(self, fake_database) -> None:
        await reconcile(fake_database, SCHEMA)

        assert fake_database.calls == [
            "list_collection_names",
            "create_collection:users",
            "list_indexes:users",
            "create_index:users.by_email",
            "create_collection:orders",
            "list_indexes:orders",
            "create_index:orders.by_user",
            "create_index:orders.by_status",
        ]

    async def test_second_run_creates_nothing(self, fake_database) -> None:
        await reconcile(fake_database, SCHEMA)
        fake_database.calls.clear()

        result = await reconcile(fake_database, SCHEMA)

        assert result.changed is False
        assert result.created_collections == []
        assert result.created_indexes == []
        assert not [call for call in fake_database.calls if call.startswith("create_")]

    async def test_undeclared_objects_are_left_alone(self, fake_database) -> None:
        legacy = fake_database.seed_collection("legacy")
        users = fake_database.seed_collection("users")
        users.indexes["by_name"] = {"key": [("name", 1)]}

        result = await reconcile(fake_database, SCHEMA)

        assert result.created_collections == ["orders"]
        assert "legacy" in fake_database.existing
        assert "_id_" in legacy.indexes
        assert "by_name" in users.indexes
        assert "by_email" in users.indexes

    async def test_existing_index_with_different_definition_is_kept(
        self, fake_database
    ) -> None:
        users = fake_database.seed_collection("users")
        users.indexes["by_email"] = {"key": [("email", -1)]}

        result = await reconcile(fake_database, SCHEMA)

        assert "users.by_email" not in result.created_indexes
        assert users.indexes["by_email"] == {"key": [("email", -1)]}

    async def test_empty_descriptor_only_lists(self, fake_database) -> None:
        result = await reconcile(fake_database, SchemaDescriptor())

        assert result.changed is False
        assert fake_database.calls == ["list_collection_names"]

    async def test_failure_mid_run_keeps_earlier_work(
        self, fake_database, caplog: pytest.LogCaptureFixture
    ) -> None:
        fake_database["orders"].create_index_error = RuntimeError("index build aborted")

        with caplog.at_level(logging.ERROR), pytest.raises(DocumentSchemaError) as exc_info:
            await reconcile(fake_database, SCHEMA)

        assert exc_info.value.operation == "create_index"
        assert exc_info.value.collection == "orders"
        assert "index build aborted" in str(exc_info.value)
        assert "by_email" in fake_database["users"].indexes
        assert "create_index:orders.by_status" not in fake_database.calls
        assert any(getattr(r, "error_tag", None) == SCHEMA_ERROR_TAG for r in caplog.records)

    async def test_listing_failure_raises_schema_error(self, fake_database) -> None:
        fake_database.list_collections_error = RuntimeError("not authorized")

        with pytest.raises(DocumentSchemaError, match="list_collections"):
            await reconcile(fake_database, SCHEMA)

    async def test_collection_creation_failure(self, fake_database) -> None:
        fake_database.create_collection_errors["orders"] = RuntimeError("quota exceeded")

        with pytest.raises(DocumentSchemaError) as exc_info:
            await reconcile(fake_database, SCHEMA)

        assert exc_info.value.operation == "create_collection"
        assert exc_info.value.collection == "orders"

    async def test_index_listing_failure(self, fake_database) -> None:
        fake_database["users"].list_indexes_error = RuntimeError("cursor not found")

        with pytest.raises(DocumentSchemaError) as exc_info:
            await reconcile(fake_database, SCHEMA)

        assert exc_info.value.operation == "list_indexes"

    async def test_failure_is_recorded_once_as_schema_error(self, fake_database) -> None:
        recorder = MagicMock(spec=NoopMetricsRecorder)
        fake_database.list_collections_error = RuntimeError("not authorized")

        with pytest.raises(DocumentSchemaError):
            await reconcile(fake_database, SCHEMA, metrics=recorder)

        recorder.observe_error.assert_called_once_with(
            resource="mongodb",
            operation="reconcile",
            collection=None,
            error_type="DocumentSchemaError",
        )
