"""Tests for placeholder resolution."""

from __future__ import annotations

import pytest

from docstore_commons.config import PlaceholderResolutionError
from docstore_commons.config.placeholders import resolve_placeholders


class TestResolvePlaceholders:
    def test_resolves_nested_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_HOST", "db.internal")
        monkeypatch.setenv("DB_PORT", "27018")

        result = resolve_placeholders(
            {"mongodb": {"host": "${DB_HOST}", "uri": "mongodb://${DB_HOST}:${DB_PORT}/"}}
        )

        assert result == {
            "mongodb": {"host": "db.internal", "uri": "mongodb://db.internal:27018/"}
        }

    def test_walks_lists(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TENANT", "acme")

        result = resolve_placeholders(
            {"collections": [{"name": "${TENANT}_users"}, "${TENANT}", 3]}
        )

        assert result == {"collections": [{"name": "acme_users"}, "acme", 3]}

    def test_non_string_values_untouched(self) -> None:
        assert resolve_placeholders({"port": 27017, "secure": True, "x": None}) == {
            "port": 27017,
            "secure": True,
            "x": None,
        }

    def test_strict_reports_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NOPE", raising=False)

        with pytest.raises(PlaceholderResolutionError) as exc_info:
            resolve_placeholders({"collections": [{"name": "${NOPE}"}]})

        assert exc_info.value.placeholder == "${NOPE}"
        assert exc_info.value.key_path == "collections[0].name"

    def test_lenient_keeps_placeholder(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NOPE", raising=False)

        assert resolve_placeholders({"a": "${NOPE}"}, strict=False) == {"a": "${NOPE}"}
