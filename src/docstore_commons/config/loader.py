"""Layered JSON configuration.

Settings are read from ``appsettings.json``, overlaid with
``appsettings.<env>.json`` when that file exists, then ``${VAR}`` placeholders
are filled from the environment. The environment name comes from
``DOCSTORE_ENV`` unless given explicitly.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from docstore_commons.config.errors import (
    ConfigFileNotFoundError,
    ConfigValidationError,
    format_validation_errors,
)
from docstore_commons.config.models import AppSettings
from docstore_commons.config.placeholders import resolve_placeholders

DEFAULT_CONFIG_DIR = Path("config")
DEFAULT_BASE_FILE = "appsettings.json"
ENV_VAR_NAME = "DOCSTORE_ENV"
DEFAULT_ENV = "development"

ModelT = TypeVar("ModelT", bound=BaseModel)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new mapping where ``override`` wins and nested mappings merge key by key.

    Lists are replaced wholesale, so an overlay that declares ``collections``
    replaces the base list rather than appending to it.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def current_env(env: str | None = None) -> str:
    """Explicit ``env``, else ``$DOCSTORE_ENV``, else ``development``."""
    if env is not None:
        return env
    return os.environ.get(ENV_VAR_NAME, DEFAULT_ENV)


def load_json_file(path: Path) -> Any:
    """Parse ``path`` as UTF-8 JSON.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
    """
    if not path.is_file():
        raise ConfigFileNotFoundError(str(path))
    return json.loads(path.read_text(encoding="utf-8"))


def load_layers(
    config_dir: Path | str,
    *,
    env: str | None = None,
    strict_placeholders: bool = True,
) -> dict[str, Any]:
    """Merge the base file with its environment overlay and resolve placeholders."""
    directory = Path(config_dir)
    merged = load_json_file(directory / DEFAULT_BASE_FILE)
    overlay = directory / f"appsettings.{current_env(env)}.json"
    if overlay.is_file():
        merged = deep_merge(merged, load_json_file(overlay))
    return resolve_placeholders(merged, strict=strict_placeholders)


def validate_model(model: type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` into ``model``, reporting failures as ``ConfigValidationError``."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ConfigValidationError(format_validation_errors(exc.errors())) from exc


def load_config(
    *,
    config_dir: Path | str | None = None,
    env: str | None = None,
    strict_placeholders: bool = True,
) -> AppSettings:
    """Load and validate the application settings.

    Raises:
        ConfigFileNotFoundError: If ``appsettings.json`` is missing.
        PlaceholderResolutionError: If a placeholder names an unset variable
            and ``strict_placeholders`` is true.
        ConfigValidationError: If the merged settings do not validate.
    """
    data = load_layers(
        DEFAULT_CONFIG_DIR if config_dir is None else config_dir,
        env=env,
        strict_placeholders=strict_placeholders,
    )
    return validate_model(AppSettings, data)
