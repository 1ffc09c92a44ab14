"""Configuration loading and validation module."""

from docstore_commons.config.errors import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    PlaceholderResolutionError,
)
from docstore_commons.config.loader import (
    current_env,
    deep_merge,
    load_config,
    load_json_file,
    load_layers,
    validate_model,
)
from docstore_commons.config.models import (
    AppSettings,
    BlobSettings,
    LoggingSettings,
    MongoDbSettings,
    ResourceSettings,
    SecuritySettings,
    ServiceSettings,
)

__all__ = [
    "AppSettings",
    "BlobSettings",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigValidationError",
    "LoggingSettings",
    "MongoDbSettings",
    "PlaceholderResolutionError",
    "ResourceSettings",
    "SecuritySettings",
    "ServiceSettings",
    "current_env",
    "deep_merge",
    "load_config",
    "load_json_file",
    "load_layers",
    "validate_model",
]
