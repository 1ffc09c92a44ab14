"""Typed configuration models with Pydantic validation."""

from __future__ import annotations

import os
from typing import Literal
from urllib.parse import quote_plus, urlencode

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

# Characters MongoDB rejects in database names.
_INVALID_DATABASE_CHARS = frozenset(" .$/\\\0\"")


class ServiceSettings(BaseModel):
    """Service identification settings."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Service name")
    version: str = Field(..., min_length=1, description="Service version")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    format: Literal["json", "text"] = Field(default="json", description="Log output format")
    sampling: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Optional sampling ratio for low-severity logs",
    )


class MongoDbSettings(BaseModel):
    """MongoDB connection parameters.

    A blank or missing ``username`` means an unauthenticated connection. When a
    username is given a password is mandatory.
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field(default="localhost", min_length=1, description="MongoDB host")
    port: int = Field(default=27017, ge=1, le=65535, description="MongoDB port")
    username: str | None = Field(default=None, description="Optional username")
    password: SecretStr | None = Field(default=None, description="Password for username")
    database: str = Field(..., min_length=1, description="Database name")
    auth_source: str | None = Field(
        default=None, min_length=1, description="Database holding the user credentials"
    )
    auth_mechanism: str = Field(
        default="DEFAULT", min_length=1, description="Authentication mechanism"
    )
    server_selection_timeout_ms: int = Field(
        default=2000,
        ge=1,
        description="Server selection timeout in milliseconds",
    )
    connect_timeout_ms: int = Field(
        default=2000,
        ge=1,
        description="Socket connect timeout in milliseconds",
    )
    ping_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Timeout for liveness ping in seconds",
    )
    app_name: str | None = Field(default=None, min_length=1, description="Optional app name")

    @field_validator("database")
    @classmethod
    def validate_database_name(cls, value: str) -> str:
        invalid = sorted(set(value) & _INVALID_DATABASE_CHARS)
        if invalid:
            raise ValueError(f"database name cannot contain {', '.join(map(repr, invalid))}")
        return value

    @model_validator(mode="after")
    def validate_credentials(self) -> MongoDbSettings:
        if self.has_credentials and self.password is None:
            raise ValueError("password is required when username is set")
        return self

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.username.strip())

    @property
    def target(self) -> str:
        """Connection target safe for logs (``host:port``, never credentials)."""
        return f"{self.host}:{self.port}"

    def connection_uri(self) -> str:
        """Build the ``mongodb://`` URI, embedding credentials when configured."""
        username = (self.username or "").strip()
        if not username:
            return f"mongodb://{self.target}/"

        secret = "" if self.password is None else self.password.get_secret_value()
        user = quote_plus(username)
        secret = quote_plus(secret)
        options = {"authMechanism": self.auth_mechanism}
        if self.auth_source is not None:
            options["authSource"] = self.auth_source
        return f"mongodb://{user}:{secret}@{self.target}/?{urlencode(options)}"


class BlobSettings(BaseModel):
    """S3-compatible object storage settings.

    Credentials come either from a static key pair or from a named profile in
    the shared AWS credentials file.
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str = Field(default="s3.amazonaws.com", min_length=1, description="S3 endpoint")
    bucket: str = Field(..., min_length=1, description="Bucket name")
    prefix: str = Field(default="", description="Key prefix applied to every object")
    access_key: SecretStr | None = Field(default=None, min_length=1, description="Access key")
    secret_key: SecretStr | None = Field(default=None, min_length=1, description="Secret key")
    profile: str | None = Field(
        default=None, min_length=1, description="AWS shared credentials profile name"
    )
    secure: bool = Field(default=True, description="Use HTTPS")
    region: str | None = Field(default=None, description="Bucket region")

    @model_validator(mode="after")
    def validate_credentials(self) -> BlobSettings:
        has_keys = self.access_key is not None and self.secret_key is not None
        if not has_keys and self.profile is None:
            raise ValueError("Either access_key/secret_key or profile must be provided")
        if (self.access_key is None) != (self.secret_key is None):
            raise ValueError("access_key and secret_key must be provided together")
        return self


class SecuritySettings(BaseModel):
    """Secret material consumed by the encryption and password helpers."""

    model_config = ConfigDict(frozen=True)

    encryption_password: SecretStr = Field(
        ..., min_length=1, description="Passphrase the encryption key is derived from"
    )
    pbkdf2_salt: SecretStr = Field(..., min_length=1, description="Key derivation salt")
    pbkdf2_iterations: int = Field(
        default=200_000, ge=1_000, description="PBKDF2 iterations for key derivation"
    )
    password_hash_iterations: int = Field(
        default=600_000, ge=1_000, description="PBKDF2 iterations for password hashes"
    )


class ResourceSettings(BaseModel):
    """Optional resource sections; absent sections stay ``None``."""

    model_config = ConfigDict(frozen=True)

    mongodb: MongoDbSettings | None = None
    blob: BlobSettings | None = None
    security: SecuritySettings | None = None

    @classmethod
    def from_env(cls, prefix: str = "DOCSTORE_") -> ResourceSettings:
        """Build settings from environment variables.

        Expected variables:
        - DOCSTORE_MONGODB_HOST
        - DOCSTORE_MONGODB_PORT
        - DOCSTORE_MONGODB_USERNAME
        - DOCSTORE_MONGODB_PASSWORD
        - DOCSTORE_MONGODB_DATABASE
        - DOCSTORE_MONGODB_AUTH_SOURCE
        - DOCSTORE_MONGODB_SERVER_SELECTION_TIMEOUT_MS
        - DOCSTORE_MONGODB_CONNECT_TIMEOUT_MS
        - DOCSTORE_MONGODB_PING_TIMEOUT_SECONDS
        - DOCSTORE_MONGODB_APP_NAME
        - DOCSTORE_BLOB_ENDPOINT
        - DOCSTORE_BLOB_BUCKET
        - DOCSTORE_BLOB_PREFIX
        - DOCSTORE_BLOB_ACCESS_KEY
        - DOCSTORE_BLOB_SECRET_KEY
        - DOCSTORE_BLOB_PROFILE
        - DOCSTORE_BLOB_SECURE
        - DOCSTORE_BLOB_REGION
        - DOCSTORE_ENCRYPTION_PASSWORD
        - DOCSTORE_PBKDF2_SALT
        - DOCSTORE_PBKDF2_ITERATIONS

        A section is built only when its required variables are present.
        """

        def env(name: str) -> str | None:
            value = os.getenv(f"{prefix}{name}")
            if value is None or value.strip() == "":
                return None
            return value

        def env_bool(name: str, default: bool = False) -> bool:
            value = env(name)
            if value is None:
                return default
            return value.strip().lower() in {"1", "true", "yes", "on"}

        def env_number(name: str, default: float, cast: type) -> float:
            value = env(name)
            if value is None:
                return default
            try:
                return cast(value)
            except ValueError as exc:
                raise ValueError(
                    f"Environment variable {prefix}{name}={value!r} is not a valid "
                    f"{cast.__name__}"
                ) from exc

        mongodb = None
        mongodb_database = env("MONGODB_DATABASE")
        if mongodb_database:
            password = env("MONGODB_PASSWORD")
            mongodb = MongoDbSettings(
                host=env("MONGODB_HOST") or "localhost",
                port=int(env_number("MONGODB_PORT", 27017, int)),
                username=env("MONGODB_USERNAME"),
                password=SecretStr(password) if password is not None else None,
                database=mongodb_database,
                auth_source=env("MONGODB_AUTH_SOURCE"),
                server_selection_timeout_ms=int(
                    env_number("MONGODB_SERVER_SELECTION_TIMEOUT_MS", 2000, int)
                ),
                connect_timeout_ms=int(env_number("MONGODB_CONNECT_TIMEOUT_MS", 2000, int)),
                ping_timeout_seconds=env_number("MONGODB_PING_TIMEOUT_SECONDS", 2.0, float),
                app_name=env("MONGODB_APP_NAME"),
            )

        blob = None
        blob_bucket = env("BLOB_BUCKET")
        if blob_bucket:
            access_key = env("BLOB_ACCESS_KEY")
            secret_key = env("BLOB_SECRET_KEY")
            blob = BlobSettings(
                endpoint=env("BLOB_ENDPOINT") or "s3.amazonaws.com",
                bucket=blob_bucket,
                prefix=env("BLOB_PREFIX") or "",
                access_key=SecretStr(access_key) if access_key is not None else None,
                secret_key=SecretStr(secret_key) if secret_key is not None else None,
                profile=env("BLOB_PROFILE"),
                secure=env_bool("BLOB_SECURE", True),
                region=env("BLOB_REGION"),
            )

        security = None
        encryption_password = env("ENCRYPTION_PASSWORD")
        pbkdf2_salt = env("PBKDF2_SALT")
        if encryption_password and pbkdf2_salt:
            security = SecuritySettings(
                encryption_password=SecretStr(encryption_password),
                pbkdf2_salt=SecretStr(pbkdf2_salt),
                pbkdf2_iterations=int(env_number("PBKDF2_ITERATIONS", 200_000, int)),
            )

        return cls(mongodb=mongodb, blob=blob, security=security)


class AppSettings(BaseModel):
    """Root application settings."""

    model_config = ConfigDict(frozen=True)

    service: ServiceSettings
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    resources: ResourceSettings = Field(default_factory=ResourceSettings)
