"""Password hashing with self-describing PBKDF2 records."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets

ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 600_000
SALT_BYTES = 16


def hash_password(plaintext: str, *, iterations: int = DEFAULT_ITERATIONS) -> str:
    """Hash ``plaintext`` into ``pbkdf2_sha256$<iterations>$<salt>$<hash>``."""
    if iterations < 1:
        raise ValueError("iterations must be positive")
    salt = secrets.token_bytes(SALT_BYTES)
    digest = _digest(plaintext, salt, iterations)
    return "$".join((ALGORITHM, str(iterations), _b64(salt), _b64(digest)))


def verify_password(plaintext: str, record: str) -> bool:
    """Check ``plaintext`` against a record from :func:`hash_password`.

    Malformed records verify as ``False``.
    """
    parts = record.split("$")
    if len(parts) != 4 or parts[0] != ALGORITHM:
        return False
    try:
        iterations = int(parts[1])
        salt = base64.b64decode(parts[2], validate=True)
        expected = base64.b64decode(parts[3], validate=True)
    except (ValueError, binascii.Error):
        return False
    if iterations < 1 or not salt or not expected:
        return False
    return hmac.compare_digest(_digest(plaintext, salt, iterations), expected)


def needs_rehash(record: str, *, iterations: int = DEFAULT_ITERATIONS) -> bool:
    """Whether ``record`` was produced with fewer iterations than ``iterations``."""
    parts = record.split("$")
    if len(parts) != 4 or parts[0] != ALGORITHM:
        return True
    try:
        return int(parts[1]) < iterations
    except ValueError:
        return True


def _digest(plaintext: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", plaintext.encode("utf-8"), salt, iterations)


def _b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")
