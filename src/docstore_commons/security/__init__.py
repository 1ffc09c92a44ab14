"""Encryption and password hashing helpers."""

from docstore_commons.security.encryption import (
    DecryptionError,
    EncryptedEnvelope,
    EncryptionError,
    Encryptor,
    derive_key,
)
from docstore_commons.security.passwords import hash_password, needs_rehash, verify_password

__all__ = [
    "DecryptionError",
    "EncryptedEnvelope",
    "EncryptionError",
    "Encryptor",
    "derive_key",
    "hash_password",
    "needs_rehash",
    "verify_password",
]
