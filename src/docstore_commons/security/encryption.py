"""Symmetric encryption of opaque payloads with a passphrase-derived key.

The key is derived once per :class:`Encryptor` with PBKDF2-HMAC-SHA256 and
payloads are sealed with AES-GCM under a fresh 96-bit nonce.
"""

from __future__ import annotations

import base64
import binascii
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from docstore_commons.config.models import SecuritySettings
from docstore_commons.errors import DocstoreCommonsError

NONCE_BYTES = 12
KEY_BYTES = 32
DEFAULT_ITERATIONS = 200_000


class EncryptionError(DocstoreCommonsError):
    """Base exception for encryption helpers."""


class DecryptionError(EncryptionError):
    """Raised when an envelope is malformed, tampered with, or sealed with another key."""


@dataclass(frozen=True, slots=True)
class EncryptedEnvelope:
    """Nonce plus AES-GCM ciphertext (authentication tag included)."""

    nonce: bytes
    ciphertext: bytes

    def to_dict(self) -> dict[str, str]:
        """JSON-friendly representation with base64 fields."""
        return {
            "nonce": base64.b64encode(self.nonce).decode("ascii"),
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EncryptedEnvelope:
        try:
            nonce = base64.b64decode(str(data["nonce"]), validate=True)
            ciphertext = base64.b64decode(str(data["ciphertext"]), validate=True)
        except (KeyError, binascii.Error, ValueError) as exc:
            raise DecryptionError(f"malformed envelope: {exc}") from exc
        return cls(nonce=nonce, ciphertext=ciphertext)


def derive_key(
    password: str | bytes,
    salt: str | bytes,
    *,
    iterations: int = DEFAULT_ITERATIONS,
) -> bytes:
    """Derive a 256-bit key from ``password`` and ``salt``."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=_to_bytes(salt),
        iterations=iterations,
    )
    return kdf.derive(_to_bytes(password))


class Encryptor:
    """Encrypts and decrypts byte payloads with one derived key."""

    def __init__(
        self,
        password: str | bytes,
        salt: str | bytes,
        *,
        iterations: int = DEFAULT_ITERATIONS,
    ) -> None:
        if not password:
            raise ValueError("password must be non-empty")
        if not salt:
            raise ValueError("salt must be non-empty")
        self._aesgcm = AESGCM(derive_key(password, salt, iterations=iterations))

    @classmethod
    def from_settings(cls, settings: SecuritySettings) -> Encryptor:
        return cls(
            settings.encryption_password.get_secret_value(),
            settings.pbkdf2_salt.get_secret_value(),
            iterations=settings.pbkdf2_iterations,
        )

    def encrypt(self, data: bytes | bytearray | memoryview) -> EncryptedEnvelope:
        nonce = secrets.token_bytes(NONCE_BYTES)
        ciphertext = self._aesgcm.encrypt(nonce, bytes(data), None)
        return EncryptedEnvelope(nonce=nonce, ciphertext=ciphertext)

    def decrypt(self, envelope: EncryptedEnvelope | Mapping[str, Any]) -> bytes:
        if not isinstance(envelope, EncryptedEnvelope):
            envelope = EncryptedEnvelope.from_dict(envelope)
        if len(envelope.nonce) != NONCE_BYTES:
            raise DecryptionError(f"nonce must be {NONCE_BYTES} bytes")
        try:
            return self._aesgcm.decrypt(envelope.nonce, envelope.ciphertext, None)
        except InvalidTag as exc:
            raise DecryptionError("ciphertext failed authentication") from exc


def _to_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value
