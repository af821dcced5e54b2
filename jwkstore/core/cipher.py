"""Symmetric AEAD cipher used to seal key payloads before they are stored.

The manager only depends on the ``Cipher`` protocol; ``AEADCipher`` is the
bundled AES-256-GCM implementation.

Ciphertext layout (before base64url encoding)::

    nonce (12 bytes) || AES-GCM ciphertext || tag (16 bytes)
"""

import base64
import hashlib
import os
from typing import Optional, Protocol

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from jwkstore.core.config import settings
from jwkstore.core.exceptions import ConfigurationError, CryptoError

NONCE_SIZE = 12
KEY_SIZE = 32
MIN_SECRET_LENGTH = 16


class Cipher(Protocol):
    """Encrypt/decrypt capability consumed by the key store."""

    def encrypt(self, plaintext: bytes) -> str:
        ...

    def decrypt(self, ciphertext: str) -> bytes:
        ...


class AEADCipher:
    """AES-256-GCM with a random nonce per message."""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ConfigurationError(
                f"AEAD key must be exactly {KEY_SIZE} bytes, got {len(key)}",
                config_key="SYSTEM_SECRET",
            )
        self._aead = AESGCM(key)

    @classmethod
    def from_secret(cls, secret: str) -> "AEADCipher":
        """Derive the 32-byte key from a system secret."""
        if len(secret) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"System secret must be at least {MIN_SECRET_LENGTH} characters",
                config_key="SYSTEM_SECRET",
            )
        return cls(hashlib.sha256(secret.encode("utf-8")).digest())

    def encrypt(self, plaintext: bytes) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext, None)
        return base64.urlsafe_b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, ciphertext: str) -> bytes:
        try:
            raw = base64.urlsafe_b64decode(ciphertext.encode("ascii"))
        except ValueError as exc:
            raise CryptoError("Ciphertext is not valid base64") from exc
        if len(raw) <= NONCE_SIZE:
            raise CryptoError("Ciphertext is too short")
        # InvalidTag propagates; the manager maps it to CryptoError
        return self._aead.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], None)


def build_cipher(secret: Optional[str] = None) -> AEADCipher:
    """Build the store cipher from ``secret`` or the configured SYSTEM_SECRET."""
    secret = settings.system_secret if secret is None else secret
    if not secret:
        raise ConfigurationError("SYSTEM_SECRET is not set", config_key="SYSTEM_SECRET")
    return AEADCipher.from_secret(secret)
