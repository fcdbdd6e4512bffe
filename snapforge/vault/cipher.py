"""
AES-256-GCM cipher for secrets bundles.

Sealed values are ``base64(iv || tag || ciphertext)`` with a 16-byte IV and
a 16-byte authentication tag, so bundles written by earlier deployments of
the platform stay readable.
"""

import base64
import binascii
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import ConfigError, SnapforgeError

KEY_LENGTH = 32  # 256 bits
IV_LENGTH = 16
TAG_LENGTH = 16


class CipherError(SnapforgeError):
    """A sealed value could not be decrypted."""


def generate_key() -> str:
    """Return a fresh 256-bit key as 64 hex characters."""
    return secrets.token_hex(KEY_LENGTH)


class SecretsCipher:
    """Encrypts and decrypts strings with a single AES-256-GCM key."""

    def __init__(self, key_hex: str):
        try:
            key = bytes.fromhex(key_hex or "")
        except ValueError:
            raise ConfigError("encryption_key must be hex encoded") from None
        if len(key) != KEY_LENGTH:
            raise ConfigError(
                f"encryption_key must be {KEY_LENGTH * 2} hex characters, got {len(key_hex or '')}"
            )
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        iv = secrets.token_bytes(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return base64.b64encode(iv + tag + ciphertext).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            raw = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError):
            raise CipherError("Sealed value is not valid base64") from None
        if len(raw) < IV_LENGTH + TAG_LENGTH:
            raise CipherError("Sealed value is too short to be valid")

        iv = raw[:IV_LENGTH]
        tag = raw[IV_LENGTH:IV_LENGTH + TAG_LENGTH]
        ciphertext = raw[IV_LENGTH + TAG_LENGTH:]
        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag:
            raise CipherError("Sealed value failed authentication") from None
        return plaintext.decode("utf-8")
