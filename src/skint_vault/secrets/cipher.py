"""Key derivation and AES-256-GCM encryption for the file-backed store.

The key is derived from a fixed application secret (the Argon2id
password) and the machine salt, every time a cipher is built. Nothing
key-related is ever written to disk, so a blob is only readable on the
machine and account that wrote it.

Blob layout: ``nonce (12 bytes) || ciphertext || tag (16 bytes)``.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os

from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from skint_vault.secrets.errors import AuthenticationError, MalformedBlobError
from skint_vault.secrets.machine import machine_salt

logger = logging.getLogger(__name__)

# Changing any of these makes every existing blob undecryptable.
APP_SECRET = b"skint1"
KDF_TIME_COST = 3
KDF_MEMORY_COST = 64 * 1024  # KiB
KDF_PARALLELISM = 4
KEY_SIZE = 32

NONCE_SIZE = 12
TAG_SIZE = 16


def derive_key(salt: bytes | None = None) -> bytes:
    """Derive the 32-byte AES key with Argon2id.

    Parameters
    ----------
    salt:
        Salt to use instead of :func:`machine_salt`. Only tests pass this.
    """
    if salt is None:
        salt = machine_salt()
    return hash_secret_raw(
        secret=APP_SECRET,
        salt=salt,
        time_cost=KDF_TIME_COST,
        memory_cost=KDF_MEMORY_COST,
        parallelism=KDF_PARALLELISM,
        hash_len=KEY_SIZE,
        type=Type.ID,
    )


class SecretCipher:
    """AEAD wrapper around a derived key.

    Parameters
    ----------
    key:
        Raw 32-byte AES-256 key.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError(f"Expected a {KEY_SIZE}-byte key, got {len(key)} bytes")
        self._aead = AESGCM(key)

    @classmethod
    def for_machine(cls) -> SecretCipher:
        """Build a cipher keyed to this machine and user."""
        logger.debug("Deriving machine-bound encryption key")
        return cls(derive_key())

    def encrypt(self, plaintext: bytes) -> bytes:
        """Seal *plaintext* under a fresh random nonce and prepend the nonce."""
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, plaintext, None)

    def decrypt(self, blob: bytes) -> bytes:
        """Open a blob produced by :meth:`encrypt`.

        Raises
        ------
        MalformedBlobError
            The blob is shorter than a nonce plus an authentication tag.
        AuthenticationError
            The tag did not verify: tampered data or a different key.
        """
        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise MalformedBlobError(
                f"Encrypted data is too short ({len(blob)} bytes)"
            )
        nonce, sealed = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, sealed, None)
        except InvalidTag as exc:
            raise AuthenticationError(
                "Could not decrypt secrets; the data was modified or this "
                "machine's identity has changed"
            ) from exc

    def encrypt_string(self, plaintext: str) -> str:
        """Encrypt a string and return the blob as standard base64."""
        blob = self.encrypt(plaintext.encode("utf-8"))
        return base64.b64encode(blob).decode("ascii")

    def decrypt_string(self, encoded: str) -> str:
        """Reverse :meth:`encrypt_string`."""
        try:
            blob = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedBlobError("Encrypted string is not valid base64") from exc
        plaintext = self.decrypt(blob)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedBlobError("Decrypted data is not valid UTF-8") from exc
