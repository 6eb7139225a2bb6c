"""Tests for key derivation and the AES-GCM cipher."""

from __future__ import annotations

import base64

import pytest

from skint_vault.secrets.cipher import (
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    SecretCipher,
    derive_key,
)
from skint_vault.secrets.errors import (
    AuthenticationError,
    DecryptionError,
    MalformedBlobError,
)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

class TestDeriveKey:
    def test_key_length(self, machine_key: bytes) -> None:
        assert len(machine_key) == KEY_SIZE

    def test_same_salt_same_key(self) -> None:
        salt = b"s" * 32
        assert derive_key(salt) == derive_key(salt)

    def test_different_salt_different_key(self) -> None:
        assert derive_key(b"a" * 32) != derive_key(b"b" * 32)

    def test_machine_key_is_stable(self, machine_key: bytes) -> None:
        assert derive_key() == machine_key


# ---------------------------------------------------------------------------
# SecretCipher
# ---------------------------------------------------------------------------

class TestSecretCipher:
    def test_rejects_short_key(self) -> None:
        with pytest.raises(ValueError):
            SecretCipher(b"short")

    @pytest.mark.parametrize(
        "plaintext",
        [b"", b"x", b"sk-test-123", bytes(range(256)) * 4],
    )
    def test_roundtrip(self, cipher: SecretCipher, plaintext: bytes) -> None:
        assert cipher.decrypt(cipher.encrypt(plaintext)) == plaintext

    def test_layout_is_nonce_ciphertext_tag(self, cipher: SecretCipher) -> None:
        blob = cipher.encrypt(b"hello")
        assert len(blob) == NONCE_SIZE + len(b"hello") + TAG_SIZE

    def test_fresh_nonce_per_call(self, cipher: SecretCipher) -> None:
        first = cipher.encrypt(b"same")
        second = cipher.encrypt(b"same")
        assert first[:NONCE_SIZE] != second[:NONCE_SIZE]
        assert first != second

    def test_every_bit_flip_is_detected(self, cipher: SecretCipher) -> None:
        blob = cipher.encrypt(b"sk-test-123")
        for index in range(len(blob)):
            for bit in range(8):
                tampered = bytearray(blob)
                tampered[index] ^= 1 << bit
                with pytest.raises(AuthenticationError):
                    cipher.decrypt(bytes(tampered))

    def test_wrong_key_is_authentication_failure(self, cipher: SecretCipher) -> None:
        blob = cipher.encrypt(b"secret")
        other = SecretCipher(b"\xff" * KEY_SIZE)
        with pytest.raises(AuthenticationError):
            other.decrypt(blob)

    @pytest.mark.parametrize("size", [0, 1, NONCE_SIZE - 1, NONCE_SIZE, NONCE_SIZE + TAG_SIZE - 1])
    def test_short_blob_is_malformed(self, cipher: SecretCipher, size: int) -> None:
        with pytest.raises(MalformedBlobError):
            cipher.decrypt(b"\x00" * size)

    def test_malformed_and_auth_share_parent(self) -> None:
        assert issubclass(MalformedBlobError, DecryptionError)
        assert issubclass(AuthenticationError, DecryptionError)


class TestStringHelpers:
    def test_string_roundtrip(self, cipher: SecretCipher) -> None:
        encoded = cipher.encrypt_string("sk-other=456\nline two")
        assert cipher.decrypt_string(encoded) == "sk-other=456\nline two"

    def test_string_output_is_base64(self, cipher: SecretCipher) -> None:
        encoded = cipher.encrypt_string("abc")
        raw = base64.b64decode(encoded, validate=True)
        assert cipher.decrypt(raw) == b"abc"

    def test_invalid_base64_is_malformed(self, cipher: SecretCipher) -> None:
        with pytest.raises(MalformedBlobError):
            cipher.decrypt_string("not base64 at all!")
