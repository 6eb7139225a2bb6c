"""Shared test fixtures for skint-vault tests."""

from __future__ import annotations

import pathlib
from collections.abc import Iterator

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.backends import fail
from keyring.errors import PasswordDeleteError

from skint_vault.secrets.cipher import SecretCipher, derive_key

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

# Fixed key so most tests skip the Argon2 cost
TEST_KEY = bytes(range(32))


class MemoryKeyring(KeyringBackend):
    """Keyring backend that keeps entries in a dict."""

    # below fail.Keyring so backend discovery never picks it on its own
    priority = -10  # type: ignore[assignment]

    def __init__(self) -> None:
        super().__init__()
        self.entries: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.entries.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.entries[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise PasswordDeleteError("Password not found") from None


@pytest.fixture
def repo_root() -> pathlib.Path:
    return REPO_ROOT


@pytest.fixture
def memory_keyring() -> Iterator[MemoryKeyring]:
    """Install an in-memory keyring for the duration of a test."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def failing_keyring() -> Iterator[fail.Keyring]:
    """Install the keyring that raises on every call (no service reachable)."""
    previous = keyring.get_keyring()
    backend = fail.Keyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture
def cipher() -> SecretCipher:
    return SecretCipher(TEST_KEY)


@pytest.fixture(scope="session")
def machine_key() -> bytes:
    """The real machine-bound key, derived once per test session."""
    return derive_key()


@pytest.fixture
def data_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    return tmp_path / "skint"
