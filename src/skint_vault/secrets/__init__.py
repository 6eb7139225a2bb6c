"""Secret storage: OS keyring or a machine-bound encrypted file."""

from skint_vault.secrets.encrypted_file import EncryptedFileStore
from skint_vault.secrets.errors import (
    AuthenticationError,
    BackendUnavailableError,
    DecryptionError,
    InvalidReferenceError,
    MalformedBlobError,
    SecretNotFoundError,
    SecretStoreError,
    SymlinkRejectedError,
)
from skint_vault.secrets.keychain import KeyringStore
from skint_vault.secrets.manager import SecretManager, SecretReference
from skint_vault.secrets.store import SecretStore

__all__ = [
    "AuthenticationError",
    "BackendUnavailableError",
    "DecryptionError",
    "EncryptedFileStore",
    "InvalidReferenceError",
    "KeyringStore",
    "MalformedBlobError",
    "SecretManager",
    "SecretNotFoundError",
    "SecretReference",
    "SecretStore",
    "SecretStoreError",
    "SymlinkRejectedError",
]
