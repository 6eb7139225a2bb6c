"""Storage-agnostic front end over the keyring and file backends.

The backend is chosen once, when the manager is built, by probing the OS
keyring. Callers persist *where* a secret lives as a reference string,
``keyring:<name>`` or ``file:<name>``, and resolve it later through
:meth:`SecretManager.retrieve_by_reference`, which always goes to the
backend named in the reference, whichever one is active.
"""

from __future__ import annotations

import logging
import pathlib
from collections.abc import Callable
from dataclasses import dataclass

from skint_vault.config import Settings
from skint_vault.secrets.encrypted_file import EncryptedFileStore
from skint_vault.secrets.errors import (
    BackendUnavailableError,
    InvalidReferenceError,
    for_secret,
)
from skint_vault.secrets.keychain import KeyringStore
from skint_vault.secrets.legacy import (
    LEGACY_SECRETS_FILENAME,
    cleanup_legacy_files,
    legacy_provider_keys,
    load_legacy_secrets,
)
from skint_vault.secrets.store import SecretStore

logger = logging.getLogger(__name__)

STORAGE_KEYRING = "keyring"
STORAGE_FILE = "file"
BACKEND_MODES = ("auto", STORAGE_KEYRING, STORAGE_FILE)


@dataclass(frozen=True)
class SecretReference:
    """Parsed ``<backend>:<name>`` handle."""

    backend: str
    name: str

    @classmethod
    def parse(cls, reference: str) -> SecretReference:
        """Split a reference on its colon.

        Raises ``InvalidReferenceError`` for a missing colon, an empty name,
        a name containing another colon, or an unknown backend tag.
        """
        backend, sep, name = reference.partition(":")
        if not sep or not name or ":" in name:
            raise InvalidReferenceError(f"Invalid secret reference format: {reference!r}")
        if backend not in (STORAGE_KEYRING, STORAGE_FILE):
            raise InvalidReferenceError(f"Unknown secret reference type: {backend!r}")
        return cls(backend=backend, name=name)

    def __str__(self) -> str:
        return f"{self.backend}:{self.name}"


class SecretManager:
    """Routes secret operations to the keyring or the encrypted file.

    Parameters
    ----------
    data_dir:
        Directory for the encrypted file store.
    backend:
        ``"auto"`` probes the keyring, ``"keyring"`` requires it and
        ``"file"`` skips it.
    keyring_store:
        Keyring adapter to use. Defaults to :class:`KeyringStore`.
    file_store_factory:
        Builds the file store on first use. Defaults to
        :class:`EncryptedFileStore`, whose construction runs the key
        derivation, so it is deferred until the file store is needed.
    """

    def __init__(
        self,
        data_dir: pathlib.Path,
        backend: str = "auto",
        keyring_store: KeyringStore | None = None,
        file_store_factory: Callable[[pathlib.Path], EncryptedFileStore] | None = None,
    ) -> None:
        if backend not in BACKEND_MODES:
            raise ValueError(f"Unknown backend mode {backend!r}; expected one of {BACKEND_MODES}")
        self._data_dir = pathlib.Path(data_dir)
        self._data_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        self._keyring = keyring_store if keyring_store is not None else KeyringStore()
        self._file_store_factory = file_store_factory or EncryptedFileStore
        self._file_store: EncryptedFileStore | None = None

        if backend == STORAGE_FILE:
            self._use_keyring = False
        else:
            self._use_keyring = self._keyring.available()
            if backend == STORAGE_KEYRING and not self._use_keyring:
                raise BackendUnavailableError("OS keyring was requested but is not available")

        logger.info(
            "Secret storage: %s",
            "OS keyring" if self._use_keyring else f"encrypted file in {self._data_dir}",
        )
        if not self._use_keyring:
            self._file_store = self._file_store_factory(self._data_dir)

    @classmethod
    def from_settings(cls, settings: Settings) -> SecretManager:
        """Build a manager from loaded settings."""
        vault = settings.vault
        return cls(
            data_dir=settings.resolve_data_dir(),
            backend=vault.backend,
            keyring_store=KeyringStore(service_name=vault.keyring_service),
        )

    # ------------------------------------------------------------------
    # Backend selection
    # ------------------------------------------------------------------

    def is_keyring_available(self) -> bool:
        """Whether this manager routes to the OS keyring. For display only."""
        return self._use_keyring

    @property
    def data_dir(self) -> pathlib.Path:
        return self._data_dir

    def _get_file_store(self) -> EncryptedFileStore:
        if self._file_store is None:
            self._file_store = self._file_store_factory(self._data_dir)
        return self._file_store

    def _active(self) -> SecretStore:
        return self._keyring if self._use_keyring else self._get_file_store()

    def _for_backend(self, backend: str) -> SecretStore:
        return self._keyring if backend == STORAGE_KEYRING else self._get_file_store()

    # ------------------------------------------------------------------
    # Name-based API (active backend)
    # ------------------------------------------------------------------

    def store(self, name: str, secret: str) -> str:
        """Store a secret in the active backend and return its reference."""
        return self.store_with_reference(name, secret)

    def store_with_reference(self, name: str, secret: str) -> str:
        store = self._active()
        with for_secret(name):
            store.store(name, secret)
        logger.debug("Stored secret %s in %s", name, store.backend)
        return str(SecretReference(backend=store.backend, name=name))

    def retrieve(self, name: str) -> str:
        with for_secret(name):
            return self._active().retrieve(name)

    def delete(self, name: str) -> None:
        with for_secret(name):
            self._active().delete(name)

    def list_names(self) -> list[str]:
        return self._active().list_names()

    # ------------------------------------------------------------------
    # Reference-based API (any backend)
    # ------------------------------------------------------------------

    def retrieve_by_reference(self, reference: str) -> str:
        """Resolve a reference in the backend it names.

        Raises
        ------
        InvalidReferenceError
            The reference is malformed or names an unknown backend.
        BackendUnavailableError
            The named backend cannot be reached.
        SecretNotFoundError
            The backend answered but holds no such secret.
        """
        ref = SecretReference.parse(reference)
        with for_secret(ref.name):
            if (
                ref.backend == STORAGE_KEYRING
                and not self._use_keyring
                and not self._keyring.available()
            ):
                raise BackendUnavailableError("Secret is in the OS keyring, which is not available")
            return self._for_backend(ref.backend).retrieve(ref.name)

    # ------------------------------------------------------------------
    # Legacy migration
    # ------------------------------------------------------------------

    @property
    def legacy_secrets_file(self) -> pathlib.Path:
        return self._data_dir / LEGACY_SECRETS_FILENAME

    def has_legacy_secrets(self) -> bool:
        return self.legacy_secrets_file.is_file()

    def migrate_from_legacy(self) -> dict[str, str]:
        """Move keys from a legacy ``secrets.env`` into the active backend.

        Returns provider name -> reference for every key stored; an empty
        dict when there is no legacy file.
        """
        if not self.has_legacy_secrets():
            return {}
        keys = legacy_provider_keys(load_legacy_secrets(self.legacy_secrets_file))
        references = {}
        for name in sorted(keys):
            references[name] = self.store_with_reference(name, keys[name])
        logger.info("Imported %d legacy API keys", len(references))
        return references

    def cleanup_legacy(self) -> list[pathlib.Path]:
        """Remove the legacy installation's files from the data directory."""
        return cleanup_legacy_files(self._data_dir)
