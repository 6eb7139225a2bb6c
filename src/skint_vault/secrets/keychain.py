"""OS keyring backend for secret storage.

Wraps the ``keyring`` library, which talks to macOS Keychain, the Linux
Secret Service (GNOME Keyring / KWallet) or the Windows Credential
Locker. Each secret is its own keyring entry under one service name.
A manifest entry, kept under its own ``<service>:manifest`` service so it
can never collide with a provider name, holds a JSON list of names so they
can be enumerated without scanning the whole keyring.
"""

from __future__ import annotations

import json
import logging

import keyring
from keyring.backends import fail, null
from keyring.errors import KeyringError, PasswordDeleteError

from skint_vault.secrets.errors import BackendUnavailableError, SecretNotFoundError
from skint_vault.secrets.store import SecretStore

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = "skint"
# Looked up by the availability probe; never written.
PROBE_ACCOUNT = "skint_probe_nonexistent"
MANIFEST_SERVICE_SUFFIX = ":manifest"
MANIFEST_ACCOUNT = "names"


class KeyringStore(SecretStore):
    """Stores secrets in the OS keyring via the ``keyring`` library.

    Parameters
    ----------
    service_name:
        The service name used to namespace secrets in the keyring.
        Defaults to ``skint``.
    """

    backend = "keyring"

    def __init__(self, service_name: str = DEFAULT_SERVICE) -> None:
        self._service = service_name
        self._manifest_service = service_name + MANIFEST_SERVICE_SUFFIX

    def available(self) -> bool:
        """Probe the keyring by looking up an entry that never exists.

        A clean "not found" means the service answered. Any error, or a
        keyring backend that cannot store anything, means it is unusable.
        """
        if isinstance(keyring.get_keyring(), (fail.Keyring, null.Keyring)):
            logger.debug("No usable keyring backend is configured")
            return False
        try:
            keyring.get_password(self._service, PROBE_ACCOUNT)
        except Exception as exc:
            # third-party backends (dbus, secretstorage) raise their own types
            logger.debug("Keyring probe failed: %s", exc)
            return False
        return True

    def _unavailable(self, exc: KeyringError) -> BackendUnavailableError:
        return BackendUnavailableError(f"OS keyring is not reachable: {exc}")

    def _read_manifest(self) -> list[str]:
        raw = keyring.get_password(self._manifest_service, MANIFEST_ACCOUNT)
        if raw is None:
            return []
        try:
            names = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable keyring manifest for %s", self._service)
            return []
        return [n for n in names if isinstance(n, str)] if isinstance(names, list) else []

    def _write_manifest(self, names: list[str]) -> None:
        if names:
            keyring.set_password(
                self._manifest_service, MANIFEST_ACCOUNT, json.dumps(sorted(set(names)))
            )
            return
        try:
            keyring.delete_password(self._manifest_service, MANIFEST_ACCOUNT)
        except PasswordDeleteError:
            pass

    def store(self, name: str, secret: str) -> None:
        try:
            keyring.set_password(self._service, name, secret)
            manifest = self._read_manifest()
            if name not in manifest:
                manifest.append(name)
                self._write_manifest(manifest)
        except KeyringError as exc:
            raise self._unavailable(exc) from exc

    def retrieve(self, name: str) -> str:
        try:
            secret = keyring.get_password(self._service, name)
        except KeyringError as exc:
            raise self._unavailable(exc) from exc
        if secret is None:
            raise SecretNotFoundError("No secret stored in the OS keyring", name=name)
        return secret

    def delete(self, name: str) -> None:
        try:
            try:
                keyring.delete_password(self._service, name)
            except PasswordDeleteError:
                logger.debug("Keyring had no entry to delete")
            manifest = self._read_manifest()
            if name in manifest:
                manifest.remove(name)
                self._write_manifest(manifest)
        except KeyringError as exc:
            raise self._unavailable(exc) from exc

    def list_names(self) -> list[str]:
        try:
            return sorted(self._read_manifest())
        except KeyringError as exc:
            raise self._unavailable(exc) from exc
