"""Error kinds raised by the secret stores and the manager.

Every error carries an optional ``name``: the provider name the failing
operation concerned. Lower layers raise without it and the store that
knows the name attaches it on the way out.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator


class SecretStoreError(Exception):
    """Base class for every secret storage failure."""

    def __init__(self, message: str, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name

    def __str__(self) -> str:
        message = super().__str__()
        if self.name is not None:
            return f"{message} (secret: {self.name})"
        return message


class SecretNotFoundError(SecretStoreError):
    """No secret is stored under the requested name.

    Recoverable: callers treat it as "not configured yet".
    """


class DecryptionError(SecretStoreError):
    """The encrypted blob exists but could not be turned back into secrets."""


class AuthenticationError(DecryptionError):
    """The blob failed AEAD verification.

    Covers both tampering and a key that no longer matches, e.g. after a
    machine identifier changed. Retrying cannot succeed.
    """


class MalformedBlobError(DecryptionError):
    """The blob is too short or otherwise structurally unreadable."""


class SymlinkRejectedError(SecretStoreError):
    """The blob path is a symbolic link and was not followed."""


class InvalidReferenceError(SecretStoreError):
    """A secret reference string is not ``<backend>:<name>``."""


class BackendUnavailableError(SecretStoreError):
    """The backend a secret lives in cannot be reached right now.

    Distinct from :class:`SecretNotFoundError`: the secret may well exist.
    """


@contextlib.contextmanager
def for_secret(name: str) -> Iterator[None]:
    """Attach *name* to any store error raised inside the block."""
    try:
        yield
    except SecretStoreError as exc:
        if exc.name is None:
            exc.name = name
        raise
