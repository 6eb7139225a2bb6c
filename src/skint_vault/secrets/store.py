"""Abstract interface for secret storage."""

from __future__ import annotations

from abc import ABC, abstractmethod


class SecretStore(ABC):
    """Abstract secret store. Implementations provide platform-specific storage.

    Both backends share one contract so the manager can route to either.
    ``backend`` is the tag written into secret references.
    """

    backend: str = ""

    @abstractmethod
    def store(self, name: str, secret: str) -> None:
        """Store or update a secret."""

    @abstractmethod
    def retrieve(self, name: str) -> str:
        """Retrieve a secret by name. Raises ``SecretNotFoundError`` if absent."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Delete a secret. Does not raise if the name does not exist."""

    @abstractmethod
    def list_names(self) -> list[str]:
        """Return the names of all stored secrets, sorted."""
