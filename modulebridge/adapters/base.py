"""Base interface for durable storage media."""
from abc import ABC, abstractmethod


class StorageError(Exception):
    """The medium could not complete a read or write."""


class QuotaExceededError(StorageError):
    """A write would take the medium past its capacity."""


class StorageMedium(ABC):
    """
    Synchronous string key-value storage shared by every store in the runtime.

    Media know nothing about namespaces; prefixing is the store's job.
    """

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """
        Read a value.

        Returns:
            The stored string, or None if the key is unset

        Raises:
            StorageError: If the medium cannot be read
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            QuotaExceededError: If the write exceeds capacity
            StorageError: If the medium rejects the write
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """
        Delete a key. Deleting an unset key is not an error.

        Raises:
            StorageError: If the medium rejects the delete
        """
        pass

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """
        Enumerate stored keys starting with ``prefix``.

        Returns:
            Keys in the medium's enumeration order
        """
        pass

    def health_check(self) -> bool:
        """Check the medium is reachable."""
        return True
