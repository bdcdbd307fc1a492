from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class StorageBackend(ABC):
    """Durable object storage addressed by relative keys."""

    @abstractmethod
    def write_file(self, key: str, local_path: str) -> None:
        """Upload the local file to the given key."""
        ...

    @abstractmethod
    def read_to(self, key: str, local_path: str) -> None:
        """Download the given key into a local file."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if the key exists."""
        ...

    @abstractmethod
    def size(self, key: str) -> int:
        """Size of the stored object in bytes."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the given key. Deleting a missing key is not an error."""
        ...

    def local_path(self, key: str) -> Optional[str]:
        """Filesystem path of the object when the backend is disk-based, else None."""
        return None
