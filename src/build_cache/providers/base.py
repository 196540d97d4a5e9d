"""Storage provider interface for the remote cache."""

from abc import ABC, abstractmethod
from typing import BinaryIO


class StorageProvider(ABC):
    """Interface for remote blob storage.

    Implementations: S3Provider, FilesystemProvider

    A provider is configured once at construction and is not mutated
    afterwards, so one instance can serve every mount in a run.
    """

    name: str = "abstract"

    @abstractmethod
    def upload(self, key: str, content: BinaryIO) -> None:
        """Store content at key, replacing any existing object.

        Args:
            key: Object key (e.g., "myrepo/<cache key>")
            content: Readable stream, consumed from its current position

        Raises:
            TransportError: If the backend cannot be reached or refuses the write
        """
        ...

    @abstractmethod
    def download(self, key: str) -> BinaryIO:
        """Retrieve content previously stored at key.

        Args:
            key: Object key

        Returns:
            Readable stream positioned at offset 0; the caller closes it

        Raises:
            NotFound: If no object exists at key
            TransportError: If the backend cannot be reached or refuses the read
        """
        ...
