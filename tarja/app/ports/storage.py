"""Storage port interface for document bytes."""

from typing import BinaryIO, Protocol


class StoragePort(Protocol):
    """Port interface for object storage operations.

    Keys are slash-separated relative paths (``"originals/doc-1.pdf"``).
    Abstracts the backend to enable testing and alternative stores.

    Side effects: Reads/writes objects (offline for the local backend).
    """

    def read_bytes(self, key: str) -> bytes:
        """Read an object.

        Raises:
            FileNotFoundError: When ``key`` does not exist
        """
        ...

    def open(self, key: str) -> BinaryIO:
        """Open an object as a readable binary stream."""
        ...

    def write_bytes(self, key: str, data: bytes) -> str:
        """Write an object and return its key."""
        ...

    def exists(self, key: str) -> bool:
        ...

    def delete(self, key: str) -> bool:
        """Delete an object, returning False when it was already absent."""
        ...

    def compute_hash(self, key: str) -> str:
        """Compute SHA-256 hash of an object.

        Returns:
            Hex-encoded SHA-256 hash
        """
        ...
