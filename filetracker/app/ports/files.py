"""File source port: where the bytes of a selected file come from."""

from typing import Protocol


class FileSourcePort(Protocol):
    """Port interface for a user-selected file.

    ``name`` and ``size`` are known at selection time; content is read
    asynchronously when the tracker hashes it.

    Side effects: May read from the filesystem.
    """

    @property
    def name(self) -> str:
        """Display name of the file (not part of the fingerprint)."""
        ...

    @property
    def size(self) -> int:
        """Declared byte count."""
        ...

    async def read_bytes(self) -> bytes:
        """Read the full content into memory.

        Raises:
            FileReadError: If the content cannot be read
        """
        ...
