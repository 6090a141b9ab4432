"""File source adapters for in-memory buffers and local paths."""

from __future__ import annotations

import asyncio
from pathlib import Path

from filetracker.errors import FileReadError


class InMemoryFileSource:
    """File whose content is already held in memory (e.g. an upload widget buffer)."""

    def __init__(self, content: bytes, name: str, size: int | None = None) -> None:
        self._content = bytes(content)
        self._name = name
        self._size = len(self._content) if size is None else size

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return self._size

    async def read_bytes(self) -> bytes:
        return self._content


class LocalFileSource:
    """File on the local filesystem, read off the event loop."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        try:
            self._size = self._path.stat().st_size
        except OSError as exc:
            raise FileReadError(f"Cannot access {self._path}: {exc}") from exc

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._path.name

    @property
    def size(self) -> int:
        return self._size

    async def read_bytes(self) -> bytes:
        try:
            return await asyncio.to_thread(self._path.read_bytes)
        except OSError as exc:
            raise FileReadError(f"Cannot read {self._path}: {exc}") from exc
