from __future__ import annotations

from pathlib import Path
from typing import Protocol


class StorageBackend(Protocol):
    """
    Raw byte storage: one blob per record name under a single root.
    """

    def path_for(self, name: str) -> Path:
        ...

    def exists(self, name: str) -> bool:
        ...

    def read_raw(self, name: str) -> bytes:
        """Raise RecordNotFoundError if absent, StorageIOError on failure."""
        ...

    def write_raw(self, name: str, data: bytes) -> None:
        """Create the root if needed and overwrite any existing blob."""
        ...

    def delete_raw(self, name: str) -> None:
        """No-op when absent."""
        ...

    def delete_all(self) -> int:
        """Remove every blob; return how many were removed."""
        ...

    def names(self) -> list[str]:
        ...


class AsyncStorageBackend(Protocol):
    def path_for(self, name: str) -> Path: ...
    def exists(self, name: str) -> bool: ...

    async def read_raw(self, name: str) -> bytes: ...
    async def write_raw(self, name: str, data: bytes) -> None: ...
    async def delete_raw(self, name: str) -> None: ...
    async def delete_all(self) -> int: ...
    async def names(self) -> list[str]: ...
