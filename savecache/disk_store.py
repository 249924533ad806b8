from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from .errors import RecordNotFoundError, StorageIOError
from .interfaces import AsyncStorageBackend, StorageBackend
from .json_store import atomic_write_bytes, read_bytes, write_bytes
from .locks import FILE_LOCKS, FileLockRegistry
from .paths import DEFAULT_EXTENSION, normalize_extension, record_file_name

logger = logging.getLogger(__name__)


class DiskStorageBackend(StorageBackend):
    """
    Stores one file per record name:

    - <root>/<name><extension>
    - the root is created lazily on first write
    - writes go through a temp file + replace unless `atomic_writes` is off
    """

    def __init__(
        self,
        root: Path,
        *,
        extension: str = DEFAULT_EXTENSION,
        atomic_writes: bool = True,
        locks: FileLockRegistry | None = None,
    ):
        self._root = Path(root)
        self._extension = normalize_extension(extension)
        self._atomic_writes = atomic_writes
        self._locks = locks or FILE_LOCKS

    @property
    def root(self) -> Path:
        return self._root

    @property
    def extension(self) -> str:
        return self._extension

    def path_for(self, name: str) -> Path:
        return self._root / record_file_name(name, self._extension)

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def read_raw(self, name: str) -> bytes:
        path = self.path_for(name)
        with self._locks.held(path):
            try:
                data = read_bytes(path)
            except OSError as exc:
                raise StorageIOError(f"failed to read {path}: {exc}") from exc
        if data is None:
            raise RecordNotFoundError(name)
        return data

    def write_raw(self, name: str, data: bytes) -> None:
        path = self.path_for(name)
        with self._locks.held(path):
            try:
                if self._atomic_writes:
                    atomic_write_bytes(path, data)
                else:
                    write_bytes(path, data)
            except OSError as exc:
                raise StorageIOError(f"failed to write {path}: {exc}") from exc
        logger.debug("wrote %d bytes to %s", len(data), path)

    def delete_raw(self, name: str) -> None:
        path = self.path_for(name)
        with self._locks.held(path):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise StorageIOError(f"failed to delete {path}: {exc}") from exc

    def delete_all(self) -> int:
        if not self._root.is_dir():
            return 0
        removed = 0
        for path in self._files(any_extension=True):
            with self._locks.held(path):
                try:
                    path.unlink(missing_ok=True)
                except OSError as exc:
                    raise StorageIOError(f"failed to delete {path}: {exc}") from exc
            removed += 1
        logger.info("deleted %d file(s) under %s", removed, self._root)
        return removed

    def names(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(p.name[: -len(self._extension)] for p in self._files())

    def _files(self, *, any_extension: bool = False) -> list[Path]:
        return [
            p
            for p in self._root.iterdir()
            if p.is_file() and (any_extension or p.name.endswith(self._extension))
        ]


class AsyncDiskStorageBackend(AsyncStorageBackend):
    """
    Async wrapper around the disk-backed storage backend.
    Uses asyncio.to_thread to avoid blocking the event loop on file I/O.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    def path_for(self, name: str) -> Path:
        return self._backend.path_for(name)

    def exists(self, name: str) -> bool:
        return self._backend.exists(name)

    async def read_raw(self, name: str) -> bytes:
        return await asyncio.to_thread(self._backend.read_raw, name)

    async def write_raw(self, name: str, data: bytes) -> None:
        await asyncio.to_thread(self._backend.write_raw, name, data)

    async def delete_raw(self, name: str) -> None:
        await asyncio.to_thread(self._backend.delete_raw, name)

    async def delete_all(self) -> int:
        return await asyncio.to_thread(self._backend.delete_all)

    async def names(self) -> list[str]:
        return await asyncio.to_thread(self._backend.names)
