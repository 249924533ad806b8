from __future__ import annotations

import asyncio
from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for imports like `import savecache...` or `import app`
# under pytest import modes that don't automatically prepend the cwd/rootdir to sys.path.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from pydantic import BaseModel, Field  # noqa: E402

from savecache.disk_store import AsyncDiskStorageBackend, DiskStorageBackend  # noqa: E402
from savecache.errors import StorageIOError  # noqa: E402
from savecache.manager import DataManager  # noqa: E402


class GoodsSaveData(BaseModel):
    gold: int = 0


class ProfileSaveData(BaseModel):
    nickname: str = "player"
    unlocked: list[str] = Field(default_factory=list)


class RecordingStorage(AsyncDiskStorageBackend):
    """
    Disk storage that counts calls, can hold reads until released and can fail writes.
    """

    def __init__(self, backend: DiskStorageBackend) -> None:
        super().__init__(backend)
        self.reads: list[str] = []
        self.writes: list[tuple[str, bytes]] = []
        self.exists_checks: list[str] = []
        self.fail_writes: set[str] = set()
        self.fail_payloads: set[bytes] = set()
        self.read_gate: asyncio.Event | None = None

    def exists(self, name: str) -> bool:
        self.exists_checks.append(name)
        return super().exists(name)

    async def read_raw(self, name: str) -> bytes:
        self.reads.append(name)
        if self.read_gate is not None:
            await self.read_gate.wait()
        return await super().read_raw(name)

    async def write_raw(self, name: str, data: bytes) -> None:
        self.writes.append((name, data))
        if name in self.fail_writes or data in self.fail_payloads:
            raise StorageIOError(f"simulated write failure for {name}")
        await super().write_raw(name, data)

    def write_names(self) -> list[str]:
        return [name for name, _ in self.writes]


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    """
    Sandboxed storage root so tests never touch a real ./data directory.
    """
    return tmp_path / "data" / "DataManager"


@pytest.fixture
def disk_backend(storage_root: Path) -> DiskStorageBackend:
    return DiskStorageBackend(storage_root)


@pytest.fixture
def storage(disk_backend: DiskStorageBackend) -> RecordingStorage:
    return RecordingStorage(disk_backend)


@pytest.fixture
def manager(storage: RecordingStorage) -> DataManager:
    return DataManager(storage)


@pytest.fixture
def sandbox_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """
    Point environment-driven settings at a temp directory.
    """
    for name in (
        "SAVECACHE_FOLDER",
        "SAVECACHE_EXTENSION",
        "SAVECACHE_ATOMIC_WRITES",
        "SAVECACHE_JSON_INDENT",
        "SAVECACHE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SAVECACHE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.chdir(tmp_path)
    return tmp_path
