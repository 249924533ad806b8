from __future__ import annotations

import asyncio
import logging
import threading
from functools import partial
from pathlib import Path
from typing import TypeVar, Union

from pydantic import BaseModel

from .codec import Codec, JsonRecordCodec
from .disk_store import AsyncDiskStorageBackend, DiskStorageBackend
from .errors import DecodeError, FlushError, InvalidStateError, RecordNotFoundError
from .interfaces import AsyncStorageBackend
from .keys import TypeKey, TypeKeyRegistry
from .paths import storage_root
from .record_cache import RecordCache, RecordState
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)
KeyLike = Union[TypeKey, type]


class DataManager:
    """
    Type-keyed record cache with deferred, coalesced saves.

    Usage (inside a running event loop):

        manager = DataManager.from_settings()
        goods = await manager.load(GoodsSaveData)
        goods.gold = 61
        manager.mark_dirty(GoodsSaveData)
        await manager.flush_all()

    Records are loaded once and handed out by reference. `mark_dirty` only
    queues the record; nothing is written until `flush_all`, `save_immediately`
    or `unload`. Loads never raise for missing, unreadable or corrupt files:
    they fall back to a default-constructed record. Write failures are raised
    to whoever awaits the write.
    """

    def __init__(
        self,
        storage: AsyncStorageBackend,
        codec: Codec | None = None,
        *,
        registry: TypeKeyRegistry | None = None,
    ):
        self._storage = storage
        self._codec = codec or JsonRecordCodec()
        self._registry = registry or TypeKeyRegistry()
        self._cache = RecordCache()
        # task -> record name, for every launched write not yet finished
        self._pending_writes: dict[asyncio.Task, str] = {}
        # newest write per name; later writes and loads of that name wait for it
        self._last_write: dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "DataManager":
        s = settings or get_settings()
        backend = DiskStorageBackend(
            storage_root(s.data_dir, s.folder),
            extension=s.extension,
            atomic_writes=s.atomic_writes,
        )
        indent = s.json_indent if s.json_indent > 0 else None
        return cls(AsyncDiskStorageBackend(backend), JsonRecordCodec(indent=indent))

    @classmethod
    def at(cls, root: str | Path, *, extension: str = ".json", atomic_writes: bool = True) -> "DataManager":
        backend = DiskStorageBackend(Path(root), extension=extension, atomic_writes=atomic_writes)
        return cls(AsyncDiskStorageBackend(backend))

    @property
    def storage(self) -> AsyncStorageBackend:
        return self._storage

    @property
    def cache(self) -> RecordCache:
        return self._cache

    @property
    def pending_write_count(self) -> int:
        return len(self._pending_writes)

    # -------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------
    def register(self, model: type[R], *, name: str | None = None, factory=None) -> TypeKey[R]:
        return self._registry.register(model, name=name, factory=factory)

    def key(self, key: KeyLike) -> TypeKey:
        return self._registry.resolve(key)

    def state(self, key: KeyLike) -> RecordState:
        return self._cache.state(self.key(key).name)

    def is_loaded(self, key: KeyLike) -> bool:
        return self.state(key) in (RecordState.LOADED_CLEAN, RecordState.LOADED_DIRTY)

    def is_dirty(self, key: KeyLike) -> bool:
        return self._cache.is_dirty(self.key(key).name)

    def get_loaded(self, key: KeyLike) -> BaseModel | None:
        """Return the cached record without touching storage."""
        return self._cache.try_get_loaded(self.key(key).name)

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------
    def load_async(self, key: "TypeKey[R] | type[R]") -> "asyncio.Future[R]":
        """
        Start (or join) loading a record and return the pending result.

        Must be called with a running event loop. Concurrent calls for the
        same key share one task, so every caller gets the same instance.
        """
        tk = self.key(key)
        loop = asyncio.get_running_loop()

        cached = self._cache.try_get_loaded(tk.name)
        if cached is not None:
            logger.debug("cache hit for %s", tk.name)
            return _completed(loop, cached)

        pending = self._cache.try_get_in_flight(tk.name)
        if pending is not None:
            logger.debug("joining in-flight load for %s", tk.name)
            return pending

        if tk.name not in self._last_write and not self._storage.exists(tk.name):
            record = tk.create_default()
            self._cache.commit_loaded(tk.name, record)
            logger.debug("no stored file for %s; created default", tk.name)
            return _completed(loop, record)

        task = loop.create_task(self._load(tk), name=f"savecache-load-{tk.name}")
        self._cache.register_in_flight(tk.name, task)
        return task

    async def load(self, key: "TypeKey[R] | type[R]") -> R:
        return await self.load_async(key)

    async def await_pending_loads(self) -> int:
        """Wait for every in-flight load; returns how many were awaited."""
        tasks = self._cache.in_flight_tasks()
        if tasks:
            await asyncio.wait(tasks)
        return len(tasks)

    async def _load(self, tk: TypeKey[R]) -> R:
        task = asyncio.current_task()
        try:
            record = await self._read_record(tk)
            self._cache.commit_loaded(tk.name, record)
            return record
        finally:
            self._cache.discard_in_flight(tk.name, task)

    async def _read_record(self, tk: TypeKey[R]) -> R:
        previous = self._last_write.get(tk.name)
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            data = await self._storage.read_raw(tk.name)
            return self._codec.decode(data, tk.model)
        except RecordNotFoundError:
            logger.debug("%s disappeared before it was read; using default", tk.name)
        except DecodeError as exc:
            logger.warning("discarding unreadable data for %s: %s", tk.name, exc)
        except OSError as exc:
            logger.warning("failed to read %s, using default: %s", tk.name, exc)
        return tk.create_default()

    # -------------------------------------------------------------------
    # Dirty tracking and saving
    # -------------------------------------------------------------------
    def mark_dirty(self, key: KeyLike) -> bool:
        """
        Queue a loaded record for the next flush.

        Returns False if it was already queued. Raises InvalidStateError when
        the record is not loaded.
        """
        tk = self.key(key)
        self._require_loaded(tk, "mark dirty")
        return self._cache.mark_dirty(tk.name)

    def save(self, record: BaseModel) -> bool:
        """
        Queue `record` for the next flush, adopting it as the cached record
        when its type is not loaded yet.
        """
        tk = self.key(type(record))
        state = self._cache.state(tk.name)
        if state is RecordState.LOADING:
            raise InvalidStateError(f"{tk.name} is still loading")
        if state is RecordState.UNLOADED:
            self._cache.commit_loaded(tk.name, record)
        elif self._cache.try_get_loaded(tk.name) is not record:
            raise InvalidStateError(f"a different {tk.name} instance is already loaded")
        return self._cache.mark_dirty(tk.name)

    def save_immediately(self, key: KeyLike) -> asyncio.Task:
        """Write the cached record now; the returned task can be awaited for the outcome."""
        tk = self.key(key)
        record = self._require_loaded(tk, "save")
        self._cache.clear_dirty(tk.name)
        return self._launch_write(tk.name, record)

    def flush_all_async(self) -> list[asyncio.Task]:
        """Launch one write per dirty record and return the pending writes."""
        return list(self._launch_flush().values())

    async def flush_all(self) -> int:
        """
        Write every dirty record and wait for all of the writes.

        Raises FlushError once all writes finished if any of them failed.
        Returns the number of records written.
        """
        launched = self._launch_flush()
        if not launched:
            return 0
        results = await asyncio.gather(*launched.values(), return_exceptions=True)
        failures = {
            name: result
            for name, result in zip(launched, results)
            if isinstance(result, BaseException)
        }
        if failures:
            raise FlushError(failures)
        return len(launched)

    def _launch_flush(self) -> dict[str, asyncio.Task]:
        names = sorted(self._cache.drain_dirty())
        launched: dict[str, asyncio.Task] = {}
        for idx, name in enumerate(names):
            record = self._cache.try_get_loaded(name)
            if record is None:
                logger.debug("skipping flush of %s: no longer loaded", name)
                continue
            try:
                launched[name] = self._launch_write(name, record)
            except Exception:
                for rest in names[idx:]:
                    if self._cache.try_get_loaded(rest) is not None:
                        self._cache.mark_dirty(rest)
                raise
        if launched:
            logger.info("flushing %d record(s): %s", len(launched), ", ".join(launched))
        return launched

    def _launch_write(self, name: str, record: BaseModel) -> asyncio.Task:
        # snapshot on the caller's thread; the record may keep changing afterwards
        data = self._codec.encode(record)
        loop = asyncio.get_running_loop()
        previous = self._last_write.get(name)
        task = loop.create_task(self._write(name, data, previous), name=f"savecache-write-{name}")
        self._last_write[name] = task
        self._pending_writes[task] = name
        task.add_done_callback(partial(self._write_done, name, record))
        logger.debug("launched write of %s (%d bytes)", name, len(data))
        return task

    async def _write(self, name: str, data: bytes, previous: asyncio.Task | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        await self._storage.write_raw(name, data)

    def _write_done(self, name: str, record: BaseModel, task: asyncio.Task) -> None:
        self._pending_writes.pop(task, None)
        newest = self._last_write.get(name) is task
        if newest:
            del self._last_write[name]
        if not task.cancelled() and task.exception() is None:
            return
        if task.cancelled():
            logger.warning("write of %s was cancelled", name)
        else:
            logger.warning("write of %s failed: %s", name, task.exception())
        # a newer write of the same record supersedes this one
        if newest and self._cache.try_get_loaded(name) is record:
            self._cache.mark_dirty(name)

    async def await_pending_writes(self) -> dict[str, BaseException]:
        """
        Wait until no launched write is outstanding, including writes started
        while waiting. Returns failures by record name.
        """
        failures: dict[str, BaseException] = {}
        while self._pending_writes:
            batch = dict(self._pending_writes)
            await asyncio.wait(list(batch))
            for task, name in batch.items():
                if task.cancelled():
                    failures[name] = asyncio.CancelledError()
                elif task.exception() is not None:
                    failures[name] = task.exception()
        return failures

    async def shutdown(self) -> None:
        """Flush dirty records and drain every outstanding write."""
        failures: dict[str, BaseException] = {}
        try:
            await self.flush_all()
        except FlushError as exc:
            failures.update(exc.failures)
        failures.update(await self.await_pending_writes())
        if failures:
            raise FlushError(failures)
        logger.info("savecache drained")

    # -------------------------------------------------------------------
    # Unload / delete
    # -------------------------------------------------------------------
    async def unload(self, key: KeyLike) -> bool:
        """
        Drop a record from memory, saving it first if it is dirty.

        Returns False when nothing was loaded. If the save fails the record
        stays loaded and dirty and the error propagates.
        """
        tk = self.key(key)
        if self._cache.state(tk.name) is RecordState.LOADING:
            raise InvalidStateError(f"cannot unload {tk.name} while it is loading; await the load first")
        while self._cache.state(tk.name) is RecordState.LOADED_DIRTY:
            write = self.save_immediately(tk)
            try:
                await write
            except BaseException:
                self._cache.mark_dirty(tk.name)
                raise
        evicted = self._cache.evict(tk.name) is not None
        if evicted:
            logger.debug("unloaded %s", tk.name)
        return evicted

    async def delete_one(self, key: KeyLike) -> None:
        """Delete the stored file for `key`; the cached record is left alone."""
        tk = self.key(key)
        previous = self._last_write.get(tk.name)
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        await self._storage.delete_raw(tk.name)

    async def delete_all(self) -> int:
        """Delete every stored file; cached records are left alone."""
        pending = [t for t in self._last_write.values() if not t.done()]
        if pending:
            await asyncio.wait(pending)
        return await self._storage.delete_all()

    async def stored_names(self) -> list[str]:
        return await self._storage.names()

    # -------------------------------------------------------------------
    def _require_loaded(self, tk: TypeKey, action: str) -> BaseModel:
        record = self._cache.try_get_loaded(tk.name)
        if record is None:
            state = self._cache.state(tk.name)
            raise InvalidStateError(f"cannot {action} {tk.name} while {state.name.lower()}; load it first")
        return record


def _completed(loop: asyncio.AbstractEventLoop, value) -> asyncio.Future:
    fut = loop.create_future()
    fut.set_result(value)
    return fut


_default_guard = threading.Lock()
_default_manager: DataManager | None = None


def get_default_manager() -> DataManager:
    """Process-wide manager built from environment settings on first use."""
    global _default_manager
    with _default_guard:
        if _default_manager is None:
            _default_manager = DataManager.from_settings()
        return _default_manager


def reset_default_manager(manager: DataManager | None = None) -> None:
    global _default_manager
    with _default_guard:
        _default_manager = manager
