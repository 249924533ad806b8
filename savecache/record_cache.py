from __future__ import annotations

import asyncio
import threading
from enum import Enum, auto

from pydantic import BaseModel


class RecordState(Enum):
    """Per-name lifecycle state."""
    UNLOADED = auto()
    LOADING = auto()
    LOADED_CLEAN = auto()
    LOADED_DIRTY = auto()


class RecordCache:
    """
    In-memory bookkeeping for the data manager:

    - loaded: name -> record instance handed out to callers
    - dirty: names waiting for the next flush
    - in_flight: name -> pending load task

    Every mutation holds one re-entrant lock so hosts that touch the manager
    from several threads keep one entry per name.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._loaded: dict[str, BaseModel] = {}
        self._dirty: set[str] = set()
        self._in_flight: dict[str, asyncio.Future] = {}

    def try_get_loaded(self, name: str) -> BaseModel | None:
        with self._lock:
            return self._loaded.get(name)

    def try_get_in_flight(self, name: str) -> asyncio.Future | None:
        with self._lock:
            return self._in_flight.get(name)

    def register_in_flight(self, name: str, task: asyncio.Future) -> bool:
        with self._lock:
            if name in self._in_flight:
                return False
            self._in_flight[name] = task
            return True

    def discard_in_flight(self, name: str, task: asyncio.Future) -> None:
        with self._lock:
            if self._in_flight.get(name) is task:
                del self._in_flight[name]

    def commit_loaded(self, name: str, record: BaseModel) -> None:
        with self._lock:
            self._loaded[name] = record
            self._in_flight.pop(name, None)

    def mark_dirty(self, name: str) -> bool:
        """Return False when `name` is already waiting for the next flush."""
        with self._lock:
            if name in self._dirty:
                return False
            self._dirty.add(name)
            return True

    def clear_dirty(self, name: str) -> bool:
        with self._lock:
            if name not in self._dirty:
                return False
            self._dirty.discard(name)
            return True

    def drain_dirty(self) -> set[str]:
        """
        Swap the dirty set for an empty one and return the old contents.

        Marks that arrive after the swap land in the next drain.
        """
        with self._lock:
            drained, self._dirty = self._dirty, set()
            return drained

    def evict(self, name: str) -> BaseModel | None:
        with self._lock:
            self._dirty.discard(name)
            return self._loaded.pop(name, None)

    def is_dirty(self, name: str) -> bool:
        with self._lock:
            return name in self._dirty

    def state(self, name: str) -> RecordState:
        with self._lock:
            if name in self._loaded:
                return RecordState.LOADED_DIRTY if name in self._dirty else RecordState.LOADED_CLEAN
            if name in self._in_flight:
                return RecordState.LOADING
            return RecordState.UNLOADED

    def loaded_names(self) -> list[str]:
        with self._lock:
            return sorted(self._loaded)

    def dirty_names(self) -> list[str]:
        with self._lock:
            return sorted(self._dirty)

    def in_flight_tasks(self) -> list[asyncio.Future]:
        with self._lock:
            return list(self._in_flight.values())
