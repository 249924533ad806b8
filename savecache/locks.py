from __future__ import annotations

import contextlib
import os
import threading
from pathlib import Path
from typing import Iterator


class FileLockRegistry:
    """
    One lock per record file, so a write, read or delete of the same file
    never overlaps while different files proceed in parallel.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, path: Path) -> threading.Lock:
        key = os.path.normcase(os.path.abspath(path))
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    @contextlib.contextmanager
    def held(self, path: Path) -> Iterator[Path]:
        with self.lock_for(path):
            yield path


FILE_LOCKS = FileLockRegistry()
