from __future__ import annotations

from typing import Mapping


class SaveCacheError(Exception):
    """Base exception for savecache."""


class RecordNotFoundError(SaveCacheError):
    """Raised when no persisted file exists for a record name."""


class DecodeError(SaveCacheError):
    """Raised when persisted bytes cannot be turned back into a record."""


class StorageIOError(SaveCacheError, OSError):
    """Raised when the storage backend fails to read, write or delete."""


class InvalidStateError(SaveCacheError, RuntimeError):
    """Raised on caller misuse, e.g. marking an unloaded record dirty."""


class UnknownKeyError(SaveCacheError, KeyError):
    """Raised for unregistered names or conflicting registrations."""


class FlushError(SaveCacheError):
    """
    Raised after a flush finished with one or more failed writes.

    `failures` maps record name -> the exception its write raised.
    """

    def __init__(self, failures: Mapping[str, BaseException]):
        self.failures = dict(failures)
        names = ", ".join(sorted(self.failures))
        super().__init__(f"{len(self.failures)} write(s) failed: {names}")
