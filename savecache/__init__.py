from __future__ import annotations

from .codec import Codec, JsonRecordCodec
from .disk_store import AsyncDiskStorageBackend, DiskStorageBackend
from .errors import (
    DecodeError,
    FlushError,
    InvalidStateError,
    RecordNotFoundError,
    SaveCacheError,
    StorageIOError,
    UnknownKeyError,
)
from .keys import TypeKey, TypeKeyRegistry
from .manager import DataManager, get_default_manager, reset_default_manager
from .record_cache import RecordCache, RecordState
from .settings import Settings, get_settings

__all__ = [
    "Codec",
    "JsonRecordCodec",
    "AsyncDiskStorageBackend",
    "DiskStorageBackend",
    "DecodeError",
    "FlushError",
    "InvalidStateError",
    "RecordNotFoundError",
    "SaveCacheError",
    "StorageIOError",
    "UnknownKeyError",
    "TypeKey",
    "TypeKeyRegistry",
    "DataManager",
    "get_default_manager",
    "reset_default_manager",
    "RecordCache",
    "RecordState",
    "Settings",
    "get_settings",
]
