from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    # Storage layout: <data_dir>/<folder>/<TypeKey name><extension>
    data_dir: str
    folder: str
    extension: str

    # Write behaviour
    atomic_writes: bool
    json_indent: int

    # Logging (sample host only; the library never configures handlers)
    log_level: str


def get_settings() -> Settings:
    data_dir = os.getenv("SAVECACHE_DATA_DIR", "data")
    folder = os.getenv("SAVECACHE_FOLDER", "DataManager").strip("/") or "DataManager"
    extension = os.getenv("SAVECACHE_EXTENSION", ".json")

    # Temp file + replace; turning it off widens the crash window during a flush.
    atomic_writes = _env_bool("SAVECACHE_ATOMIC_WRITES", True)
    json_indent = _env_int("SAVECACHE_JSON_INDENT", 2)

    log_level = os.getenv("SAVECACHE_LOG_LEVEL", "INFO").upper()

    return Settings(
        data_dir=data_dir,
        folder=folder,
        extension=extension,
        atomic_writes=atomic_writes,
        json_indent=json_indent,
        log_level=log_level,
    )
