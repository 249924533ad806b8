from __future__ import annotations

from pathlib import Path

DEFAULT_FOLDER = "DataManager"
DEFAULT_EXTENSION = ".json"


def data_dir(base: str | Path | None = None) -> Path:
    # relative data dirs resolve against the working directory of the host process
    return Path(base or "data").expanduser().resolve()


def storage_root(base: str | Path | None = None, folder: str = DEFAULT_FOLDER) -> Path:
    return data_dir(base) / folder


def normalize_extension(extension: str) -> str:
    ext = extension.strip()
    if not ext:
        raise ValueError("file extension must not be empty")
    return ext if ext.startswith(".") else f".{ext}"


def record_file_name(name: str, extension: str = DEFAULT_EXTENSION) -> str:
    return f"{name}{normalize_extension(extension)}"
