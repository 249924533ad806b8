from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def dumps_json(payload: Any, *, indent: int | None = 2, sort_keys: bool = True) -> bytes:
    """
    Serialize to UTF-8 JSON bytes with a trailing newline, the on-disk format for records.
    """
    text = json.dumps(payload, indent=indent, sort_keys=sort_keys, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def loads_json(data: bytes) -> Any | None:
    """
    Parse UTF-8 JSON bytes.

    Returns None for empty input; raises ValueError for invalid JSON or encoding.
    """
    text = data.decode("utf-8")
    if not text.strip():
        return None
    return json.loads(text)


def read_bytes(path: Path) -> bytes | None:
    """
    Read raw bytes from disk.

    Returns None for missing files. Other OS errors propagate.
    """
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Atomically write bytes to disk by writing to a temp file then replacing.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("wb") as f:
        f.write(data)
    tmp_path.replace(path)
