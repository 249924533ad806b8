from __future__ import annotations

from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import DecodeError
from .json_store import dumps_json, loads_json

R = TypeVar("R", bound=BaseModel)


class Codec(Protocol):
    """
    Converts records to persisted bytes and back.

    `decode` must raise DecodeError (never OSError) for bytes it cannot use.
    """

    def encode(self, record: BaseModel) -> bytes:
        ...

    def decode(self, data: bytes, model: type[R]) -> R:
        ...


class JsonRecordCodec(Codec):
    """
    Human-readable JSON: `record.model_dump(mode="json")`, sorted keys, indented.
    """

    def __init__(self, *, indent: int | None = 2, sort_keys: bool = True):
        self._indent = indent
        self._sort_keys = sort_keys

    def encode(self, record: BaseModel) -> bytes:
        return dumps_json(record.model_dump(mode="json"), indent=self._indent, sort_keys=self._sort_keys)

    def decode(self, data: bytes, model: type[R]) -> R:
        try:
            doc = loads_json(data)
        except ValueError as exc:
            raise DecodeError(f"invalid JSON for {model.__name__}: {exc}") from exc
        if not isinstance(doc, dict):
            raise DecodeError(f"expected a JSON object for {model.__name__}, got {type(doc).__name__}")
        try:
            return model.model_validate(doc)
        except ValidationError as exc:
            raise DecodeError(f"schema mismatch for {model.__name__}: {exc}") from exc
