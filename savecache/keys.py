from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from pydantic import BaseModel

from .errors import UnknownKeyError

R = TypeVar("R", bound=BaseModel)


@dataclass(frozen=True)
class TypeKey(Generic[R]):
    """
    Typed handle naming one savable record type.

    `name` is stable across runs and doubles as the file stem on disk.
    """

    name: str
    model: type[R]
    factory: Callable[[], R]

    @classmethod
    def for_model(
        cls,
        model: type[R],
        *,
        name: str | None = None,
        factory: Callable[[], R] | None = None,
    ) -> "TypeKey[R]":
        key_name = (name or model.__name__).strip()
        if not key_name or "/" in key_name or "\\" in key_name:
            raise ValueError(f"invalid record name: {key_name!r}")
        return cls(name=key_name, model=model, factory=factory or model)

    def create_default(self) -> R:
        record = self.factory()
        if not isinstance(record, self.model):
            raise TypeError(f"factory for {self.name} returned {type(record).__name__}")
        return record


class TypeKeyRegistry:
    """
    One TypeKey per name and per model class.

    Model classes used without explicit registration get a key named after the class.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._by_name: dict[str, TypeKey] = {}
        self._by_model: dict[type, TypeKey] = {}

    def register(
        self,
        model: type[R],
        *,
        name: str | None = None,
        factory: Callable[[], R] | None = None,
    ) -> TypeKey[R]:
        key = TypeKey.for_model(model, name=name, factory=factory)
        with self._guard:
            existing = self._by_name.get(key.name)
            if existing is not None:
                if existing.model is not model:
                    raise UnknownKeyError(
                        f"name {key.name!r} already registered for {existing.model.__name__}"
                    )
                return existing
            if model in self._by_model:
                raise UnknownKeyError(
                    f"{model.__name__} already registered as {self._by_model[model].name!r}"
                )
            self._by_name[key.name] = key
            self._by_model[model] = key
            return key

    def resolve(self, key: "TypeKey[R] | type[R]") -> TypeKey[R]:
        if isinstance(key, TypeKey):
            with self._guard:
                existing = self._by_name.get(key.name)
            if existing is None:
                return self._adopt(key)
            if existing != key:
                raise UnknownKeyError(f"name {key.name!r} is registered with a different key")
            return existing
        if isinstance(key, type) and issubclass(key, BaseModel):
            with self._guard:
                existing = self._by_model.get(key)
            return existing if existing is not None else self.register(key)
        raise TypeError(f"expected a TypeKey or a pydantic model class, got {key!r}")

    def get(self, name: str) -> TypeKey:
        with self._guard:
            key = self._by_name.get(name)
        if key is None:
            raise UnknownKeyError(name)
        return key

    def names(self) -> list[str]:
        with self._guard:
            return sorted(self._by_name)

    def _adopt(self, key: TypeKey) -> TypeKey:
        with self._guard:
            if key.model in self._by_model:
                raise UnknownKeyError(
                    f"{key.model.__name__} already registered as {self._by_model[key.model].name!r}"
                )
            existing = self._by_name.get(key.name)
            if existing is not None:
                if existing != key:
                    raise UnknownKeyError(f"name {key.name!r} is registered with a different key")
                return existing
            self._by_name[key.name] = key
            self._by_model[key.model] = key
            return key
