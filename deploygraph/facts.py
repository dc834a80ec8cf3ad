"""
Fact store adapter.

Facts are the only coupling between units: a producer publishes named
values under namespace keys, consumers read them back by key when they
deploy. A fact value is either a scalar string or an ordered list of
strings; the kind is stored alongside the value and checked on every read.

Reads come in two modes:
- eager: the value must already exist when the read happens
- deferred: a DeferredFact placeholder is handed out and resolved only when
  the graph is applied (valid only with a direct edge on the producer,
  checked by the graph builder)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Protocol, Union, runtime_checkable

from .errors import FactNotFound, StoreUnavailable, TypeMismatch

FactKind = Literal["scalar", "list"]
ReadMode = Literal["eager", "deferred"]
FactValue = Union[str, list[str]]


def kind_of(value: FactValue) -> FactKind:
    """Return the kind tag for a fact value."""
    if isinstance(value, str):
        return "scalar"
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return "list"
    raise TypeError(f"fact values must be a string or a list of strings, got {type(value).__name__}")


def _copy_value(value: FactValue) -> FactValue:
    return value if isinstance(value, str) else list(value)


@dataclass(frozen=True)
class Fact:
    """A published value under a namespace key."""

    key: str
    value: FactValue

    @property
    def kind(self) -> FactKind:
        return kind_of(self.value)

    def to_dict(self) -> dict:
        return {"key": self.key, "kind": self.kind, "value": _copy_value(self.value)}


@dataclass(frozen=True)
class FactRead:
    """A unit's declaration that it reads a fact."""

    name: str  # local name the unit uses for the value
    key: str
    kind: FactKind = "scalar"
    mode: ReadMode = "eager"


@dataclass(frozen=True)
class FactOutput:
    """A unit's declaration that it publishes a fact."""

    name: str
    key: str
    kind: FactKind = "scalar"
    description: str = ""


# -----------------------------------------------------------------------------
# Store protocol and implementations
# -----------------------------------------------------------------------------


@runtime_checkable
class FactStore(Protocol):
    """Key-value store scoped by namespace keys."""

    def publish(self, key: str, value: FactValue) -> Fact:
        """Upsert a fact. Overwrites any prior value (last write wins)."""
        ...

    def get(self, key: str) -> Fact:
        """Return the fact under `key` or raise FactNotFound."""
        ...

    def exists(self, key: str) -> bool:
        ...

    def list(self, prefix: str = "") -> list[Fact]:
        """All facts whose key starts with `prefix`, sorted by key."""
        ...


class MemoryFactStore:
    """
    In-process fact store.

    Set `available = False` to simulate an unreachable backend; every call
    then raises StoreUnavailable.
    """

    def __init__(self, facts: dict[str, FactValue] | None = None):
        self._facts: dict[str, FactValue] = {}
        self.available = True
        for key, value in (facts or {}).items():
            self.publish(key, value)

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailable("in-memory fact store marked unavailable")

    def publish(self, key: str, value: FactValue) -> Fact:
        self._check()
        kind_of(value)
        self._facts[key] = _copy_value(value)
        return Fact(key, _copy_value(value))

    def get(self, key: str) -> Fact:
        self._check()
        if key not in self._facts:
            raise FactNotFound(key)
        return Fact(key, _copy_value(self._facts[key]))

    def exists(self, key: str) -> bool:
        self._check()
        return key in self._facts

    def list(self, prefix: str = "") -> list[Fact]:
        self._check()
        return [
            Fact(key, _copy_value(value))
            for key, value in sorted(self._facts.items())
            if key.startswith(prefix)
        ]


class FileFactStore:
    """
    Fact store persisted as a single JSON document.

    Layout:

        {
          "/n8n/stg/Vpc/Id": {"kind": "scalar", "value": "vpc-...", "updated": "..."},
          ...
        }

    Writes go to a temp file that is renamed into place, so a crash never
    leaves a half-written document behind.
    """

    def __init__(self, path: Path):
        self.path = path

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreUnavailable(f"cannot read fact store {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreUnavailable(f"fact store {self.path} is not a JSON object")
        return data

    def _save(self, data: dict[str, dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.path.with_suffix(".tmp")
            temp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(temp_path, self.path)
        except OSError as e:
            raise StoreUnavailable(f"cannot write fact store {self.path}: {e}") from e

    @staticmethod
    def _to_fact(key: str, entry: dict) -> Fact:
        value = entry.get("value")
        if entry.get("kind") == "list":
            return Fact(key, [str(v) for v in value or []])
        return Fact(key, str(value))

    def publish(self, key: str, value: FactValue) -> Fact:
        kind = kind_of(value)
        data = self._load()
        data[key] = {
            "kind": kind,
            "value": _copy_value(value),
            "updated": datetime.now(timezone.utc).isoformat(),
        }
        self._save(data)
        return Fact(key, _copy_value(value))

    def get(self, key: str) -> Fact:
        data = self._load()
        entry = data.get(key)
        if not isinstance(entry, dict):
            raise FactNotFound(key)
        return self._to_fact(key, entry)

    def exists(self, key: str) -> bool:
        return isinstance(self._load().get(key), dict)

    def list(self, prefix: str = "") -> list[Fact]:
        data = self._load()
        return [
            self._to_fact(key, entry)
            for key, entry in sorted(data.items())
            if key.startswith(prefix) and isinstance(entry, dict)
        ]


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------


class DeferredFact:
    """Placeholder for a fact whose value is supplied when the graph is applied."""

    def __init__(self, reader: FactReader, key: str, kind: FactKind):
        self._reader = reader
        self.key = key
        self.kind = kind

    def resolve(self) -> FactValue:
        return self._reader.resolve_eager(self.key, self.kind)

    def __repr__(self) -> str:
        return f"DeferredFact({self.key!r}, {self.kind!r})"

    def __str__(self) -> str:
        return f"${{deferred:{self.key}}}"


class FactReader:
    """Typed reads against a fact store."""

    def __init__(self, store: FactStore):
        self.store = store

    def resolve_eager(self, key: str, kind: FactKind = "scalar") -> FactValue:
        """
        Read a fact that must exist now.

        Raises:
            FactNotFound: the key has not been published
            TypeMismatch: the stored kind differs from `kind`
        """
        fact = self.store.get(key)
        if fact.kind != kind:
            raise TypeMismatch(key, expected=kind, actual=fact.kind)
        return fact.value

    def resolve_deferred(self, key: str, kind: FactKind = "scalar") -> DeferredFact:
        """Hand out a placeholder; nothing is read until resolve() is called."""
        return DeferredFact(self, key, kind)

    def resolve(self, read: FactRead) -> FactValue | DeferredFact:
        if read.mode == "deferred":
            return self.resolve_deferred(read.key, read.kind)
        return self.resolve_eager(read.key, read.kind)
