"""Tests for the fact store adapter."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from deploygraph.errors import FactNotFound, StoreUnavailable, TypeMismatch
from deploygraph.facts import DeferredFact, FactRead, FactReader, FileFactStore, MemoryFactStore, kind_of


def test_kind_of() -> None:
    assert kind_of("vpc-1") == "scalar"
    assert kind_of(["a", "b"]) == "list"
    assert kind_of([]) == "list"
    with pytest.raises(TypeError):
        kind_of(5)  # type: ignore[arg-type]


class TestMemoryFactStore:
    def test_publish_then_get_round_trip(self) -> None:
        store = MemoryFactStore()
        store.publish("/n8n/stg/Vpc/Id", "vpc-123")
        assert store.get("/n8n/stg/Vpc/Id").value == "vpc-123"

    def test_publish_overwrites(self) -> None:
        store = MemoryFactStore({"/k": "old"})
        store.publish("/k", "new")
        assert store.get("/k").value == "new"

    def test_get_missing_raises(self) -> None:
        with pytest.raises(FactNotFound) as exc:
            MemoryFactStore().get("/nope")
        assert exc.value.key == "/nope"

    def test_list_values_are_copied(self) -> None:
        subnets = ["subnet-a", "subnet-b"]
        store = MemoryFactStore()
        store.publish("/k", subnets)
        subnets.append("subnet-c")
        assert store.get("/k").value == ["subnet-a", "subnet-b"]

    def test_list_filters_by_prefix(self) -> None:
        store = MemoryFactStore({"/a/stg/Vpc/Id": "1", "/a/prod/Vpc/Id": "2"})
        assert [f.key for f in store.list("/a/stg/")] == ["/a/stg/Vpc/Id"]

    def test_unavailable_store_raises(self) -> None:
        store = MemoryFactStore()
        store.available = False
        with pytest.raises(StoreUnavailable):
            store.publish("/k", "v")
        with pytest.raises(StoreUnavailable):
            store.exists("/k")


class TestFileFactStore:
    def test_persists_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "state" / "facts.json"
        FileFactStore(path).publish("/n8n/stg/Vpc/SubnetsId", ["subnet-1", "subnet-2"])

        fact = FileFactStore(path).get("/n8n/stg/Vpc/SubnetsId")
        assert fact.kind == "list"
        assert fact.value == ["subnet-1", "subnet-2"]

    def test_document_layout(self, tmp_path: Path) -> None:
        path = tmp_path / "facts.json"
        FileFactStore(path).publish("/n8n/stg/Vpc/Id", "vpc-1")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["/n8n/stg/Vpc/Id"]["kind"] == "scalar"
        assert data["/n8n/stg/Vpc/Id"]["value"] == "vpc-1"
        assert "updated" in data["/n8n/stg/Vpc/Id"]
        assert not path.with_suffix(".tmp").exists()

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        store = FileFactStore(tmp_path / "facts.json")
        assert store.list() == []
        assert not store.exists("/k")

    def test_corrupt_file_is_unavailable(self, tmp_path: Path) -> None:
        path = tmp_path / "facts.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreUnavailable):
            FileFactStore(path).get("/k")


class TestFactReader:
    def test_eager_read_returns_published_value(self) -> None:
        reader = FactReader(MemoryFactStore({"/k": "v"}))
        assert reader.resolve_eager("/k") == "v"

    def test_eager_read_of_missing_key(self) -> None:
        with pytest.raises(FactNotFound):
            FactReader(MemoryFactStore()).resolve_eager("/k")

    def test_scalar_read_as_list_is_a_mismatch(self) -> None:
        reader = FactReader(MemoryFactStore({"/k": "v"}))
        with pytest.raises(TypeMismatch) as exc:
            reader.resolve_eager("/k", "list")
        assert exc.value.expected == "list"
        assert exc.value.actual == "scalar"

    def test_list_read_as_scalar_is_a_mismatch(self) -> None:
        reader = FactReader(MemoryFactStore({"/k": ["a"]}))
        with pytest.raises(TypeMismatch):
            reader.resolve_eager("/k", "scalar")

    def test_deferred_read_resolves_late(self) -> None:
        store = MemoryFactStore()
        reader = FactReader(store)

        token = reader.resolve(FactRead("subnets", "/k", "list", "deferred"))
        assert isinstance(token, DeferredFact)
        assert str(token) == "${deferred:/k}"

        store.publish("/k", ["a", "b"])
        assert token.resolve() == ["a", "b"]
