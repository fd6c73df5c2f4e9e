from __future__ import annotations

import pytest

from dynamodown_py import AwsError, NotFoundError, Store, StoreRegistry, ValidationError
from dynamodown_py.mocks import InMemoryDynamoDBClient, client_error
from dynamodown_py.testkit import no_sleep


def _open(client: InMemoryDynamoDBClient, location: str, registry: StoreRegistry) -> Store:
    return Store(location, client=client).open(sleep=no_sleep, registry=registry)


def test_open_registers_by_location() -> None:
    client = InMemoryDynamoDBClient()
    registry = StoreRegistry()

    db = _open(client, "tbl/a", registry)

    assert "tbl/a" in registry
    assert len(registry) == 1
    assert list(registry) == ["tbl/a"]
    assert registry.get("tbl/a") is db

    with pytest.raises(NotFoundError):
        registry.get("tbl/b")


def test_register_conflicting_store_is_rejected() -> None:
    client = InMemoryDynamoDBClient()
    registry = StoreRegistry()
    first = _open(client, "tbl/a", registry)

    registry.register(first)
    second = Store("tbl/a", client=client)
    with pytest.raises(ValidationError, match="already registered"):
        second.open(sleep=no_sleep, registry=registry)
    assert not second.is_open
    assert registry.get("tbl/a") is first


def test_remove() -> None:
    client = InMemoryDynamoDBClient()
    registry = StoreRegistry()
    db = _open(client, "tbl/a", registry)

    assert registry.remove("tbl/a") is db
    assert registry.remove("tbl/a") is None
    assert db.is_open


def test_destroy_closes_every_store_on_the_table() -> None:
    client = InMemoryDynamoDBClient()
    registry = StoreRegistry()
    a = _open(client, "tbl/a", registry)
    b = _open(client, "tbl/b", registry)
    other = _open(client, "other", registry)

    registry.destroy("tbl/a", sleep=no_sleep)

    assert not a.is_open
    assert not b.is_open
    assert other.is_open
    assert list(registry) == ["other"]
    assert "tbl" not in client.tables
    assert "other" in client.tables


def test_destroy_with_explicit_client_and_missing_table() -> None:
    client = InMemoryDynamoDBClient()
    registry = StoreRegistry()
    db = _open(client, "tbl", registry)
    del client.tables["tbl"]

    registry.destroy("tbl", client=client, sleep=no_sleep)
    assert not db.is_open
    assert len(registry) == 0

    with pytest.raises(NotFoundError):
        registry.destroy("tbl", sleep=no_sleep)


def test_destroy_after_close_uses_the_registered_client() -> None:
    client = InMemoryDynamoDBClient()
    registry = StoreRegistry()
    db = _open(client, "tbl", registry)
    db.close()

    registry.destroy("tbl", sleep=no_sleep)

    assert "tbl" not in client.tables
    assert "tbl" not in registry
    assert client.count("delete_table") == 1


def test_failed_destroy_keeps_stores_registered() -> None:
    client = InMemoryDynamoDBClient()
    registry = StoreRegistry()
    a = _open(client, "tbl/a", registry)
    b = _open(client, "tbl/b", registry)
    client.fail("delete_table", client_error("InternalServerError", "boom", "DeleteTable"))

    with pytest.raises(AwsError, match="InternalServerError"):
        registry.destroy("tbl/a", sleep=no_sleep)

    assert "tbl" in client.tables
    assert list(registry) == ["tbl/a", "tbl/b"]
    assert a.is_open
    assert b.is_open

    registry.destroy("tbl/a", sleep=no_sleep)
    assert "tbl" not in client.tables
    assert len(registry) == 0
    assert not a.is_open
    assert not b.is_open
