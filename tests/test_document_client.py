from __future__ import annotations

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

from sas_crm.core.config import Settings, resolve_table_names
from sas_crm.core.database import Database
from sas_crm.db.client import DocumentClient, ItemConflictError


@pytest.fixture()
def database() -> Generator[Database, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db = Database(engine, resolve_table_names({}))
    db.create_all()
    try:
        yield db
    finally:
        db.drop_all()
        db.dispose()


@pytest.fixture()
def client(database: Database) -> DocumentClient:
    return DocumentClient(database)


def test_tables_use_resolved_physical_names() -> None:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db = Database(engine, resolve_table_names({"SST_Resource_Deals": "sas-crm-dev-DealsTable"}))
    db.create_all()

    table_names = set(inspect(engine).get_table_names())
    assert "sas-crm-dev-DealsTable" in table_names
    assert "Users" in table_names
    assert db.table("Deals").name == "sas-crm-dev-DealsTable"
    index_names = {index["name"] for index in inspect(engine).get_indexes("sas-crm-dev-DealsTable")}
    assert index_names == {
        "ix_sas-crm-dev-DealsTable_clientIndex",
        "ix_sas-crm-dev-DealsTable_ownerIndex",
        "ix_sas-crm-dev-DealsTable_stageIndex",
    }
    db.dispose()


def test_put_then_get_returns_full_document(client: DocumentClient) -> None:
    item = {"userId": "u1", "id": "c1", "name": "Acme", "address": {"city": "Recife"}, "tags": ["vip"]}
    client.put_item("Clients", item)

    assert client.get_item("Clients", {"userId": "u1", "id": "c1"}) == item
    assert client.get_item("Clients", {"userId": "u2", "id": "c1"}) is None


def test_put_replaces_existing_item(client: DocumentClient) -> None:
    client.put_item("Deals", {"userId": "u1", "id": "d1", "stage": "Lead", "title": "First"})
    client.put_item("Deals", {"userId": "u1", "id": "d1", "stage": "Won", "title": "Second"})

    stored = client.get_item("Deals", {"userId": "u1", "id": "d1"})
    assert stored == {"userId": "u1", "id": "d1", "stage": "Won", "title": "Second"}
    assert client.query_index("Deals", "stageIndex", "Lead") == []
    assert len(client.query_index("Deals", "stageIndex", "Won")) == 1


def test_put_if_not_exists_raises_on_existing_key(client: DocumentClient) -> None:
    client.put_item("Tags", {"userId": "u1", "id": "t1", "name": "vip"})

    with pytest.raises(ItemConflictError) as exc_info:
        client.put_item("Tags", {"userId": "u1", "id": "t1", "name": "other"}, if_not_exists=True)

    assert exc_info.value.table == "Tags"
    assert exc_info.value.key == {"userId": "u1", "id": "t1"}
    assert client.get_item("Tags", {"userId": "u1", "id": "t1"})["name"] == "vip"


def test_unique_index_violation_raises_conflict(client: DocumentClient) -> None:
    client.put_item("Users", {"id": "u1", "email": "ana@example.com"})

    with pytest.raises(ItemConflictError):
        client.put_item("Users", {"id": "u2", "email": "ana@example.com"})

    assert client.get_item("Users", {"id": "u2"}) is None


def test_missing_key_attribute_is_rejected(client: DocumentClient) -> None:
    with pytest.raises(ValueError, match="userId"):
        client.put_item("People", {"id": "p1", "email": "a@b.com"})
    with pytest.raises(ValueError, match="token"):
        client.get_item("VerificationTokens", {"identifier": "a@b.com"})


def test_query_returns_partition_ordered_by_sort_key(client: DocumentClient) -> None:
    for item_id in ("c3", "c1", "c2"):
        client.put_item("Clients", {"userId": "u1", "id": item_id})
    client.put_item("Clients", {"userId": "u2", "id": "c0"})

    assert [item["id"] for item in client.query("Clients", "u1")] == ["c1", "c2", "c3"]
    assert client.query("Clients", "nobody") == []


def test_query_index_with_hash_and_range(client: DocumentClient) -> None:
    client.put_item("Activities", {"userId": "u1", "id": "a1", "entityType": "Deal", "entityId": "d1"})
    client.put_item("Activities", {"userId": "u1", "id": "a2", "entityType": "Deal", "entityId": "d2"})
    client.put_item("Activities", {"userId": "u1", "id": "a3", "entityType": "Client", "entityId": "d1"})

    assert [item["id"] for item in client.query_index("Activities", "entityIndex", "Deal")] == ["a1", "a2"]
    assert [item["id"] for item in client.query_index("Activities", "entityIndex", "Deal", "d1")] == ["a1"]


def test_boolean_index_values_are_stored_as_strings(client: DocumentClient) -> None:
    client.put_item("Pipelines", {"userId": "u1", "id": "p1", "isDefault": True})
    client.put_item("Pipelines", {"userId": "u1", "id": "p2", "isDefault": False})

    assert [item["id"] for item in client.query_index("Pipelines", "defaultIndex", True)] == ["p1"]
    assert [item["id"] for item in client.query_index("Pipelines", "defaultIndex", "false")] == ["p2"]
    assert client.get_item("Pipelines", {"userId": "u1", "id": "p1"})["isDefault"] is True


def test_items_without_index_attribute_are_left_out_of_index(client: DocumentClient) -> None:
    client.put_item("People", {"userId": "u1", "id": "p1", "email": "a@b.com"})

    assert client.query_index("People", "clientStakeholdersIndex", "None") == []
    assert len(client.query_index("People", "emailIndex", "a@b.com")) == 1


def test_unknown_table_or_index_raises_key_error(client: DocumentClient) -> None:
    with pytest.raises(KeyError):
        client.get_item("Invoices", {"id": "1"})
    with pytest.raises(KeyError):
        client.query_index("Deals", "missingIndex", "x")


def test_database_from_settings_uses_configured_url() -> None:
    db = Database.from_settings(Settings(database_url="sqlite+pysqlite:///:memory:"), resolve_table_names({}))
    try:
        assert db.engine.url.drivername == "sqlite+pysqlite"
        db.create_all()

        client = DocumentClient(db)
        client.put_item("Tags", {"userId": "u1", "id": "t1", "name": "vip"})

        assert client.get_item("Tags", {"userId": "u1", "id": "t1"}) == {"userId": "u1", "id": "t1", "name": "vip"}
    finally:
        db.dispose()
