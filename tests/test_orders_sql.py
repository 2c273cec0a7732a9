"""Tests for the SQL order store."""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine, inspect, text

import orders_sql
from models import OrderUpdate
from orders_sql import SqlOrderStore, normalize_url
from store import StorageFailure


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgres://u:p@db:5432/wc", "postgresql+psycopg://u:p@db:5432/wc"),
        ("postgresql://u:p@db/wc", "postgresql+psycopg://u:p@db/wc"),
        ("postgresql+psycopg://u:p@db/wc", "postgresql+psycopg://u:p@db/wc"),
        ("sqlite:///orders.db", "sqlite:///orders.db"),
    ],
)
def test_normalize_url(url, expected) -> None:
    assert normalize_url(url) == expected


def test_schema(sql_store, sql_engine) -> None:
    columns = {c["name"]: c for c in inspect(sql_engine).get_columns("orders")}

    assert set(columns) == {
        "id",
        "world_id_hash",
        "type",
        "amount_wld",
        "amount_cop",
        "status",
        "counterparty_contact",
        "created_at",
    }
    for name in ("world_id_hash", "type", "amount_wld", "amount_cop"):
        assert columns[name]["nullable"] is False
    assert columns["counterparty_contact"]["nullable"] is True
    assert "OPEN" in columns["status"]["default"]


def test_schema_creation_is_idempotent(sql_engine, order_input) -> None:
    SqlOrderStore(sql_engine).create(order_input())

    again = SqlOrderStore(sql_engine)

    assert [o.id for o in again.list()] == [1]


def test_table_defaults_apply_to_raw_inserts(sql_store, sql_engine) -> None:
    with sql_engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO orders (world_id_hash, type, amount_wld, amount_cop) "
                "VALUES (:h, :t, :w, :c)"
            ),
            {"h": "raw", "t": "sell", "w": 2, "c": 8000},
        )

    (order,) = sql_store.list()
    assert order.status == "OPEN"
    assert order.created_at is not None
    assert order.amount_cop == Decimal("8000")


def test_user_input_is_bound_not_interpolated(sql_store, order_input) -> None:
    hostile = "x'); DROP TABLE orders; --"

    created = sql_store.create(order_input(world_id_hash=hostile))
    sql_store.update_status(created.id, OrderUpdate(counterparty_contact=hostile))

    (order,) = sql_store.list()
    assert order.world_id_hash == hostile
    assert order.counterparty_contact == hostile


def test_postgres_url_gets_driver_and_sslmode(monkeypatch, sql_engine) -> None:
    seen = {}

    def fake_create_engine(url, **kwargs):
        seen["url"] = url
        seen.update(kwargs)
        return sql_engine

    monkeypatch.setattr(orders_sql, "create_engine", fake_create_engine)

    SqlOrderStore("postgres://u:p@db.example:5432/wc")

    assert seen["url"].drivername == "postgresql+psycopg"
    assert seen["connect_args"] == {"sslmode": "require"}
    assert seen["pool_pre_ping"] is True


def test_sslmode_in_url_wins(monkeypatch, sql_engine) -> None:
    seen = {}

    def fake_create_engine(url, **kwargs):
        seen.update(kwargs)
        return sql_engine

    monkeypatch.setattr(orders_sql, "create_engine", fake_create_engine)

    SqlOrderStore("postgresql://u:p@localhost/wc?sslmode=disable")

    assert seen["connect_args"] == {}


def test_schema_init_failure(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'orders.db'}")

    with pytest.raises(StorageFailure):
        SqlOrderStore(engine)


@pytest.mark.parametrize("operation", ["list", "create", "update"])
def test_query_failure_is_storage_failure(sql_store, sql_engine, order_input, operation) -> None:
    with sql_engine.begin() as conn:
        conn.execute(text("DROP TABLE orders"))

    with pytest.raises(StorageFailure):
        if operation == "list":
            sql_store.list()
        elif operation == "create":
            sql_store.create(order_input())
        else:
            sql_store.update_status(1, OrderUpdate(status="CLOSED"))


def test_created_at_column_keeps_timezone() -> None:
    assert orders_sql.orders.c.created_at.type.timezone is True
