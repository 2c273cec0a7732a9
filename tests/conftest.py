from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from config import Settings
from main import create_app
from models import OrderInput
from orders_db import JsonOrderStore
from orders_sql import SqlOrderStore


@pytest.fixture
def json_store(tmp_path):
    return JsonOrderStore(tmp_path / "db.json")


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine):
    return SqlOrderStore(sql_engine)


@pytest.fixture(params=["json", "sql"])
def store(request):
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def client(store):
    app = create_app(Settings(), store=store)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def order_input():
    def make(**overrides):
        fields = {
            "world_id_hash": "abc",
            "type": "buy",
            "amount_wld": Decimal("10.5"),
            "amount_cop": Decimal("42000"),
        }
        fields.update(overrides)
        return OrderInput(**fields)

    return make
