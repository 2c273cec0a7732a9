# store.py
import logging
from abc import ABC, abstractmethod

from models import Order, OrderInput, OrderUpdate

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("world_id_hash", "type", "amount_wld", "amount_cop")


class OrderStoreError(Exception):
    """Base class for order persistence errors."""


class OrderNotFound(OrderStoreError):
    def __init__(self, order_id: int):
        super().__init__(f"order {order_id} not found")
        self.order_id = order_id


class StorageFailure(OrderStoreError):
    """The backing store could not be read or written."""


class ConstraintViolation(StorageFailure):
    """A record would break a NOT NULL rule of the orders table."""


def check_required(order: OrderInput) -> None:
    for name in REQUIRED_FIELDS:
        value = getattr(order, name, None)
        if value is None or value == "":
            raise ConstraintViolation(f"null value in column {name!r} violates not-null constraint")


class OrderStore(ABC):
    env: str

    @abstractmethod
    def create(self, order: OrderInput) -> Order: ...

    @abstractmethod
    def list(self) -> list[Order]: ...

    @abstractmethod
    def update_status(self, order_id: int, changes: OrderUpdate) -> Order: ...

    def close(self) -> None:
        pass


def select_store(settings) -> OrderStore:
    """Build the store for this process: SQL when a database URL is configured."""
    if settings.database_url:
        from orders_sql import SqlOrderStore

        logger.info("Using relational order store")
        return SqlOrderStore(settings.database_url, sslmode=settings.database_sslmode)

    from orders_db import JsonOrderStore

    logger.info("DATABASE_URL not set, using JSON file store at %s", settings.data_file)
    return JsonOrderStore(settings.data_file)
