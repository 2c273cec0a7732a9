# orders_sql.py
import logging
from contextlib import contextmanager

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import Order, OrderInput, OrderUpdate
from store import ConstraintViolation, OrderNotFound, OrderStore, StorageFailure, check_required

logger = logging.getLogger(__name__)

metadata = MetaData()

orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("world_id_hash", Text, nullable=False),
    Column("type", Text, nullable=False),
    Column("amount_wld", Numeric(18, 8), nullable=False),
    Column("amount_cop", Numeric(18, 2), nullable=False),
    Column("status", Text, server_default=text("'OPEN'")),
    Column("counterparty_contact", Text),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)


def normalize_url(url: str) -> str:
    """Point postgres:// style URLs at the psycopg 3 driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


@contextmanager
def _translate_errors(action: str):
    try:
        yield
    except IntegrityError as e:
        raise ConstraintViolation(f"{action}: {e.orig}") from e
    except SQLAlchemyError as e:
        raise StorageFailure(f"{action} failed") from e


class SqlOrderStore(OrderStore):
    env = "postgres"

    def __init__(self, url_or_engine, sslmode: str | None = "require"):
        if isinstance(url_or_engine, Engine):
            self.engine = url_or_engine
        else:
            url = make_url(normalize_url(url_or_engine))
            connect_args = {}
            if url.get_backend_name() == "postgresql" and sslmode and "sslmode" not in url.query:
                connect_args["sslmode"] = sslmode
            self.engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        try:
            with _translate_errors("schema init"):
                metadata.create_all(self.engine)
        except StorageFailure:
            logger.exception("DB init error")
            raise
        logger.info("Orders table ready on %s", self.engine.url.render_as_string(hide_password=True))

    def create(self, order: OrderInput) -> Order:
        check_required(order)
        stmt = (
            insert(orders)
            .values(
                world_id_hash=order.world_id_hash,
                type=order.type,
                amount_wld=order.amount_wld,
                amount_cop=order.amount_cop,
                status="OPEN",
                counterparty_contact=order.counterparty_contact or None,
            )
            .returning(*orders.c)
        )
        with _translate_errors("create order"):
            with self.engine.begin() as conn:
                row = conn.execute(stmt).mappings().one()
        logger.info("Created order %d", row["id"])
        return Order.model_validate(dict(row))

    def update_status(self, order_id: int, changes: OrderUpdate) -> Order:
        fields = changes.changes()
        if fields:
            stmt = update(orders).where(orders.c.id == order_id).values(**fields).returning(*orders.c)
        else:
            stmt = select(orders).where(orders.c.id == order_id)
        with _translate_errors(f"update order {order_id}"):
            with self.engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        if row is None:
            raise OrderNotFound(order_id)
        logger.info("Updated order %d: %s", order_id, ", ".join(fields) or "no changes")
        return Order.model_validate(dict(row))

    def close(self) -> None:
        self.engine.dispose()

    def list(self) -> list[Order]:
        stmt = select(orders).order_by(orders.c.created_at.desc(), orders.c.id.desc())
        with _translate_errors("list orders"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        return [Order.model_validate(dict(r)) for r in rows]
