# orders_db.py
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock

from pydantic import ValidationError

from models import Order, OrderInput, OrderUpdate
from store import OrderNotFound, OrderStore, StorageFailure, check_required

logger = logging.getLogger(__name__)


def _empty():
    return {"orders": [], "lastId": 0}


def _to_order(entry):
    try:
        return Order.model_validate(entry)
    except ValidationError as e:
        raise StorageFailure(f"malformed order entry {entry.get('id')!r}") from e


class JsonOrderStore(OrderStore):
    """Order store kept in a single JSON document on local disk.

    Every operation re-reads the whole document, and writers rewrite it
    whole. Writers are serialized by a per-instance lock, so one process may
    share an instance between threads; several processes must not share
    the file.
    """

    env = "demo-json"

    def __init__(self, path="db.json"):
        self.path = Path(path)
        self._lock = Lock()
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._save(_empty())
            logger.info("Created order file %s", self.path)

    def _load(self):
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageFailure(f"cannot read {self.path}") from e
        if not isinstance(data, dict) or not isinstance(data.get("orders"), list):
            raise StorageFailure(f"{self.path} is not an order document")
        # accept snake_case counters written by earlier builds
        if "lastId" not in data:
            data["lastId"] = data.pop("last_id", 0)
        return data

    def _save(self, data):
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            Path(tmp).unlink(missing_ok=True)
            raise StorageFailure(f"cannot write {self.path}") from e

    def create(self, order: OrderInput) -> Order:
        check_required(order)
        with self._lock:
            data = self._load()
            order_id = data["lastId"] + 1
            record = Order(
                id=order_id,
                world_id_hash=order.world_id_hash,
                type=order.type,
                amount_wld=order.amount_wld,
                amount_cop=order.amount_cop,
                status="OPEN",
                counterparty_contact=order.counterparty_contact or None,
                created_at=datetime.now(timezone.utc),
            )
            data["lastId"] = order_id
            data["orders"].append(record.model_dump(mode="json"))
            self._save(data)
        logger.info("Created order %d", order_id)
        return record

    def update_status(self, order_id: int, changes: OrderUpdate) -> Order:
        fields = changes.changes()
        with self._lock:
            data = self._load()
            for entry in data["orders"]:
                if entry.get("id") == order_id:
                    break
            else:
                raise OrderNotFound(order_id)
            if fields:
                entry.update(fields)
                self._save(data)
        logger.info("Updated order %d: %s", order_id, ", ".join(fields) or "no changes")
        return _to_order(entry)

    def list(self) -> list[Order]:
        data = self._load()
        return [_to_order(o) for o in reversed(data["orders"])]
