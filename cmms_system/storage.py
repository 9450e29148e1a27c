"""SQLite-backed persistence for the CMMS collections.

Every mutation is committed immediately so the file on disk always mirrors
the in-memory state the service works with.
"""

from __future__ import annotations

import logging
import pickle
import sqlite3
from pathlib import Path
from typing import Callable, Generic, Iterator, List, Optional, TypeVar, Union

from .domain import (
    Asset,
    LogNote,
    MaintenancePlan,
    Part,
    PurchaseRecord,
    SafetyRecord,
    WorkOrder,
)
from .repository import DuplicateRecordError, RecordNotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TABLES = (
    "assets",
    "parts",
    "plans",
    "work_orders",
    "logs",
    "safety",
    "purchases",
    "locations",
)


class SQLiteRepository(Generic[T]):
    """Repository that stores pickled records in a two-column table."""

    def __init__(self, connection: sqlite3.Connection, table: str) -> None:
        if table not in TABLES:
            raise ValueError(f"Unknown table {table!r}")
        self._connection = connection
        self._table = table
        self._connection.execute(
            f"CREATE TABLE IF NOT EXISTS {table} ("  # nosec - static table names
            "seq INTEGER PRIMARY KEY AUTOINCREMENT, "
            "id TEXT NOT NULL UNIQUE, payload BLOB NOT NULL)"
        )
        self._connection.commit()

    def __contains__(self, item_id: object) -> bool:
        if not isinstance(item_id, str):
            return False
        cursor = self._connection.execute(
            f"SELECT 1 FROM {self._table} WHERE id = ? LIMIT 1", (item_id,)
        )
        return cursor.fetchone() is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def __len__(self) -> int:
        cursor = self._connection.execute(f"SELECT COUNT(1) FROM {self._table}")
        value = cursor.fetchone()
        return int(value[0]) if value else 0

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def add(self, item_id: str, item: T) -> None:
        if item_id in self:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        self._connection.execute(
            f"INSERT INTO {self._table} (id, payload) VALUES (?, ?)",
            (item_id, pickle.dumps(item)),
        )
        self._connection.commit()

    def upsert(self, item_id: str, item: T) -> None:
        self._connection.execute(
            f"INSERT INTO {self._table} (id, payload) VALUES (?, ?) "
            "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload",
            (item_id, pickle.dumps(item)),
        )
        self._connection.commit()

    def get(self, item_id: str) -> T:
        cursor = self._connection.execute(
            f"SELECT payload FROM {self._table} WHERE id = ?", (item_id,)
        )
        row = cursor.fetchone()
        if row is None:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        item = self._decode(item_id, row[0])
        if item is None:
            raise RecordNotFoundError(f"Record with id {item_id!r} is unreadable")
        return item

    def remove(self, item_id: str) -> None:
        cursor = self._connection.execute(
            f"DELETE FROM {self._table} WHERE id = ?", (item_id,)
        )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        self._connection.commit()

    def list(self) -> List[T]:
        cursor = self._connection.execute(
            f"SELECT id, payload FROM {self._table} ORDER BY seq"
        )
        items: List[T] = []
        for item_id, payload in cursor.fetchall():
            item = self._decode(item_id, payload)
            if item is not None:
                items.append(item)
        return items

    def filter(self, predicate: Callable[[T], bool]) -> List[T]:
        return [item for item in self.list() if predicate(item)]

    def _decode(self, item_id: str, payload: bytes) -> Optional[T]:
        try:
            return pickle.loads(payload)
        except Exception:
            # Any payload pickle cannot rebuild, including ones whose class moved.
            logger.exception("Skipping unreadable %s record %r", self._table, item_id)
            return None


class CMMSDatabase:
    """Convenience facade bundling SQLite repositories for all collections."""

    def __init__(self, path: Union[str, Path]) -> None:
        path = Path(path)
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(str(path), check_same_thread=False)
        self._connection = connection
        self.assets = SQLiteRepository[Asset](connection, "assets")
        self.parts = SQLiteRepository[Part](connection, "parts")
        self.plans = SQLiteRepository[MaintenancePlan](connection, "plans")
        self.work_orders = SQLiteRepository[WorkOrder](connection, "work_orders")
        self.logs = SQLiteRepository[LogNote](connection, "logs")
        self.safety = SQLiteRepository[SafetyRecord](connection, "safety")
        self.purchases = SQLiteRepository[PurchaseRecord](connection, "purchases")
        self.locations = SQLiteRepository[str](connection, "locations")
        logger.debug("Opened CMMS database at %s", path)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "CMMSDatabase":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[BaseException],
    ) -> None:
        self.close()


__all__ = ["SQLiteRepository", "CMMSDatabase"]
