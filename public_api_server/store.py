"""
Record store interface.

The gateway owns no state between requests. Everything it reads or writes
goes through a RecordStore: rows are plain dicts addressed by table name
and a list of filters, plus named atomic procedures for the operations
that must not be split into separate read/write calls.

InMemoryRecordStore keeps everything in process (development and tests);
the SQLAlchemy-backed store lives in sql_store.py.
"""
import asyncio
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence

CREATE_SMM_ORDER_PROCEDURE = "create_smm_order_with_balance"
INSUFFICIENT_BALANCE_ERROR = "Insufficient balance"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Filter(NamedTuple):
    """column <op> value"""
    column: str
    op: str
    value: Any


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


class StoreError(Exception):
    """Raised when the record store cannot complete an operation."""


class UnknownProcedure(StoreError):
    pass


class RecordStore(ABC):
    """Generic query/insert/update/count/procedure interface."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        ...

    async def select_one(
        self, table: str, filters: Sequence[Filter] = ()
    ) -> Optional[Dict[str, Any]]:
        """First matching row or None."""
        rows = await self.select(table, filters, limit=1)
        return rows[0] if rows else None

    @abstractmethod
    async def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        ...

    @abstractmethod
    async def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def update(
        self, table: str, values: Dict[str, Any], filters: Sequence[Filter]
    ) -> int:
        ...

    @abstractmethod
    async def call(self, procedure: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Run a named atomic operation and return its structured result."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def build_smm_order_rows(params: Dict[str, Any], charge: Decimal, now: datetime):
    """Rows written by create_smm_order_with_balance once the balance is deducted."""
    order_id = str(uuid.uuid4())
    order = {
        "id": order_id,
        "user_id": params["p_user_id"],
        "service_id": params.get("p_service_id"),
        "order_number": params["p_order_number"],
        "external_order_id": str(params["p_external_order_id"]),
        "link": params["p_link"],
        "quantity": int(params["p_quantity"]),
        "charge": charge,
        "status": "Pending",
        "created_at": now,
    }
    transaction = {
        "id": str(uuid.uuid4()),
        "user_id": params["p_user_id"],
        "amount": -charge,
        "type": "smm_order",
        "reference_type": "smm_order",
        "reference_id": order_id,
        "note": f"SMM order {params['p_order_number']}",
        "status": "completed",
        "created_at": now,
    }
    return order, transaction


def _matches(row: Dict[str, Any], filters: Iterable[Filter]) -> bool:
    for f in filters:
        value = row.get(f.column)
        if f.op == "eq":
            if value != f.value:
                return False
        elif value is None:
            return False
        elif f.op == "gte":
            if not value >= f.value:
                return False
        elif f.op == "lte":
            if not value <= f.value:
                return False
        else:
            raise StoreError(f"Unsupported filter operator: {f.op}")
    return True


class InMemoryRecordStore(RecordStore):
    """Dict-of-lists record store. Procedures are serialized by one lock."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._lock = asyncio.Lock()
        self._clock = clock or utcnow

    def seed(self, table: str, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Load rows synchronously; used by tests and local fixtures."""
        return [self._insert_row(table, row) for row in rows]

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._tables[table]]

    def _insert_row(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(values)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self._clock())
        self._tables[table].append(row)
        return row

    def _filter(self, table: str, filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        return [row for row in self._tables[table] if _matches(row, filters)]

    async def select(self, table, filters=(), *, order_by=None, limit=None, offset=0):
        rows = self._filter(table, filters)
        if order_by:
            rows = sorted(
                rows,
                key=lambda r: (r.get(order_by) is None, r.get(order_by) or 0),
            )
        rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        return [dict(row) for row in rows]

    async def count(self, table, filters=()):
        return len(self._filter(table, filters))

    async def insert(self, table, values):
        return dict(self._insert_row(table, values))

    async def update(self, table, values, filters):
        matched = self._filter(table, filters)
        for row in matched:
            row.update(values)
        return len(matched)

    async def call(self, procedure, params):
        if procedure != CREATE_SMM_ORDER_PROCEDURE:
            raise UnknownProcedure(procedure)

        async with self._lock:
            charge = Decimal(str(params["p_charge"]))
            profiles = self._filter("profiles", [eq("user_id", params["p_user_id"])])
            if not profiles:
                return {"success": False, "error": "Profile not found"}

            profile = profiles[0]
            balance = Decimal(str(profile.get("balance") or 0))
            if balance < charge:
                return {"success": False, "error": INSUFFICIENT_BALANCE_ERROR}

            profile["balance"] = balance - charge
            order, transaction = build_smm_order_rows(params, charge, self._clock())
            self._insert_row("smm_orders", order)
            self._insert_row("wallet_transactions", transaction)
            return {"success": True, "order_id": order["id"]}
