"""
SQLAlchemy-backed record store.

Uses the async engine (asyncpg in production, aiosqlite locally) over the
tables declared in db_models. Procedures run inside a single transaction.
"""
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from sqlalchemy import Table, func, insert, select, text, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from public_api_server.config import Settings
from public_api_server.db_models import Base
from public_api_server.logging_config import get_logger
from public_api_server.store import (
    CREATE_SMM_ORDER_PROCEDURE,
    INSUFFICIENT_BALANCE_ERROR,
    Filter,
    InMemoryRecordStore,
    RecordStore,
    StoreError,
    UnknownProcedure,
    build_smm_order_rows,
    utcnow,
)

logger = get_logger(__name__)

Procedure = Callable[[AsyncConnection, Dict[str, Any]], Awaitable[Dict[str, Any]]]


class SQLAlchemyRecordStore(RecordStore):
    """RecordStore over a relational database."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        echo: bool = False,
        pool_size: int = 20,
        engine: Optional[AsyncEngine] = None,
    ):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            kwargs: Dict[str, Any] = {"echo": echo}
            if database_url.startswith("postgresql"):
                kwargs["pool_size"] = pool_size
                kwargs["pool_pre_ping"] = True
            engine = create_async_engine(database_url, **kwargs)
        self._engine = engine
        self._procedures: Dict[str, Procedure] = {
            CREATE_SMM_ORDER_PROCEDURE: self._create_smm_order_with_balance,
        }

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_all(self) -> None:
        """Create every table; local development and tests only."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @staticmethod
    def _table(name: str) -> Table:
        try:
            return Base.metadata.tables[name]
        except KeyError:
            raise StoreError(f"Unknown table: {name}")

    @staticmethod
    def _where(table: Table, filters: Sequence[Filter]) -> List[Any]:
        clauses = []
        for f in filters:
            try:
                column = table.c[f.column]
            except KeyError:
                raise StoreError(f"Unknown column {table.name}.{f.column}")
            if f.op == "eq":
                clauses.append(column == f.value)
            elif f.op == "gte":
                clauses.append(column >= f.value)
            elif f.op == "lte":
                clauses.append(column <= f.value)
            else:
                raise StoreError(f"Unsupported filter operator: {f.op}")
        return clauses

    async def select(self, table, filters=(), *, order_by=None, limit=None, offset=0):
        t = self._table(table)
        stmt = select(t).where(*self._where(t, filters))
        if order_by:
            stmt = stmt.order_by(t.c[order_by])
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row) for row in result.mappings()]

    async def count(self, table, filters=()):
        t = self._table(table)
        stmt = select(func.count()).select_from(t).where(*self._where(t, filters))
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            return int(result.scalar_one())

    async def insert(self, table, values):
        t = self._table(table)
        stmt = insert(t).values(**values).returning(*t.c)
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
            return dict(result.mappings().one())

    async def update(self, table, values, filters):
        t = self._table(table)
        stmt = update(t).where(*self._where(t, filters)).values(**values)
        async with self._engine.begin() as conn:
            result = await conn.execute(stmt)
            return result.rowcount

    async def call(self, procedure, params):
        try:
            handler = self._procedures[procedure]
        except KeyError:
            raise UnknownProcedure(procedure)

        async with self._engine.begin() as conn:
            return await handler(conn, params)

    async def _create_smm_order_with_balance(
        self, conn: AsyncConnection, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        profiles = self._table("profiles")
        charge = Decimal(str(params["p_charge"]))

        # Conditional decrement: the row lock taken by UPDATE serializes
        # concurrent orders for the same user.
        result = await conn.execute(
            update(profiles)
            .where(
                profiles.c.user_id == params["p_user_id"],
                profiles.c.balance >= charge,
            )
            .values(balance=profiles.c.balance - charge)
        )
        if result.rowcount != 1:
            return {"success": False, "error": INSUFFICIENT_BALANCE_ERROR}

        order, transaction = build_smm_order_rows(params, charge, utcnow())
        await conn.execute(insert(self._table("smm_orders")).values(**order))
        await conn.execute(insert(self._table("wallet_transactions")).values(**transaction))

        logger.info(
            "smm_order_committed",
            order_number=order["order_number"],
            user_id=order["user_id"],
            charge=str(charge),
        )
        return {"success": True, "order_id": order["id"]}

    async def ping(self) -> bool:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("store_ping_failed", error=str(e))
            return False

    async def close(self) -> None:
        await self._engine.dispose()


def create_record_store(settings: Settings) -> RecordStore:
    """Pick the store implementation from DATABASE_URL."""
    if settings.uses_memory_store:
        return InMemoryRecordStore()
    return SQLAlchemyRecordStore(
        settings.database_url,
        echo=settings.database_echo,
        pool_size=settings.database_pool_size,
    )
