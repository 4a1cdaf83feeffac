from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def _enable_immediate_transactions(engine) -> None:
    # pysqlite/aiosqlite defer BEGIN until the first write; take the write lock
    # up front so read-check-write sequences cannot interleave.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class LedgerStore:
    """Owns the engine and session factory for the orders/authorizations/settlements tables."""

    def __init__(self, database_url: str, echo: bool = False):
        url = make_url(database_url)
        self.is_sqlite = url.get_backend_name() == "sqlite"
        if self.is_sqlite and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_async_engine(database_url, echo=echo)
        if self.is_sqlite:
            _enable_immediate_transactions(self.engine)
        self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)

    def session(self) -> AsyncSession:
        return self.sessionmaker()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """One session, one transaction: commits on success, rolls back on any error."""
        async with self.sessionmaker() as session:
            async with session.begin():
                yield session

    async def create_all(self):
        # Import models so they register with Base
        from services.order_service import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self):
        from services.order_service import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self):
        await self.engine.dispose()


def get_store(request: Request) -> LedgerStore:
    return request.app.state.store


async def get_db(request: Request):
    async with get_store(request).session() as session:
        yield session
