from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from taskflow.config import settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given database URL."""
    if url.startswith("sqlite"):
        # Fresh connection per session so concurrent sessions get separate SQLite locks
        engine = create_async_engine(url, echo=echo, future=True, poolclass=NullPool)
        _configure_sqlite(engine)
        return engine
    return create_async_engine(url, echo=echo, future=True)


def _configure_sqlite(engine: AsyncEngine) -> None:
    # pysqlite defers BEGIN until the first write, which breaks SAVEPOINTs and
    # lets two readers both observe a row before either deletes it.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# Create Async Engine
engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

async_session_factory = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def init_db(bind: AsyncEngine = engine):
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        yield session


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block of work as a single atomic unit.

    Commits when the block exits cleanly and rolls back on any exception,
    cancellation included. A nested transaction() on the same session joins
    the outer one; only the outermost block commits or rolls back.
    """
    depth = session.info.get("transaction_depth", 0)
    session.info["transaction_depth"] = depth + 1
    try:
        yield session
        if depth == 0:
            await session.commit()
    except BaseException:
        if depth == 0:
            await session.rollback()
        raise
    finally:
        session.info["transaction_depth"] = depth
