"""Database engine, sessions and transaction helpers."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from courtbook.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite connections are switched to explicit ``BEGIN IMMEDIATE``
    transactions so concurrent writers are serialized by the database
    instead of failing on lock upgrades.
    """
    engine = create_async_engine(database_url, future=True, **kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory used by requests and background jobs."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=False)
AsyncSessionLocal = build_session_factory(engine)


async def init_db(bind: AsyncEngine = engine):
    """Create tables that do not exist yet."""
    # Import models so they register on the metadata
    import courtbook.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session_factory() -> async_sessionmaker:
    """Dependency returning the session factory for write transactions."""
    return AsyncSessionLocal


async def get_db() -> AsyncIterator[AsyncSession]:
    """Dependency yielding a request-scoped session."""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def serializable_transaction(
    session_factory: async_sessionmaker,
) -> AsyncIterator[AsyncSession]:
    """
    Open a fresh session inside a serializable transaction.

    Commits when the block exits normally and rolls back on any exception,
    so nothing written inside the block is visible unless every check
    passed.
    """
    async with session_factory() as session:
        if session.bind.dialect.name != "sqlite":
            await session.connection(
                execution_options={"isolation_level": "SERIALIZABLE"}
            )
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise
