"""Database handle, declarative base and the unit of work.

A single `Database` is built at startup (see `palletrack.main.lifespan`),
kept on `app.state.database` and disposed at shutdown.  Request handlers get
a session through `get_db()`, which wraps the whole request in one
`unit_of_work()`:

    async with database.unit_of_work() as db:
        lot = await ledger.record_intake(db, "ACME", 100, "maria")

Everything executed inside the block is one transaction: it commits when the
block exits normally and rolls back on any exception.  SQLAlchemy errors are
re-raised as StorageError.

SQLite (development/tests) gets its implicit BEGIN replaced by
`BEGIN IMMEDIATE`, which takes the database write lock at transaction start
so that check-then-write sequences on different connections are serialised.
PostgreSQL relies on `SELECT ... FOR UPDATE` in the services instead.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from palletrack.config import Settings
from palletrack.middleware.exceptions import StorageError

logger = logging.getLogger("palletrack.database")


class Base(DeclarativeBase):
    """Declarative base for lots, tasks, discounts and movements."""
    pass


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _install_sqlite_immediate_begin(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # Let SQLAlchemy's "begin" event emit the BEGIN instead of the driver
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Engine + session factory with an explicit lifecycle."""

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int = 20,
        max_overflow: int = 10,
    ):
        self.url = url
        engine_kwargs: dict = {"echo": echo}
        if not _is_sqlite(url):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
            )
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        if _is_sqlite(url):
            _install_sqlite_immediate_begin(self.engine)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            echo=settings.db_echo,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )

    async def create_all(self) -> None:
        """Create any missing tables (startup bootstrap and tests)."""
        # Ensure every model is registered on Base.metadata
        import palletrack.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables ensured on %s", self.engine.url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside one transaction; commit or roll back on exit."""
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as exc:
                logger.error("Transaction rolled back: %s", exc)
                raise StorageError() from exc


# ── Session dependency ──────────────────────────────────────

def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a session whose transaction spans the request."""
    database = get_database(request)
    async with database.unit_of_work() as session:
        yield session
