# DB connections

import asyncio
from contextlib import asynccontextmanager, nullcontext
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from email_tracker.core.config import Settings
from email_tracker.models.tracking import Base
import structlog

logger = structlog.get_logger()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Storage client shared by all requests of one process.

    SQLite allows a single writer per file, so writes on that backend are
    serialized through an asyncio lock. Reads never take the lock.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.is_sqlite = engine.dialect.name == "sqlite"
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False
        )
        self._write_lock = asyncio.Lock() if self.is_sqlite else None

        if self.is_sqlite:
            event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        options = {"echo": settings.debug}
        if not settings.database_url.startswith("sqlite"):
            options.update(pool_size=20, max_overflow=0)
        return cls(create_async_engine(settings.database_url, **options))

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Session for read-only work"""
        async with self.session_factory() as session:
            yield session

    @asynccontextmanager
    async def writer(self) -> AsyncIterator[AsyncSession]:
        """Session for writes; the caller commits"""
        guard = self._write_lock if self._write_lock is not None else nullcontext()
        async with guard:
            async with self.session_factory() as session:
                yield session

    async def create_schema(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ready", dialect=self.engine.dialect.name)

    async def dispose(self):
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    """Dependency for getting the process-wide storage client"""
    return request.app.state.database
