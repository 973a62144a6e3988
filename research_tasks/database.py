# research_tasks/database.py
import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Owns the engine and session factory for one running application.

    Built at startup, stored on ``app.state.db`` and disposed at shutdown.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo)
        self.sessionmaker = async_sessionmaker(
            bind=self.engine, expire_on_commit=False, class_=AsyncSession
        )
        if self.is_sqlite:
            # SQLite ignores FOREIGN KEY ... ON DELETE CASCADE unless asked
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    @property
    def is_sqlite(self) -> bool:
        return self.engine.dialect.name == "sqlite"

    async def create_all(self) -> None:
        # import models so they register on Base.metadata
        from research_tasks import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    database: Database = request.app.state.db
    async with database.sessionmaker() as session:
        yield session
