"""Async SQLAlchemy engine and session factory."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from notifyhub.config import settings

# Seconds a SQLite writer waits on a locked database (live streams and the
# consumer write concurrently)
SQLITE_BUSY_TIMEOUT = 15


def create_db_engine(url: str | None = None) -> AsyncEngine:
    db_url = url or settings.effective_database_url
    if db_url.startswith("sqlite"):
        return create_async_engine(db_url, echo=False, connect_args={"timeout": SQLITE_BUSY_TIMEOUT})
    return create_async_engine(db_url, echo=False, pool_size=10, max_overflow=20, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows stay readable after commit; services return them to the API layer
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
