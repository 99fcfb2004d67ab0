"""Database configuration and session management."""

from collections.abc import AsyncGenerator
from functools import lru_cache
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from deadline.config import get_settings


def _normalize_database_url(db_url: str) -> str:
    """Normalize database URL to ensure async driver is used."""
    # Ensure aiosqlite driver is used for SQLite
    if db_url.startswith("sqlite:///"):
        db_url = db_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

    # Handle relative paths for SQLite
    if db_url.startswith("sqlite+aiosqlite:///"):
        path_part = db_url.split("sqlite+aiosqlite:///")[-1]
        if path_part and not path_part.startswith("/") and path_part != ":memory:":
            # Relative path - resolve against the working directory
            abs_path = (Path.cwd() / path_part).resolve()
            # The instance/ directory may not exist on a fresh checkout
            abs_path.parent.mkdir(parents=True, exist_ok=True)
            db_url = f"sqlite+aiosqlite:///{abs_path}"

    return db_url


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Set SQLite pragmas for the API and the ARQ worker sharing one file."""
    cursor = dbapi_connection.cursor()
    # WAL lets the public read endpoints run while a pipeline run writes
    cursor.execute("PRAGMA journal_mode=WAL")
    # Wait up to 60 seconds for the writer lock
    cursor.execute("PRAGMA busy_timeout=60000")
    # Synchronous NORMAL is safe with WAL
    cursor.execute("PRAGMA synchronous=NORMAL")
    # event_details and event_updates reference events
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@lru_cache
def get_engine() -> AsyncEngine:
    """Get cached async engine instance."""
    settings = get_settings()
    db_url = _normalize_database_url(settings.database_url)

    # SQLite: one file shared by the API process and the worker
    if "sqlite" in db_url:
        engine = create_async_engine(
            db_url,
            echo=settings.debug,
            future=True,
            connect_args={
                "check_same_thread": False,
                "timeout": 60,
            },
        )
        # Set pragmas on each new connection
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
        return engine

    return create_async_engine(
        db_url,
        echo=settings.debug,
        future=True,
    )


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides an async database session."""
    engine = get_engine()
    # Objects stay readable after commit; the pipeline reads them back for responses
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


class AsyncSessionMaker:
    """Context manager for creating async sessions outside of FastAPI dependencies."""

    async def __aenter__(self) -> AsyncSession:
        self.session = AsyncSession(get_engine(), expire_on_commit=False)
        return self.session

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.session.close()


def async_session_maker() -> AsyncSessionMaker:
    """Create a context manager for async sessions."""
    return AsyncSessionMaker()
