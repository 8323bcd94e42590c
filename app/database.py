"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - build_engine(): Creates the async engine (with SQLite foreign keys enabled)
  - build_session_factory(): Creates the AsyncSession factory for an engine
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request

No engine is created at import time. The application lifespan (see main.py)
builds the engine and session factory and stores them on `app.state`;
get_db() reads the factory from there. Tests build their own engine and
override get_db.

Foreign keys:
  Cascade/restrict rules live in the schema (ForeignKey(ondelete=...)).
  SQLite ignores them unless `PRAGMA foreign_keys=ON` is issued on every
  connection, which build_engine() does via a connect listener.

Session lifecycle:
  Each API request gets its own session via get_db(). The session commits
  on success and rolls back on any exception, so multi-row writes (an
  account and its opening balance) are all-or-nothing.
"""

from pathlib import Path

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    echo=True logs all SQL statements — invaluable for development.
    """
    engine = create_async_engine(database_url, echo=echo)

    if engine.dialect.name == "sqlite":
        # sqlite creates the file but not its directory (./data by default)
        if engine.url.database and engine.url.database != ":memory:":
            Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create the session factory bound to an engine.

    expire_on_commit=False prevents lazy-load errors after commit —
    without this, accessing attributes on a committed object would trigger
    a synchronous DB call, which fails in async context.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Provides metadata tracking for table creation and migrations.
    """
    pass


async def get_db(request: Request):
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed on success and rolled back on any exception,
    then closed when the request completes.
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
