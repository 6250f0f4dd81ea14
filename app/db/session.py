"""
Database Session Management

This module handles async database connections using SQLAlchemy's async engine.

Key Features:
- Database abstraction: adapter chosen from DATABASE_URL
- Async session management: one session per request (one read-modify-write)
- Error handling: Automatic rollback on exceptions

The session factory actually used by a running app is stored on
app.state.session_maker (see app.main.create_app), so tests can point the
whole app, middleware included, at an in-memory database.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.setting import settings
from app.db.factory import get_database_adapter

db_adapter = get_database_adapter(settings.DATABASE_URL)

engine = db_adapter.create_engine(settings.DATABASE_URL)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """
    Create an async session factory bound to an engine.

    expire_on_commit=False keeps records readable after commit, which the
    routes rely on when serialising a bucket they just saved.
    """
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async_session_maker = build_session_maker(engine)


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function for FastAPI to get database session.

    This function:
    - Creates a new async session from the app's session factory
    - Yields it to the endpoint
    - Automatically commits on success
    - Rolls back on exception

    Usage in FastAPI:
        @router.get("/endpoint")
        async def endpoint(session: AsyncSession = Depends(get_session)):
            pass
    """
    session_maker = getattr(request.app.state, "session_maker", async_session_maker)
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
