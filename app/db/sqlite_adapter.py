"""
SQLite Database Adapter

This module implements the DatabaseAdapter interface for SQLite (aiosqlite).

SQLite is the default store: one file, no server, fine for a single
instance. It serialises writers at the file level, which narrows (but does
not close) the window in which two requests from the same subject read the
same token balance.
"""

from typing import Any

from sqlalchemy.pool import NullPool, StaticPool

from app.db.interface import DatabaseAdapter


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter implementation.

    File databases use NullPool (a fresh connection per session). The
    in-memory database only exists for the lifetime of one connection, so it
    gets a StaticPool that hands out that single connection.
    """

    def __init__(self, in_memory: bool = False):
        self.in_memory = in_memory

    def get_pool_class(self) -> type:
        """
        Get the connection pool class for SQLite.

        Returns:
            StaticPool for ':memory:' databases, NullPool otherwise
        """
        return StaticPool if self.in_memory else NullPool

    def get_connect_args(self) -> dict[str, Any]:
        """
        Get SQLite-specific connection arguments.

        check_same_thread=False is required because aiosqlite runs the
        connection on its own worker thread.
        """
        return {
            "check_same_thread": False
        }

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False  # Set to True only for SQL debugging in development
        }

    def get_dialect_name(self) -> str:
        return "sqlite"
