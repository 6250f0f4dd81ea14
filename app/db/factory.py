"""
Database adapter selection.

The adapter is picked from the scheme of DATABASE_URL, so switching from
SQLite to PostgreSQL is a configuration change only.
"""

from app.db.interface import DatabaseAdapter
from app.db.postgres_adapter import PostgreSQLAdapter
from app.db.sqlite_adapter import SQLiteAdapter


def get_database_adapter(database_url: str) -> DatabaseAdapter:
    """
    Factory function to get the database adapter for a connection string.

    Args:
        database_url: SQLAlchemy async URL (sqlite+aiosqlite://..., postgresql+asyncpg://...)

    Returns:
        DatabaseAdapter instance

    Raises:
        ValueError: If the URL scheme has no adapter
    """
    scheme = database_url.split("://", 1)[0].lower()

    if scheme.startswith("sqlite"):
        return SQLiteAdapter(in_memory=":memory:" in database_url)

    if scheme.startswith("postgresql"):
        return PostgreSQLAdapter()

    raise ValueError(f"Unsupported database URL scheme: '{scheme}'")
