"""
PostgreSQL Database Adapter

Production backend (asyncpg driver, installed with the `postgres` extra).
Uses SQLAlchemy's default queue pool with pre-ping so connections dropped by
the server or a proxy are replaced instead of failing an admission decision.
"""

from typing import Any, Optional

from sqlalchemy.pool import Pool

from app.db.interface import DatabaseAdapter


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL database adapter implementation."""

    def __init__(self, pool_size: int = 10, max_overflow: int = 20):
        self.pool_size = pool_size
        self.max_overflow = max_overflow

    def get_pool_class(self) -> Optional[type[Pool]]:
        # Default AsyncAdaptedQueuePool
        return None

    def get_connect_args(self) -> dict[str, Any]:
        return {}

    def get_engine_kwargs(self) -> dict[str, Any]:
        return {
            "echo": False,
            "pool_pre_ping": True,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
        }

    def get_dialect_name(self) -> str:
        return "postgresql"
