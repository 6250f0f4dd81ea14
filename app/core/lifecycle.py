"""
Database Lifecycle

Startup and shutdown hooks for the database engine.

Design:
- On startup, missing tables are created when AUTO_CREATE_TABLES is set
  (local development); deployed databases are migrated with Alembic and run
  with AUTO_CREATE_TABLES=false
- On shutdown, the engine's pooled connections are closed
"""

import logging

from app.core.setting import settings
from app.db.session import db_adapter, engine

logger = logging.getLogger(__name__)


async def initialize_database() -> None:
    """Create missing tables if configured to."""
    if not settings.AUTO_CREATE_TABLES:
        logger.info("AUTO_CREATE_TABLES disabled, expecting an Alembic-managed schema")
        return

    try:
        await db_adapter.create_schema(engine)
        logger.info(f"Database schema ready ({db_adapter.get_dialect_name()})")
    except Exception as e:
        logger.error(f"Failed to create database schema: {str(e)}", exc_info=True)
        raise


async def shutdown_database() -> None:
    """Dispose of the engine and its pooled connections."""
    logger.info("Disposing database engine")
    await engine.dispose()
