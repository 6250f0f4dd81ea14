"""
Shared FastAPI dependencies.

The clock and the session factory are read from app.state so a test can
build an app with a manual clock and an in-memory database.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, utc_now
from app.db.session import get_session
from app.services.record_store import RecordStore


def get_clock(request: Request) -> Clock:
    return getattr(request.app.state, "clock", utc_now)


def get_record_store(session: AsyncSession = Depends(get_session)) -> RecordStore:
    return RecordStore(session)
