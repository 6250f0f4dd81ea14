"""
Admission Middleware

Guards every request under API_PREFIX with token-bucket admission control.

Flow:
- Paths outside API_PREFIX, and the status route, pass straight through
- Callers without the rate-limited role pass straight through (admins,
  anonymous requests; the route's own auth dependency deals with them)
- Otherwise: load the policy once, classify the request, run
  AdmissionController.admit() and commit the bucket before answering
    Allowed     -> continue, with X-RateLimit-* headers on the response
    Denied      -> 429 with the denial body and Retry-After
    Blacklisted -> 403 with the suspension body
- Store failures answer 500; the request is neither admitted nor denied
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.schemas import BlacklistedResponse, DeniedResponse
from app.core.classifier import classify_request
from app.core.clock import utc_now
from app.core.exceptions import StoreError
from app.core.identity import get_identity, is_rate_limited
from app.core.setting import settings
from app.db.session import async_session_maker
from app.services.admission_service import AdmissionController
from app.services.decisions import Allowed, Blacklisted, Denied
from app.services.policy_service import PolicyService
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)


def is_guarded_path(path: str) -> bool:
    prefix = settings.API_PREFIX.rstrip("/")
    if path != prefix and not path.startswith(prefix + "/"):
        return False
    # Status reads are never charged a cost, although they sit under API_PREFIX
    return path.rstrip("/") != prefix + settings.STATUS_PATH


class AdmissionMiddleware(BaseHTTPMiddleware):
    """
    Token-bucket admission for rate-limited subjects.
    """

    async def dispatch(self, request: Request, call_next):
        if not is_guarded_path(request.url.path):
            return await call_next(request)

        identity = get_identity(request)
        if not is_rate_limited(identity):
            return await call_next(request)

        clock = getattr(request.app.state, "clock", utc_now)
        session_maker = getattr(request.app.state, "session_maker", async_session_maker)
        cost_class = classify_request(request.method, request.url.path)

        try:
            async with session_maker() as session:
                store = RecordStore(session)
                policy = await PolicyService(store, clock=clock).get_policy()
                decision = await AdmissionController(store, clock=clock).admit(
                    identity.subject_id,
                    cost_class,
                    policy,
                    now=clock()
                )
                await session.commit()
        except (StoreError, SQLAlchemyError) as e:
            logger.error(f"Rate limiting error for {identity.subject_id}: {e}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Internal Server Error"}
            )

        if isinstance(decision, Blacklisted):
            body = BlacklistedResponse(
                error=decision.error,
                reason=decision.reason,
                blacklisted_until=decision.blacklisted_until,
                hours_remaining=decision.hours_remaining,
            )
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content=body.model_dump(by_alias=True, mode="json")
            )

        if isinstance(decision, Denied):
            body = DeniedResponse(
                error=decision.error,
                tokens_remaining=decision.tokens_remaining,
                reset_seconds=decision.reset_seconds,
                rate_limited_attempts=decision.attempt_count,
                attempts_reset_minutes=decision.attempts_reset_minutes,
                warning_message=decision.warning_message,
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=body.model_dump(by_alias=True, mode="json"),
                headers={"Retry-After": str(decision.reset_seconds)}
            )

        response = await call_next(request)
        if isinstance(decision, Allowed):
            response.headers["X-RateLimit-Limit"] = str(decision.limit)
            response.headers["X-RateLimit-Remaining"] = str(decision.tokens_remaining)
            response.headers["X-RateLimit-Reset"] = str(decision.reset_epoch)
        return response


def add_admission_middleware(app):
    """
    Add admission middleware to FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(AdmissionMiddleware)
