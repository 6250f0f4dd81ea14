"""
FastAPI Endpoints for Rate Limit Status

Self-service route for rate-limited subjects. It sits under the guarded API
prefix but is exempt from token-bucket admission, so checking your balance
never costs tokens. A coarse per-IP slowapi limit applies instead.

Design Principles:
- Thin endpoints: identity, throttling and HTTP error mapping only
- Service layer: all bucket arithmetic (app.services.status_service)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.dependencies import get_clock, get_record_store
from app.api.schemas import RateLimitStatusResponse
from app.core.clock import Clock
from app.core.exceptions import StoreError
from app.core.identity import Identity, require_user
from app.core.rate_limit import RATE_LIMITS, limiter
from app.core.setting import settings
from app.services.policy_service import PolicyService
from app.services.record_store import RecordStore
from app.services.status_service import StatusService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    settings.STATUS_PATH,
    response_model=RateLimitStatusResponse,
    summary="Get rate limit status",
    description="Returns the caller's refilled token balance and abuse-window counters without charging a cost"
)
@limiter.limit(RATE_LIMITS["status"])
async def get_rate_limit_status(
    request: Request,  # Required for rate limiting (slowapi expects parameter named 'request')
    identity: Identity = Depends(require_user),
    store: RecordStore = Depends(get_record_store),
    clock: Clock = Depends(get_clock)
) -> RateLimitStatusResponse:
    """
    Get the caller's rate limit status.

    Returns:
        RateLimitStatusResponse with tokens, costs, countdowns and abuse-window state

    Raises:
        HTTPException 401/403: If the caller is not a rate-limited subject
        HTTPException 404: If the caller has never been through admission
        HTTPException 429: If the IP throttle is exceeded
        HTTPException 500: If the store fails
    """
    try:
        policy = await PolicyService(store, clock=clock).get_policy()
        status_data = await StatusService(store, clock=clock).get_status(identity.subject_id, policy)
    except StoreError as e:
        logger.error(f"Error getting rate limit status for {identity.subject_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get rate limit status"
        )

    if not status_data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Rate limit information not found"
        )

    return RateLimitStatusResponse(**status_data)
