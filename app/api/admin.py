"""
FastAPI Endpoints for Policy Administration

All routes require the admin role and carry a per-IP slowapi limit.

Routes:
- GET    /rate-limits            policy + every subject's bucket
- PUT    /rate-limits            partial policy update
- GET    /blacklist              all blacklist entries, newest first
- DELETE /blacklist/{subject_id} lift an active suspension early
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status

from app.api.dependencies import get_clock, get_record_store
from app.api.schemas import (
    BlacklistEntryResponse,
    BlacklistRemovalResponse,
    BlacklistResponse,
    BucketResponse,
    PolicyResponse,
    PolicyUpdateResponse,
    RateLimitOverviewResponse,
)
from app.core.clock import Clock
from app.core.exceptions import NotFoundError, PolicyValidationError, StoreError
from app.core.identity import require_admin
from app.core.rate_limit import RATE_LIMITS, limiter
from app.core.validators import sanitize_subject_id
from app.services.admin_service import AdminService
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


def get_admin_service(
    store: RecordStore = Depends(get_record_store),
    clock: Clock = Depends(get_clock)
) -> AdminService:
    return AdminService(store, clock=clock)


def _store_failure(action: str, error: StoreError) -> HTTPException:
    logger.error(f"Error {action}: {error}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )


@router.get(
    "/rate-limits",
    response_model=RateLimitOverviewResponse,
    summary="Get policy and all rate limit buckets"
)
@limiter.limit(RATE_LIMITS["admin"])
async def get_rate_limits(
    request: Request,
    service: AdminService = Depends(get_admin_service)
) -> RateLimitOverviewResponse:
    try:
        overview = await service.get_overview()
    except StoreError as e:
        raise _store_failure("retrieve rate limits", e)

    return RateLimitOverviewResponse(
        settings=PolicyResponse.model_validate(overview["settings"]),
        user_rate_limits=[BucketResponse.model_validate(b) for b in overview["user_rate_limits"]],
    )


@router.put(
    "/rate-limits",
    response_model=PolicyUpdateResponse,
    summary="Update global rate limit settings",
    description="Partial update: only the fields present are changed; each must be a positive number"
)
@limiter.limit(RATE_LIMITS["admin"])
async def update_rate_limits(
    request: Request,
    payload: Any = Body(default=None),
    service: AdminService = Depends(get_admin_service)
) -> PolicyUpdateResponse:
    """
    Update the global policy.

    Raises:
        HTTPException 400: If no setting is provided or a value is not positive
        HTTPException 500: If the store fails
    """
    try:
        policy = await service.update_policy(payload if payload is not None else {})
    except PolicyValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.reason
        )
    except StoreError as e:
        raise _store_failure("update rate limit settings", e)

    return PolicyUpdateResponse(settings=PolicyResponse.model_validate(policy))


@router.get(
    "/blacklist",
    response_model=BlacklistResponse,
    summary="List blacklist entries"
)
@limiter.limit(RATE_LIMITS["admin"])
async def get_blacklist(
    request: Request,
    service: AdminService = Depends(get_admin_service)
) -> BlacklistResponse:
    try:
        entries = await service.list_blacklist()
    except StoreError as e:
        raise _store_failure("retrieve blacklist", e)

    return BlacklistResponse(
        blacklist_entries=[BlacklistEntryResponse.model_validate(entry) for entry in entries]
    )


@router.delete(
    "/blacklist/{subject_id}",
    response_model=BlacklistRemovalResponse,
    summary="Remove a subject from the blacklist",
    description="Only an active suspension can be removed; expired entries are kept as history"
)
@limiter.limit(RATE_LIMITS["admin"])
async def remove_from_blacklist(
    subject_id: str,
    request: Request,
    service: AdminService = Depends(get_admin_service)
) -> BlacklistRemovalResponse:
    """
    Raises:
        HTTPException 400: If the subject id format is invalid
        HTTPException 404: If the subject has no active blacklist entry
    """
    sanitized_id = sanitize_subject_id(subject_id)
    if not sanitized_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid subject id format: '{subject_id}'"
        )

    try:
        await service.remove_from_blacklist(sanitized_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
    except StoreError as e:
        raise _store_failure("remove user from blacklist", e)

    return BlacklistRemovalResponse(user_id=sanitized_id)
