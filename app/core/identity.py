"""
Identity Provider Contract

Authentication happens upstream. The identity provider forwards the
authenticated subject id and role in trusted headers, and this module reads
them. Nothing here verifies credentials.

- Admission control only applies to subjects with the rate-limited role
- Admin routes require the admin role
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status

from app.core.setting import settings
from app.core.validators import normalize_role, sanitize_subject_id


@dataclass(frozen=True)
class Identity:
    subject_id: str
    role: Optional[str]


def get_identity(request: Request) -> Optional[Identity]:
    """
    Read the caller's identity from the identity provider headers.

    Returns:
        Identity, or None when no valid subject id was forwarded
    """
    subject_id = sanitize_subject_id(request.headers.get(settings.SUBJECT_ID_HEADER))
    if subject_id is None:
        return None
    role = normalize_role(request.headers.get(settings.SUBJECT_ROLE_HEADER))
    return Identity(subject_id=subject_id, role=role)


def is_rate_limited(identity: Optional[Identity]) -> bool:
    return identity is not None and identity.role == settings.RATE_LIMITED_ROLE


def _require_role(request: Request, role: str, detail: str) -> Identity:
    identity = get_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required"
        )
    if identity.role != role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )
    return identity


def require_user(request: Request) -> Identity:
    """FastAPI dependency: caller must carry the rate-limited role."""
    return _require_role(request, settings.RATE_LIMITED_ROLE, "User access required")


def require_admin(request: Request) -> Identity:
    """FastAPI dependency: caller must carry the admin role."""
    return _require_role(request, settings.ADMIN_ROLE, "Admin access required")
