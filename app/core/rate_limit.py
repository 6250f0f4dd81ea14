"""
IP Throttling Configuration

Token-bucket admission (app.middleware.admission) covers the guarded API.
The routes outside it, the self-service status route and the admin routes,
still need a coarse guard so they cannot be hammered. That guard is slowapi,
keyed by client IP.

Format: "count/period" (e.g., "30/minute" means 30 requests per minute per IP)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.setting import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.IP_THROTTLE_ENABLED)

RATE_LIMITS = {
    "status": settings.STATUS_RATE_LIMIT,
    "admin": settings.ADMIN_RATE_LIMIT,
}
