"""
Request Classifier

Maps an incoming request to the cost class it is charged under. Shortening
a URL is the expensive operation; every other guarded request is standard.
"""

from enum import Enum

from app.core.setting import settings


class CostClass(str, Enum):
    STANDARD = "standard"
    SHORTEN_URL = "shortenUrl"


def classify_request(method: str, path: str, api_prefix: str = None) -> CostClass:
    """
    Decide the cost class from method and path.

    Args:
        method: HTTP method
        path: Full request path (including the API prefix)
        api_prefix: Guarded prefix (defaults to settings.API_PREFIX)

    Returns:
        CostClass.SHORTEN_URL for POST <prefix>/shorten, CostClass.STANDARD otherwise
    """
    prefix = (api_prefix if api_prefix is not None else settings.API_PREFIX).rstrip("/")
    relative_path = path[len(prefix):] if path.startswith(prefix) else path
    relative_path = relative_path.rstrip("/") or "/"

    if method.upper() == "POST" and relative_path == settings.SHORTEN_PATH:
        return CostClass.SHORTEN_URL
    return CostClass.STANDARD
