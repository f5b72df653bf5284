"""API key authentication dependency."""
import hmac
from typing import Optional

from fastapi import Request

from .config.settings import Settings
from .exceptions import AuthenticationError
from .logging import get_logger

logger = get_logger(__name__)


def _extract_presented_key(request: Request) -> Optional[str]:
    header_key = request.headers.get("X-API-Key", "").strip()
    if header_key:
        return header_key

    authorization = request.headers.get("Authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() not in {"bearer", "apikey"}:
        return None
    return value.strip() or None


def _matches(presented: str, keys: list) -> bool:
    # Compare against every key so timing does not reveal which one matched.
    matched = False
    for key in keys:
        if hmac.compare_digest(presented.encode(), key.encode()):
            matched = True
    return matched


async def require_auth(request: Request) -> None:
    """Reject the request unless it carries a configured API key.

    Authentication is disabled when no keys are configured.
    """
    settings: Settings = request.app.state.settings
    if not settings.auth_enabled:
        return

    presented = _extract_presented_key(request)
    if presented is None or not _matches(presented, settings.api_keys):
        logger.warning("auth_rejected", path=request.url.path, method=request.method)
        raise AuthenticationError("Authentication required")
