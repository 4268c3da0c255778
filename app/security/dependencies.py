"""FastAPI dependencies for request authentication."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from app.config import settings
from app.security.api_keys import API_KEY_HEADER, ApiKeyPrincipal, keys_match

logger = logging.getLogger("flightwatch.security")

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def _auth_error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


async def require_api_key(
    api_key: str | None = Security(api_key_header),
) -> ApiKeyPrincipal:
    """Authenticate control requests against the configured shared key."""

    expected = settings.control_api_key
    if not expected:
        return ApiKeyPrincipal(key_id="open", label="no control key configured")

    if not api_key or not api_key.strip():
        raise _auth_error(status.HTTP_401_UNAUTHORIZED, "api_key_missing", "API key header is required")

    if not keys_match(api_key, expected):
        logger.warning("Rejected control request with invalid API key")
        raise _auth_error(status.HTTP_401_UNAUTHORIZED, "api_key_invalid", "Invalid API key")

    return ApiKeyPrincipal(key_id="control", label="shared key")
