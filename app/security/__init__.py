"""Security utilities for the Flightwatch backend."""

from .api_keys import API_KEY_HEADER, ApiKeyPrincipal, keys_match
from .dependencies import require_api_key

__all__ = [
    "API_KEY_HEADER",
    "ApiKeyPrincipal",
    "keys_match",
    "require_api_key",
]
