"""Shared-secret API key helpers for the control surface."""

from __future__ import annotations

import hmac
from dataclasses import dataclass

API_KEY_HEADER = "X-Flightwatch-API-Key"


@dataclass
class ApiKeyPrincipal:
    """Caller identity derived from an API key check."""

    key_id: str
    label: str | None = None


def keys_match(provided: str, expected: str) -> bool:
    """Compare two API keys in constant time."""

    return hmac.compare_digest(provided.strip().encode(), expected.encode())
