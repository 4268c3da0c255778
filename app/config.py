"""Configuration settings for the Flightwatch tracker backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger("flightwatch.config")

DEFAULT_AIRPORTS_CSV = Path(__file__).resolve().parent / "data" / "airports.csv"


def _get_bool(env_var: str, default: bool = False) -> bool:
    """Parse an environment variable into a boolean with a default."""

    value = os.getenv(env_var)
    if value is None:
        return default

    return value.lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_if_api_key() -> str:
    """Return the Infinite Flight API key.

    ``IF_API_KEY`` wins when set. Otherwise the key is read from AWS SSM
    Parameter Store and cached in-memory; any failure to retrieve it results
    in a runtime error so the poller fails fast at startup.
    """

    from_env = os.getenv("IF_API_KEY")
    if from_env:
        return from_env

    parameter = os.getenv(
        "FLIGHTWATCH_IF_API_KEY_PARAM", "/flightwatch/infinite_flight/api_key"
    )
    try:
        ssm = boto3.client(
            "ssm",
            region_name=os.getenv("AWS_REGION")
            or os.getenv("AWS_DEFAULT_REGION")
            or "us-east-1",
        )
        response = ssm.get_parameter(Name=parameter, WithDecryption=True)
        value = response.get("Parameter", {}).get("Value")
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - AWS error passthrough
        logger.error("Failed to load Infinite Flight API key from SSM: %s", exc)
        raise RuntimeError("Unable to load Infinite Flight API key from SSM") from exc

    if not value:
        logger.error("Received empty Infinite Flight API key from SSM")
        raise RuntimeError("Infinite Flight API key not configured in SSM")

    return value


@dataclass
class Settings:
    """Application configuration loaded from environment variables."""

    flightwatch_env: str = os.getenv("FLIGHTWATCH_ENV", "local")
    log_level: str = os.getenv("FLIGHTWATCH_LOG_LEVEL", "INFO")

    # Scheduler
    scheduler_enabled: bool = _get_bool("FLIGHTWATCH_SCHEDULER_ENABLED", True)
    tick_seconds: float = float(os.getenv("FLIGHTWATCH_TICK_SECONDS", "30"))

    # Infinite Flight Live API
    if_api_base_url: str = os.getenv(
        "IF_API_BASE_URL", "https://api.infiniteflight.com/public/v2"
    )
    if_api_key: str = ""
    if_timeout: float = float(os.getenv("FLIGHTWATCH_IF_TIMEOUT", "20.0"))
    default_server: str = os.getenv("FLIGHTWATCH_DEFAULT_SERVER", "Expert Server")

    # Tracking lifecycle
    search_timeout_minutes: int = int(
        os.getenv("FLIGHTWATCH_SEARCH_TIMEOUT_MINUTES", "180")
    )
    active_poll_seconds: float = float(os.getenv("FLIGHTWATCH_ACTIVE_POLL_SECONDS", "60"))
    background_poll_seconds: float = float(
        os.getenv("FLIGHTWATCH_BACKGROUND_POLL_SECONDS", "300")
    )
    backoff_short_seconds: float = float(
        os.getenv("FLIGHTWATCH_BACKOFF_SHORT_SECONDS", "60")
    )
    backoff_medium_seconds: float = float(
        os.getenv("FLIGHTWATCH_BACKOFF_MEDIUM_SECONDS", "300")
    )
    backoff_long_seconds: float = float(
        os.getenv("FLIGHTWATCH_BACKOFF_LONG_SECONDS", "900")
    )
    recent_sighting_minutes: float = float(
        os.getenv("FLIGHTWATCH_RECENT_SIGHTING_MINUTES", "15")
    )
    stale_sighting_hours: float = float(
        os.getenv("FLIGHTWATCH_STALE_SIGHTING_HOURS", "6")
    )
    delay_seconds: float = float(os.getenv("FLIGHTWATCH_DELAY_SECONDS", "300"))

    # Landing heuristic
    landing_max_agl_ft: float = float(os.getenv("FLIGHTWATCH_LANDING_MAX_AGL_FT", "1000"))
    landing_max_groundspeed_kt: float = float(
        os.getenv("FLIGHTWATCH_LANDING_MAX_GROUNDSPEED_KT", "40")
    )
    landing_max_distance_km: float = float(
        os.getenv("FLIGHTWATCH_LANDING_MAX_DISTANCE_KM", "10")
    )
    airports_csv: str = os.getenv("FLIGHTWATCH_AIRPORTS_CSV", str(DEFAULT_AIRPORTS_CSV))

    # Webhook callbacks
    callback_url: str | None = os.getenv("FLIGHTWATCH_CALLBACK_URL")
    callback_key: str | None = os.getenv("FLIGHTWATCH_CALLBACK_KEY")
    callback_timeout: float = float(os.getenv("FLIGHTWATCH_CALLBACK_TIMEOUT", "10.0"))

    # Control surface authentication; unset means open access
    control_api_key: str | None = os.getenv("FLIGHTWATCH_CONTROL_API_KEY")


settings = Settings()

__all__ = ["settings", "Settings", "get_if_api_key", "DEFAULT_AIRPORTS_CSV"]
