"""Service-layer components for the Flightwatch backend."""

from .airports import Airport, AirportIndex
from .landing import LandingAssessment, LandingThresholds, assess_landing, haversine_km
from .notifier import CallbackNotifier
from .registry import TrackerNotFoundError, TrackerRegistry
from .scheduler import PollPolicy, PollingScheduler, TickResult, resolve_session

__all__ = [
    "Airport",
    "AirportIndex",
    "CallbackNotifier",
    "LandingAssessment",
    "LandingThresholds",
    "PollPolicy",
    "PollingScheduler",
    "TickResult",
    "TrackerNotFoundError",
    "TrackerRegistry",
    "assess_landing",
    "haversine_km",
    "resolve_session",
]
