"""Pydantic models for the Flightwatch backend."""

from .flights import LiveFlight, RoutePoint, Session, Waypoint
from .tracking import (
    DelayRequest,
    StartTrackingRequest,
    Tracker,
    TrackerDetail,
    TrackerEvent,
    TrackerSummary,
)

__all__ = [
    "DelayRequest",
    "LiveFlight",
    "RoutePoint",
    "Session",
    "StartTrackingRequest",
    "Tracker",
    "TrackerDetail",
    "TrackerEvent",
    "TrackerSummary",
    "Waypoint",
]
