"""Models for data returned by the Infinite Flight Live API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.domain import BACKGROUNDED_PILOT_STATES


class Session(BaseModel):
    """A server instance on the flight network (e.g. "Expert Server")."""

    id: str = Field(..., description="Session identifier")
    name: str = Field(..., description="Human-readable server name")
    type: Optional[int | str] = Field(default=None, description="Session type")
    user_count: Optional[int] = Field(
        default=None, alias="userCount", description="Pilots currently connected"
    )
    max_users: Optional[int] = Field(
        default=None, alias="maxUsers", description="Server capacity"
    )

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LiveFlight(BaseModel):
    """Normalized representation of one live flight on a session."""

    flight_id: str = Field(..., alias="flightId", description="Flight identifier")
    user_id: Optional[str] = Field(default=None, alias="userId", description="Pilot user id")
    callsign: Optional[str] = Field(default=None, description="Flight callsign")
    username: Optional[str] = Field(default=None, description="Pilot community username")
    latitude: Optional[float] = Field(default=None, description="Latitude in decimal degrees")
    longitude: Optional[float] = Field(default=None, description="Longitude in decimal degrees")
    altitude: Optional[float] = Field(default=None, description="Altitude in feet MSL")
    speed: Optional[float] = Field(default=None, description="Ground speed in knots")
    vertical_speed: Optional[float] = Field(
        default=None, alias="verticalSpeed", description="Vertical speed in feet per minute"
    )
    track: Optional[float] = Field(default=None, description="Ground track in degrees")
    heading: Optional[float] = Field(default=None, description="Heading in degrees")
    last_report: Optional[datetime] = Field(
        default=None, alias="lastReport", description="Timestamp of the last position report"
    )
    pilot_state: Optional[int] = Field(
        default=None, alias="pilotState", description="Pilot app activity state"
    )
    is_connected: Optional[bool] = Field(
        default=None, alias="isConnected", description="Whether the pilot is connected"
    )

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def is_backgrounded(self) -> bool:
        return self.pilot_state in BACKGROUNDED_PILOT_STATES


class RoutePoint(BaseModel):
    """One historical position report from a flight's route."""

    latitude: float = Field(..., description="Latitude in decimal degrees")
    longitude: float = Field(..., description="Longitude in decimal degrees")
    altitude: Optional[float] = Field(default=None, description="Altitude in feet MSL")
    ground_speed: Optional[float] = Field(
        default=None, alias="groundSpeed", description="Ground speed in knots"
    )
    track: Optional[float] = Field(default=None, description="Ground track in degrees")
    date: Optional[datetime] = Field(default=None, description="Report timestamp")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Waypoint(BaseModel):
    """A single flight plan item."""

    identifier: Optional[str] = Field(default=None, description="Fix or airport identifier")
    name: Optional[str] = Field(default=None, description="Display name of the fix")
    latitude: Optional[float] = Field(default=None, description="Latitude in decimal degrees")
    longitude: Optional[float] = Field(default=None, description="Longitude in decimal degrees")
    altitude: Optional[float] = Field(default=None, description="Planned altitude in feet")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


__all__ = ["LiveFlight", "RoutePoint", "Session", "Waypoint"]
