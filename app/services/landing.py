"""Landing classification from a flight's last recorded position."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import TYPE_CHECKING, Optional

from app.config import settings
from app.models.flights import RoutePoint

if TYPE_CHECKING:  # pragma: no cover
    from app.services.airports import Airport, AirportIndex

EARTH_RADIUS_KM = 6371.0088


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points on a spherical Earth."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_KM * c


@dataclass(frozen=True)
class LandingThresholds:
    """Upper bounds (exclusive) a last position must satisfy to count as landed."""

    max_agl_ft: float = 1000.0
    max_groundspeed_kt: float = 40.0
    max_distance_km: float = 10.0

    @classmethod
    def from_settings(cls) -> "LandingThresholds":
        return cls(
            max_agl_ft=settings.landing_max_agl_ft,
            max_groundspeed_kt=settings.landing_max_groundspeed_kt,
            max_distance_km=settings.landing_max_distance_km,
        )


@dataclass(frozen=True)
class LandingAssessment:
    """Outcome of a landing check."""

    landed: bool
    airport: Optional["Airport"] = None
    distance_km: Optional[float] = None
    altitude_agl_ft: Optional[float] = None


def assess_landing(
    point: RoutePoint,
    airports: "AirportIndex",
    thresholds: LandingThresholds | None = None,
) -> LandingAssessment:
    """Classify a last route point as landed near the closest airport.

    Altitude is compared above the airport's field elevation, not sea level.
    Missing altitude or ground speed never classifies as landed.
    """

    thresholds = thresholds or LandingThresholds()
    match = airports.nearest(point.latitude, point.longitude)
    if match is None:
        return LandingAssessment(landed=False)

    airport, distance_km = match
    altitude_agl = None
    if point.altitude is not None:
        altitude_agl = point.altitude - airport.elevation_ft

    landed = (
        altitude_agl is not None
        and point.ground_speed is not None
        and altitude_agl < thresholds.max_agl_ft
        and point.ground_speed < thresholds.max_groundspeed_kt
        and distance_km < thresholds.max_distance_km
    )
    return LandingAssessment(
        landed=landed,
        airport=airport,
        distance_km=distance_km,
        altitude_agl_ft=altitude_agl,
    )


__all__ = [
    "EARTH_RADIUS_KM",
    "LandingAssessment",
    "LandingThresholds",
    "assess_landing",
    "haversine_km",
]
