"""Static airport reference data with nearest-airport lookup."""

from __future__ import annotations

import csv
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Iterable

from app.services.landing import haversine_km

logger = logging.getLogger("flightwatch.airports")

_SKIPPED_TYPES = {"closed", "heliport", "balloonport"}


@dataclass(frozen=True)
class Airport:
    """An airport's identity, position, and field elevation."""

    code: str
    name: str
    latitude: float
    longitude: float
    elevation_ft: float = 0.0


class AirportIndex:
    """In-memory nearest-airport lookup loaded once at startup."""

    def __init__(self, airports: Iterable[Airport]) -> None:
        self._airports: tuple[Airport, ...] = tuple(airports)

    def __len__(self) -> int:
        return len(self._airports)

    @classmethod
    def from_csv(cls, path: str | Path) -> "AirportIndex":
        """Load an OurAirports-style CSV file.

        Required columns are ``ident``, ``name``, ``latitude_deg`` and
        ``longitude_deg``; ``elevation_ft`` defaults to 0 when blank. Rows with
        a ``type`` of closed, heliport or balloonport are ignored.
        """

        airports: list[Airport] = []
        skipped = 0
        with Path(path).open(newline="", encoding="utf-8") as handle:
            for row in csv.DictReader(handle):
                airport = _parse_row(row)
                if airport is None:
                    skipped += 1
                    continue
                airports.append(airport)

        logger.info("Loaded %s airports from %s (%s rows skipped)", len(airports), path, skipped)
        return cls(airports)

    def nearest(self, lat: float, lon: float) -> tuple[Airport, float] | None:
        """Return the closest airport and its distance in kilometres."""

        best: Airport | None = None
        best_distance = float("inf")
        for airport in self._airports:
            distance = haversine_km(lat, lon, airport.latitude, airport.longitude)
            if distance < best_distance:
                best = airport
                best_distance = distance
        if best is None:
            return None
        return best, best_distance


def _parse_row(row: dict[str, str]) -> Airport | None:
    if (row.get("type") or "").strip().lower() in _SKIPPED_TYPES:
        return None
    code = (row.get("ident") or "").strip()
    if not code:
        return None
    try:
        lat = float(row["latitude_deg"])
        lon = float(row["longitude_deg"])
    except (KeyError, TypeError, ValueError):
        return None
    try:
        elevation = float(row.get("elevation_ft") or 0.0)
    except ValueError:
        elevation = 0.0
    return Airport(
        code=code,
        name=(row.get("name") or code).strip(),
        latitude=lat,
        longitude=lon,
        elevation_ft=elevation,
    )


__all__ = ["Airport", "AirportIndex"]
