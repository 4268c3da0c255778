"""Gateway to the Infinite Flight Live public REST API (v2)."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

import httpx
from pydantic import ValidationError

from app.config import settings
from app.models.flights import LiveFlight, RoutePoint, Session, Waypoint

logger = logging.getLogger("flightwatch.ingestors.infinite_flight")

# Documented API error code for a flight that no longer exists.
FLIGHT_NOT_FOUND_ERROR_CODE = 6
AUTH_REJECTION_STATUSES = frozenset({401, 403})

AuthStrategy = Callable[[str], tuple[dict[str, str], dict[str, str]]]


class FlightDataError(RuntimeError):
    """Raised when the flight network cannot answer a request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


def bearer_header_auth(api_key: str) -> tuple[dict[str, str], dict[str, str]]:
    return {"Authorization": f"Bearer {api_key}"}, {}


def query_param_auth(api_key: str) -> tuple[dict[str, str], dict[str, str]]:
    return {}, {"apikey": api_key}


DEFAULT_AUTH_STRATEGIES: tuple[AuthStrategy, ...] = (bearer_header_auth, query_param_auth)


class _NotFound(Exception):
    """Internal marker for the API's "flight not found" answer."""


def _unwrap(payload: Any, path: str) -> Any:
    """Strip the ``{"errorCode": ..., "result": ...}`` envelope if present."""

    if not isinstance(payload, dict):
        return payload

    error_code = payload.get("errorCode")
    if error_code not in (None, 0):
        if error_code == FLIGHT_NOT_FOUND_ERROR_CODE:
            raise _NotFound(path)
        raise FlightDataError(
            f"Infinite Flight API error {error_code} for {path}", error_code=error_code
        )

    if "result" in payload:
        return payload["result"]
    return payload


def _as_list(result: Any) -> list[Any]:
    if result is None:
        return []
    if isinstance(result, list):
        return result
    if isinstance(result, dict):
        for key in ("flights", "items", "result"):
            if isinstance(result.get(key), list):
                return result[key]
    return []


def _flatten_plan_items(items: list[Any]) -> list[Waypoint]:
    waypoints: list[Waypoint] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        children = item.get("children")
        if isinstance(children, list) and children:
            waypoints.extend(_flatten_plan_items(children))
            continue
        location = item.get("location") or {}
        altitude = location.get("altitude")
        waypoints.append(
            Waypoint(
                identifier=item.get("identifier"),
                name=item.get("name"),
                latitude=location.get("latitude"),
                longitude=location.get("longitude"),
                altitude=altitude if isinstance(altitude, (int, float)) and altitude >= 0 else None,
            )
        )
    return waypoints


class InfiniteFlightGateway:
    """Fetch sessions, live flights, and flight history from Infinite Flight."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        auth_strategies: Sequence[AuthStrategy] = DEFAULT_AUTH_STRATEGIES,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.if_api_key
        self.base_url = (base_url or settings.if_api_base_url).rstrip("/")
        self.timeout = timeout or settings.if_timeout
        self.transport = transport
        self.auth_strategies = tuple(auth_strategies)

    async def list_sessions(self) -> list[Session]:
        result = await self._get("/sessions")
        sessions: list[Session] = []
        for entry in _as_list(result):
            try:
                sessions.append(Session.model_validate(entry))
            except ValidationError:
                logger.debug("Skipping malformed session entry: %s", entry)
        return sessions

    async def list_flights(self, session_id: str) -> list[LiveFlight]:
        result = await self._get(f"/sessions/{session_id}/flights")
        flights: list[LiveFlight] = []
        for entry in _as_list(result):
            flight = self._normalize_flight(entry)
            if flight:
                flights.append(flight)
        logger.debug("Fetched %s live flights for session %s", len(flights), session_id)
        return flights

    async def get_flight_route(self, session_id: str, flight_id: str) -> list[RoutePoint]:
        """Return the ordered position history of a flight.

        A flight the API no longer knows about yields an empty list.
        """

        result = await self._get(f"/sessions/{session_id}/flights/{flight_id}/route")
        points: list[RoutePoint] = []
        for entry in _as_list(result):
            try:
                points.append(RoutePoint.model_validate(entry))
            except ValidationError:
                logger.debug("Skipping malformed route point: %s", entry)
        return points

    async def get_flight_plan(self, session_id: str, flight_id: str) -> list[Waypoint]:
        result = await self._get(f"/sessions/{session_id}/flights/{flight_id}/flightplan")
        if isinstance(result, dict):
            items = result.get("flightPlanItems") or []
        else:
            items = _as_list(result)
        return _flatten_plan_items(items)

    def _normalize_flight(self, entry: Any) -> LiveFlight | None:
        if not isinstance(entry, dict):
            return None
        data = dict(entry)
        if not data.get("flightId") and data.get("id"):
            data["flightId"] = data["id"]
        try:
            return LiveFlight.model_validate(data)
        except ValidationError:
            logger.debug("Skipping malformed live flight entry: %s", entry)
            return None

    async def _get(self, path: str) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await self._send_with_auth_fallback(client, path)
        except httpx.TimeoutException as exc:
            logger.warning("Infinite Flight request timed out: %s %s", path, exc)
            raise FlightDataError(f"Timed out requesting {path}") from exc
        except httpx.RequestError as exc:
            logger.warning("Infinite Flight request failed: %s %s", path, exc)
            raise FlightDataError(f"Request failed for {path}") from exc

        payload: Any = None
        try:
            payload = response.json()
        except ValueError:
            payload = None

        try:
            if response.status_code >= 400:
                # The not-found code may also arrive on an error status.
                if isinstance(payload, dict):
                    _unwrap(payload, path)
                raise FlightDataError(
                    f"Infinite Flight API returned HTTP {response.status_code} for {path}",
                    status_code=response.status_code,
                )
            if payload is None:
                raise FlightDataError(f"Invalid JSON from Infinite Flight API for {path}")
            return _unwrap(payload, path)
        except _NotFound:
            logger.debug("Infinite Flight reports flight not found for %s", path)
            return None

    async def _send_with_auth_fallback(
        self, client: httpx.AsyncClient, path: str
    ) -> httpx.Response:
        response: httpx.Response | None = None
        for attempt, strategy in enumerate(self.auth_strategies):
            headers, params = strategy(self.api_key or "")
            response = await client.get(path, headers=headers, params=params)
            if response.status_code not in AUTH_REJECTION_STATUSES:
                return response
            if attempt + 1 < len(self.auth_strategies):
                logger.warning(
                    "Infinite Flight rejected %s auth for %s (HTTP %s); retrying",
                    strategy.__name__,
                    path,
                    response.status_code,
                )
        if response is None:
            raise FlightDataError("No auth strategies configured")
        return response


__all__ = [
    "AUTH_REJECTION_STATUSES",
    "DEFAULT_AUTH_STRATEGIES",
    "FLIGHT_NOT_FOUND_ERROR_CODE",
    "FlightDataError",
    "InfiniteFlightGateway",
    "bearer_header_auth",
    "query_param_auth",
]
