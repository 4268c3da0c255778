"""Polling scheduler and tracker state machine."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Optional, Protocol, Sequence

from app.config import settings
from app.domain import CallbackReason, TrackerEventType, TrackerStatus, timeout_reason
from app.ingestors.infinite_flight import FlightDataError
from app.models.flights import LiveFlight, RoutePoint, Session
from app.models.tracking import Tracker
from app.services.airports import AirportIndex
from app.services.landing import LandingAssessment, LandingThresholds, assess_landing
from app.services.notifier import CallbackNotifier
from app.services.registry import Clock, TrackerRegistry, utcnow

logger = logging.getLogger("flightwatch.scheduler")


class FlightDataSource(Protocol):
    async def list_sessions(self) -> list[Session]: ...

    async def list_flights(self, session_id: str) -> list[LiveFlight]: ...

    async def get_flight_route(self, session_id: str, flight_id: str) -> list[RoutePoint]: ...


# ----- Server name resolution -----

ServerResolver = Callable[[str, Sequence[Session]], Optional[Session]]

SERVER_ALIASES: dict[str, str] = {
    "expert": "expert server",
    "training": "training server",
    "casual": "casual server",
}


def match_exact_name(name: str, sessions: Sequence[Session]) -> Session | None:
    wanted = name.strip().lower()
    return next((s for s in sessions if s.name.strip().lower() == wanted), None)


def match_name_substring(name: str, sessions: Sequence[Session]) -> Session | None:
    wanted = name.strip().lower()
    if not wanted:
        return None
    return next((s for s in sessions if wanted in s.name.lower()), None)


def match_alias(name: str, sessions: Sequence[Session]) -> Session | None:
    alias = SERVER_ALIASES.get(name.strip().lower())
    if alias is None:
        return None
    return match_exact_name(alias, sessions)


def match_first_available(name: str, sessions: Sequence[Session]) -> Session | None:
    return sessions[0] if sessions else None


SERVER_RESOLVERS: tuple[ServerResolver, ...] = (
    match_exact_name,
    match_name_substring,
    match_alias,
    match_first_available,
)


def resolve_session(
    name: str,
    sessions: Sequence[Session],
    resolvers: Sequence[ServerResolver] = SERVER_RESOLVERS,
) -> Session | None:
    """Resolve a human server name to a session, trying each resolver in order."""

    for resolver in resolvers:
        session = resolver(name, sessions)
        if session is not None:
            return session
    return None


# ----- Poll timing -----


@dataclass(frozen=True)
class PollPolicy:
    """Intervals governing when a tracker is polled next."""

    active_interval: timedelta = timedelta(seconds=60)
    background_interval: timedelta = timedelta(seconds=300)
    backoff_short: timedelta = timedelta(seconds=60)
    backoff_medium: timedelta = timedelta(seconds=300)
    backoff_long: timedelta = timedelta(seconds=900)
    recent_window: timedelta = timedelta(minutes=15)
    stale_window: timedelta = timedelta(hours=6)

    @classmethod
    def from_settings(cls) -> "PollPolicy":
        return cls(
            active_interval=timedelta(seconds=settings.active_poll_seconds),
            background_interval=timedelta(seconds=settings.background_poll_seconds),
            backoff_short=timedelta(seconds=settings.backoff_short_seconds),
            backoff_medium=timedelta(seconds=settings.backoff_medium_seconds),
            backoff_long=timedelta(seconds=settings.backoff_long_seconds),
            recent_window=timedelta(minutes=settings.recent_sighting_minutes),
            stale_window=timedelta(hours=settings.stale_sighting_hours),
        )

    def delay_for_sighting(self, flight: LiveFlight) -> timedelta:
        if flight.is_backgrounded:
            return self.background_interval
        return self.active_interval

    def delay_for_absence(self, tracker: Tracker, now: datetime) -> timedelta:
        # A tracker that never saw its pilot backs off from its creation time.
        reference = tracker.last_seen_at or tracker.created_at
        elapsed = now - reference
        if elapsed <= self.recent_window:
            return self.backoff_short
        if elapsed <= self.stale_window:
            return self.backoff_medium
        return self.backoff_long


@dataclass
class TickResult:
    """What a single scheduler tick did."""

    due: int = 0
    polled: int = 0
    skipped_groups: list[str] = field(default_factory=list)


# ----- Scheduler -----


class PollingScheduler:
    """Poll the flight network for due trackers and advance their state."""

    def __init__(
        self,
        *,
        registry: TrackerRegistry,
        gateway: FlightDataSource,
        airports: AirportIndex,
        notifier: CallbackNotifier | None = None,
        policy: PollPolicy | None = None,
        thresholds: LandingThresholds | None = None,
        tick_seconds: float | None = None,
        search_timeout_minutes: int | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.registry = registry
        self.gateway = gateway
        self.airports = airports
        self.notifier = notifier
        self.policy = policy or PollPolicy.from_settings()
        self.thresholds = thresholds or LandingThresholds.from_settings()
        self.tick_seconds = tick_seconds or settings.tick_seconds
        self.search_timeout_minutes = (
            search_timeout_minutes
            if search_timeout_minutes is not None
            else int(registry.search_timeout.total_seconds() // 60)
        )
        self.clock = clock or utcnow
        self._tick_lock = asyncio.Lock()

    async def run(self) -> None:
        """Tick forever until cancelled; a failed tick never stops the loop."""

        logger.info("Polling scheduler started (tick every %ss)", self.tick_seconds)
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                logger.info("Polling scheduler cancelled")
                raise
            except Exception:
                logger.exception("Scheduler tick failed")
            await asyncio.sleep(self.tick_seconds)

    async def tick(self) -> TickResult | None:
        """Run one polling pass. Returns None if a previous tick is still running."""

        if self._tick_lock.locked():
            logger.warning("Previous tick still in progress; skipping this one")
            return None
        async with self._tick_lock:
            return await self._run_tick()

    async def _run_tick(self) -> TickResult:
        now = self.clock()
        due = self.registry.due(now)
        result = TickResult(due=len(due))
        if not due:
            return result

        groups: dict[str, list[Tracker]] = defaultdict(list)
        for tracker in due:
            groups[tracker.server.lower()].append(tracker)

        try:
            sessions = await self.gateway.list_sessions()
        except FlightDataError as exc:
            logger.warning("Could not list sessions; retrying next tick: %s", exc)
            result.skipped_groups.extend(groups)
            return result

        polled = await asyncio.gather(
            *(
                self._poll_group(key, trackers, sessions, now, result)
                for key, trackers in groups.items()
            )
        )
        result.polled = sum(polled)
        logger.debug(
            "Tick complete: due=%s polled=%s skipped=%s",
            result.due,
            result.polled,
            result.skipped_groups,
        )
        return result

    async def _poll_group(
        self,
        group_key: str,
        trackers: list[Tracker],
        sessions: Sequence[Session],
        now: datetime,
        result: TickResult,
    ) -> int:
        server_name = trackers[0].server
        session = resolve_session(server_name, sessions)
        if session is None:
            logger.warning("No session matches server %r; skipping %s tracker(s)", server_name, len(trackers))
            result.skipped_groups.append(group_key)
            return 0

        try:
            flights = await self.gateway.list_flights(session.id)
        except FlightDataError as exc:
            logger.warning("Could not list flights for %s: %s", session.name, exc)
            result.skipped_groups.append(group_key)
            return 0

        by_id: dict[str, LiveFlight] = {}
        by_username: dict[str, list[LiveFlight]] = defaultdict(list)
        for flight in flights:
            by_id[flight.flight_id] = flight
            if flight.username:
                by_username[flight.username.lower()].append(flight)

        outcomes = await asyncio.gather(
            *(
                self._poll_tracker(tracker, session, by_id, by_username, now)
                for tracker in trackers
            )
        )
        return sum(1 for polled in outcomes if polled)

    async def _poll_tracker(
        self,
        tracker: Tracker,
        session: Session,
        by_id: dict[str, LiveFlight],
        by_username: dict[str, list[LiveFlight]],
        now: datetime,
    ) -> bool:
        try:
            events = await self.advance(tracker, session, by_id, by_username, now)
        except Exception:
            logger.exception("Unexpected error polling tracker %s", tracker.id)
            return False

        if not self.registry.commit(tracker):
            return False
        if self.notifier is not None:
            for event in events:
                self.notifier.notify(tracker, event)
        return True

    # ----- State machine -----

    async def advance(
        self,
        tracker: Tracker,
        session: Session,
        by_id: dict[str, LiveFlight],
        by_username: dict[str, list[LiveFlight]],
        now: datetime,
    ) -> list[dict[str, Any]]:
        """Apply one poll result to ``tracker`` in place.

        Returns the callback events the transition produced, in order.
        """

        previous_status = tracker.status
        previous_flight_id = tracker.last_flight_id
        tracker.attempts += 1
        tracker.last_polled_at = now

        flight = self._match(tracker, by_id, by_username)
        if flight is not None:
            return self._on_sighting(
                tracker, flight, session, now, previous_status, previous_flight_id
            )
        return await self._on_absence(tracker, session, now, previous_status)

    def _match(
        self,
        tracker: Tracker,
        by_id: dict[str, LiveFlight],
        by_username: dict[str, list[LiveFlight]],
    ) -> LiveFlight | None:
        if tracker.status == TrackerStatus.TRACKING and tracker.last_flight_id:
            flight = by_id.get(tracker.last_flight_id)
            if flight is not None:
                return flight
        candidates = by_username.get(tracker.username.lower())
        return candidates[0] if candidates else None

    def _on_sighting(
        self,
        tracker: Tracker,
        flight: LiveFlight,
        session: Session,
        now: datetime,
        previous_status: TrackerStatus,
        previous_flight_id: str | None,
    ) -> list[dict[str, Any]]:
        events: list[dict[str, Any]] = []
        already_tracking = (
            previous_status == TrackerStatus.TRACKING
            and previous_flight_id == flight.flight_id
        )
        if not already_tracking:
            tracker.record(TrackerEventType.ONLINE, now, flight_id=flight.flight_id)
            events.append(
                {
                    "reason": CallbackReason.USER_ONLINE.value,
                    "flight": flight.model_dump(mode="json", by_alias=True),
                }
            )
            logger.info(
                "Tracker %s: %s online as %s (flight %s)",
                tracker.id,
                tracker.username,
                flight.callsign,
                flight.flight_id,
            )

        tracker.status = TrackerStatus.TRACKING
        tracker.last_seen_at = now
        tracker.current_flight = flight
        tracker.last_flight_id = flight.flight_id
        tracker.last_session_id = session.id
        tracker.next_poll_at = now + self.policy.delay_for_sighting(flight)
        return events

    async def _on_absence(
        self,
        tracker: Tracker,
        session: Session,
        now: datetime,
        previous_status: TrackerStatus,
    ) -> list[dict[str, Any]]:
        if tracker.last_flight_id:
            landing = await self._check_landing(tracker, session)
            if landing is not None:
                point, assessment = landing
                if assessment.landed:
                    return [self._land(tracker, point, assessment, now)]

        if now >= tracker.timeout_at:
            tracker.status = TrackerStatus.NOT_FOUND
            tracker.current_flight = None
            logger.info(
                "Tracker %s: %s not found before timeout", tracker.id, tracker.username
            )
            return [{"reason": timeout_reason(self.search_timeout_minutes)}]

        events: list[dict[str, Any]] = []
        if previous_status == TrackerStatus.TRACKING:
            tracker.record(TrackerEventType.OFFLINE, now, flight_id=tracker.last_flight_id)
            events.append({"reason": CallbackReason.USER_OFFLINE.value})
            logger.info("Tracker %s: %s went offline mid-air", tracker.id, tracker.username)

        tracker.status = TrackerStatus.SEARCHING
        tracker.current_flight = None
        tracker.next_poll_at = now + self.policy.delay_for_absence(tracker, now)
        return events

    async def _check_landing(
        self, tracker: Tracker, session: Session
    ) -> tuple[RoutePoint, LandingAssessment] | None:
        session_id = tracker.last_session_id or session.id
        try:
            route = await self.gateway.get_flight_route(session_id, tracker.last_flight_id)
        except FlightDataError as exc:
            logger.warning(
                "Route lookup for tracker %s (flight %s) failed: %s",
                tracker.id,
                tracker.last_flight_id,
                exc,
            )
            return None
        if not route:
            return None
        point = route[-1]
        return point, assess_landing(point, self.airports, self.thresholds)

    def _land(
        self,
        tracker: Tracker,
        point: RoutePoint,
        assessment: LandingAssessment,
        now: datetime,
    ) -> dict[str, Any]:
        airport = assessment.airport
        online = tracker.last_event_of(TrackerEventType.ONLINE)
        duration_ms = int((now - online.at).total_seconds() * 1000) if online else 0

        tracker.status = TrackerStatus.LANDED
        tracker.current_flight = None
        tracker.record(
            TrackerEventType.LANDED,
            now,
            flight_id=tracker.last_flight_id,
            detail=airport.code if airport else None,
        )
        logger.info(
            "Tracker %s: %s landed at %s (%.1f km)",
            tracker.id,
            tracker.username,
            airport.code if airport else "unknown",
            assessment.distance_km or 0.0,
        )
        return {
            "reason": CallbackReason.FLIGHT_LANDED.value,
            "flightDurationMs": duration_ms,
            "lastPosition": {
                "latitude": point.latitude,
                "longitude": point.longitude,
                "altitude": point.altitude,
                "groundSpeed": point.ground_speed,
                "track": point.track,
                "date": point.date.isoformat() if point.date else None,
            },
            "airport": {
                "code": airport.code,
                "name": airport.name,
                "latitude": airport.latitude,
                "longitude": airport.longitude,
                "elevationFt": airport.elevation_ft,
                "distanceKm": round(assessment.distance_km, 3),
            }
            if airport
            else None,
        }


__all__ = [
    "FlightDataSource",
    "PollPolicy",
    "PollingScheduler",
    "SERVER_ALIASES",
    "SERVER_RESOLVERS",
    "TickResult",
    "match_alias",
    "match_exact_name",
    "match_first_available",
    "match_name_substring",
    "resolve_session",
]
