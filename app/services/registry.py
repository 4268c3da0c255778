"""In-memory registry of tracking tasks."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Callable, Iterable, Optional, Protocol

from app.config import settings
from app.domain import CallbackReason, TrackerEventType, TrackerStatus
from app.models.tracking import Tracker

logger = logging.getLogger("flightwatch.registry")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Notifier(Protocol):
    def notify(self, tracker: Tracker, event: dict | None = None): ...


class TrackerNotFoundError(LookupError):
    """Raised when a tracker id is unknown."""

    def __init__(self, tracker_id: str) -> None:
        super().__init__(f"Tracker {tracker_id} not found")
        self.tracker_id = tracker_id


class TrackerRegistry:
    """Own every tracker by id and serve as the single mutation point.

    The scheduler reads copies via :meth:`due` and writes them back with
    :meth:`commit`, so each tracker update lands atomically.
    """

    def __init__(
        self,
        *,
        notifier: Optional[Notifier] = None,
        clock: Clock | None = None,
        default_server: str | None = None,
        search_timeout: timedelta | None = None,
    ) -> None:
        self.notifier = notifier
        self.clock = clock or utcnow
        self.default_server = default_server or settings.default_server
        self.search_timeout = search_timeout or timedelta(
            minutes=settings.search_timeout_minutes
        )
        self._trackers: dict[str, Tracker] = {}
        # History length of each tracker when its working copy was handed out.
        self._snapshot_lengths: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._trackers)

    def add_tracker(
        self,
        username: str | None,
        server: str | None = None,
        callback_url: str | None = None,
    ) -> Tracker | None:
        """Start tracking ``username``, reusing an active tracker if one exists."""

        name = (username or "").strip()
        if not name:
            logger.debug("Ignoring tracker request with empty username")
            return None
        server_name = (server or "").strip() or self.default_server

        existing = self.find_active(name, server_name)
        if existing is not None:
            logger.info(
                "Reusing tracker %s for %s on %s", existing.id, existing.username, existing.server
            )
            return existing

        now = self.clock()
        tracker = Tracker(
            username=name,
            server=server_name,
            callback_url=callback_url,
            status=TrackerStatus.SEARCHING,
            created_at=now,
            next_poll_at=now,
            timeout_at=now + self.search_timeout,
        )
        tracker.record(TrackerEventType.CREATED, now)
        self._trackers[tracker.id] = tracker
        logger.info("Started tracker %s for %s on %s", tracker.id, name, server_name)

        if self.notifier is not None:
            self.notifier.notify(tracker)
        return tracker

    def add_trackers(
        self,
        usernames: Iterable[str],
        server: str | None = None,
        callback_url: str | None = None,
    ) -> list[Tracker]:
        trackers: list[Tracker] = []
        for username in usernames:
            tracker = self.add_tracker(username, server, callback_url)
            if tracker is not None:
                trackers.append(tracker)
        return trackers

    def find_active(self, username: str, server: str) -> Tracker | None:
        key = (username.strip().lower(), server.strip().lower())
        for tracker in self._trackers.values():
            if tracker.is_active and tracker.identity_key == key:
                return tracker
        return None

    def get(self, tracker_id: str) -> Tracker:
        try:
            return self._trackers[tracker_id]
        except KeyError:
            raise TrackerNotFoundError(tracker_id) from None

    def list_active(self) -> list[Tracker]:
        return [tracker for tracker in self._trackers.values() if tracker.is_active]

    def due(self, now: datetime) -> list[Tracker]:
        """Return working copies of active trackers whose next poll is due."""

        due: list[Tracker] = []
        for tracker in self._trackers.values():
            if tracker.is_active and tracker.next_poll_at <= now:
                self._snapshot_lengths[tracker.id] = len(tracker.history)
                due.append(tracker.model_copy(deep=True))
        due.sort(key=lambda tracker: tracker.next_poll_at)
        return due

    def commit(self, tracker: Tracker) -> bool:
        """Store a polled working copy.

        Returns False, leaving the stored tracker untouched, when the tracker
        was removed or reached a terminal state (e.g. stopped) meanwhile.
        Events recorded on the stored tracker since the copy was taken (e.g. a
        delay) are kept, and the later of the two next-poll times wins.
        """

        stored = self._trackers.get(tracker.id)
        snapshot_length = self._snapshot_lengths.pop(tracker.id, None)
        if stored is None or stored.status.is_terminal:
            logger.debug("Discarding poll result for inactive tracker %s", tracker.id)
            return False

        if snapshot_length is not None and len(stored.history) > snapshot_length:
            tracker.history.extend(
                event.model_copy(deep=True) for event in stored.history[snapshot_length:]
            )
            tracker.history.sort(key=lambda event: event.at)
        if not tracker.status.is_terminal:
            tracker.next_poll_at = max(tracker.next_poll_at, stored.next_poll_at)
        self._trackers[tracker.id] = tracker
        return True

    def stop(self, tracker_id: str) -> Tracker:
        tracker = self.get(tracker_id)
        if tracker.status.is_terminal:
            return tracker

        now = self.clock()
        tracker.status = TrackerStatus.STOPPED
        tracker.current_flight = None
        tracker.record(TrackerEventType.STOPPED, now)
        logger.info("Stopped tracker %s for %s", tracker.id, tracker.username)

        if self.notifier is not None:
            self.notifier.notify(tracker, {"reason": CallbackReason.STOPPED_BY_REQUEST.value})
        return tracker

    def delay(self, tracker_id: str, seconds: float | None = None) -> Tracker:
        """Push the tracker's next poll forward without changing its state."""

        tracker = self.get(tracker_id)
        duration = timedelta(seconds=seconds if seconds is not None else settings.delay_seconds)
        now = self.clock()
        tracker.next_poll_at = max(tracker.next_poll_at, now) + duration
        tracker.record(
            TrackerEventType.DELAYED_BY_TEST, now, detail=f"{int(duration.total_seconds())}s"
        )
        logger.info("Delayed tracker %s until %s", tracker.id, tracker.next_poll_at.isoformat())
        return tracker


__all__ = ["Clock", "TrackerNotFoundError", "TrackerRegistry", "utcnow"]
