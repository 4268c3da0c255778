"""Tracker state and control-surface request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from app.domain import TrackerEventType, TrackerStatus
from app.models.flights import LiveFlight


class TrackerEvent(BaseModel):
    """A timestamped entry in a tracker's history."""

    type: TrackerEventType = Field(..., description="Lifecycle event type")
    at: datetime = Field(..., description="When the event was recorded (UTC)")
    flight_id: Optional[str] = Field(default=None, description="Flight the event refers to")
    detail: Optional[str] = Field(default=None, description="Extra context, e.g. airport code")


class Tracker(BaseModel):
    """A tracking task following one pilot on one server."""

    id: str = Field(default_factory=lambda: uuid4().hex, description="Opaque tracker id")
    username: str = Field(..., description="Pilot username as requested")
    server: str = Field(..., description="Human-readable server name")
    callback_url: Optional[str] = Field(default=None, description="Webhook for lifecycle events")
    status: TrackerStatus = Field(default=TrackerStatus.SEARCHING)

    created_at: datetime
    last_polled_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    next_poll_at: datetime
    timeout_at: datetime

    current_flight: Optional[LiveFlight] = None
    last_flight_id: Optional[str] = None
    last_session_id: Optional[str] = None

    attempts: int = 0
    history: list[TrackerEvent] = Field(default_factory=list)

    @property
    def identity_key(self) -> tuple[str, str]:
        return (self.username.lower(), self.server.lower())

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    def record(
        self,
        event_type: TrackerEventType,
        at: datetime,
        *,
        flight_id: str | None = None,
        detail: str | None = None,
    ) -> TrackerEvent:
        event = TrackerEvent(type=event_type, at=at, flight_id=flight_id, detail=detail)
        self.history.append(event)
        return event

    def last_event_of(self, event_type: TrackerEventType) -> TrackerEvent | None:
        for event in reversed(self.history):
            if event.type == event_type:
                return event
        return None


class StartTrackingRequest(BaseModel):
    """Payload for starting one or more trackers."""

    username: str | list[str] | None = Field(
        default=None, description="Pilot username or list of usernames"
    )
    server: Optional[str] = Field(default=None, description="Server name, defaults to Expert Server")
    callback_url: Optional[str] = Field(
        default=None, alias="callbackUrl", description="Webhook receiving lifecycle events"
    )

    model_config = ConfigDict(populate_by_name=True)

    def usernames(self) -> list[str]:
        raw = self.username
        if raw is None:
            return []
        if isinstance(raw, str):
            raw = [raw]
        return [name.strip() for name in raw if name and name.strip()]


class DelayRequest(BaseModel):
    """Payload for pushing a tracker's next poll into the future."""

    seconds: Optional[float] = Field(
        default=None, gt=0, description="Delay in seconds; defaults to the configured delay"
    )


class TrackerSummary(BaseModel):
    """Compact tracker view used in lists."""

    id: str
    username: str
    server: str
    status: TrackerStatus
    created_at: datetime
    last_polled_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    next_poll_at: datetime
    timeout_at: datetime
    attempts: int

    @classmethod
    def from_tracker(cls, tracker: Tracker) -> "TrackerSummary":
        return cls.model_validate(
            {field: getattr(tracker, field) for field in cls.model_fields}
        )


class TrackerDetail(TrackerSummary):
    """Full tracker view including history and the last seen flight."""

    callback_url: Optional[str] = None
    current_flight: Optional[LiveFlight] = None
    last_flight_id: Optional[str] = None
    last_session_id: Optional[str] = None
    history: list[TrackerEvent] = Field(default_factory=list)


class TrackerListResponse(BaseModel):
    trackers: list[TrackerSummary]


class TrackerResponse(BaseModel):
    tracker: TrackerSummary


class TrackerDetailResponse(BaseModel):
    tracker: TrackerDetail


def callback_identity(tracker: Tracker) -> dict[str, Any]:
    """Identity and status fields merged into every webhook payload."""

    return {
        "trackerId": tracker.id,
        "username": tracker.username,
        "server": tracker.server,
        "status": tracker.status.value,
    }


__all__ = [
    "DelayRequest",
    "StartTrackingRequest",
    "Tracker",
    "TrackerDetail",
    "TrackerDetailResponse",
    "TrackerEvent",
    "TrackerListResponse",
    "TrackerResponse",
    "TrackerSummary",
    "callback_identity",
]
