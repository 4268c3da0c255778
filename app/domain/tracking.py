"""Tracker lifecycle vocabulary shared by the scheduler and the API."""

from __future__ import annotations

from enum import Enum, IntEnum


class TrackerStatus(str, Enum):
    """States a tracker moves through while following one pilot."""

    SEARCHING = "searching"
    TRACKING = "tracking"
    LANDED = "landed"
    NOT_FOUND = "not_found"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {TrackerStatus.LANDED, TrackerStatus.NOT_FOUND, TrackerStatus.STOPPED}
)


class TrackerEventType(str, Enum):
    """Entries that can appear in a tracker's history."""

    CREATED = "created"
    ONLINE = "online"
    OFFLINE = "offline"
    LANDED = "landed"
    STOPPED = "stopped"
    DELAYED_BY_TEST = "delayed_by_test"


class CallbackReason(str, Enum):
    """Reasons carried in outbound webhook payloads."""

    USER_ONLINE = "user_online"
    USER_OFFLINE = "user_offline"
    FLIGHT_LANDED = "flight_landed"
    STOPPED_BY_REQUEST = "stopped_by_request"


def timeout_reason(minutes: int) -> str:
    """Reason string for a tracker that never found its pilot in time."""

    return f"timeout_{minutes}m"


class PilotState(IntEnum):
    """Pilot app state reported by the Infinite Flight live flight list."""

    ACTIVE = 0
    AWAY = 1
    BACKGROUND = 2
    PARKED = 3


BACKGROUNDED_PILOT_STATES = frozenset({PilotState.AWAY, PilotState.BACKGROUND})


__all__ = [
    "BACKGROUNDED_PILOT_STATES",
    "CallbackReason",
    "PilotState",
    "TERMINAL_STATUSES",
    "TrackerEventType",
    "TrackerStatus",
    "timeout_reason",
]
