"""Domain vocabulary for pilot tracking."""

from .tracking import (
    BACKGROUNDED_PILOT_STATES,
    TERMINAL_STATUSES,
    CallbackReason,
    PilotState,
    TrackerEventType,
    TrackerStatus,
    timeout_reason,
)

__all__ = [
    "BACKGROUNDED_PILOT_STATES",
    "CallbackReason",
    "PilotState",
    "TERMINAL_STATUSES",
    "TrackerEventType",
    "TrackerStatus",
    "timeout_reason",
]
