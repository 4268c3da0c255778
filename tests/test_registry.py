from datetime import datetime, timedelta, timezone

import pytest

from app.domain import TrackerEventType, TrackerStatus
from app.services.registry import TrackerNotFoundError, TrackerRegistry

START = datetime(2024, 5, 3, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeNotifier:
    def __init__(self):
        self.calls: list[tuple[str, TrackerStatus, dict | None]] = []

    def notify(self, tracker, event=None):
        self.calls.append((tracker.id, tracker.status, event))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def registry(clock, notifier):
    return TrackerRegistry(
        notifier=notifier,
        clock=clock,
        default_server="Expert Server",
        search_timeout=timedelta(minutes=60),
    )


def test_add_tracker_creates_searching_tracker(registry, notifier):
    tracker = registry.add_tracker("  Maverick ", callback_url="https://hooks.example/cb")

    assert tracker.username == "Maverick"
    assert tracker.server == "Expert Server"
    assert tracker.status == TrackerStatus.SEARCHING
    assert tracker.next_poll_at == START
    assert tracker.timeout_at == START + timedelta(minutes=60)
    assert [e.type for e in tracker.history] == [TrackerEventType.CREATED]
    assert notifier.calls == [(tracker.id, TrackerStatus.SEARCHING, None)]


def test_add_tracker_skips_empty_username(registry, notifier):
    assert registry.add_tracker("   ") is None
    assert registry.add_tracker(None) is None
    assert len(registry) == 0
    assert notifier.calls == []


def test_add_tracker_is_idempotent_while_active(registry, notifier):
    first = registry.add_tracker("Maverick", "Expert Server")
    second = registry.add_tracker("maverick", "expert server")

    assert second.id == first.id
    assert len(registry) == 1
    assert len(notifier.calls) == 1


def test_same_pilot_on_other_server_gets_own_tracker(registry):
    expert = registry.add_tracker("Maverick", "Expert Server")
    training = registry.add_tracker("Maverick", "Training Server")

    assert expert.id != training.id


def test_add_tracker_after_terminal_state_creates_new(registry):
    first = registry.add_tracker("Maverick")
    registry.stop(first.id)

    second = registry.add_tracker("Maverick")

    assert second.id != first.id
    assert second.status == TrackerStatus.SEARCHING


def test_add_trackers_preserves_order(registry):
    trackers = registry.add_trackers(["Goose", "", "Iceman", "Maverick"], server="Training Server")

    assert [t.username for t in trackers] == ["Goose", "Iceman", "Maverick"]
    assert {t.server for t in trackers} == {"Training Server"}


def test_stop_marks_tracker_stopped_and_notifies(registry, notifier):
    tracker = registry.add_tracker("Maverick")

    stopped = registry.stop(tracker.id)

    assert stopped.status == TrackerStatus.STOPPED
    assert stopped.history[-1].type == TrackerEventType.STOPPED
    assert notifier.calls[-1] == (tracker.id, TrackerStatus.STOPPED, {"reason": "stopped_by_request"})
    assert registry.list_active() == []
    assert registry.due(START + timedelta(hours=1)) == []


def test_stop_is_noop_on_terminal_tracker(registry, notifier):
    tracker = registry.add_tracker("Maverick")
    registry.stop(tracker.id)
    calls = len(notifier.calls)

    registry.stop(tracker.id)

    assert len(notifier.calls) == calls
    assert [e.type for e in tracker.history].count(TrackerEventType.STOPPED) == 1


def test_unknown_tracker_raises(registry):
    with pytest.raises(TrackerNotFoundError):
        registry.get("missing")
    with pytest.raises(TrackerNotFoundError):
        registry.stop("missing")
    with pytest.raises(TrackerNotFoundError):
        registry.delay("missing", 60)


def test_delay_pushes_next_poll_forward(registry, clock):
    tracker = registry.add_tracker("Maverick")
    clock.now = START + timedelta(minutes=2)

    registry.delay(tracker.id, 300)

    assert tracker.status == TrackerStatus.SEARCHING
    assert tracker.next_poll_at == clock.now + timedelta(seconds=300)
    assert tracker.history[-1].type == TrackerEventType.DELAYED_BY_TEST
    assert registry.due(clock.now) == []


def test_due_returns_working_copies(registry):
    tracker = registry.add_tracker("Maverick")

    (copy,) = registry.due(START)
    copy.attempts = 5

    assert registry.get(tracker.id).attempts == 0
    assert registry.commit(copy) is True
    assert registry.get(tracker.id).attempts == 5


def test_commit_keeps_delay_made_while_copy_was_out(registry):
    tracker = registry.add_tracker("Maverick")
    (copy,) = registry.due(START)
    registry.delay(tracker.id, 3600)

    copy.attempts = 1
    copy.next_poll_at = START + timedelta(seconds=60)

    assert registry.commit(copy) is True
    stored = registry.get(tracker.id)
    assert stored.attempts == 1
    assert stored.next_poll_at == START + timedelta(seconds=3600)
    assert [e.type for e in stored.history] == [
        TrackerEventType.CREATED,
        TrackerEventType.DELAYED_BY_TEST,
    ]


def test_commit_is_rejected_after_stop(registry):
    tracker = registry.add_tracker("Maverick")
    (copy,) = registry.due(START)
    registry.stop(tracker.id)

    copy.status = TrackerStatus.TRACKING

    assert registry.commit(copy) is False
    assert registry.get(tracker.id).status == TrackerStatus.STOPPED
