from datetime import datetime, timedelta, timezone

import pytest

from alarms.notifications import LocalNotificationService
from alarms.occurrence import OccurrenceTracker
from alarms.ringer import AlarmRinger
from alarms.scheduler import NotificationScheduler
from alarms.sounds import FeedbackPlayer
from alarms.storage import MemoryKeyValueStore
from alarms.store import AlarmStore


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotificationService(LocalNotificationService):
    """Local service that also keeps an ordered log of calls."""

    def __init__(self, now_fn):
        super().__init__(now_fn=now_fn)
        self.calls = []

    def add(self, request):
        self.calls.append(("add", request.identifier))
        super().add(request)

    def remove_pending(self, identifiers):
        identifiers = list(identifiers)
        self.calls.append(("remove", tuple(identifiers)))
        super().remove_pending(identifiers)

    def request(self, identifier):
        return next((r for r in self.pending_requests() if r.identifier == identifier), None)

    def pending_ids(self):
        return sorted(r.identifier for r in self.pending_requests())


class SilentFeedback(FeedbackPlayer):
    def __init__(self):
        super().__init__(sound_path=None)
        self.events = []

    def tick(self):
        self.events.append("tick")

    def impact(self):
        self.events.append("impact")

    def success(self):
        self.events.append("success")

    def warning(self):
        self.events.append("warning")


@pytest.fixture
def clock():
    # Wednesday, after 07:00
    return Clock(datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def service(clock):
    return RecordingNotificationService(now_fn=clock)


@pytest.fixture
def scheduler(service, kv, clock):
    return NotificationScheduler(service, kv, now_fn=clock)


@pytest.fixture
def tracker(kv):
    return OccurrenceTracker(kv)


@pytest.fixture
def feedback():
    return SilentFeedback()


@pytest.fixture
def ringer(scheduler, tracker, feedback, clock):
    r = AlarmRinger(scheduler, tracker, feedback=feedback, max_snoozes=2, pulse_interval=0.05, now_fn=clock)
    yield r
    r.shutdown()


@pytest.fixture
def alarm_store(kv, scheduler):
    return AlarmStore(kv, scheduler)
