"""Local stand-in for the operating system's notification center.

The scheduler only needs a service that can add requests, enumerate pending
ones and remove pending/delivered ones by identifier. ``LocalNotificationService``
provides that in-process: a daemon thread polls for due requests and hands
each one to a delivery handler.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from threading import Event, Lock, Thread
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Union

from time_utils import next_wall_clock, now_in_tz

logger = logging.getLogger(__name__)

PRAYER_ALARM_CATEGORY = "PRAYER_ALARM"


class PresentationOption(enum.Flag):
    NONE = 0
    BANNER = enum.auto()
    LIST = enum.auto()
    SOUND = enum.auto()
    BADGE = enum.auto()


FULL_PRESENTATION = (
    PresentationOption.BANNER
    | PresentationOption.LIST
    | PresentationOption.SOUND
    | PresentationOption.BADGE
)


@dataclass(frozen=True)
class CalendarTrigger:
    """Wall-clock trigger; with ``weekday`` it only matches that day (Sun=1)."""

    hour: int
    minute: int
    weekday: Optional[int] = None
    repeats: bool = True

    def next_fire_after(self, now: datetime) -> datetime:
        return next_wall_clock(self.hour, self.minute, now, self.weekday)


@dataclass(frozen=True)
class DateTrigger:
    fire_at: datetime
    repeats: bool = False

    def next_fire_after(self, now: datetime) -> datetime:
        return self.fire_at


Trigger = Union[CalendarTrigger, DateTrigger]


@dataclass
class NotificationRequest:
    identifier: str
    title: str
    body: str
    trigger: Trigger
    category: Optional[str] = None
    user_info: Dict[str, object] = field(default_factory=dict)


class NotificationService(Protocol):
    def add(self, request: NotificationRequest) -> None: ...

    def pending_requests(self) -> List[NotificationRequest]: ...

    def remove_pending(self, identifiers: Iterable[str]) -> None: ...

    def remove_delivered(self, identifiers: Iterable[str]) -> None: ...


@dataclass
class _Scheduled:
    request: NotificationRequest
    fire_at: datetime


class LocalNotificationService:
    def __init__(
        self,
        check_interval: float = 0.8,
        timezone=None,
        now_fn: Optional[Callable[[], datetime]] = None,
        on_deliver: Optional[Callable[[NotificationRequest], object]] = None,
    ):
        self.check_interval = max(0.2, check_interval)
        self.tzinfo = timezone
        self._now_fn = now_fn or (lambda: now_in_tz(self.tzinfo))
        self.on_deliver = on_deliver

        self._pending: Dict[str, _Scheduled] = {}
        self._delivered: Dict[str, NotificationRequest] = {}
        self._lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="notification-center", daemon=True)
        self._thread.start()
        logger.info("Local notification service started (%s pending)", len(self._pending))

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None

    def add(self, request: NotificationRequest) -> None:
        now = self._now_fn()
        fire_at = _align(request.trigger.next_fire_after(now), now)
        with self._lock:
            self._pending[request.identifier] = _Scheduled(request=request, fire_at=fire_at)
        logger.debug("Added notification %s for %s", request.identifier, fire_at.isoformat())

    def pending_requests(self) -> List[NotificationRequest]:
        with self._lock:
            return [s.request for s in self._pending.values()]

    def delivered_identifiers(self) -> List[str]:
        with self._lock:
            return list(self._delivered)

    def next_fire_at(self, identifier: str) -> Optional[datetime]:
        with self._lock:
            scheduled = self._pending.get(identifier)
            return scheduled.fire_at if scheduled else None

    def remove_pending(self, identifiers: Iterable[str]) -> None:
        with self._lock:
            for identifier in identifiers:
                self._pending.pop(identifier, None)

    def remove_delivered(self, identifiers: Iterable[str]) -> None:
        with self._lock:
            for identifier in identifiers:
                self._delivered.pop(identifier, None)

    def deliver_due(self) -> List[NotificationRequest]:
        """Deliver everything due now; returns the delivered requests."""
        due = self._pop_due()
        for request in due:
            self._deliver(request)
        return due

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            if self.deliver_due():
                continue
            self._stop_event.wait(self.check_interval)

    def _pop_due(self) -> List[NotificationRequest]:
        now = self._now_fn()
        due: List[NotificationRequest] = []
        with self._lock:
            for identifier, scheduled in list(self._pending.items()):
                if scheduled.fire_at > now:
                    continue
                request = scheduled.request
                due.append(request)
                self._delivered[identifier] = request
                if request.trigger.repeats:
                    # Step past the minute that just fired.
                    after = max(now, scheduled.fire_at) + timedelta(seconds=1)
                    scheduled.fire_at = _align(request.trigger.next_fire_after(after), now)
                else:
                    del self._pending[identifier]
        return due

    def _deliver(self, request: NotificationRequest) -> None:
        logger.info("Delivering notification %s (%s)", request.identifier, request.title)
        if not self.on_deliver:
            return
        try:
            self.on_deliver(request)
        except Exception:  # pragma: no cover - callback safety
            logger.error("Notification delivery handler failed", exc_info=True)


def _align(dt: datetime, now: datetime) -> datetime:
    if dt.tzinfo is None and now.tzinfo is not None:
        return dt.replace(tzinfo=now.tzinfo)
    if dt.tzinfo is not None and now.tzinfo is not None:
        return dt.astimezone(now.tzinfo)
    return dt
