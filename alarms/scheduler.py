from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from time_utils import now_in_tz

from .followups import DEFAULT_FOLLOWUP_OFFSETS, FollowupGenerator
from .identifiers import base_id, snooze_id, weekly_id
from .notifications import (
    FULL_PRESENTATION,
    PRAYER_ALARM_CATEGORY,
    CalendarTrigger,
    DateTrigger,
    NotificationRequest,
    NotificationService,
    PresentationOption,
)
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

ACTION_OPEN = "open"
ACTION_SNOOZE_5 = "snooze-5"
ACTION_SNOOZE_10 = "snooze-10"
ACTION_SNOOZE_15 = "snooze-15"
ACTION_DISMISS = "dismiss"

SNOOZE_ACTION_MINUTES: Dict[str, int] = {
    ACTION_SNOOZE_5: 5,
    ACTION_SNOOZE_10: 10,
    ACTION_SNOOZE_15: 15,
}

DEFAULT_SESSION_MINUTES_KEY = "settings.defaultSessionMinutes"
START_PRAYER_MINUTES_KEY = "intent.startPrayer.minutes"
START_PRAYER_TIMESTAMP_KEY = "intent.startPrayer.timestamp"

MIN_MINUTES = 1
MAX_MINUTES = 180


def clamp_minutes(minutes: int) -> int:
    return max(MIN_MINUTES, min(MAX_MINUTES, int(minutes)))


def default_alarm_body(hour: int) -> str:
    if 5 <= hour < 11:
        return "Good morning. It's time to pray."
    if 11 <= hour < 18:
        return "It's time to pray."
    return "Good evening. It's time to pray."


class NotificationScheduler:
    """Translate alarms and reminders into notification requests.

    Every call into the notification service is fire-and-forget: a failure is
    logged and the caller carries on as if the request had been accepted.
    """

    def __init__(
        self,
        service: NotificationService,
        settings: KeyValueStore,
        followup_offsets: Sequence[float] = DEFAULT_FOLLOWUP_OFFSETS,
        now_fn: Optional[Callable[[], datetime]] = None,
        on_ring: Optional[Callable[[Optional[str], Optional[str]], None]] = None,
        default_session_minutes: int = 20,
    ):
        self.service = service
        self.settings = settings
        self.now_fn = now_fn or (lambda: now_in_tz(None))
        self.on_ring = on_ring
        self.default_session_minutes = default_session_minutes
        self.followups = FollowupGenerator(self, offsets=followup_offsets, now_fn=self.now_fn)

    # Scheduling

    def schedule_daily(self, id: str, title: str, body: str, hour: int, minute: int) -> None:
        self.cancel(id)
        request = NotificationRequest(
            identifier=id,
            title=title,
            body=body,
            trigger=CalendarTrigger(hour=hour, minute=minute, repeats=True),
            category=PRAYER_ALARM_CATEGORY,
            user_info={"alarmId": id, "scheduledFor": f"{hour}:{minute:02d}", "type": "daily-alarm"},
        )
        if self._add(request):
            logger.info("Scheduled daily alarm '%s' for %02d:%02d", title, hour, minute)
        self.followups.schedule_followups(id, title, hour, minute)

    def schedule_weekly_series(
        self,
        base_id: str,
        title: str,
        body: str,
        hour: int,
        minute: int,
        weekdays: Iterable[int],
    ) -> None:
        self.cancel_series(base_id)
        weekdays = sorted(set(weekdays))
        for weekday in weekdays:
            request = NotificationRequest(
                identifier=weekly_id(base_id, weekday),
                title=title,
                body=body,
                trigger=CalendarTrigger(hour=hour, minute=minute, weekday=weekday, repeats=True),
                category=PRAYER_ALARM_CATEGORY,
            )
            if self._add(request):
                logger.info("Scheduled weekly alarm '%s' weekday %s at %02d:%02d", title, weekday, hour, minute)
        self.followups.schedule_followups(base_id, title, hour, minute, weekdays)

    def schedule_one_off(
        self,
        id: str,
        title: str,
        body: Optional[str],
        date: datetime,
        category: Optional[str] = None,
    ) -> None:
        self.cancel(id)
        request = NotificationRequest(
            identifier=id,
            title=title,
            body=body or "",
            trigger=DateTrigger(fire_at=date),
            category=category,
        )
        if self._add(request):
            logger.debug("Scheduled one-off %s for %s", id, date.isoformat())

    # Cancellation

    def cancel(self, id: str) -> None:
        self._remove([id])

    def cancel_by_prefix(self, prefix: str) -> List[str]:
        ids = [i for i in self._pending_ids() if i.startswith(prefix)]
        if ids:
            self._remove(ids)
            logger.debug("Cancelled %s notifications with prefix %s", len(ids), prefix)
        return ids

    def cancel_series(self, id: str) -> List[str]:
        """Cancel ``id`` and every notification derived from it.

        Derived ids always continue with a dash, so an alarm ``1`` never takes
        alarm ``10`` down with it.
        """
        prefix = f"{id}-"
        ids = [id] + [i for i in self._pending_ids() if i.startswith(prefix)]
        self._remove(ids)
        logger.debug("Cancelled series %s (%s notifications)", id, len(ids))
        return ids

    def cancel_followups(self, base_id: str) -> List[str]:
        return self.followups.cancel_followups(base_id)

    # Delivery callbacks

    def will_present(self, request: NotificationRequest) -> PresentationOption:
        if request.category == PRAYER_ALARM_CATEGORY:
            self._notify_ring(request.title, request.identifier)
        return FULL_PRESENTATION

    def handle_user_response(
        self,
        identifier: str,
        action: str,
        title: Optional[str] = None,
        body: Optional[str] = None,
    ) -> None:
        logger.info("User responded to %s with %s", identifier, action)
        if action == ACTION_OPEN:
            self._notify_ring(title, identifier)
            self.record_start_prayer_intent()
        elif action in SNOOZE_ACTION_MINUTES:
            minutes = SNOOZE_ACTION_MINUTES[action]
            self.schedule_one_off(
                snooze_id(identifier),
                title or "Prayer Alarm",
                body,
                self.now_fn() + timedelta(minutes=minutes),
                category=PRAYER_ALARM_CATEGORY,
            )
        elif action != ACTION_DISMISS:
            logger.warning("Unknown notification action %s for %s", action, identifier)

        self.cancel_followups(base_id(identifier))

    def pending_summary(self) -> List[Tuple[str, Optional[datetime]]]:
        try:
            pending = self.service.pending_requests()
        except Exception:
            logger.error("Failed to list pending notifications", exc_info=True)
            return []
        next_fire = getattr(self.service, "next_fire_at", None)
        summary = []
        for request in sorted(pending, key=lambda r: r.identifier):
            fire_at = next_fire(request.identifier) if next_fire else None
            summary.append((request.identifier, fire_at))
            logger.debug("Pending %s (%s) next=%s", request.identifier, request.title, fire_at)
        return summary

    def record_start_prayer_intent(self, minutes: Optional[int] = None) -> int:
        """Leave a start-prayer request for the prayer session view to pick up.

        Without explicit ``minutes`` the stored session length setting is used.
        """
        if minutes is None:
            stored = self.settings.get(DEFAULT_SESSION_MINUTES_KEY)
            try:
                minutes = int(stored) if stored else self.default_session_minutes
            except (TypeError, ValueError):
                minutes = self.default_session_minutes
        minutes = clamp_minutes(minutes)
        try:
            self.settings.set(START_PRAYER_TIMESTAMP_KEY, time.time())
            self.settings.set(START_PRAYER_MINUTES_KEY, minutes)
        except Exception:
            logger.error("Failed to record start prayer intent", exc_info=True)
        return minutes

    # Internals

    def _notify_ring(self, title: Optional[str], identifier: Optional[str]) -> None:
        if not self.on_ring:
            return
        try:
            self.on_ring(title, identifier)
        except Exception:
            logger.error("Ring handler failed for %s", identifier, exc_info=True)

    def _pending_ids(self) -> List[str]:
        try:
            return [r.identifier for r in self.service.pending_requests()]
        except Exception:
            logger.error("Failed to list pending notifications", exc_info=True)
            return []

    def _add(self, request: NotificationRequest) -> bool:
        try:
            self.service.add(request)
        except Exception:
            logger.error("Failed to schedule notification %s", request.identifier, exc_info=True)
            return False
        return True

    def _remove(self, ids: List[str]) -> None:
        try:
            self.service.remove_pending(ids)
            self.service.remove_delivered(ids)
        except Exception:
            logger.error("Failed to cancel notifications %s", ids, exc_info=True)
