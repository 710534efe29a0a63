"""Follow-up pings that keep a recurring alarm ringing after its first fire."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Sequence

from time_utils import date_key, next_wall_clock, now_in_tz

from .identifiers import followup_id, followup_prefix
from .notifications import PRAYER_ALARM_CATEGORY

if TYPE_CHECKING:
    from .scheduler import NotificationScheduler

logger = logging.getLogger(__name__)

DEFAULT_FOLLOWUP_OFFSETS = (30.0, 60.0, 120.0)
FOLLOWUP_BODY = "Reminder: It's time to pray."


def next_occurrence(
    hour: int,
    minute: int,
    weekdays: Optional[Iterable[int]],
    now: datetime,
) -> datetime:
    days = list(weekdays or [])
    if not days:
        return next_wall_clock(hour, minute, now)
    return min(next_wall_clock(hour, minute, now, w) for w in days)


class FollowupGenerator:
    def __init__(
        self,
        scheduler: "NotificationScheduler",
        offsets: Sequence[float] = DEFAULT_FOLLOWUP_OFFSETS,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.scheduler = scheduler
        self.offsets = tuple(offsets)
        self.now_fn = now_fn or (lambda: now_in_tz(None))

    def schedule_followups(
        self,
        base_id: str,
        title: str,
        hour: int,
        minute: int,
        weekdays: Optional[Iterable[int]] = None,
    ) -> List[str]:
        occurrence = next_occurrence(hour, minute, weekdays, self.now_fn())
        key = date_key(occurrence)
        ids = []
        for index, offset in enumerate(self.offsets, start=1):
            identifier = followup_id(base_id, key, index)
            self.scheduler.schedule_one_off(
                identifier,
                title,
                FOLLOWUP_BODY,
                occurrence + timedelta(seconds=offset),
                category=PRAYER_ALARM_CATEGORY,
            )
            ids.append(identifier)
        logger.debug("Scheduled %s follow-ups for %s at %s", len(ids), base_id, key)
        return ids

    def cancel_followups(self, base_id: str) -> List[str]:
        return self.scheduler.cancel_by_prefix(followup_prefix(base_id))
