from __future__ import annotations

import logging
from datetime import datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

DATE_KEY_FORMAT = "%Y%m%d_%H%M"


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    if name:
        try:
            return ZoneInfo(name)
        except Exception as exc:  # pragma: no cover - environment-dependent
            logger.warning("Failed to load timezone %s via zoneinfo (%s)", name, exc)
    local_tz = datetime.now().astimezone().tzinfo
    if local_tz:
        return local_tz
    logger.warning("System timezone unavailable, using naive local time")
    return None


def now_in_tz(tz: Optional[tzinfo]) -> datetime:
    if tz:
        return datetime.now(tz)
    return datetime.now().astimezone()


def date_key(dt: datetime) -> str:
    """Format a wall-clock instant as ``yyyyMMdd_HHmm``."""
    return dt.strftime(DATE_KEY_FORMAT)


def calendar_weekday(dt: datetime) -> int:
    """Weekday number with Sunday=1 .. Saturday=7."""
    return (dt.weekday() + 1) % 7 + 1


def next_wall_clock(hour: int, minute: int, now: datetime, weekday: Optional[int] = None) -> datetime:
    """Soonest instant strictly after ``now`` at ``hour:minute``.

    With ``weekday`` (Sun=1) the result also falls on that day of the week.
    """
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if weekday is None:
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate
    candidate += timedelta(days=(weekday - calendar_weekday(now)) % 7)
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate
