from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, List, Optional

from time_utils import now_in_tz

from .identifiers import (
    KIND_FOLLOWUP,
    base_id,
    inapp_snooze_id,
    is_snooze_refire,
    parse_identifier,
)
from .notifications import PRAYER_ALARM_CATEGORY
from .occurrence import OccurrenceTracker
from .scheduler import NotificationScheduler, clamp_minutes
from .sounds import FeedbackPlayer, PulseLoop

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Prayer Alarm"
LOCAL_BASE_ID = "local"


class RingerState(enum.Enum):
    IDLE = "idle"
    RINGING = "ringing"
    PROCESSING = "processing"


class AlarmRinger:
    """In-app ringing overlay state machine.

    One instance is owned by the composition root. ``snooze``,
    ``dismiss_and_start_prayer`` and ``reject_now`` are serialized by a
    processing flag; a call that arrives while another is running is ignored.
    """

    def __init__(
        self,
        scheduler: NotificationScheduler,
        tracker: OccurrenceTracker,
        feedback: Optional[FeedbackPlayer] = None,
        max_snoozes: int = 2,
        pulse_interval: float = 2.0,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.scheduler = scheduler
        self.tracker = tracker
        self.feedback = feedback or FeedbackPlayer()
        self.max_snoozes = max_snoozes
        self.now_fn = now_fn or (lambda: now_in_tz(None))
        self._pulse = PulseLoop(self.feedback.tick, interval=pulse_interval)

        self._lock = Lock()
        self._ringing = False
        self._processing = False
        self._title = DEFAULT_TITLE
        self._base_id: Optional[str] = None
        self._occurrence_key: Optional[str] = None
        self._snooze_count = 0
        self._start_prayer_listeners: List[Callable[[int], None]] = []

    # Read-only state

    @property
    def state(self) -> RingerState:
        with self._lock:
            if self._processing:
                return RingerState.PROCESSING
            return RingerState.RINGING if self._ringing else RingerState.IDLE

    @property
    def is_ringing(self) -> bool:
        with self._lock:
            return self._ringing

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._processing

    @property
    def snooze_count(self) -> int:
        with self._lock:
            return self._snooze_count

    @property
    def snoozes_left(self) -> int:
        with self._lock:
            return max(0, self.max_snoozes - self._snooze_count)

    @property
    def can_snooze(self) -> bool:
        with self._lock:
            return self._snooze_count < self.max_snoozes

    @property
    def current_title(self) -> str:
        return self._title

    @property
    def current_base_id(self) -> Optional[str]:
        return self._base_id

    @property
    def occurrence_key(self) -> Optional[str]:
        return self._occurrence_key

    @property
    def pulse_running(self) -> bool:
        return self._pulse.running

    def add_start_prayer_listener(self, listener: Callable[[int], None]) -> None:
        self._start_prayer_listeners.append(listener)

    # Transitions

    def trigger_now(self, title: Optional[str] = None, source_id: Optional[str] = None) -> None:
        chain = self.tracker.chain_key
        if chain and self._continues_chain(source_id, chain):
            occurrence_key = chain
            base = self.tracker.base_from_occurrence_key(chain)
        else:
            base = base_id(source_id) if source_id else LOCAL_BASE_ID
            occurrence_key = self.tracker.occurrence_key(base, self.now_fn())
            if chain and chain != occurrence_key:
                # The previous occurrence was never dismissed.
                self.tracker.clear_chain()
            self.tracker.chain_key = occurrence_key
        count = min(self.max_snoozes, self.tracker.snooze_count(occurrence_key))

        with self._lock:
            self._title = title or DEFAULT_TITLE
            self._base_id = base
            self._occurrence_key = occurrence_key
            self._snooze_count = count
            self._ringing = True
        logger.info(
            "Ringing '%s' (occurrence %s, snoozed %s/%s)", self._title, occurrence_key, count, self.max_snoozes
        )
        self._pulse.start()

    def snooze(self, minutes: int) -> bool:
        if not self._begin(require_snooze=True):
            return False
        try:
            minutes = clamp_minutes(minutes)
            with self._lock:
                self._snooze_count = min(self.max_snoozes, self._snooze_count + 1)
                count, key, title = self._snooze_count, self._occurrence_key, self._title
            self._stop_ringing()
            self.tracker.set_snooze_count(count, key)
            self.scheduler.schedule_one_off(
                inapp_snooze_id(),
                title,
                f"Snoozed {minutes}m",
                self.now_fn() + timedelta(minutes=minutes),
                category=PRAYER_ALARM_CATEGORY,
            )
            logger.info("Snoozed '%s' for %s min (%s/%s)", title, minutes, count, self.max_snoozes)
        finally:
            self._end()
        self.feedback.impact()
        return True

    def dismiss_and_start_prayer(self, default_minutes: int = 20) -> bool:
        if not self._begin():
            return False
        try:
            minutes = clamp_minutes(default_minutes)
            self._finish_chain()
            self.scheduler.record_start_prayer_intent(minutes)
            logger.info("Alarm dismissed, starting prayer for %s min", minutes)
            self._emit_start_prayer(minutes)
        finally:
            self._end()
        self.feedback.success()
        return True

    def reject_now(self) -> bool:
        if not self._begin():
            return False
        try:
            self._finish_chain()
            logger.info("Alarm rejected")
        finally:
            self._end()
        self.feedback.warning()
        return True

    def shutdown(self) -> None:
        self._stop_ringing()

    # Internals

    def _continues_chain(self, source_id: Optional[str], chain: str) -> bool:
        if is_snooze_refire(source_id):
            return True
        # Follow-up pings of the alarm already in flight belong to its chain.
        parsed = parse_identifier(source_id) if source_id else None
        return (
            parsed is not None
            and parsed.kind == KIND_FOLLOWUP
            and base_id(source_id) == self.tracker.base_from_occurrence_key(chain)
        )

    def _begin(self, require_snooze: bool = False) -> bool:
        with self._lock:
            if self._processing:
                logger.debug("Ignoring ringer action while processing")
                return False
            if require_snooze and self._occurrence_key is None:
                logger.debug("Nothing to snooze")
                return False
            if require_snooze and self._snooze_count >= self.max_snoozes:
                logger.debug("Snooze limit reached (%s)", self.max_snoozes)
                return False
            self._processing = True
            return True

    def _end(self) -> None:
        with self._lock:
            self._processing = False

    def _stop_ringing(self) -> None:
        with self._lock:
            self._ringing = False
        self._pulse.stop()

    def _finish_chain(self) -> None:
        self._stop_ringing()
        with self._lock:
            base = self._base_id
            self._base_id = None
            self._occurrence_key = None
            self._snooze_count = 0
        if base:
            self.scheduler.cancel_followups(base)
        self.tracker.clear_chain()

    def _emit_start_prayer(self, minutes: int) -> None:
        for listener in list(self._start_prayer_listeners):
            try:
                listener(minutes)
            except Exception:
                logger.error("Start prayer listener failed", exc_info=True)
