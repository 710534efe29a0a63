from __future__ import annotations

import logging
from threading import Lock
from typing import List, Optional

from .scheduler import NotificationScheduler, default_alarm_body
from .storage import (
    Alarm,
    KeyValueStore,
    Reminder,
    load_alarms,
    load_reminders,
    save_alarms,
    save_reminders,
)

logger = logging.getLogger(__name__)


class AlarmStore:
    """Alarms and reminders plus the notifications that back them.

    Each public mutator changes the collection, persists it and then brings
    the scheduled notifications in line, in that order.
    """

    def __init__(self, store: KeyValueStore, scheduler: NotificationScheduler):
        self.store = store
        self.scheduler = scheduler
        self._alarms: List[Alarm] = []
        self._reminders: List[Reminder] = []
        self._lock = Lock()

    def load(self) -> None:
        alarms = load_alarms(self.store)
        reminders = load_reminders(self.store)
        with self._lock:
            self._alarms = alarms
            self._reminders = reminders
        logger.info("Loaded %s alarms and %s reminders", len(alarms), len(reminders))

    def reschedule_all(self) -> None:
        for alarm in self.alarms:
            self.scheduler.cancel_series(alarm.id)
            if alarm.is_enabled:
                self._schedule_alarm(alarm)
        for reminder in self.reminders:
            self.scheduler.cancel(reminder.id)
            if reminder.is_enabled:
                self._schedule_reminder(reminder)

    @property
    def alarms(self) -> List[Alarm]:
        with self._lock:
            return list(self._alarms)

    @property
    def reminders(self) -> List[Reminder]:
        with self._lock:
            return list(self._reminders)

    def get_alarm(self, alarm_id: str) -> Optional[Alarm]:
        with self._lock:
            return next((a for a in self._alarms if a.id == alarm_id), None)

    # Alarms

    def add_alarm(self, alarm: Alarm) -> Alarm:
        with self._lock:
            self._alarms.append(alarm)
            save_alarms(self.store, self._alarms)
        logger.info("Added alarm %s '%s' at %02d:%02d", alarm.id, alarm.title, alarm.hour, alarm.minute)
        if alarm.is_enabled:
            self._schedule_alarm(alarm)
        return alarm

    def update_alarm(self, alarm: Alarm) -> bool:
        with self._lock:
            index = next((i for i, a in enumerate(self._alarms) if a.id == alarm.id), None)
            if index is None:
                return False
            self._alarms[index] = alarm
            save_alarms(self.store, self._alarms)
        self.scheduler.cancel_series(alarm.id)
        if alarm.is_enabled:
            self._schedule_alarm(alarm)
        logger.info("Updated alarm %s (enabled=%s)", alarm.id, alarm.is_enabled)
        return True

    def set_alarm_enabled(self, alarm_id: str, enabled: bool) -> bool:
        alarm = self.get_alarm(alarm_id)
        if alarm is None:
            return False
        alarm = Alarm.from_dict({**alarm.to_dict(), "is_enabled": enabled})
        return self.update_alarm(alarm)

    def remove_alarm(self, alarm: Alarm) -> None:
        with self._lock:
            self._alarms = [a for a in self._alarms if a.id != alarm.id]
            save_alarms(self.store, self._alarms)
        self.scheduler.cancel_series(alarm.id)
        logger.info("Removed alarm %s", alarm.id)

    # Reminders

    def add_reminder(self, reminder: Reminder) -> Reminder:
        with self._lock:
            self._reminders.append(reminder)
            save_reminders(self.store, self._reminders)
        if reminder.is_enabled:
            self._schedule_reminder(reminder)
        return reminder

    def update_reminder(self, reminder: Reminder) -> bool:
        with self._lock:
            index = next((i for i, r in enumerate(self._reminders) if r.id == reminder.id), None)
            if index is None:
                return False
            self._reminders[index] = reminder
            save_reminders(self.store, self._reminders)
        self.scheduler.cancel(reminder.id)
        if reminder.is_enabled:
            self._schedule_reminder(reminder)
        return True

    def remove_reminder(self, reminder: Reminder) -> None:
        with self._lock:
            self._reminders = [r for r in self._reminders if r.id != reminder.id]
            save_reminders(self.store, self._reminders)
        self.scheduler.cancel(reminder.id)

    def _schedule_alarm(self, alarm: Alarm) -> None:
        body = default_alarm_body(alarm.hour)
        if not alarm.repeat_weekdays:
            self.scheduler.schedule_daily(alarm.id, alarm.title, body, alarm.hour, alarm.minute)
        else:
            self.scheduler.schedule_weekly_series(
                alarm.id, alarm.title, body, alarm.hour, alarm.minute, alarm.repeat_weekdays
            )

    def _schedule_reminder(self, reminder: Reminder) -> None:
        self.scheduler.schedule_one_off(reminder.id, reminder.title, reminder.notes, reminder.date)
