import logging
import re
import signal
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Optional

from alarms.identifiers import base_id
from alarms.notifications import LocalNotificationService
from alarms.occurrence import OccurrenceTracker
from alarms.ringer import AlarmRinger
from alarms.scheduler import (
    ACTION_DISMISS,
    ACTION_OPEN,
    DEFAULT_SESSION_MINUTES_KEY,
    SNOOZE_ACTION_MINUTES,
    NotificationScheduler,
    clamp_minutes,
)
from alarms.sounds import FeedbackPlayer
from alarms.storage import Alarm, JsonKeyValueStore, KeyValueStore, Reminder
from alarms.store import AlarmStore
from config import Config, load_config, setup_logging
from time_utils import now_in_tz, resolve_timezone

logger = logging.getLogger("altar")

_ADD_RE = re.compile(
    r"^add\s+(?P<hour>\d{1,2}):(?P<minute>\d{2})"
    r"(?:\s+(?P<title>(?!days=).+?))?"
    r"(?:\s+days=(?P<days>[1-7](?:,[1-7])*))?$",
    re.IGNORECASE,
)
_REMIND_RE = re.compile(
    r"^remind\s+(?P<date>\d{4}-\d{2}-\d{2})\s+(?P<time>\d{1,2}:\d{2})(?:\s+(?P<title>.+))?$",
    re.IGNORECASE,
)
_TOGGLE_RE = re.compile(r"^(?P<verb>enable|disable)\s+(?P<reminder>reminder\s+)?(?P<index>\d+)$", re.IGNORECASE)
_RESPOND_RE = re.compile(r"^respond\s+(?P<identifier>\S+)\s+(?P<action>\S+)$", re.IGNORECASE)

NOTIFICATION_ACTIONS = {ACTION_OPEN, ACTION_DISMISS, *SNOOZE_ACTION_MINUTES}


@dataclass
class CommandResult:
    handled: bool
    response_text: Optional[str] = None
    action: Optional[str] = None
    quit: bool = False


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    raise KeyboardInterrupt()


class AltarRuntime:
    def __init__(
        self,
        config: Config,
        store: Optional[KeyValueStore] = None,
        now_fn: Optional[Callable[[], datetime]] = None,
        feedback: Optional[FeedbackPlayer] = None,
    ):
        self.config = config
        self.tzinfo = resolve_timezone(config.timezone_name)
        self.now_fn = now_fn or (lambda: now_in_tz(self.tzinfo))
        self.store = store if store is not None else JsonKeyValueStore(config.store_path)
        if self.store.get(DEFAULT_SESSION_MINUTES_KEY) is None:
            self.store.set(DEFAULT_SESSION_MINUTES_KEY, config.default_session_minutes)

        self.notifications = LocalNotificationService(
            check_interval=config.check_interval_ms / 1000.0,
            timezone=self.tzinfo,
            now_fn=self.now_fn,
        )
        self.scheduler = NotificationScheduler(
            self.notifications,
            self.store,
            followup_offsets=config.followup_offsets,
            now_fn=self.now_fn,
            default_session_minutes=config.default_session_minutes,
        )
        self.ringer = AlarmRinger(
            self.scheduler,
            OccurrenceTracker(self.store),
            feedback=feedback or FeedbackPlayer(config.sound_path),
            max_snoozes=config.max_snoozes,
            pulse_interval=config.pulse_interval_s,
            now_fn=self.now_fn,
        )
        self.scheduler.on_ring = self.ringer.trigger_now
        self.notifications.on_deliver = self.scheduler.will_present
        self.ringer.add_start_prayer_listener(self._on_start_prayer)
        self.alarm_store = AlarmStore(self.store, self.scheduler)
        self.last_prayer_minutes: Optional[int] = None

    def start(self) -> None:
        self.alarm_store.load()
        self.alarm_store.reschedule_all()
        self.notifications.start()

    def shutdown(self) -> None:
        self.ringer.shutdown()
        self.notifications.shutdown()

    def session_minutes(self) -> int:
        stored = self.store.get(DEFAULT_SESSION_MINUTES_KEY)
        try:
            return clamp_minutes(int(stored)) if stored else self.config.default_session_minutes
        except (TypeError, ValueError):
            return self.config.default_session_minutes

    def handle_text(self, text: str) -> CommandResult:
        cleaned = " ".join(text.strip().split())
        lower = cleaned.lower()
        if not lower:
            return CommandResult(handled=False)

        if lower in {"quit", "exit"}:
            return CommandResult(handled=True, action="quit", quit=True)

        if lower == "list":
            alarms = self.alarm_store.alarms
            if not alarms:
                return CommandResult(handled=True, response_text="No alarms yet.", action="list")
            lines = [f"{idx}) {format_alarm(alarm)}" for idx, alarm in enumerate(alarms, start=1)]
            return CommandResult(handled=True, response_text="\n".join(lines), action="list")

        if lower.startswith("add"):
            match = _ADD_RE.match(cleaned)
            if not match:
                return CommandResult(handled=True, response_text="Usage: add HH:MM [title] [days=1,2,...]", action="add")
            try:
                alarm = Alarm(
                    title=(match.group("title") or "Prayer Alarm").strip(),
                    hour=int(match.group("hour")),
                    minute=int(match.group("minute")),
                    repeat_weekdays=[int(d) for d in (match.group("days") or "").split(",") if d],
                )
            except ValueError as exc:
                return CommandResult(handled=True, response_text=str(exc), action="add")
            self.alarm_store.add_alarm(alarm)
            return CommandResult(handled=True, response_text=f"Alarm set: {format_alarm(alarm)}", action="add")

        if lower.startswith("remove"):
            alarm = _pick(self.alarm_store.alarms, lower)
            if alarm is None:
                return CommandResult(handled=True, response_text="No such alarm.", action="remove")
            self.alarm_store.remove_alarm(alarm)
            return CommandResult(handled=True, response_text=f"Removed {format_alarm(alarm)}", action="remove")

        match = _TOGGLE_RE.match(cleaned)
        if match:
            return self._toggle(match)

        if lower == "reminders":
            reminders = self.alarm_store.reminders
            if not reminders:
                return CommandResult(handled=True, response_text="No reminders yet.", action="reminders")
            lines = [f"{idx}) {format_reminder(r)}" for idx, r in enumerate(reminders, start=1)]
            return CommandResult(handled=True, response_text="\n".join(lines), action="reminders")

        if lower.startswith("remind "):
            match = _REMIND_RE.match(cleaned)
            if not match:
                return CommandResult(
                    handled=True, response_text="Usage: remind YYYY-MM-DD HH:MM [title]", action="remind"
                )
            try:
                when = datetime.strptime(f"{match.group('date')} {match.group('time')}", "%Y-%m-%d %H:%M")
            except ValueError:
                return CommandResult(handled=True, response_text="Invalid date or time.", action="remind")
            if self.tzinfo is not None:
                when = when.replace(tzinfo=self.tzinfo)
            reminder = Reminder(title=(match.group("title") or "Reminder").strip(), date=when)
            self.alarm_store.add_reminder(reminder)
            return CommandResult(
                handled=True, response_text=f"Reminder set: {format_reminder(reminder)}", action="remind"
            )

        if lower.startswith("unremind"):
            reminder = _pick(self.alarm_store.reminders, lower)
            if reminder is None:
                return CommandResult(handled=True, response_text="No such reminder.", action="unremind")
            self.alarm_store.remove_reminder(reminder)
            return CommandResult(
                handled=True, response_text=f"Removed {format_reminder(reminder)}", action="unremind"
            )

        if lower.startswith("respond"):
            match = _RESPOND_RE.match(cleaned)
            if not match or match.group("action").lower() not in NOTIFICATION_ACTIONS:
                actions = ", ".join(sorted(NOTIFICATION_ACTIONS))
                return CommandResult(
                    handled=True, response_text=f"Usage: respond <id> <{actions}>", action="respond"
                )
            identifier, action = match.group("identifier"), match.group("action").lower()
            alarm = self.alarm_store.get_alarm(base_id(identifier))
            self.scheduler.handle_user_response(identifier, action, title=alarm.title if alarm else None)
            return CommandResult(handled=True, response_text=f"Sent {action} for {identifier}.", action="respond")

        if lower == "start":
            if not self.ringer.dismiss_and_start_prayer(self.session_minutes()):
                return CommandResult(handled=True, response_text="Busy, try again.", action="start")
            return CommandResult(
                handled=True, response_text=f"Starting prayer for {self.last_prayer_minutes} minutes.", action="start"
            )

        if lower.startswith("snooze"):
            parts = lower.split()
            minutes = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else self.config.default_snooze_min
            if not self.ringer.snooze(minutes):
                return CommandResult(handled=True, response_text="No snoozes left.", action="snooze")
            left = self.ringer.snoozes_left
            return CommandResult(
                handled=True, response_text=f"Snoozed {clamp_minutes(minutes)} min ({left} left).", action="snooze"
            )

        if lower == "dismiss":
            self.ringer.reject_now()
            return CommandResult(handled=True, response_text="Dismissed.", action="dismiss")

        if lower == "pending":
            summary = self.scheduler.pending_summary()
            if not summary:
                return CommandResult(handled=True, response_text="Nothing scheduled.", action="pending")
            lines = [f"{ident} -> {fire_at:%Y-%m-%d %H:%M:%S}" if fire_at else ident for ident, fire_at in summary]
            return CommandResult(handled=True, response_text="\n".join(lines), action="pending")

        return CommandResult(handled=False, response_text="Unknown command.")

    def _toggle(self, match: "re.Match") -> CommandResult:
        enabled = match.group("verb").lower() == "enable"
        verb = "Enabled" if enabled else "Disabled"
        index = int(match.group("index"))
        if match.group("reminder"):
            reminders = self.alarm_store.reminders
            if not 1 <= index <= len(reminders):
                return CommandResult(handled=True, response_text="No such reminder.", action="toggle")
            reminder = replace(reminders[index - 1], is_enabled=enabled)
            self.alarm_store.update_reminder(reminder)
            return CommandResult(handled=True, response_text=f"{verb} {format_reminder(reminder)}", action="toggle")
        alarms = self.alarm_store.alarms
        if not 1 <= index <= len(alarms):
            return CommandResult(handled=True, response_text="No such alarm.", action="toggle")
        self.alarm_store.set_alarm_enabled(alarms[index - 1].id, enabled)
        alarm = self.alarm_store.get_alarm(alarms[index - 1].id)
        return CommandResult(handled=True, response_text=f"{verb} {format_alarm(alarm)}", action="toggle")

    def _on_start_prayer(self, minutes: int) -> None:
        self.last_prayer_minutes = minutes
        logger.info("Prayer session requested for %s minutes", minutes)


def format_alarm(alarm: Alarm) -> str:
    days = ",".join(str(d) for d in alarm.repeat_weekdays) or "daily"
    state = "" if alarm.is_enabled else " (off)"
    return f"{alarm.hour:02d}:{alarm.minute:02d} {alarm.title} [{days}]{state}"


def format_reminder(reminder: Reminder) -> str:
    state = "" if reminder.is_enabled else " (off)"
    return f"{reminder.date:%Y-%m-%d %H:%M} {reminder.title}{state}"


def _pick(items: List, command: str):
    parts = command.split()
    if len(parts) != 2 or not parts[1].isdigit() or not 1 <= int(parts[1]) <= len(items):
        return None
    return items[int(parts[1]) - 1]


def main() -> None:
    config = load_config()
    setup_logging(config.log_level)
    signal.signal(signal.SIGINT, graceful_exit)
    logger.info("Starting The Altar alarm service (store=%s)", config.store_path)

    runtime = AltarRuntime(config)
    runtime.start()
    try:
        while True:
            result = runtime.handle_text(input("altar> "))
            if result.response_text:
                print(result.response_text)
            if result.quit:
                break
    except (KeyboardInterrupt, EOFError):
        logger.info("Interrupted by user")
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    main()
