"""Prayer alarm scheduling and snooze-chain subsystem for The Altar."""

from .notifications import LocalNotificationService, NotificationRequest
from .occurrence import OccurrenceTracker
from .ringer import AlarmRinger, RingerState
from .scheduler import NotificationScheduler
from .storage import Alarm, JsonKeyValueStore, MemoryKeyValueStore, Reminder
from .store import AlarmStore
