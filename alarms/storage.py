from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

ALARMS_KEY = "alarms.v2"
REMINDERS_KEY = "reminders.v2"


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store, handy for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})
        self._lock = Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data)


class JsonKeyValueStore:
    """Key-value store backed by a single JSON document.

    Every write rewrites the whole document through a temp file and
    ``os.replace`` so a crash never leaves a half-written store behind.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = Lock()
        self._data: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except Exception as exc:  # pragma: no cover - corrupted file
            logger.error("Failed to load store from %s: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            logger.error("Store at %s is not a JSON object, starting empty", self.path)
            return {}
        return payload

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._write()

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            del self._data[key]
            self._write()


def _new_id() -> str:
    return str(uuid.uuid4()).upper()


@dataclass
class Alarm:
    title: str
    hour: int
    minute: int
    id: str = field(default_factory=_new_id)
    is_enabled: bool = True
    # Sun=1 .. Sat=7, empty means every day
    repeat_weekdays: List[int] = field(default_factory=list)
    allow_snooze: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Alarm hour must be within 0..23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"Alarm minute must be within 0..59, got {self.minute}")
        bad = [w for w in self.repeat_weekdays if not 1 <= w <= 7]
        if bad:
            raise ValueError(f"Alarm weekdays must be within 1..7, got {bad}")
        self.repeat_weekdays = sorted(set(self.repeat_weekdays))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "hour": self.hour,
            "minute": self.minute,
            "is_enabled": self.is_enabled,
            "repeat_weekdays": list(self.repeat_weekdays),
            "allow_snooze": self.allow_snooze,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Alarm":
        if "hour" not in data or "minute" not in data:
            raise ValueError("Alarm payload missing hour/minute fields")
        return cls(
            id=str(data.get("id") or _new_id()),
            title=str(data.get("title") or "Prayer Alarm"),
            hour=int(data["hour"]),
            minute=int(data["minute"]),
            is_enabled=bool(data.get("is_enabled", True)),
            repeat_weekdays=[int(w) for w in data.get("repeat_weekdays") or []],
            allow_snooze=bool(data.get("allow_snooze", True)),
        )


@dataclass
class Reminder:
    title: str
    date: datetime
    id: str = field(default_factory=_new_id)
    notes: Optional[str] = None
    is_enabled: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "notes": self.notes,
            "date": self.date.isoformat(),
            "is_enabled": self.is_enabled,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Reminder":
        date_raw = data.get("date")
        if not date_raw:
            raise ValueError("Reminder payload missing date field")
        return cls(
            id=str(data.get("id") or _new_id()),
            title=str(data.get("title") or "Reminder"),
            notes=data.get("notes"),
            date=datetime.fromisoformat(date_raw),
            is_enabled=bool(data.get("is_enabled", True)),
        )


def load_alarms(store: KeyValueStore) -> List[Alarm]:
    alarms: List[Alarm] = []
    for item in store.get(ALARMS_KEY) or []:
        try:
            alarms.append(Alarm.from_dict(item))
        except Exception as exc:
            logger.warning("Skipping alarm item due to parse error: %s", exc)
    return alarms


def save_alarms(store: KeyValueStore, alarms: List[Alarm]) -> None:
    store.set(ALARMS_KEY, [a.to_dict() for a in alarms])


def load_reminders(store: KeyValueStore) -> List[Reminder]:
    reminders: List[Reminder] = []
    for item in store.get(REMINDERS_KEY) or []:
        try:
            reminders.append(Reminder.from_dict(item))
        except Exception as exc:
            logger.warning("Skipping reminder item due to parse error: %s", exc)
    return reminders


def save_reminders(store: KeyValueStore, reminders: List[Reminder]) -> None:
    store.set(REMINDERS_KEY, [r.to_dict() for r in reminders])
