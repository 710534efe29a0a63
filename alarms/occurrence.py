from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from time_utils import date_key

from . import identifiers
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

CHAIN_KEY = "alarm.chainKey"
SNOOZE_KEY_PREFIX = "alarm.snooze."


def snooze_storage_key(occurrence_key: str) -> str:
    return f"{SNOOZE_KEY_PREFIX}{occurrence_key}"


class OccurrenceTracker:
    """Per-occurrence snooze counters and the chain key of the ring in flight.

    An occurrence key pins one firing of an alarm (``{base}_{yyyyMMdd_HHmm}``),
    so counters reset between independent firings but survive a snooze
    sequence and process restarts.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def base_id(identifier: str) -> str:
        return identifiers.base_id(identifier)

    @staticmethod
    def occurrence_key(base_id: str, date: datetime) -> str:
        return f"{base_id}_{date_key(date)}"

    @staticmethod
    def base_from_occurrence_key(occurrence_key: str) -> str:
        parts = occurrence_key.rsplit("_", 2)
        if len(parts) != 3:
            return occurrence_key
        return parts[0]

    def snooze_count(self, occurrence_key: str) -> int:
        try:
            value = self.store.get(snooze_storage_key(occurrence_key), 0)
            return max(0, int(value or 0))
        except Exception:
            logger.warning("Unreadable snooze count for %s, treating as 0", occurrence_key, exc_info=True)
            return 0

    def set_snooze_count(self, count: int, occurrence_key: str) -> None:
        try:
            self.store.set(snooze_storage_key(occurrence_key), int(count))
        except Exception:
            logger.error("Failed to persist snooze count for %s", occurrence_key, exc_info=True)

    @property
    def chain_key(self) -> Optional[str]:
        try:
            value = self.store.get(CHAIN_KEY)
        except Exception:
            logger.warning("Unreadable chain key, treating as none", exc_info=True)
            return None
        return value if isinstance(value, str) and value else None

    @chain_key.setter
    def chain_key(self, value: Optional[str]) -> None:
        try:
            if value is None:
                self.store.remove(CHAIN_KEY)
            else:
                self.store.set(CHAIN_KEY, value)
        except Exception:
            logger.error("Failed to persist chain key %s", value, exc_info=True)

    def clear_chain(self) -> None:
        key = self.chain_key
        if key:
            try:
                self.store.remove(snooze_storage_key(key))
            except Exception:
                logger.error("Failed to remove snooze count for %s", key, exc_info=True)
            logger.debug("Cleared chain %s", key)
        self.chain_key = None
