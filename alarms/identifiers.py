"""Notification identifier grammar.

Every notification the scheduler creates for an alarm derives its id from the
alarm's base id::

    {base}                               primary daily alarm
    {base}-w{weekday}                    one weekday of a weekly series (Sun=1)
    {base}-fup-{yyyyMMdd_HHmm}-{n}       nth follow-up of one occurrence
    {base}-snooze                        re-fire scheduled from a snooze action
    inapp-snooze-{uuid}                  re-fire scheduled by the in-app ringer

The generated forms only match at the end of the id, so an alarm id that
merely contains ``-w`` or ``-snooze`` (``my-snoozer``) is left alone. In-app
re-fires carry no alarm id and parse with the base ``inapp``.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Optional

INAPP_SNOOZE_PREFIX = "inapp-snooze-"
SNOOZE_MARKER = "-snooze"
INAPP_BASE = "inapp"
FOLLOWUP_MARKER = "-fup-"

KIND_PRIMARY = "primary"
KIND_WEEKLY = "weekly"
KIND_FOLLOWUP = "followup"
KIND_SNOOZE = "snooze"

_WEEKLY_RE = re.compile(r"^(?P<base>.+)-w(?P<weekday>[1-7])$")
_FOLLOWUP_RE = re.compile(r"^(?P<base>.+)-fup-(?P<date_key>\d{8}_\d{4})-(?P<index>\d+)$")
_SNOOZE_RE = re.compile(r"^(?P<base>.+?)(?:-snooze)+$")


@dataclass(frozen=True)
class NotificationId:
    raw: str
    kind: str
    base: str
    weekday: Optional[int] = None
    date_key: Optional[str] = None
    index: Optional[int] = None

    @property
    def is_snooze(self) -> bool:
        return self.kind == KIND_SNOOZE


def parse_identifier(identifier: str) -> NotificationId:
    if identifier.startswith(INAPP_SNOOZE_PREFIX):
        return NotificationId(raw=identifier, kind=KIND_SNOOZE, base=INAPP_BASE)
    match = _WEEKLY_RE.match(identifier)
    if match:
        return NotificationId(
            raw=identifier,
            kind=KIND_WEEKLY,
            base=match.group("base"),
            weekday=int(match.group("weekday")),
        )
    match = _FOLLOWUP_RE.match(identifier)
    if match:
        return NotificationId(
            raw=identifier,
            kind=KIND_FOLLOWUP,
            base=match.group("base"),
            date_key=match.group("date_key"),
            index=int(match.group("index")),
        )
    match = _SNOOZE_RE.match(identifier)
    if match:
        return NotificationId(raw=identifier, kind=KIND_SNOOZE, base=match.group("base"))
    return NotificationId(raw=identifier, kind=KIND_PRIMARY, base=identifier)


def base_id(identifier: str) -> str:
    """Strip generated suffixes until only the alarm's own id remains."""
    current = identifier
    while True:
        parsed = parse_identifier(current)
        if parsed.kind == KIND_PRIMARY:
            return current
        current = parsed.base


def is_snooze_refire(identifier: Optional[str]) -> bool:
    if not identifier:
        return False
    return is_inapp_snooze(identifier) or parse_identifier(identifier).kind == KIND_SNOOZE


def is_inapp_snooze(identifier: Optional[str]) -> bool:
    return bool(identifier) and identifier.startswith(INAPP_SNOOZE_PREFIX)


def weekly_id(base: str, weekday: int) -> str:
    return f"{base}-w{weekday}"


def followup_prefix(base: str) -> str:
    return f"{base}{FOLLOWUP_MARKER}"


def followup_id(base: str, date_key: str, index: int) -> str:
    return f"{followup_prefix(base)}{date_key}-{index}"


def snooze_id(identifier: str) -> str:
    return f"{identifier}{SNOOZE_MARKER}"


def inapp_snooze_id() -> str:
    return f"{INAPP_SNOOZE_PREFIX}{str(uuid.uuid4()).upper()}"
