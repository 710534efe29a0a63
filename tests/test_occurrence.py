from datetime import datetime, timezone

from alarms.occurrence import CHAIN_KEY, OccurrenceTracker
from alarms.storage import MemoryKeyValueStore


def test_occurrence_key_format():
    when = datetime(2025, 3, 9, 6, 5, tzinfo=timezone.utc)
    assert OccurrenceTracker.occurrence_key("a1", when) == "a1_20250309_0605"


def test_different_firings_get_different_keys():
    first = OccurrenceTracker.occurrence_key("a1", datetime(2025, 3, 9, 6, 5))
    second = OccurrenceTracker.occurrence_key("a1", datetime(2025, 3, 10, 6, 5))
    assert first != second


def test_base_from_occurrence_key():
    assert OccurrenceTracker.base_from_occurrence_key("a1_20250309_0605") == "a1"
    assert OccurrenceTracker.base_from_occurrence_key("my_alarm_20250309_0605") == "my_alarm"
    assert OccurrenceTracker.base_from_occurrence_key("odd") == "odd"


def test_snooze_count_roundtrip_uses_namespaced_key():
    kv = MemoryKeyValueStore()
    tracker = OccurrenceTracker(kv)
    tracker.set_snooze_count(2, "a1_20250309_0605")
    assert tracker.snooze_count("a1_20250309_0605") == 2
    assert kv.get("alarm.snooze.a1_20250309_0605") == 2


def test_unreadable_snooze_count_is_zero():
    kv = MemoryKeyValueStore({"alarm.snooze.k": "garbage"})
    assert OccurrenceTracker(kv).snooze_count("k") == 0
    assert OccurrenceTracker(kv).snooze_count("missing") == 0


def test_clear_chain_removes_counter_and_key():
    kv = MemoryKeyValueStore()
    tracker = OccurrenceTracker(kv)
    tracker.chain_key = "a1_20250309_0605"
    tracker.set_snooze_count(1, "a1_20250309_0605")
    tracker.clear_chain()
    assert tracker.chain_key is None
    assert CHAIN_KEY not in kv.keys()
    assert tracker.snooze_count("a1_20250309_0605") == 0


def test_base_id_delegates_to_grammar():
    assert OccurrenceTracker.base_id("a1-w2") == "a1"
