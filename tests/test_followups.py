from datetime import datetime, timezone

from alarms.followups import FollowupGenerator, next_occurrence
from alarms.scheduler import NotificationScheduler


def _now() -> datetime:
    # Wednesday 1 January 2025, 08:00
    return datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)


def test_daily_next_occurrence_later_today():
    assert next_occurrence(21, 15, None, _now()) == datetime(2025, 1, 1, 21, 15, tzinfo=timezone.utc)


def test_daily_next_occurrence_rolls_to_tomorrow():
    assert next_occurrence(7, 0, [], _now()) == datetime(2025, 1, 2, 7, 0, tzinfo=timezone.utc)


def test_daily_next_occurrence_same_minute_rolls_over():
    assert next_occurrence(8, 0, None, _now()) == datetime(2025, 1, 2, 8, 0, tzinfo=timezone.utc)


def test_weekly_next_occurrence_picks_soonest_day():
    # Monday=2, Friday=6: Friday 3 Jan comes before Monday 6 Jan
    assert next_occurrence(7, 0, [2, 6], _now()) == datetime(2025, 1, 3, 7, 0, tzinfo=timezone.utc)


def test_weekly_next_occurrence_today_if_still_ahead():
    assert next_occurrence(9, 0, [4], _now()) == datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)


def test_weekly_next_occurrence_today_passed_goes_next_week():
    assert next_occurrence(7, 0, [4], _now()) == datetime(2025, 1, 8, 7, 0, tzinfo=timezone.utc)


def test_schedule_followups_uses_offsets_and_ids(service, kv, clock):
    scheduler = NotificationScheduler(service, kv, followup_offsets=(15, 45), now_fn=clock)
    ids = scheduler.followups.schedule_followups("a9", "Vespers", 18, 0, [4])
    assert ids == ["a9-fup-20250101_1800-1", "a9-fup-20250101_1800-2"]
    second = service.request("a9-fup-20250101_1800-2")
    assert second.trigger.fire_at == datetime(2025, 1, 1, 18, 0, 45, tzinfo=timezone.utc)
    assert second.title == "Vespers"


def test_cancel_followups_leaves_primary(scheduler, service):
    generator = FollowupGenerator(scheduler, now_fn=_now)
    scheduler.schedule_weekly_series("a3", "Lauds", "body", 6, 30, [1])
    removed = generator.cancel_followups("a3")
    assert len(removed) == 3
    assert service.pending_ids() == ["a3-w1"]
