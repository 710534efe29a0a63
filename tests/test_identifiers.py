from alarms.identifiers import (
    KIND_FOLLOWUP,
    KIND_PRIMARY,
    KIND_SNOOZE,
    KIND_WEEKLY,
    base_id,
    followup_id,
    inapp_snooze_id,
    is_snooze_refire,
    parse_identifier,
    snooze_id,
    weekly_id,
)


def test_base_id_strips_weekly_suffix():
    assert base_id("alarmX-w3") == "alarmX"


def test_base_id_strips_followup_suffix():
    assert base_id("alarmX-fup-20250101_0700-2") == "alarmX"


def test_base_id_strips_snooze_suffix():
    assert base_id("alarmX-snooze") == "alarmX"


def test_base_id_leaves_plain_id():
    assert base_id("plainId") == "plainId"


def test_base_id_ignores_dash_w_inside_alarm_id():
    assert base_id("my-wake-up") == "my-wake-up"
    assert base_id("my-wake-up-w2") == "my-wake-up"


def test_base_id_strips_nested_suffixes():
    assert base_id("alarmX-w3-snooze") == "alarmX"
    assert base_id("alarmX-fup-20250101_0700-1-snooze") == "alarmX"


def test_base_id_keeps_uuid_alarm_ids():
    uid = "6F9619FF-8B86-D011-B42D-00C04FC964FF"
    assert base_id(uid) == uid
    assert base_id(weekly_id(uid, 7)) == uid
    assert base_id(followup_id(uid, "20250102_0700", 3)) == uid


def test_parse_weekly():
    parsed = parse_identifier("a1-w7")
    assert parsed.kind == KIND_WEEKLY
    assert parsed.base == "a1"
    assert parsed.weekday == 7


def test_weekday_out_of_range_is_not_weekly():
    assert parse_identifier("a1-w8").kind == KIND_PRIMARY


def test_parse_followup():
    parsed = parse_identifier("a1-fup-20250102_0700-3")
    assert parsed.kind == KIND_FOLLOWUP
    assert parsed.base == "a1"
    assert parsed.date_key == "20250102_0700"
    assert parsed.index == 3


def test_parse_snooze():
    parsed = parse_identifier("a1-snooze")
    assert parsed.kind == KIND_SNOOZE
    assert parsed.is_snooze
    assert parsed.base == "a1"


def test_snooze_refire_detection():
    assert is_snooze_refire("inapp-snooze-1234")
    assert is_snooze_refire(snooze_id("a1-w2"))
    assert not is_snooze_refire("a1")
    assert not is_snooze_refire(None)


def test_inapp_snooze_ids_are_unique():
    first, second = inapp_snooze_id(), inapp_snooze_id()
    assert first.startswith("inapp-snooze-")
    assert first != second


def test_snooze_inside_alarm_id_is_not_a_refire():
    assert not is_snooze_refire("my-snoozer")
    assert parse_identifier("my-snoozer").kind == KIND_PRIMARY
    assert base_id("my-snoozer-w2") == "my-snoozer"
    assert base_id(snooze_id("my-snoozer")) == "my-snoozer"


def test_repeated_snooze_suffixes_strip_to_base():
    assert base_id(snooze_id(snooze_id("a1"))) == "a1"


def test_inapp_snooze_parses_with_inapp_base():
    parsed = parse_identifier(inapp_snooze_id())
    assert parsed.kind == KIND_SNOOZE
    assert parsed.base == "inapp"
