import os
from pathlib import Path

import pytest

from config import load_config

_VARS = (
    "ALTAR_STORE_PATH",
    "ALTAR_SOUND_PATH",
    "ALTAR_TIMEZONE",
    "ALARM_MAX_SNOOZES",
    "ALARM_FOLLOWUP_OFFSETS",
    "ALARM_PULSE_INTERVAL_S",
    "ALARM_CHECK_INTERVAL_MS",
    "ALARM_DEFAULT_SNOOZE_MIN",
    "DEFAULT_SESSION_MINUTES",
    "LOG_LEVEL",
    "DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    # load_dotenv writes straight into os.environ
    for name in _VARS:
        os.environ.pop(name, None)


def test_defaults(tmp_path):
    config = load_config(tmp_path / ".env")
    assert config.store_path == Path("data/altar_store.json")
    assert config.max_snoozes == 2
    assert config.followup_offsets == (30.0, 60.0, 120.0)
    assert config.pulse_interval_s == 2.0
    assert config.default_snooze_min == 5
    assert config.default_session_minutes == 20
    assert config.log_level == "INFO"


def test_env_file_overrides(tmp_path):
    env = tmp_path / ".env"
    env.write_text("ALARM_MAX_SNOOZES=3\nALARM_FOLLOWUP_OFFSETS=10, 20\nDEBUG=1\n", encoding="utf-8")
    config = load_config(env)
    assert config.max_snoozes == 3
    assert config.followup_offsets == (10.0, 20.0)
    assert config.debug
    assert config.log_level == "DEBUG"


def test_invalid_integer_names_variable(tmp_path, monkeypatch):
    monkeypatch.setenv("ALARM_MAX_SNOOZES", "two")
    with pytest.raises(ValueError, match="ALARM_MAX_SNOOZES"):
        load_config(tmp_path / ".env")


def test_invalid_offsets_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("ALARM_FOLLOWUP_OFFSETS", "30,-5")
    with pytest.raises(ValueError, match="ALARM_FOLLOWUP_OFFSETS"):
        load_config(tmp_path / ".env")
