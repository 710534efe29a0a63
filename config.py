import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from alarms.followups import DEFAULT_FOLLOWUP_OFFSETS


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip() in {"1", "true", "True", "yes", "YES", "y"}


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _get_env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


def _get_env_offsets(name: str, default: Tuple[float, ...]) -> Tuple[float, ...]:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    try:
        offsets = tuple(float(part) for part in val.split(",") if part.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a comma-separated list of seconds") from exc
    if any(o <= 0 for o in offsets):
        raise ValueError(f"Environment variable {name} must only contain positive offsets")
    return offsets


@dataclass
class Config:
    store_path: Path
    sound_path: Path
    timezone_name: Optional[str]
    max_snoozes: int
    followup_offsets: Tuple[float, ...]
    pulse_interval_s: float
    check_interval_ms: int
    default_snooze_min: int
    default_session_minutes: int
    debug: bool
    log_level: str


def load_config(env_path: Optional[Path] = None) -> Config:
    if env_path is None:
        env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    store_path = Path(os.getenv("ALTAR_STORE_PATH", "data/altar_store.json"))
    sound_path = Path(os.getenv("ALTAR_SOUND_PATH", "data/chime.wav"))
    timezone_name = os.getenv("ALTAR_TIMEZONE") or None
    max_snoozes = _get_env_int("ALARM_MAX_SNOOZES", 2)
    if max_snoozes < 0:
        raise ValueError("Environment variable ALARM_MAX_SNOOZES must not be negative")
    followup_offsets = _get_env_offsets("ALARM_FOLLOWUP_OFFSETS", DEFAULT_FOLLOWUP_OFFSETS)
    pulse_interval_s = _get_env_float("ALARM_PULSE_INTERVAL_S", 2.0)
    check_interval_ms = _get_env_int("ALARM_CHECK_INTERVAL_MS", 800)
    default_snooze_min = _get_env_int("ALARM_DEFAULT_SNOOZE_MIN", 5)
    default_session_minutes = _get_env_int("DEFAULT_SESSION_MINUTES", 20)
    debug = _get_env_bool("DEBUG", False)
    log_level = os.getenv("LOG_LEVEL", "DEBUG" if debug else "INFO").upper()

    return Config(
        store_path=store_path,
        sound_path=sound_path,
        timezone_name=timezone_name,
        max_snoozes=max_snoozes,
        followup_offsets=followup_offsets,
        pulse_interval_s=max(0.1, pulse_interval_s),
        check_interval_ms=max(200, check_interval_ms),
        default_snooze_min=default_snooze_min,
        default_session_minutes=default_session_minutes,
        debug=debug,
        log_level=log_level,
    )


def setup_logging(log_level: str = "INFO") -> None:
    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    log_path = logs_dir / "altar.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[file_handler, console_handler],
    )
