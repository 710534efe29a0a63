from __future__ import annotations

import logging
import wave
from pathlib import Path
from threading import Event, Lock, Thread, current_thread
from typing import Callable, Optional

import numpy as np

try:
    import winsound
except ImportError:  # pragma: no cover - non-Windows fallback
    winsound = None  # type: ignore

logger = logging.getLogger(__name__)

SAMPLE_RATE = 24000


def ensure_chime_sound(path: Path, duration_seconds: float = 0.6) -> None:
    """Write a short decaying two-tone chime to ``path`` if it is missing."""
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    t = np.linspace(0, duration_seconds, int(SAMPLE_RATE * duration_seconds), endpoint=False)
    envelope = np.exp(-4.0 * t / duration_seconds)
    tone = 0.6 * np.sin(2 * np.pi * 659.25 * t) + 0.4 * np.sin(2 * np.pi * 987.77 * t)
    pcm = (tone * envelope * 0.4 * 32767).astype("<i2")
    with wave.open(str(path), "w") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(SAMPLE_RATE)
        wav.writeframes(pcm.tobytes())
    logger.info("Generated default chime sound at %s", path)


class FeedbackPlayer:
    """Fire-and-forget audible and haptic cues for the ringer."""

    def __init__(self, sound_path: Optional[Path] = None):
        self.sound_path = sound_path
        if sound_path is not None:
            try:
                ensure_chime_sound(sound_path)
            except OSError:
                logger.warning("Could not prepare chime at %s", sound_path, exc_info=True)

    def tick(self) -> None:
        if winsound and self.sound_path and self.sound_path.exists():
            try:
                winsound.PlaySound(str(self.sound_path), winsound.SND_FILENAME | winsound.SND_ASYNC)
            except RuntimeError:
                logger.debug("winsound.PlaySound failed during tick")
        self._haptic("vibrate")

    def impact(self) -> None:
        self._haptic("impact")

    def success(self) -> None:
        self._haptic("success")

    def warning(self) -> None:
        self._haptic("warning")

    def _haptic(self, kind: str) -> None:
        logger.debug("Haptic feedback: %s", kind)


class PulseLoop:
    """Repeating cue while an alarm rings.

    ``start`` replaces any running loop; ``stop`` is safe to call at any time
    and joins the worker unless called from inside a tick.
    """

    def __init__(self, tick: Callable[[], None], interval: float = 2.0):
        self.tick = tick
        self.interval = max(0.05, interval)
        self._lock = Lock()
        self._stop_event: Optional[Event] = None
        self._thread: Optional[Thread] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        self.stop()
        stop_event = Event()
        thread = Thread(target=self._run, args=(stop_event,), name="alarm-pulse", daemon=True)
        with self._lock:
            self._stop_event = stop_event
            self._thread = thread
        thread.start()

    def stop(self) -> None:
        with self._lock:
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = None
            self._thread = None
        if stop_event:
            stop_event.set()
        if thread and thread is not current_thread():
            thread.join(timeout=2)

    def _run(self, stop_event: Event) -> None:
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception:  # pragma: no cover - tick safety
                logger.error("Pulse tick failed", exc_info=True)
            stop_event.wait(self.interval)
