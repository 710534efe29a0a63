import time
import wave

from alarms.sounds import SAMPLE_RATE, FeedbackPlayer, PulseLoop, ensure_chime_sound


def test_ensure_chime_sound_writes_wav(tmp_path):
    path = tmp_path / "sounds" / "chime.wav"
    ensure_chime_sound(path, duration_seconds=0.25)
    with wave.open(str(path), "r") as wav:
        assert wav.getframerate() == SAMPLE_RATE
        assert wav.getnchannels() == 1
        assert wav.getnframes() == int(SAMPLE_RATE * 0.25)


def test_ensure_chime_sound_keeps_existing_file(tmp_path):
    path = tmp_path / "chime.wav"
    path.write_bytes(b"custom")
    ensure_chime_sound(path)
    assert path.read_bytes() == b"custom"


def test_feedback_player_prepares_sound(tmp_path):
    player = FeedbackPlayer(tmp_path / "chime.wav")
    assert player.sound_path.exists()
    player.tick()


def test_pulse_loop_restart_replaces_worker():
    ticks = []
    loop = PulseLoop(lambda: ticks.append(time.monotonic()), interval=0.05)
    loop.start()
    loop.start()
    time.sleep(0.12)
    assert loop.running
    loop.stop()
    assert not loop.running
    count = len(ticks)
    time.sleep(0.1)
    assert len(ticks) == count


def test_pulse_loop_stop_without_start_is_safe():
    PulseLoop(lambda: None).stop()
