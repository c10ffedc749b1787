"""Tests for the streaming note detector state machine."""

import threading

import numpy as np
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from vocalkey.transcription import (
    DetectorConfig,
    NoteDetector,
    NoteQueue,
    Idle,
    Tracking,
    Stable,
    create_detector,
)

SR = 44100
FRAME = 2048
FRAME_MS = FRAME * 1000 / SR

A4 = 440.0
B4 = 493.88
C5 = 523.25


def tone(freq: float, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(FRAME) / SR
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def silence() -> np.ndarray:
    return np.zeros(FRAME, dtype=np.float32)


class TestNoteDetector:
    """Frame-driven behaviour of NoteDetector."""

    @pytest.fixture
    def notes(self):
        return []

    @pytest.fixture
    def detector(self, notes):
        return NoteDetector(SR, on_note_complete=notes.append)

    def feed(self, detector, frames):
        return [detector.process(frame) for frame in frames]

    def test_starts_idle(self, detector):
        assert isinstance(detector.state, Idle)
        assert detector.elapsed_ms == 0.0

    def test_note_confirmed_after_stability_frames(self, detector, notes):
        events = self.feed(detector, [tone(A4)] * 3)

        assert events[0] is None
        assert events[1] is None
        assert events[2] is not None
        assert events[2].name == "A4"
        assert isinstance(detector.state, Stable)
        assert notes == []

    def test_tracking_state_before_confirmation(self, detector):
        self.feed(detector, [tone(A4)] * 2)
        state = detector.state
        assert isinstance(state, Tracking)
        assert state.candidate.name == "A4"
        assert state.count == 2

    def test_held_note_reported_once(self, detector):
        events = self.feed(detector, [tone(A4)] * 20)
        assert sum(1 for e in events if e is not None) == 1

    def test_single_held_note_duration(self, detector, notes):
        held = 20
        self.feed(detector, [tone(A4)] * held + [silence()])

        assert len(notes) == 1
        note = notes[0]
        assert note.name == "A4"
        # Opened at the start of the confirming frame, closed at the silent frame
        assert note.start_ms == pytest.approx(2 * FRAME_MS)
        assert note.end_ms == pytest.approx(held * FRAME_MS)
        assert note.duration_ms == round((held - 2) * FRAME_MS)
        assert abs(note.duration_ms - held * FRAME_MS) <= 3 * FRAME_MS
        assert isinstance(detector.state, Idle)

    def test_alternating_notes_never_stabilize(self, detector, notes):
        frames = [tone(A4), tone(A4), tone(C5), tone(C5)] * 10
        events = self.feed(detector, frames)
        detector.flush()

        assert all(event is None for event in events)
        assert notes == []

    def test_new_stable_note_closes_previous(self, detector, notes):
        events = self.feed(detector, [tone(A4)] * 10 + [tone(C5)] * 10 + [silence()])

        started = [e.name for e in events if e is not None]
        assert started == ["A4", "C5"]
        assert [n.name for n in notes] == ["A4", "C5"]
        # C5 confirmed on frame 12, which also ends A4
        assert notes[0].end_ms == pytest.approx(12 * FRAME_MS)
        assert notes[1].start_ms == pytest.approx(12 * FRAME_MS)
        assert notes[1].end_ms == pytest.approx(20 * FRAME_MS)

    def test_brief_glitch_does_not_split_note(self, detector, notes):
        frames = [tone(A4)] * 6 + [tone(B4)] * 2 + [tone(A4)] * 6 + [silence()]
        events = self.feed(detector, frames)

        assert [e.name for e in events if e is not None] == ["A4"]
        assert len(notes) == 1
        assert notes[0].end_ms == pytest.approx(14 * FRAME_MS)

    def test_short_note_discarded(self, detector, notes):
        # Confirmed on frame 2, silent on frame 3: one frame (~46 ms) < 80 ms
        self.feed(detector, [tone(A4)] * 3 + [silence()])
        assert notes == []

    def test_note_at_minimum_duration_kept(self, detector, notes):
        # Two frames (~93 ms) >= 80 ms
        self.feed(detector, [tone(A4)] * 4 + [silence()])
        assert len(notes) == 1

    def test_same_note_after_silence_is_new_note(self, detector, notes):
        frames = [tone(A4)] * 6 + [silence()] + [tone(A4)] * 6 + [silence()]
        events = self.feed(detector, frames)

        assert [e.name for e in events if e is not None] == ["A4", "A4"]
        assert len(notes) == 2

    def test_pitch_loss_closes_note(self, detector, notes):
        rng = np.random.default_rng(1)
        noise = (rng.standard_normal(FRAME) * 0.3).astype(np.float32)
        self.feed(detector, [tone(A4)] * 8 + [noise])

        assert len(notes) == 1
        assert isinstance(detector.state, Idle)

    def test_out_of_range_pitch_closes_note(self, detector, notes):
        self.feed(detector, [tone(A4)] * 8 + [tone(1500.0)])

        assert len(notes) == 1
        assert notes[0].end_ms == pytest.approx(8 * FRAME_MS)
        assert isinstance(detector.state, Idle)

    @pytest.mark.parametrize(
        "bad_frame",
        [
            np.full(FRAME, np.nan),
            np.array([]),
            "not audio",
            None,
            np.zeros((2, FRAME)),
        ],
    )
    def test_unreadable_frames_act_as_silence(self, detector, notes, bad_frame):
        self.feed(detector, [tone(A4)] * 8)
        assert detector.process(bad_frame) is None

        assert len(notes) == 1
        assert isinstance(detector.state, Idle)

    @pytest.mark.parametrize(
        "bad_frame,frames_of_time",
        [
            ("not audio", 1),
            (None, 1),
            (np.zeros((2, FRAME)), 1),
            (np.full(FRAME, np.nan), 1),
            (np.array([]), 0),
        ],
    )
    def test_unreadable_frames_keep_the_clock_running(self, detector, bad_frame, frames_of_time):
        self.feed(detector, [tone(A4)] * 8)
        detector.process(bad_frame)
        assert detector.elapsed_ms == pytest.approx((8 + frames_of_time) * FRAME_MS)

    def test_later_notes_not_shifted_by_unreadable_frames(self, detector, notes):
        self.feed(detector, [tone(A4)] * 6 + [None] + [tone(C5)] * 6)
        detector.flush()

        assert [n.name for n in notes] == ["A4", "C5"]
        # C5 starts on frame 7 and is confirmed on frame 9
        assert notes[1].start_ms == pytest.approx(9 * FRAME_MS)

    def test_flush_finalizes_open_note(self, detector, notes):
        self.feed(detector, [tone(A4)] * 10)
        detector.flush()

        assert len(notes) == 1
        assert notes[0].end_ms == pytest.approx(10 * FRAME_MS)
        assert isinstance(detector.state, Idle)

        # Nothing left to flush
        detector.flush()
        assert len(notes) == 1

    def test_flush_respects_minimum_duration(self, detector, notes):
        self.feed(detector, [tone(A4)] * 3)
        detector.flush()
        assert notes == []

    def test_reset_flushes_and_clears(self, detector, notes):
        self.feed(detector, [tone(A4)] * 10)
        detector.reset()

        assert len(notes) == 1
        assert isinstance(detector.state, Idle)
        assert detector.elapsed_ms == 0.0

        # A new session starts from scratch
        self.feed(detector, [tone(C5)] * 6)
        detector.reset()
        assert notes[1].name == "C5"
        assert notes[1].start_ms == pytest.approx(2 * FRAME_MS)

    def test_cents_reported(self, detector, notes):
        sharp = 440.0 * 2 ** (20 / 1200)
        events = self.feed(detector, [tone(sharp)] * 6)
        detector.flush()

        assert events[2].name == "A4"
        assert abs(events[2].cents - 20) <= 2
        assert notes[0].cents == events[2].cents
        assert notes[0].frequency == events[2].frequency

    def test_injected_clock(self, notes):
        times = iter([0.0, 10.0, 20.0, 30.0, 40.0, 200.0])
        detector = NoteDetector(SR, on_note_complete=notes.append, clock=lambda: next(times))

        for _ in range(5):
            detector.process(tone(A4))
        detector.flush()

        assert len(notes) == 1
        assert notes[0].start_ms == 20.0
        assert notes[0].end_ms == 200.0
        assert notes[0].duration_ms == 180


class TestDetectorConfig:
    """Configuration of the detector."""

    def test_defaults(self):
        config = DetectorConfig()
        assert config.rms_threshold == 0.02
        assert config.stability_frames == 3
        assert config.min_note_duration_ms == 80.0
        assert (config.fmin, config.fmax) == (80.0, 1100.0)
        assert config.yin_threshold == 0.15
        assert (config.reference_frequency, config.reference_midi) == (440.0, 69)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"rms_threshold": -0.1},
            {"stability_frames": 0},
            {"min_note_duration_ms": -1},
            {"fmin": 500.0, "fmax": 400.0},
            {"yin_threshold": 1.5},
            {"reference_frequency": 0.0},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            DetectorConfig(**overrides)

    def test_invalid_sample_rate(self):
        with pytest.raises(ValueError):
            NoteDetector(0)

    def test_stability_frames(self):
        detector = create_detector(SR, DetectorConfig(stability_frames=5))
        events = [detector.process(tone(A4)) for _ in range(5)]
        assert events[3] is None
        assert events[4] is not None

    def test_rms_threshold(self):
        quiet = tone(A4, amplitude=0.02)  # RMS ~0.014
        default = create_detector(SR)
        sensitive = create_detector(SR, DetectorConfig(rms_threshold=0.01))

        assert [default.process(quiet) for _ in range(3)][-1] is None
        assert [sensitive.process(quiet) for _ in range(3)][-1] is not None

    def test_tuning_reference(self):
        # 440 Hz against A4 = 415 Hz (baroque pitch) is a semitone up
        detector = create_detector(SR, DetectorConfig(reference_frequency=415.0))
        events = [detector.process(tone(A4)) for _ in range(3)]
        assert events[-1].name == "A#4"


class TestListeners:
    """Delivery of completed notes."""

    def test_every_listener_called_once(self):
        first, second = [], []
        detector = create_detector(SR, on_note_complete=first.append)
        detector.add_listener(second.append)

        for _ in range(8):
            detector.process(tone(A4))
        detector.process(silence())
        detector.flush()

        assert len(first) == 1
        assert first == second

    def test_remove_listener(self):
        received = []
        detector = create_detector(SR)
        detector.add_listener(received.append)
        detector.remove_listener(received.append)

        for _ in range(8):
            detector.process(tone(A4))
        detector.flush()

        assert received == []

    def test_note_queue_drain(self):
        channel = NoteQueue()
        detector = create_detector(SR, on_note_complete=channel)

        for freq in (A4, C5):
            for _ in range(6):
                detector.process(tone(freq))
            detector.process(silence())

        assert not channel.empty()
        assert [n.name for n in channel.drain()] == ["A4", "C5"]
        assert channel.empty()
        assert channel.drain() == []

    def test_note_queue_across_threads(self):
        channel = NoteQueue()
        received = []

        def consume():
            for _ in range(2):
                received.append(channel.get(timeout=5))

        consumer = threading.Thread(target=consume)
        consumer.start()

        detector = create_detector(SR, on_note_complete=channel)
        for freq in (A4, C5):
            for _ in range(6):
                detector.process(tone(freq))
        detector.flush()

        consumer.join(timeout=5)
        assert [n.name for n in received] == ["A4", "C5"]
