"""Tests for noise rejection in live note detection.

These tests verify that the silence gate, the YIN threshold and the
stability requirement reject noise while accepting a sung note.
"""

import numpy as np
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from vocalkey.transcription import MonophonicTranscriber
from vocalkey.inference import analyze_key


class TestNoiseRejection:
    """Test that various types of noise produce minimal false detections."""

    @pytest.fixture
    def sample_rate(self):
        return 44100

    @pytest.fixture
    def duration(self):
        return 3.0  # 3 seconds

    @pytest.fixture
    def rng(self):
        return np.random.default_rng(42)

    def generate_white_noise(self, rng, duration: float, sr: int, amplitude: float = 0.1) -> np.ndarray:
        """Generate white noise."""
        n_samples = int(duration * sr)
        return (rng.standard_normal(n_samples) * amplitude).astype(np.float32)

    def generate_pink_noise(self, rng, duration: float, sr: int, amplitude: float = 0.1) -> np.ndarray:
        """Generate pink noise (1/f noise)."""
        n_samples = int(duration * sr)
        white = rng.standard_normal(n_samples)

        # Apply 1/f filter in frequency domain
        fft = np.fft.rfft(white)
        freqs = np.fft.rfftfreq(n_samples, 1 / sr)
        freqs[0] = 1  # Avoid division by zero
        pink = np.fft.irfft(fft / np.sqrt(freqs), n_samples)

        pink = pink / np.max(np.abs(pink)) * amplitude
        return pink.astype(np.float32)

    def generate_silence(self, duration: float, sr: int) -> np.ndarray:
        """Generate silence."""
        return np.zeros(int(duration * sr), dtype=np.float32)

    def test_rejects_white_noise(self, rng, sample_rate, duration):
        """White noise has no periodicity to lock onto."""
        audio = self.generate_white_noise(rng, duration, sample_rate)
        notes = MonophonicTranscriber().transcribe(audio, sample_rate)

        assert len(notes) <= 1, f"Expected <=1 notes from white noise, got {len(notes)}"

    def test_rejects_pink_noise(self, rng, sample_rate, duration):
        audio = self.generate_pink_noise(rng, duration, sample_rate)
        notes = MonophonicTranscriber().transcribe(audio, sample_rate)

        assert len(notes) <= 3, f"Expected <=3 notes from pink noise, got {len(notes)}"

    def test_rejects_silence(self, sample_rate, duration):
        audio = self.generate_silence(duration, sample_rate)
        notes = MonophonicTranscriber().transcribe(audio, sample_rate)

        assert len(notes) == 0, f"Expected 0 notes from silence, got {len(notes)}"

    def test_rejects_low_level_noise(self, rng, sample_rate, duration):
        """Noise below the RMS gate never reaches pitch estimation."""
        audio = self.generate_white_noise(rng, duration, sample_rate, amplitude=0.005)
        notes = MonophonicTranscriber().transcribe(audio, sample_rate)

        assert len(notes) == 0, f"Expected 0 notes from low level noise, got {len(notes)}"

    def test_noise_gives_no_key(self, sample_rate, duration):
        notes = MonophonicTranscriber().transcribe(
            self.generate_silence(duration, sample_rate), sample_rate
        )
        assert analyze_key(notes) is None


class TestValidContent:
    """Test that a sung note survives background noise."""

    def test_note_over_background_noise(self):
        sr = 44100
        rng = np.random.default_rng(7)
        t = np.arange(sr) / sr
        audio = 0.5 * np.sin(2 * np.pi * 440.0 * t) + rng.standard_normal(sr) * 0.02

        notes = MonophonicTranscriber().transcribe(audio.astype(np.float32), sr)

        assert len(notes) == 1
        assert notes[0].name == "A4"

    def test_silence_between_notes(self):
        sr = 44100
        t = np.arange(int(sr * 0.5)) / sr
        a4 = (0.5 * np.sin(2 * np.pi * 440.0 * t)).astype(np.float32)
        gap = np.zeros(int(sr * 0.2), dtype=np.float32)

        notes = MonophonicTranscriber().transcribe(np.concatenate([a4, gap, a4]), sr)

        assert [n.name for n in notes] == ["A4", "A4"]
        assert notes[1].start_ms > notes[0].end_ms
