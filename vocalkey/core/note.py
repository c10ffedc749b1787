"""Note data classes - the fundamental units of note detection."""

import re
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .constants import PITCH_NAMES, FLAT_TO_SHARP, A4_FREQUENCY, A4_MIDI_NUMBER

_NOTE_PATTERN = re.compile(r"^([A-Ga-g][#b]?)")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return int(np.floor(value + 0.5))


def normalize_pitch_class(name: str) -> Optional[str]:
    """
    Normalize a note name to its sharp pitch class.

    Accepts names with or without an octave ("Bb3", "c#", "E").

    Returns:
        Pitch class from PITCH_NAMES, or None if the name is not a note
    """
    if not isinstance(name, str):
        return None

    match = _NOTE_PATTERN.match(name.strip())
    if not match:
        return None

    pitch_class = match.group(1)
    pitch_class = pitch_class[0].upper() + pitch_class[1:]
    pitch_class = FLAT_TO_SHARP.get(pitch_class, pitch_class)

    if pitch_class in PITCH_NAMES:
        return pitch_class
    return None


def pitch_class_index(pitch_class: str) -> int:
    """Get the semitone index of a pitch class (C = 0)."""
    return PITCH_NAMES.index(pitch_class)


@dataclass(frozen=True)
class NoteObservation:
    """A frequency mapped to the nearest equal-tempered note at one instant."""

    pitch_class: str  # e.g. "C#"
    octave: int
    frequency: float  # Hz
    cents: int  # Deviation from the nearest equal-tempered pitch

    @property
    def name(self) -> str:
        """Note name with octave (e.g., 'C4', 'G#3')."""
        return f"{self.pitch_class}{self.octave}"

    @property
    def midi(self) -> int:
        return (self.octave + 1) * 12 + pitch_class_index(self.pitch_class)


@dataclass(frozen=True)
class DetectedNote:
    """A finalized note with its duration."""

    pitch_class: str
    octave: int
    frequency: float  # Hz, at the moment the note was confirmed
    cents: int
    duration_ms: float
    start_ms: float
    end_ms: float

    @property
    def name(self) -> str:
        """Note name with octave (e.g., 'C4', 'G#3')."""
        return f"{self.pitch_class}{self.octave}"

    @property
    def midi(self) -> int:
        return (self.octave + 1) * 12 + pitch_class_index(self.pitch_class)

    @property
    def duration(self) -> float:
        """Note duration in seconds."""
        return self.duration_ms / 1000.0

    @classmethod
    def from_observation(
        cls, observation: NoteObservation, start_ms: float, end_ms: float
    ) -> "DetectedNote":
        return cls(
            pitch_class=observation.pitch_class,
            octave=observation.octave,
            frequency=observation.frequency,
            cents=observation.cents,
            duration_ms=round_half_up(end_ms - start_ms),
            start_ms=start_ms,
            end_ms=end_ms,
        )

    @staticmethod
    def midi_to_freq(
        midi: int,
        reference_frequency: float = A4_FREQUENCY,
        reference_midi: int = A4_MIDI_NUMBER,
    ) -> float:
        """Convert MIDI pitch to frequency (Hz), inverse of `frequency_to_note`."""
        return reference_frequency * (2 ** ((midi - reference_midi) / 12.0))


def frequency_to_note(
    frequency: float,
    reference_frequency: float = A4_FREQUENCY,
    reference_midi: int = A4_MIDI_NUMBER,
) -> Optional[NoteObservation]:
    """
    Map a frequency to the nearest equal-tempered note.

    Args:
        frequency: Frequency in Hz
        reference_frequency: Tuning reference in Hz (A4 = 440 by default)
        reference_midi: MIDI number of the tuning reference

    Returns:
        NoteObservation, or None for zero, negative or non-finite input
    """
    if frequency is None or not np.isfinite(frequency) or frequency <= 0:
        return None

    midi_number = 12 * np.log2(frequency / reference_frequency) + reference_midi
    rounded_midi = round_half_up(midi_number)
    cents = round_half_up((midi_number - rounded_midi) * 100)

    return NoteObservation(
        pitch_class=PITCH_NAMES[rounded_midi % 12],
        octave=rounded_midi // 12 - 1,
        frequency=float(frequency),
        cents=cents,
    )
