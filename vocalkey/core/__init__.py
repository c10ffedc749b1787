"""Core types and constants for vocalkey."""

from .note import (
    NoteObservation,
    DetectedNote,
    frequency_to_note,
    normalize_pitch_class,
    pitch_class_index,
)
from .constants import (
    PITCH_NAMES,
    FLAT_TO_SHARP,
    A4_FREQUENCY,
    A4_MIDI_NUMBER,
    DEFAULT_SR,
    DEFAULT_FRAME_SIZE,
)

__all__ = [
    "NoteObservation",
    "DetectedNote",
    "frequency_to_note",
    "normalize_pitch_class",
    "pitch_class_index",
    "PITCH_NAMES",
    "FLAT_TO_SHARP",
    "A4_FREQUENCY",
    "A4_MIDI_NUMBER",
    "DEFAULT_SR",
    "DEFAULT_FRAME_SIZE",
]
