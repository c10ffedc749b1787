"""Transcription layer - Note-level detection from audio.

This layer converts audio frames into discrete note events:
- Streaming detection (frame by frame, as on a live audio callback)
- Monophonic transcription of a whole signal through the streaming detector
"""

from .base import Transcriber
from .streaming import (
    DetectorConfig,
    NoteDetector,
    NoteQueue,
    Idle,
    Tracking,
    Stable,
    create_detector,
)
from .monophonic import MonophonicTranscriber

__all__ = [
    "Transcriber",
    "DetectorConfig",
    "NoteDetector",
    "NoteQueue",
    "Idle",
    "Tracking",
    "Stable",
    "create_detector",
    "MonophonicTranscriber",
]
