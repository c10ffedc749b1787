"""vocalkey - Live note detection and key inference for a single voice.

Architecture Layers:
    1. core/          - Note types, note mapping, constants
    2. input/         - Audio loading and framing
    3. analysis/      - Per-frame signal analysis (RMS gate, YIN pitch)
    4. transcription/ - Streaming note detection (stability, durations)
    5. inference/     - Key detection from a session's notes
"""

__version__ = "0.1.0"

# Core types
from .core import NoteObservation, DetectedNote, frequency_to_note

# Input layer
from .input import AudioLoader

# Analysis layer
from .analysis import FrameGate, FrequencyEstimator

# Transcription layer
from .transcription import (
    DetectorConfig,
    NoteDetector,
    NoteQueue,
    MonophonicTranscriber,
    create_detector,
)

# Inference layer
from .inference import (
    KeyDetector,
    KeyResult,
    KeyAnalysisResult,
    analyze_key,
    detect_key,
)

__all__ = [
    # Core
    "NoteObservation",
    "DetectedNote",
    "frequency_to_note",
    # Input
    "AudioLoader",
    # Analysis
    "FrameGate",
    "FrequencyEstimator",
    # Transcription
    "DetectorConfig",
    "NoteDetector",
    "NoteQueue",
    "MonophonicTranscriber",
    "create_detector",
    # Inference
    "KeyDetector",
    "KeyResult",
    "KeyAnalysisResult",
    "analyze_key",
    "detect_key",
]
