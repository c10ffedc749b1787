"""Inference layer - Musical understanding of a finished session.

Pipeline: DetectedNotes -> note weights -> 24 key hypotheses -> key result
"""

from .key import (
    KeyDetector,
    KeyCandidate,
    KeyResult,
    KeyAnalysisResult,
    Mode,
    SCALE_TEMPLATES,
    analyze_key,
    detect_key,
    get_scale_notes,
    relative_key,
    are_relative,
    scale_fit,
    softmax,
)

__all__ = [
    "KeyDetector",
    "KeyCandidate",
    "KeyResult",
    "KeyAnalysisResult",
    "Mode",
    "SCALE_TEMPLATES",
    "analyze_key",
    "detect_key",
    "get_scale_notes",
    "relative_key",
    "are_relative",
    "scale_fit",
    "softmax",
]
