"""Analysis layer - Low-level per-frame signal analysis.

This layer inspects one audio frame at a time:
- Energy gating (RMS silence detection)
- Fundamental frequency estimation (YIN)
"""

from .gate import FrameGate
from .pitch import FrequencyEstimator

__all__ = [
    "FrameGate",
    "FrequencyEstimator",
]
