"""Input layer - Audio loading and framing."""

from .loader import AudioLoader

__all__ = [
    "AudioLoader",
]
