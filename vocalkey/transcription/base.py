"""Offline transcription interface."""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
import numpy as np

from ..core import DetectedNote
from ..input.loader import AudioLoader


class Transcriber(ABC):
    """Turns a whole recorded signal into the notes a live session would report."""

    @abstractmethod
    def transcribe(self, audio: np.ndarray, sr: int) -> List[DetectedNote]:
        """Notes of a mono signal at `sr`, in detection order."""

    def transcribe_file(
        self, path: str, loader: Optional[AudioLoader] = None
    ) -> Tuple[List[DetectedNote], np.ndarray, int]:
        """
        Load an audio file and transcribe it.

        Returns:
            Tuple of (notes, audio, sample rate)

        Raises:
            ValueError: If file format not supported
            FileNotFoundError: If file doesn't exist
        """
        loader = loader or AudioLoader()
        audio, sr = loader.load(path)
        return self.transcribe(audio, sr), audio, sr
