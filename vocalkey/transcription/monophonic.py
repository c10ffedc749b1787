"""Monophonic transcription by streaming a whole signal through a NoteDetector."""

import warnings
import numpy as np
from typing import List, Optional

from .base import Transcriber
from .streaming import DetectorConfig, NoteDetector
from ..core import DetectedNote, NoteObservation
from ..core.constants import DEFAULT_FRAME_SIZE
from ..input.loader import AudioLoader


class MonophonicTranscriber(Transcriber):
    """Transcribes monophonic audio the same way live capture does.

    The signal is cut into consecutive, non-overlapping frames of
    `frame_size` samples (the analyser buffer of a live session) which are
    fed to a fresh NoteDetector; the detector is flushed at the end.

    Durations read short. A note starts at the frame that confirms
    it, so `stability_frames - 1` frames are lost at the onset (about 93 ms
    at 2048 samples, 44.1 kHz and the default 3 frames), and a trailing
    partial frame is never analysed (up to one more frame). A 1.0 s held A4
    at 44.1 kHz comes out as 882 ms.
    """

    def __init__(
        self,
        frame_size: int = DEFAULT_FRAME_SIZE,
        config: Optional[DetectorConfig] = None,
    ):
        """
        Initialize MonophonicTranscriber.

        Args:
            frame_size: Samples per analysis frame (2048 at 44.1 kHz is ~46 ms)
            config: Note detector configuration
        """
        if frame_size < 8:
            raise ValueError(f"frame_size must be >= 8, got {frame_size}")
        self.frame_size = frame_size
        self.config = config or DetectorConfig()
        self.started: List[NoteObservation] = []

    def transcribe(self, audio: np.ndarray, sr: int) -> List[DetectedNote]:
        """
        Transcribe monophonic audio to notes.

        Args:
            audio: Audio array (mono)
            sr: Sample rate

        Returns:
            Completed notes in detection order. The instantaneous
            note-started observations are kept in `self.started`.
        """
        if self.frame_size // 2 < sr / self.config.fmin:
            warnings.warn(
                f"frame_size {self.frame_size} cannot resolve {self.config.fmin:.0f} Hz "
                f"at {sr} Hz; low notes will be missed"
            )

        notes: List[DetectedNote] = []
        self.started = []

        detector = NoteDetector(sr, config=self.config, on_note_complete=notes.append)
        for frame in AudioLoader.frames(audio, self.frame_size):
            observation = detector.process(frame)
            if observation is not None:
                self.started.append(observation)
        detector.flush()

        return notes
