"""Audio loading and framing utilities."""

import logging
import numpy as np
import librosa
from pathlib import Path
from typing import Iterator, Tuple, Optional

from ..core.constants import DEFAULT_SR

logger = logging.getLogger(__name__)


class AudioLoader:
    """Reads recordings into the mono float signal the note detector consumes."""

    SUPPORTED_FORMATS = {".wav", ".mp3", ".flac", ".ogg", ".m4a", ".mp4"}

    def __init__(
        self,
        target_sr: Optional[int] = DEFAULT_SR,
        normalize: bool = False,
    ):
        """
        Initialize AudioLoader.

        Args:
            target_sr: Resample to this rate; None keeps the file's native rate
            normalize: Peak-normalize audio if True. Off by default since the
                detector's silence gate works on absolute RMS levels.
        """
        self.target_sr = target_sr
        self.normalize = normalize

    def load(self, path: str) -> Tuple[np.ndarray, int]:
        """
        Load a recording as a mono float32 signal.

        Raises:
            ValueError: If file format not supported
            FileNotFoundError: If file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        suffix = path.suffix.lower()
        if suffix not in self.SUPPORTED_FORMATS:
            supported = ", ".join(sorted(self.SUPPORTED_FORMATS))
            raise ValueError(f"Unsupported format: {suffix or '(none)'}. Supported: {supported}")

        # Stereo takes are downmixed: the detector follows a single voice
        audio, sr = librosa.load(str(path), sr=self.target_sr, mono=True)
        audio = audio.astype(np.float32, copy=False)
        logger.debug("Loaded %s: %d samples at %d Hz", path.name, len(audio), sr)

        if self.normalize:
            audio = self._normalize(audio)
        return audio, sr

    def _normalize(self, audio: np.ndarray) -> np.ndarray:
        peak = np.abs(audio).max() if len(audio) else 0.0
        return audio / peak if peak > 0 else audio

    @staticmethod
    def frames(audio: np.ndarray, frame_size: int) -> Iterator[np.ndarray]:
        """
        Cut a signal into consecutive, non-overlapping frames.

        A trailing partial frame is dropped, as a live analyser only ever
        delivers full buffers.
        """
        audio = np.ascontiguousarray(audio)
        if audio.ndim != 1 or len(audio) < frame_size:
            return

        framed = librosa.util.frame(
            audio, frame_length=frame_size, hop_length=frame_size, axis=0
        )
        for frame in framed:
            yield frame

    def count_frames(self, audio: np.ndarray, frame_size: int) -> int:
        return len(audio) // frame_size if audio.ndim == 1 else 0

    def get_duration(self, audio: np.ndarray, sr: Optional[int] = None) -> float:
        """Get duration in seconds."""
        sr = sr or self.target_sr or DEFAULT_SR
        return len(audio) / sr
