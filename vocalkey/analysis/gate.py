"""Frame energy gating."""

import numpy as np

from ..core.constants import DEFAULT_RMS_THRESHOLD


class FrameGate:
    """Classifies audio frames as silence or signal by RMS energy."""

    def __init__(self, threshold: float = DEFAULT_RMS_THRESHOLD):
        """
        Initialize FrameGate.

        Args:
            threshold: RMS level below which a frame is silence. Tune per
                deployment, microphone gain varies (0.01-0.02 typical).
        """
        self.threshold = threshold

    @staticmethod
    def rms(frame: np.ndarray) -> float:
        """Root mean square of the frame samples (0.0 for an empty frame)."""
        samples = np.asarray(frame, dtype=np.float64)
        if samples.size == 0:
            return 0.0
        return float(np.sqrt(np.mean(samples**2)))

    def is_silence(self, rms: float) -> bool:
        # NaN compares False against the threshold, so check it explicitly
        if not np.isfinite(rms):
            return True
        return rms < self.threshold

    def is_silent_frame(self, frame: np.ndarray) -> bool:
        return self.is_silence(self.rms(frame))
