"""Single-frame fundamental frequency estimation (YIN via librosa)."""

import numpy as np
import librosa
from typing import Optional

from ..core.constants import (
    DEFAULT_FMIN,
    DEFAULT_FMAX,
    DEFAULT_YIN_THRESHOLD,
    DEFAULT_VOICING_THRESHOLD,
    DEFAULT_RANGE_TOLERANCE,
)


class FrequencyEstimator:
    """Monophonic pitch estimation on one frame.

    The frame is analysed as a single librosa frame (`center=False`,
    `frame_length=len(frame)`):

    - `librosa.pyin` supplies the voicing probability, so noise and
      aperiodic frames yield no pitch
    - `librosa.yin` supplies the frequency, refined by parabolic
      interpolation

    The search runs up to twice `fmax` so that a tone above the range is
    recognised as such and rejected, instead of being reported an octave
    down. Estimates are then checked against [fmin, fmax], widened by
    `range_tolerance` to absorb the interpolation error at the edges.
    """

    def __init__(
        self,
        sr: int,
        fmin: float = DEFAULT_FMIN,
        fmax: float = DEFAULT_FMAX,
        threshold: float = DEFAULT_YIN_THRESHOLD,
        voicing_threshold: float = DEFAULT_VOICING_THRESHOLD,
        range_tolerance: float = DEFAULT_RANGE_TOLERANCE,
    ):
        """
        Initialize FrequencyEstimator.

        Args:
            sr: Sample rate in Hz
            fmin: Lowest plausible frequency; lower estimates are rejected
            fmax: Highest plausible frequency; higher estimates are rejected
            threshold: YIN trough threshold (lower = more sensitive, more
                octave errors)
            voicing_threshold: Minimum pYIN voiced probability
            range_tolerance: Relative slack on the [fmin, fmax] check
        """
        self.sr = sr
        self.fmin = fmin
        self.fmax = fmax
        self.threshold = threshold
        self.voicing_threshold = voicing_threshold
        self.range_tolerance = range_tolerance

    @property
    def search_fmax(self) -> float:
        return min(2.0 * self.fmax, self.sr / 2.0)

    def estimate(self, frame: np.ndarray) -> Optional[float]:
        """
        Estimate the fundamental frequency of a frame.

        Args:
            frame: 1-D array of time-domain samples

        Returns:
            Frequency in Hz, or None if the frame has no discernible pitch
            inside [fmin, fmax]
        """
        frequency = self.estimate_unbounded(frame)
        if frequency is None or not self.in_range(frequency):
            return None
        return frequency

    def in_range(self, frequency: float) -> bool:
        low = self.fmin * (1.0 - self.range_tolerance)
        high = self.fmax * (1.0 + self.range_tolerance)
        return low <= frequency <= high

    def estimate_unbounded(self, frame: np.ndarray) -> Optional[float]:
        """Voiced YIN estimate over the full search range, without the range check."""
        samples = np.asarray(frame, dtype=np.float64)
        if samples.ndim != 1 or samples.size < 8:
            return None
        if not np.all(np.isfinite(samples)) or not np.any(samples):
            return None

        try:
            if self.voiced_probability(samples) < self.voicing_threshold:
                return None

            f0 = librosa.yin(
                samples,
                fmin=self.fmin,
                fmax=self.search_fmax,
                sr=self.sr,
                frame_length=len(samples),
                trough_threshold=self.threshold,
                center=False,
            )
        except librosa.util.exceptions.ParameterError:
            # Frame too short for the requested range
            return None

        frequency = float(f0[0])
        if not np.isfinite(frequency) or frequency <= 0:
            return None
        return frequency

    def voiced_probability(self, samples: np.ndarray) -> float:
        """pYIN probability that the frame is voiced."""
        _, _, voiced_prob = librosa.pyin(
            samples,
            fmin=self.fmin,
            fmax=self.search_fmax,
            sr=self.sr,
            frame_length=len(samples),
            center=False,
        )
        return float(voiced_prob[0])
