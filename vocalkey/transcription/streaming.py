"""Streaming note detection - frame-by-frame note stability and duration tracking.

The detector runs on the audio callback path: every call to `process` is
short, never blocks and never raises on bad input. Per frame it runs

    FrameGate -> FrequencyEstimator -> frequency_to_note

and feeds the result through a small state machine:

    Idle      no pitch, nothing open
    Tracking  a candidate note is being confirmed (consecutive count)
    Stable    a confirmed note is open since `start_ms`; a different
              candidate may be tracked meanwhile

A note is confirmed after `stability_frames` consecutive frames map to the
same note name. Silence, pitch loss, a newly confirmed note, `flush` or
`reset` close the open note and deliver it to the listeners, unless it is
shorter than `min_note_duration_ms`.
"""

import logging
import queue
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

import numpy as np

from ..analysis import FrameGate, FrequencyEstimator
from ..core import DetectedNote, NoteObservation, frequency_to_note
from ..core.constants import (
    A4_FREQUENCY,
    A4_MIDI_NUMBER,
    DEFAULT_FMAX,
    DEFAULT_FMIN,
    DEFAULT_MIN_NOTE_DURATION_MS,
    DEFAULT_RMS_THRESHOLD,
    DEFAULT_STABILITY_FRAMES,
    DEFAULT_YIN_THRESHOLD,
)

logger = logging.getLogger(__name__)

NoteListener = Callable[[DetectedNote], None]


@dataclass
class DetectorConfig:
    """Configuration for the streaming note detector.

    Attributes:
        rms_threshold: RMS level below which a frame is silence (default: 0.02)
        stability_frames: Consecutive same-note frames to confirm a note (default: 3)
        min_note_duration_ms: Shorter notes are discarded (default: 80)
        fmin: Lowest plausible pitch in Hz (default: 80)
        fmax: Highest plausible pitch in Hz (default: 1100)
        yin_threshold: Pitch estimation sensitivity (default: 0.15)
        reference_frequency: Tuning reference in Hz (default: 440)
        reference_midi: MIDI number of the tuning reference (default: 69)
    """

    rms_threshold: float = DEFAULT_RMS_THRESHOLD
    stability_frames: int = DEFAULT_STABILITY_FRAMES
    min_note_duration_ms: float = DEFAULT_MIN_NOTE_DURATION_MS
    fmin: float = DEFAULT_FMIN
    fmax: float = DEFAULT_FMAX
    yin_threshold: float = DEFAULT_YIN_THRESHOLD
    reference_frequency: float = A4_FREQUENCY
    reference_midi: int = A4_MIDI_NUMBER

    def __post_init__(self):
        if self.rms_threshold < 0:
            raise ValueError(f"rms_threshold must be >= 0, got {self.rms_threshold}")
        if self.stability_frames < 1:
            raise ValueError(
                f"stability_frames must be >= 1, got {self.stability_frames}"
            )
        if self.min_note_duration_ms < 0:
            raise ValueError(
                f"min_note_duration_ms must be >= 0, got {self.min_note_duration_ms}"
            )
        if not 0 < self.fmin < self.fmax:
            raise ValueError(
                f"Invalid frequency range: fmin={self.fmin}, fmax={self.fmax}"
            )
        if not 0 < self.yin_threshold < 1:
            raise ValueError(
                f"yin_threshold must be in (0, 1), got {self.yin_threshold}"
            )
        if self.reference_frequency <= 0:
            raise ValueError(
                f"reference_frequency must be > 0, got {self.reference_frequency}"
            )


@dataclass(frozen=True)
class Idle:
    """No pitch and no open note."""


@dataclass(frozen=True)
class Tracking:
    """A candidate note seen on `count` consecutive frames."""

    candidate: NoteObservation
    count: int


@dataclass(frozen=True)
class Stable:
    """A confirmed note open since `start_ms`."""

    note: NoteObservation
    start_ms: float
    tracking: Tracking


DetectorState = Union[Idle, Tracking, Stable]

IDLE = Idle()


class NoteQueue:
    """Single-writer, single-reader channel for completed notes.

    Register it as a detector listener on the audio thread and drain it from
    the consumer thread; the detector state itself never leaves its owner.
    """

    def __init__(self):
        self._queue: "queue.SimpleQueue[DetectedNote]" = queue.SimpleQueue()

    def __call__(self, note: DetectedNote) -> None:
        self._queue.put(note)

    def get(self, timeout: Optional[float] = None) -> DetectedNote:
        """Block until a note is available (raises queue.Empty on timeout)."""
        return self._queue.get(timeout=timeout)

    def drain(self) -> List[DetectedNote]:
        """Return every queued note without blocking, oldest first."""
        notes = []
        while True:
            try:
                notes.append(self._queue.get_nowait())
            except queue.Empty:
                return notes

    def empty(self) -> bool:
        return self._queue.empty()


class NoteDetector:
    """Streaming monophonic note detector.

    Timestamps are milliseconds. Each frame is stamped at its start: by
    default with the number of samples fed so far (deterministic, suited to
    offline processing), or with `clock()` when a clock is given. An
    unreadable frame advances the sample clock by the length of the last
    readable one; an empty frame takes no time.
    """

    def __init__(
        self,
        sample_rate: int,
        config: Optional[DetectorConfig] = None,
        on_note_complete: Optional[NoteListener] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize NoteDetector.

        Args:
            sample_rate: Sample rate of every frame, in Hz
            config: Detector configuration (defaults when None)
            on_note_complete: Listener called once per finalized note
            clock: Optional time source in milliseconds
        """
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be > 0, got {sample_rate}")

        self.sample_rate = sample_rate
        self.config = config or DetectorConfig()
        self.clock = clock

        self.gate = FrameGate(threshold=self.config.rms_threshold)
        self.estimator = FrequencyEstimator(
            sr=sample_rate,
            fmin=self.config.fmin,
            fmax=self.config.fmax,
            threshold=self.config.yin_threshold,
        )

        self._listeners: List[NoteListener] = []
        if on_note_complete is not None:
            self.add_listener(on_note_complete)

        self._state: DetectorState = IDLE
        self._samples_seen = 0
        self._frame_size = 0  # Length of the last non-empty readable frame

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def elapsed_ms(self) -> float:
        """Audio time fed to the detector so far."""
        return self._samples_seen * 1000.0 / self.sample_rate

    def add_listener(self, listener: NoteListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: NoteListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def now(self) -> float:
        """Current detector time in milliseconds."""
        if self.clock is not None:
            return float(self.clock())
        return self.elapsed_ms

    def process(self, frame: np.ndarray) -> Optional[NoteObservation]:
        """
        Process one audio frame.

        Args:
            frame: 1-D array of samples at `sample_rate`

        Returns:
            The observation of a newly confirmed note, or None. A note that
            keeps sounding is reported only once.
        """
        now = self.now()
        samples = self._read_frame(frame)
        if samples is None:
            # An unreadable buffer still stands for one buffer of audio time
            self._samples_seen += self._frame_size
        else:
            self._samples_seen += len(samples)
            self._frame_size = len(samples) or self._frame_size

        observation = self._observe(samples)
        if observation is None:
            # Silence and pitch loss both close the open note
            self._close(now)
            self._state = IDLE
            return None

        return self._advance(observation, now)

    def flush(self) -> None:
        """Finalize the open note, if any (call when capture stops)."""
        if isinstance(self._state, Stable):
            self._close(self.now())
            self._state = IDLE

    def reset(self) -> None:
        """Flush, then clear all state for a new session."""
        self.flush()
        self._state = IDLE
        self._samples_seen = 0
        self._frame_size = 0

    def _read_frame(self, frame) -> Optional[np.ndarray]:
        """Frame as a 1-D float array, or None if unreadable."""
        try:
            samples = np.asarray(frame, dtype=np.float64)
        except (TypeError, ValueError):
            return None
        if samples.ndim != 1:
            return None
        return samples

    def _observe(self, samples: Optional[np.ndarray]) -> Optional[NoteObservation]:
        if samples is None or samples.size == 0:
            return None
        if not np.all(np.isfinite(samples)):
            return None
        if self.gate.is_silence(self.gate.rms(samples)):
            return None

        # Out-of-range estimates come back as None and count as pitch loss
        frequency = self.estimator.estimate(samples)
        if frequency is None:
            return None

        return frequency_to_note(
            frequency,
            reference_frequency=self.config.reference_frequency,
            reference_midi=self.config.reference_midi,
        )

    def _advance(
        self, observation: NoteObservation, now: float
    ) -> Optional[NoteObservation]:
        state = self._state
        previous = state.tracking if isinstance(state, Stable) else state

        if isinstance(previous, Tracking) and previous.candidate.name == observation.name:
            tracking = Tracking(candidate=observation, count=previous.count + 1)
        else:
            tracking = Tracking(candidate=observation, count=1)

        confirmed = tracking.count >= self.config.stability_frames

        if isinstance(state, Stable):
            if confirmed and observation.name != state.note.name:
                self._close(now)
                return self._open(observation, now, tracking)
            self._state = Stable(note=state.note, start_ms=state.start_ms, tracking=tracking)
            return None

        if confirmed:
            return self._open(observation, now, tracking)

        self._state = tracking
        return None

    def _open(
        self, observation: NoteObservation, now: float, tracking: Tracking
    ) -> NoteObservation:
        self._state = Stable(note=observation, start_ms=now, tracking=tracking)
        logger.debug(
            "Note started: %s (%.1f Hz, %+d cents) at %.1f ms",
            observation.name,
            observation.frequency,
            observation.cents,
            now,
        )
        return observation

    def _close(self, now: float) -> None:
        """Finalize the open note and hand it to the listeners."""
        state = self._state
        if not isinstance(state, Stable):
            return

        duration_ms = now - state.start_ms
        if duration_ms < self.config.min_note_duration_ms:
            logger.debug(
                "Discarded %s: %.1f ms is below the %.1f ms minimum",
                state.note.name,
                duration_ms,
                self.config.min_note_duration_ms,
            )
            return

        note = DetectedNote.from_observation(state.note, state.start_ms, now)
        logger.debug("Note completed: %s, %d ms", note.name, note.duration_ms)
        for listener in list(self._listeners):
            listener(note)


def create_detector(
    sample_rate: int,
    config: Optional[DetectorConfig] = None,
    on_note_complete: Optional[NoteListener] = None,
) -> NoteDetector:
    """Create a NoteDetector for frames at `sample_rate`."""
    return NoteDetector(sample_rate, config=config, on_note_complete=on_note_complete)
