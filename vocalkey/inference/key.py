"""Key detection - Identify the tonal center of a sung session.

Scores every tonic/mode hypothesis against the notes collected in a session:
- Duration-weighted scale fit (long notes count more than passing tones)
- Extra weight for characteristic degrees (tonic, fifth, third, leading tone)
- Penalty for out-of-scale notes
- Bonus when the melody starts or ends on the tonic
- Relative major/minor detection and ambiguity flag
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..core import PITCH_NAMES, normalize_pitch_class, pitch_class_index
from ..core.constants import DEFAULT_AMBIGUITY_THRESHOLD, DEFAULT_RELATIVE_THRESHOLD

logger = logging.getLogger(__name__)


class Mode(Enum):
    """Scale modes with a known template."""
    MAJOR = "major"
    MINOR = "minor"  # Natural minor (Aeolian)
    HARMONIC_MINOR = "harmonic_minor"
    DORIAN = "dorian"
    MIXOLYDIAN = "mixolydian"


# Scale templates as semitone intervals from the root
SCALE_TEMPLATES = {
    Mode.MAJOR: (0, 2, 4, 5, 7, 9, 11),
    Mode.MINOR: (0, 2, 3, 5, 7, 8, 10),
    Mode.HARMONIC_MINOR: (0, 2, 3, 5, 7, 8, 11),
    Mode.DORIAN: (0, 2, 3, 5, 7, 9, 10),
    Mode.MIXOLYDIAN: (0, 2, 4, 5, 7, 9, 10),
}

# Modes whose third is major (4 semitones); all others use a minor third
MAJOR_THIRD_MODES = {Mode.MAJOR, Mode.MIXOLYDIAN}

# Only major/minor are ranked; the other templates are reference scales
RANKED_MODES = (Mode.MAJOR, Mode.MINOR)


@dataclass(frozen=True)
class ScoringWeights:
    """Points per unit of note weight (seconds or occurrences)."""
    in_scale: float
    tonic: float
    fifth: float
    third: float
    leading_tone: float
    out_of_scale: float
    first_note_bonus: float
    last_note_bonus: float


DURATION_WEIGHTS = ScoringWeights(
    in_scale=2.0,
    tonic=5.0,
    fifth=3.0,
    third=2.0,
    leading_tone=1.0,
    out_of_scale=1.5,
    first_note_bonus=2.0,
    last_note_bonus=3.0,  # Phrase endings are the stronger tonic cue
)

COUNT_WEIGHTS = ScoringWeights(
    in_scale=2.0,
    tonic=4.0,
    fifth=2.0,
    third=1.5,
    leading_tone=1.0,
    out_of_scale=2.0,
    first_note_bonus=3.0,
    last_note_bonus=3.0,
)


@dataclass(frozen=True)
class KeyCandidate:
    """A scored key hypothesis."""
    root: str
    mode: str
    score: float
    scale_fit: float  # Fraction of note weight inside the scale

    @property
    def name(self) -> str:
        return f"{self.root} {self.mode}"


@dataclass(frozen=True)
class KeyResult:
    """One detected key."""
    root: str  # Tonic pitch class (e.g., "C", "F#")
    mode: str  # "major" or "minor"
    confidence: float  # 0.0 - 1.0
    score: float
    scale_notes: Tuple[str, ...]

    @property
    def name(self) -> str:
        return f"{self.root} {self.mode}"


@dataclass(frozen=True)
class KeyAnalysisResult:
    """Primary key plus the relative key when the data cannot tell them apart."""
    primary: KeyResult
    alternative: Optional[KeyResult] = None
    is_ambiguous: bool = False


def _as_mode(mode: Union[str, Mode]) -> Mode:
    return mode if isinstance(mode, Mode) else Mode(mode)


def get_scale_notes(root: str, mode: Union[str, Mode]) -> List[str]:
    """
    Get the ordered pitch classes of a scale, starting at the root.

    Args:
        root: Root note (e.g., "C", "Bb")
        mode: Scale mode ("major", "minor", ...)

    Returns:
        Seven pitch classes in ascending scale order, or [] for an unknown root
    """
    root = normalize_pitch_class(root)
    if root is None:
        return []

    root_idx = pitch_class_index(root)
    return [PITCH_NAMES[(root_idx + interval) % 12] for interval in SCALE_TEMPLATES[_as_mode(mode)]]


def relative_key(root: str, mode: Union[str, Mode]) -> Optional[Tuple[str, str]]:
    """
    Get the relative major/minor key.

    Relative minor is 3 semitones down from major.
    Relative major is 3 semitones up from minor.
    """
    mode = _as_mode(mode)
    root_idx = pitch_class_index(root)

    if mode == Mode.MAJOR:
        return PITCH_NAMES[(root_idx - 3) % 12], Mode.MINOR.value
    if mode == Mode.MINOR:
        return PITCH_NAMES[(root_idx + 3) % 12], Mode.MAJOR.value
    return None


def are_relative(first: KeyCandidate, second: KeyCandidate) -> bool:
    """Check if two keys are a relative major/minor pair."""
    if first.mode == second.mode:
        return False
    return relative_key(first.root, first.mode) == (second.root, second.mode)


def softmax(scores: Sequence[float], temperature: float = 1.0) -> np.ndarray:
    """Convert raw scores into probabilities that sum to 1."""
    scores = np.asarray(scores, dtype=np.float64)
    # Subtract max for numerical stability
    exp_scores = np.exp((scores - scores.max()) / temperature)
    return exp_scores / exp_scores.sum()


def scale_fit(
    root: str,
    mode: Union[str, Mode],
    note_weights: Dict[str, float],
    total_weight: float,
) -> float:
    """Fraction of the total note weight whose pitch class lies in the scale."""
    if total_weight <= 0:
        return 0.0

    scale = set(get_scale_notes(root, mode))
    in_scale = sum(weight for pc, weight in note_weights.items() if pc in scale)
    return in_scale / total_weight


class KeyDetector:
    """Detect the musical key of a session from its notes.

    Two scorers share the same hypothesis space (12 tonics x major/minor):

    - `analyze` weights every pitch class by how long it was sung. Its
      confidence is the scale fit of the winning key, an interpretable
      "share of singing time that fits the key".
    - `analyze_counts` weights every note occurrence equally and reports a
      softmax probability as confidence.
    """

    # Relative-key thresholds for the count-based scorer (probability ratios)
    COUNT_RELATIVE_THRESHOLD = 0.5
    COUNT_AMBIGUITY_THRESHOLD = 0.85

    def __init__(
        self,
        relative_threshold: float = DEFAULT_RELATIVE_THRESHOLD,
        ambiguity_threshold: float = DEFAULT_AMBIGUITY_THRESHOLD,
        modes: Iterable[Union[str, Mode]] = RANKED_MODES,
    ):
        """
        Initialize KeyDetector.

        Args:
            relative_threshold: Score ratio (second / best) above which the
                relative key is reported as an alternative
            ambiguity_threshold: Score ratio above which the result is flagged
                ambiguous
            modes: Modes to rank for every tonic
        """
        self.relative_threshold = relative_threshold
        self.ambiguity_threshold = ambiguity_threshold
        self.modes = tuple(_as_mode(mode) for mode in modes)

    def analyze(self, notes: Sequence) -> Optional[KeyAnalysisResult]:
        """
        Duration-weighted key analysis.

        Args:
            notes: DetectedNotes in detection order (or any objects with a
                `pitch_class` or `name` and a `duration_ms`)

        Returns:
            KeyAnalysisResult, or None when no note maps to a pitch class or
            no key scores above zero
        """
        pitch_classes, durations = self._normalize(notes)
        if not pitch_classes:
            return None

        note_weights = self.build_note_weights(pitch_classes, durations)
        total_duration = sum(note_weights.values())

        ranked = self.rank(
            note_weights,
            total_duration,
            first_note=pitch_classes[0],
            last_note=pitch_classes[-1],
            weights=DURATION_WEIGHTS,
            unit=1000.0,
        )
        best, second = ranked[0], ranked[1]
        if best.score <= 0:
            logger.debug("No key: best score %.3f is not positive", best.score)
            return None

        is_relative = are_relative(best, second)
        score_ratio = second.score / best.score

        alternative = None
        if is_relative and score_ratio > self.relative_threshold:
            alternative = self._result(second, second.scale_fit)

        return KeyAnalysisResult(
            primary=self._result(best, best.scale_fit),
            alternative=alternative,
            is_ambiguous=is_relative and score_ratio > self.ambiguity_threshold,
        )

    def analyze_counts(self, note_names: Sequence[str]) -> Optional[KeyAnalysisResult]:
        """
        Key analysis that counts note occurrences, ignoring duration.

        Args:
            note_names: Note names in order (e.g., ["C4", "Eb4", "G4"])

        Returns:
            KeyAnalysisResult with softmax confidences, or None
        """
        pitch_classes = [
            pc for pc in (normalize_pitch_class(name) for name in note_names) if pc
        ]
        if not pitch_classes:
            return None

        note_counts = self.build_note_weights(pitch_classes, [1.0] * len(pitch_classes))
        ranked = self.rank(
            note_counts,
            float(len(pitch_classes)),
            first_note=pitch_classes[0],
            last_note=pitch_classes[-1],
            weights=COUNT_WEIGHTS,
            unit=1.0,
        )
        best, second = ranked[0], ranked[1]
        if best.score <= 0:
            return None

        probabilities = softmax([candidate.score for candidate in ranked])
        is_relative = are_relative(best, second)
        probability_ratio = probabilities[1] / probabilities[0]

        alternative = None
        if is_relative and probability_ratio > self.COUNT_RELATIVE_THRESHOLD:
            alternative = self._result(second, float(probabilities[1]))

        return KeyAnalysisResult(
            primary=self._result(best, float(probabilities[0])),
            alternative=alternative,
            is_ambiguous=is_relative and probability_ratio > self.COUNT_AMBIGUITY_THRESHOLD,
        )

    def detect(self, notes: Sequence) -> Optional[KeyResult]:
        """Primary key only (duration-weighted)."""
        result = self.analyze(notes)
        return result.primary if result else None

    @staticmethod
    def build_note_weights(
        pitch_classes: Sequence[str], weights: Sequence[float]
    ) -> Dict[str, float]:
        """Sum weights per pitch class, in order of first appearance."""
        note_weights: Dict[str, float] = OrderedDict()
        for pc, weight in zip(pitch_classes, weights):
            note_weights[pc] = note_weights.get(pc, 0.0) + weight
        return note_weights

    def rank(
        self,
        note_weights: Dict[str, float],
        total_weight: float,
        first_note: Optional[str],
        last_note: Optional[str],
        weights: ScoringWeights = DURATION_WEIGHTS,
        unit: float = 1000.0,
    ) -> List[KeyCandidate]:
        """
        Score every tonic/mode hypothesis, best first.

        Ties keep enumeration order: tonics C..B, modes in `self.modes` order.
        """
        candidates = []
        for root in PITCH_NAMES:
            for mode in self.modes:
                score, fit = self._score_key(
                    root, mode, note_weights, total_weight,
                    first_note, last_note, weights, unit,
                )
                candidates.append(KeyCandidate(root, mode.value, score, fit))

        # sorted() is stable, also with reverse=True
        ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
        logger.debug(
            "Key ranking: %s",
            ", ".join(f"{c.name}={c.score:.3f}" for c in ranked[:3]),
        )
        return ranked

    def _score_key(
        self,
        root: str,
        mode: Mode,
        note_weights: Dict[str, float],
        total_weight: float,
        first_note: Optional[str],
        last_note: Optional[str],
        weights: ScoringWeights,
        unit: float,
    ) -> Tuple[float, float]:
        """
        Score one key hypothesis.

        Returns:
            Tuple of (normalized score, scale fit ratio)
        """
        scale = set(get_scale_notes(root, mode))
        root_idx = pitch_class_index(root)
        template = SCALE_TEMPLATES[mode]

        fifth = PITCH_NAMES[(root_idx + 7) % 12]
        third = PITCH_NAMES[(root_idx + (4 if mode in MAJOR_THIRD_MODES else 3)) % 12]
        leading_tone = PITCH_NAMES[(root_idx + template[6]) % 12]

        score = 0.0
        in_scale_weight = 0.0

        for pc, amount in note_weights.items():
            w = amount / unit
            if pc in scale:
                in_scale_weight += amount
                score += w * weights.in_scale

                if pc == root:
                    score += w * weights.tonic
                elif pc == fifth:
                    score += w * weights.fifth
                elif pc == third:
                    score += w * weights.third
                elif pc == leading_tone:
                    score += w * weights.leading_tone
            else:
                score -= w * weights.out_of_scale

        if first_note == root:
            score += weights.first_note_bonus
        if last_note == root:
            score += weights.last_note_bonus

        fit = in_scale_weight / total_weight if total_weight > 0 else 0.0

        # Dampen keys whose scale covers little of the session
        score *= 0.5 + 0.5 * fit

        total_units = total_weight / unit
        return (score / total_units if total_units > 0 else 0.0), fit

    def _normalize(self, notes: Sequence) -> Tuple[List[str], List[float]]:
        """Pitch classes and durations (ms) of the notes that map to a pitch class."""
        pitch_classes = []
        durations = []
        for note in notes:
            name = getattr(note, "pitch_class", None) or getattr(note, "name", None)
            pc = normalize_pitch_class(name)
            if pc is None:
                continue
            duration_ms = getattr(note, "duration_ms", 0.0) or 0.0
            pitch_classes.append(pc)
            durations.append(max(0.0, float(duration_ms)))
        return pitch_classes, durations

    def _result(self, candidate: KeyCandidate, confidence: float) -> KeyResult:
        return KeyResult(
            root=candidate.root,
            mode=candidate.mode,
            confidence=confidence,
            score=candidate.score,
            scale_notes=tuple(get_scale_notes(candidate.root, candidate.mode)),
        )


_default_detector = KeyDetector()


def analyze_key(notes: Sequence) -> Optional[KeyAnalysisResult]:
    """Duration-weighted key analysis with default thresholds."""
    return _default_detector.analyze(notes)


def detect_key(notes: Sequence) -> Optional[KeyResult]:
    """Primary key of a note list, or None."""
    return _default_detector.detect(notes)
