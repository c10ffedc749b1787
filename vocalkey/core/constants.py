"""Global constants for vocalkey."""

# Pitch names (sharp notation, C = 0)
PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Flat spellings accepted on input, mapped to their sharp equivalent
FLAT_TO_SHARP = {
    "Db": "C#",
    "Eb": "D#",
    "Fb": "E",
    "Gb": "F#",
    "Ab": "G#",
    "Bb": "A#",
    "Cb": "B",
}

# Tuning reference: A4 = 440 Hz
A4_FREQUENCY = 440.0
A4_MIDI_NUMBER = 69

# Audio processing defaults
DEFAULT_SR = 44100
DEFAULT_FRAME_SIZE = 2048

# Note detector defaults
DEFAULT_RMS_THRESHOLD = 0.02  # Higher = less sensitive to noise
DEFAULT_STABILITY_FRAMES = 3  # Consecutive detections before a note is confirmed
DEFAULT_MIN_NOTE_DURATION_MS = 80.0
DEFAULT_FMIN = 80.0  # Plausible range for a single human voice
DEFAULT_FMAX = 1100.0
DEFAULT_YIN_THRESHOLD = 0.15  # Lower = more sensitive, more octave errors
DEFAULT_VOICING_THRESHOLD = 0.5  # Minimum pYIN voiced probability
DEFAULT_RANGE_TOLERANCE = 0.01  # Slack on the fmin/fmax check for interpolation error

# Key detection defaults
DEFAULT_RELATIVE_THRESHOLD = 0.7
DEFAULT_AMBIGUITY_THRESHOLD = 0.85
