"""Command-line interface for vocalkey.

Provides commands for:
- detect: Stream an audio file through the note detector, then detect the key
- key: Detect the key of notes typed on the command line
- info: Show audio file information and silence statistics
"""

import json
import logging
import typer
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Dict, Any, List, Tuple
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .core.constants import (
    A4_FREQUENCY,
    DEFAULT_FMAX,
    DEFAULT_FMIN,
    DEFAULT_FRAME_SIZE,
    DEFAULT_MIN_NOTE_DURATION_MS,
    DEFAULT_RMS_THRESHOLD,
    DEFAULT_SR,
    DEFAULT_STABILITY_FRAMES,
    DEFAULT_YIN_THRESHOLD,
)

app = typer.Typer(
    name="vocalkey",
    help="Live note detection and key inference for a single voice",
    rich_markup_mode="markdown",
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _key_to_dict(result) -> Optional[Dict[str, Any]]:
    """Convert a KeyAnalysisResult to a JSON-friendly dictionary."""
    if result is None:
        return None
    data = asdict(result)
    for key in ("primary", "alternative"):
        if data[key] is not None:
            data[key]["confidence"] = round(data[key]["confidence"], 2)
            data[key]["score"] = round(data[key]["score"], 2)
            data[key]["scale_notes"] = list(data[key]["scale_notes"])
    return data


def _parse_note_arg(arg: str) -> Tuple[str, Optional[float]]:
    """Split 'C4:500' into ('C4', 500.0); a bare name has no duration."""
    name, sep, duration = arg.partition(":")
    if not sep:
        return name, None
    try:
        return name, float(duration)
    except ValueError:
        raise typer.BadParameter(f"Invalid duration in '{arg}', expected NAME:MS")


@app.command()
def detect(
    input_file: Path = typer.Argument(..., help="Input audio file (WAV, FLAC, MP3, ...)"),
    sample_rate: int = typer.Option(
        DEFAULT_SR, "--sr", help="Resample to this rate before detection"
    ),
    frame_size: int = typer.Option(
        DEFAULT_FRAME_SIZE, "--frame-size", help="Samples per analysis frame"
    ),
    rms_threshold: float = typer.Option(
        DEFAULT_RMS_THRESHOLD, "--rms-threshold", help="Silence gate RMS level"
    ),
    stability: int = typer.Option(
        DEFAULT_STABILITY_FRAMES, "--stability", help="Frames needed to confirm a note"
    ),
    min_duration: float = typer.Option(
        DEFAULT_MIN_NOTE_DURATION_MS, "--min-duration", help="Minimum note duration in ms"
    ),
    fmin: float = typer.Option(DEFAULT_FMIN, "--fmin", help="Lowest plausible pitch (Hz)"),
    fmax: float = typer.Option(DEFAULT_FMAX, "--fmax", help="Highest plausible pitch (Hz)"),
    threshold: float = typer.Option(
        DEFAULT_YIN_THRESHOLD, "--threshold", help="YIN sensitivity (lower = more sensitive)"
    ),
    reference: float = typer.Option(
        A4_FREQUENCY, "--reference", help="Tuning reference for A4 (Hz)"
    ),
    normalize: bool = typer.Option(
        False, "--normalize", help="Peak-normalize audio before detection"
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Log every note start and end"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output results as JSON (for scripting)"
    ),
):
    """Detect notes and key in an audio file, frame by frame as a live session would.

    **Examples:**

        vocalkey detect humming.wav

        vocalkey detect take2.flac --rms-threshold 0.01 --json
    """
    from .input import AudioLoader
    from .transcription import DetectorConfig, MonophonicTranscriber
    from .inference import KeyDetector

    _configure_logging(verbose)

    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    try:
        config = DetectorConfig(
            rms_threshold=rms_threshold,
            stability_frames=stability,
            min_note_duration_ms=min_duration,
            fmin=fmin,
            fmax=fmax,
            yin_threshold=threshold,
            reference_frequency=reference,
        )
        transcriber = MonophonicTranscriber(frame_size=frame_size, config=config)
        loader = AudioLoader(target_sr=sample_rate, normalize=normalize)
        notes, audio, sr = transcriber.transcribe_file(str(input_file), loader)
    except (ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not json_output:
        console.print(f"[blue]Loaded audio:[/blue] {input_file}")
        console.print(f"  Duration: {loader.get_duration(audio, sr):.2f}s, Sample rate: {sr}Hz")

    key_result = KeyDetector().analyze(notes)

    if json_output:
        output = {
            "file": str(input_file),
            "sample_rate": sr,
            "notes": [asdict(note) for note in notes],
            "key": _key_to_dict(key_result),
        }
        print(json.dumps(output, indent=2))
        return

    if not notes:
        console.print("[yellow]No notes detected![/yellow]")
        return

    _show_notes_table(notes)
    _show_key_result(key_result)


@app.command()
def key(
    notes: List[str] = typer.Argument(
        ..., help="Note names, optionally with a duration in ms (e.g. C4:500 Eb4:250)"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output results as JSON (for scripting)"
    ),
):
    """Detect the key of a note sequence.

    With durations the duration-weighted scorer is used, without them every
    note counts once.

    **Examples:**

        vocalkey key C4:800 E4:400 G4:400 C5:900

        vocalkey key A3 C4 E4 A4
    """
    from .core import DetectedNote, normalize_pitch_class
    from .inference import KeyDetector

    parsed = [_parse_note_arg(arg) for arg in notes]
    detector = KeyDetector()

    if all(duration is not None for _, duration in parsed):
        weighted = []
        for name, duration in parsed:
            pc = normalize_pitch_class(name)
            if pc is None:
                continue
            weighted.append(
                DetectedNote(
                    pitch_class=pc, octave=0, frequency=0.0, cents=0,
                    duration_ms=duration, start_ms=0.0, end_ms=duration,
                )
            )
        result = detector.analyze(weighted)
    else:
        result = detector.analyze_counts([name for name, _ in parsed])

    if json_output:
        print(json.dumps({"key": _key_to_dict(result)}, indent=2))
        return

    _show_key_result(result)


@app.command()
def info(
    input_file: Path = typer.Argument(..., help="Input audio file"),
    frame_size: int = typer.Option(
        DEFAULT_FRAME_SIZE, "--frame-size", help="Samples per analysis frame"
    ),
    rms_threshold: float = typer.Option(
        DEFAULT_RMS_THRESHOLD, "--rms-threshold", help="Silence gate RMS level"
    ),
):
    """Show information about an audio file."""
    from .input import AudioLoader
    from .analysis import FrameGate

    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    loader = AudioLoader()
    try:
        audio, sr = loader.load(str(input_file))
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    gate = FrameGate(threshold=rms_threshold)
    levels = [gate.rms(frame) for frame in loader.frames(audio, frame_size)]
    silent = sum(1 for level in levels if gate.is_silence(level))

    console.print(f"\n[bold]Audio Info:[/bold] {input_file.name}")
    console.print(f"  Duration: {loader.get_duration(audio, sr):.2f} seconds")
    console.print(f"  Sample rate: {sr} Hz")
    console.print(f"  Samples: {len(audio):,}")
    console.print(f"  Frames: {len(levels)} x {frame_size} samples")
    if levels:
        console.print(f"  Peak frame RMS: {max(levels):.4f}")
        console.print(f"  Silent frames: {silent / len(levels):.0%}")


def _show_notes_table(notes):
    """Display notes in a table."""
    table = Table(title="Detected Notes")
    table.add_column("Note", style="cyan")
    table.add_column("Frequency (Hz)", style="green")
    table.add_column("Cents", style="magenta")
    table.add_column("Start (s)", style="yellow")
    table.add_column("Duration (ms)", style="yellow")

    for note in notes:
        table.add_row(
            note.name,
            f"{note.frequency:.1f}",
            f"{note.cents:+d}",
            f"{note.start_ms / 1000:.3f}",
            str(int(note.duration_ms)),
        )

    console.print(table)


def _show_key_result(result):
    """Display a key analysis result."""
    if result is None:
        console.print("[yellow]Not enough tonal information to determine a key.[/yellow]")
        return

    primary = result.primary
    console.print(f"\n[green]Key: {primary.name}[/green]")
    console.print(f"  Confidence: {primary.confidence:.0%}")
    console.print(f"  Scale: {' '.join(primary.scale_notes)}")

    if result.alternative is not None:
        alt = result.alternative
        label = "equally likely" if result.is_ambiguous else "alternative"
        console.print(f"  [cyan]Relative key ({label}): {alt.name}[/cyan]")
        console.print(f"  Confidence: {alt.confidence:.0%}")


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
