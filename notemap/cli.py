"""Command-line interface for notemap.

Provides commands for:
- generate: Build a beat map from an audio file
- info: Show audio file information
- show: Print a stored beat map
- export-midi: Render a beat map as a MIDI drum track
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .core import GeneratorConfig, LaneStrategy, NoteMap, NoteMapError, NoteType

app = typer.Typer(
    name="notemap",
    help="Audio to rhythm-game beat map generator",
    rich_markup_mode="markdown",
)
console = Console()


@dataclass
class StageTimings:
    """Track timing of processing stages."""

    stages: Dict[str, float] = field(default_factory=dict)
    _current_stage: Optional[str] = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)

    def start(self, stage: str) -> None:
        """Start timing a stage."""
        self._current_stage = stage
        self._start_time = time.time()

    def stop(self) -> float:
        """Stop timing the current stage, return duration."""
        if self._current_stage is None:
            return 0.0
        duration = time.time() - self._start_time
        self.stages[self._current_stage] = duration
        self._current_stage = None
        return duration

    @property
    def total_time(self) -> float:
        return sum(self.stages.values())

    def to_dict(self) -> Dict[str, Any]:
        return {"stages": self.stages, "total_time": self.total_time}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _build_config(config_file: Optional[Path], **overrides) -> GeneratorConfig:
    """Merge a config file with command-line overrides (None = not given)."""
    base = GeneratorConfig.from_json(config_file).to_dict() if config_file else {}
    base.update({k: v for k, v in overrides.items() if v is not None})
    return GeneratorConfig.from_dict(base)


def _load_map_file(path: Path) -> NoteMap:
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return NoteMap.from_dict(json.load(f))
    except (OSError, ValueError, KeyError, TypeError) as e:
        console.print(f"[red]Error: Cannot read beat map {path}: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def generate(
    input_file: Path = typer.Argument(..., help="Input audio file (WAV, MP3, FLAC, OGG)"),
    output_dir: Optional[Path] = typer.Option(
        None, "-o", "--output-dir", help="Folder for beat map files (default: next to input)"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "-c", "--config", help="JSON file with generator options"
    ),
    bpm: Optional[float] = typer.Option(
        None, "-t", "--bpm", help="Override tempo (BPM) instead of estimating it"
    ),
    subdivisions: Optional[int] = typer.Option(
        None, "--subdivisions", help="Grid subdivisions per beat (4 = sixteenths)"
    ),
    offset: Optional[float] = typer.Option(
        None, "--offset", help="Seconds before the first beat"
    ),
    lanes: Optional[int] = typer.Option(None, "--lanes", help="Number of lanes"),
    min_energy: Optional[float] = typer.Option(
        None, "--min-energy", help="Minimum window energy for a hit"
    ),
    sensitivity: Optional[float] = typer.Option(
        None, "-s", "--sensitivity", help="Peak sensitivity over the running baseline"
    ),
    heavy_interval: Optional[int] = typer.Option(
        None, "--heavy-interval", help="Heavy note every N beats (0 = off)"
    ),
    strategy: Optional[LaneStrategy] = typer.Option(
        None, "--strategy", help="Lane strategy"
    ),
    lane_change_chance: Optional[float] = typer.Option(
        None, "--lane-change-chance", help="Random-walk lane change probability"
    ),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for random-walk lanes"),
    force: bool = typer.Option(False, "-f", "--force", help="Regenerate even if a map exists"),
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose output"),
):
    """Generate a beat map from an audio file.

    **Examples:**

        notemap generate song.wav

        notemap generate song.mp3 --strategy frequency --lanes 4 -o maps/
    """
    from .input import AudioLoader
    from .output import MapStore
    from .pipeline import MapBuilder

    _setup_logging(verbose)

    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    try:
        config = _build_config(
            config_file,
            bpm=bpm,
            subdivisions_per_beat=subdivisions,
            beat_offset=offset,
            lanes=lanes,
            minimum_energy=min_energy,
            peak_sensitivity=sensitivity,
            heavy_note_interval=heavy_interval,
            lane_strategy=strategy.value if strategy else None,
            lane_change_chance=lane_change_chance,
            seed=seed,
        )
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: Invalid configuration: {e}[/red]")
        raise typer.Exit(1)

    store = MapStore(output_dir or input_file.parent)
    builder = MapBuilder(config=config, store=store)
    timings = StageTimings()

    try:
        if not json_output:
            console.print(f"[blue]Loading audio:[/blue] {input_file}")
        timings.start("load")
        clip = AudioLoader().load(str(input_file))
        timings.stop()

        timings.start("generate")
        if not force and store.exists(clip.name):
            if not json_output:
                console.print("[blue]Using stored beat map[/blue] (pass --force to regenerate)")
            note_map = builder.check_and_load(clip)
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TimeElapsedColumn(),
                console=console,
                disable=json_output,
            ) as progress:
                task = progress.add_task("Analyzing...", total=1.0)
                for step in builder.iter_generate(clip):
                    progress.update(task, completed=step.fraction)
                progress.update(task, completed=1.0)
            note_map = builder.note_map
        timings.stop()
    except (NoteMapError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if note_map is None:
        console.print("[red]Error: No beat map produced[/red]")
        raise typer.Exit(1)

    if json_output:
        console.print_json(
            data={
                "input": str(input_file),
                "output": str(store.path_for(clip.name)),
                "bpm": builder.detected_bpm,
                "notes_count": len(note_map),
                "lanes": {str(k): v for k, v in note_map.lane_counts().items()},
                "heavy_count": note_map.type_counts()[NoteType.HEAVY],
                "timings": timings.to_dict(),
            }
        )
        return

    console.print(f"  Tempo: {builder.detected_bpm:.2f} BPM")
    console.print(f"  Notes: {len(note_map)}")
    _show_distribution_table(note_map, config.lanes)
    console.print(f"[green]Saved:[/green] {store.path_for(clip.name)}")


@app.command()
def info(
    input_file: Path = typer.Argument(..., help="Input audio file"),
):
    """Show information about an audio file."""
    from .analysis import TempoEstimator
    from .input import AudioLoader

    if not input_file.exists():
        console.print(f"[red]Error: File not found: {input_file}[/red]")
        raise typer.Exit(1)

    loader = AudioLoader()
    try:
        clip = loader.load(str(input_file))
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    buffer = clip.read_mono()

    console.print(f"\n[bold]Audio Info:[/bold] {input_file.name}")
    console.print(f"  Duration: {clip.duration:.2f} seconds")
    console.print(f"  Sample rate: {clip.sample_rate} Hz")
    console.print(f"  Channels: {clip.channels}")
    console.print(f"  Samples: {clip.frames:,}")

    tempo = TempoEstimator().analyze(buffer.samples, buffer.sample_rate)
    suffix = " (default, estimate not possible)" if tempo.is_fallback else ""
    console.print(f"  Estimated tempo: {tempo.bpm:.1f} BPM{suffix}")


@app.command()
def show(
    map_file: Path = typer.Argument(..., help="Beat map JSON file"),
    limit: int = typer.Option(50, "-n", "--limit", help="Maximum notes to list (0 = all)"),
):
    """Print the notes of a stored beat map."""
    note_map = _load_map_file(map_file)

    console.print(f"\n[bold]Beat Map:[/bold] {note_map.source_id}")
    if note_map.bpm is not None:
        console.print(f"  Tempo: {note_map.bpm:.2f} BPM")
    console.print(f"  Notes: {len(note_map)}")

    notes = note_map.notes if limit <= 0 else note_map.notes[:limit]
    if notes:
        _show_notes_table(notes)
    _show_distribution_table(note_map)


@app.command("export-midi")
def export_midi(
    map_file: Path = typer.Argument(..., help="Beat map JSON file"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Output MIDI file path"),
    bpm: Optional[float] = typer.Option(None, "-t", "--bpm", help="Tempo for the MIDI file"),
):
    """Render a beat map as a MIDI drum track."""
    from .output import MIDIExporter

    note_map = _load_map_file(map_file)
    if output is None:
        output = map_file.with_suffix(".mid")

    MIDIExporter().export(note_map, str(output), tempo=bpm)
    console.print(f"[green]Exported {len(note_map)} notes to:[/green] {output}")


def _show_notes_table(notes):
    """Display notes in a table."""
    table = Table(title="Notes")
    table.add_column("Time (s)", style="green")
    table.add_column("Lane", style="cyan")
    table.add_column("Power", style="yellow")
    table.add_column("Type", style="magenta")

    for note in notes:
        style = "red" if note.type == NoteType.HEAVY else None
        table.add_row(
            f"{note.time:.3f}",
            str(note.lane),
            f"{note.power:.2f}",
            note.type.value,
            style=style,
        )

    console.print(table)


def _show_distribution_table(note_map: NoteMap, lanes: Optional[int] = None):
    """Display per-lane and per-type note counts."""
    counts = note_map.lane_counts()
    lane_ids = sorted(set(range(lanes or 0)) | set(counts))

    table = Table(title="Distribution")
    table.add_column("Lane", style="cyan")
    table.add_column("Notes", style="green")
    for lane in lane_ids:
        table.add_row(str(lane), str(counts.get(lane, 0)))
    console.print(table)

    types = note_map.type_counts()
    console.print(
        f"  Heavy: {types[NoteType.HEAVY]}, Standard: {types[NoteType.STANDARD]}"
    )


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
