"""MIDI preview export of note maps."""

from pathlib import Path
from typing import Optional, Sequence

import pretty_midi

from ..core import NoteMap, NoteType

# General MIDI percussion: kick, snare, closed hat, low tom, crash, ...
DEFAULT_LANE_PITCHES = (36, 38, 42, 45, 49, 51, 56, 39)


class MIDIExporter:
    """Export a note map as a drum track for auditioning."""

    def __init__(
        self,
        tempo: float = 120.0,
        lane_pitches: Sequence[int] = DEFAULT_LANE_PITCHES,
        note_length: float = 0.1,
        heavy_velocity: int = 127,
    ):
        """
        Initialize MIDIExporter.

        Args:
            tempo: Tempo in BPM
            lane_pitches: Percussion pitch per lane (cycled when lanes exceed it)
            note_length: Duration of every exported note in seconds
            heavy_velocity: Velocity used for Heavy notes
        """
        self.tempo = tempo
        self.lane_pitches = tuple(lane_pitches)
        self.note_length = note_length
        self.heavy_velocity = heavy_velocity

    def pitch_for_lane(self, lane: int) -> int:
        return self.lane_pitches[lane % len(self.lane_pitches)]

    def velocity_for(self, power: float, note_type: NoteType) -> int:
        if note_type == NoteType.HEAVY:
            return self.heavy_velocity
        return max(1, min(127, int(round(power * 126)) + 1))

    def to_pretty_midi(self, note_map: NoteMap, tempo: Optional[float] = None) -> pretty_midi.PrettyMIDI:
        """Convert a map to a PrettyMIDI object without saving."""
        midi = pretty_midi.PrettyMIDI(initial_tempo=tempo or note_map.bpm or self.tempo)

        instrument = pretty_midi.Instrument(
            program=0,
            is_drum=True,
            name=note_map.source_id or "Beat Map",
        )

        for note in note_map:
            start = max(0.0, note.time)
            instrument.notes.append(
                pretty_midi.Note(
                    velocity=self.velocity_for(note.power, note.type),
                    pitch=self.pitch_for_lane(note.lane),
                    start=start,
                    end=start + self.note_length,
                )
            )

        midi.instruments.append(instrument)
        return midi

    def export(self, note_map: NoteMap, output_path: str, tempo: Optional[float] = None) -> None:
        """
        Export a map to a MIDI file.

        Args:
            note_map: Map to export
            output_path: Path to output MIDI file
            tempo: Tempo override (default: map tempo, then exporter tempo)
        """
        midi = self.to_pretty_midi(note_map, tempo)

        # Ensure output directory exists
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)

        midi.write(str(output_path))
