"""Output layer - Persist and export note maps.

- JSON map files keyed by source identifier
- MIDI drum-track preview
"""

from .storage import MapStore, sanitize_source_id
from .midi import MIDIExporter

__all__ = [
    "MapStore",
    "sanitize_source_id",
    "MIDIExporter",
]
