"""Core types, configuration and constants for notemap."""

from .audio import SampleBuffer
from .note import Note, NoteMap, NoteType, QuantizedHit, RawHit, clamp01
from .config import GeneratorConfig, LaneStrategy
from .errors import (
    NoteMapError,
    PersistenceError,
    SampleReadError,
    UnsupportedInputError,
)
from .constants import (
    DEFAULT_BPM,
    DEFAULT_LANES,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SUBDIVISIONS_PER_BEAT,
    ROOT_LANE,
)

__all__ = [
    "SampleBuffer",
    "Note",
    "NoteMap",
    "NoteType",
    "QuantizedHit",
    "RawHit",
    "clamp01",
    "GeneratorConfig",
    "LaneStrategy",
    "NoteMapError",
    "PersistenceError",
    "SampleReadError",
    "UnsupportedInputError",
    "DEFAULT_BPM",
    "DEFAULT_LANES",
    "DEFAULT_SAMPLE_SIZE",
    "DEFAULT_SUBDIVISIONS_PER_BEAT",
    "ROOT_LANE",
]
