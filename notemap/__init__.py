"""notemap - Audio to rhythm-game note map generation.

Architecture Layers:
    1. core/       - Data model, configuration, errors
    2. input/      - Audio clips and file loading
    3. analysis/   - Spectrum, energy envelope, tempo, onsets
    4. processing/ - Beat grid quantization, lane assignment
    5. pipeline/   - Map builder (generation lifecycle)
    6. output/     - JSON persistence, MIDI preview export
"""

__version__ = "0.1.0"

# Core types
from .core import (
    GeneratorConfig,
    LaneStrategy,
    Note,
    NoteMap,
    NoteType,
    SampleBuffer,
)

# Input layer
from .input import AudioClip, AudioLoader

# Analysis layer
from .analysis import EnergyEnvelope, OnsetDetector, SpectrumTransform, TempoEstimator

# Processing layer
from .processing import GridQuantizer, LaneAssigner, create_lane_assigner

# Pipeline layer
from .pipeline import GenerationState, MapBuilder

# Output layer
from .output import MapStore, MIDIExporter

__all__ = [
    # Core
    "GeneratorConfig",
    "LaneStrategy",
    "Note",
    "NoteMap",
    "NoteType",
    "SampleBuffer",
    # Input
    "AudioClip",
    "AudioLoader",
    # Analysis
    "EnergyEnvelope",
    "OnsetDetector",
    "SpectrumTransform",
    "TempoEstimator",
    # Processing
    "GridQuantizer",
    "LaneAssigner",
    "create_lane_assigner",
    # Pipeline
    "GenerationState",
    "MapBuilder",
    # Output
    "MapStore",
    "MIDIExporter",
]
