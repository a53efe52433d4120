"""Generator configuration."""

import json
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .constants import (
    DEFAULT_BPM,
    DEFAULT_HEAVY_NOTE_INTERVAL,
    DEFAULT_LANES,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SMOOTHING_FACTOR,
    DEFAULT_SUBDIVISIONS_PER_BEAT,
    TEMPO_MAX_ANALYSIS_SECONDS,
    TEMPO_MAX_BPM,
    TEMPO_MIN_ANALYSIS_SECONDS,
    TEMPO_MIN_BPM,
    TEMPO_WINDOW_SECONDS,
)


class LaneStrategy(Enum):
    """How quantized hits are spread across lanes."""

    DESCENDING = "descending"
    FREQUENCY = "frequency"
    RANDOM_WALK = "random-walk"


@dataclass
class GeneratorConfig:
    """Configuration for beat map generation.

    Attributes:
        sample_size: FFT analysis window in samples, power of two (default: 2048)
        hop_size: Samples between analysis windows (default: sample_size // 2)
        subdivisions_per_beat: Grid resolution, 4 = sixteenth notes (default: 4)
        beat_offset: Seconds before the first beat (default: 0.0)
        lanes: Number of gameplay lanes (default: 5)
        minimum_energy: Minimum window energy to register a hit (default: 0.1)
        peak_sensitivity: How much a hit must exceed the baseline (default: 1.5)
        smoothing_factor: Baseline lerp factor per window (default: 0.3)
        heavy_note_interval: Heavy note every N beats, 0 disables (default: 8)
        lane_change_chance: Random-walk probability of moving lane (default: 0.3)
        use_frequency_mapping: Assign lanes from the loudest frequency band (default: False)
        lane_strategy: Explicit lane strategy, overrides use_frequency_mapping
        exclude_root_band: Keep off-beat hits out of the root lane in frequency mode (default: True)
        bpm: Explicit tempo, skips tempo estimation (default: None)
        default_bpm: Tempo used when estimation is not possible (default: 120)
        tempo_window_seconds: Energy window for tempo estimation (default: 0.1)
        tempo_max_seconds: Audio analysed for tempo, from the start (default: 30)
        tempo_min_seconds: Shortest audio worth estimating (default: 5)
        min_bpm: Slowest tempo considered (default: 80)
        max_bpm: Fastest tempo considered (default: 200)
        yield_every: Analysis windows between suspension points (default: 50)
        seed: Random seed for the random-walk strategy (default: None)
    """

    sample_size: int = DEFAULT_SAMPLE_SIZE
    hop_size: Optional[int] = None
    subdivisions_per_beat: int = DEFAULT_SUBDIVISIONS_PER_BEAT
    beat_offset: float = 0.0
    lanes: int = DEFAULT_LANES
    minimum_energy: float = 0.1
    peak_sensitivity: float = 1.5
    smoothing_factor: float = DEFAULT_SMOOTHING_FACTOR
    heavy_note_interval: int = DEFAULT_HEAVY_NOTE_INTERVAL
    lane_change_chance: float = 0.3
    use_frequency_mapping: bool = False
    lane_strategy: Optional[LaneStrategy] = None
    exclude_root_band: bool = True
    bpm: Optional[float] = None
    default_bpm: float = DEFAULT_BPM
    tempo_window_seconds: float = TEMPO_WINDOW_SECONDS
    tempo_max_seconds: float = TEMPO_MAX_ANALYSIS_SECONDS
    tempo_min_seconds: float = TEMPO_MIN_ANALYSIS_SECONDS
    min_bpm: float = TEMPO_MIN_BPM
    max_bpm: float = TEMPO_MAX_BPM
    yield_every: int = 50
    seed: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.lane_strategy, str):
            self.lane_strategy = LaneStrategy(self.lane_strategy)

    @property
    def effective_hop_size(self) -> int:
        return self.hop_size if self.hop_size else self.sample_size // 2

    @property
    def effective_strategy(self) -> LaneStrategy:
        if self.lane_strategy is not None:
            return self.lane_strategy
        if self.use_frequency_mapping:
            return LaneStrategy.FREQUENCY
        return LaneStrategy.DESCENDING

    def validate(self) -> "GeneratorConfig":
        """
        Check option ranges.

        Returns:
            self, for chaining

        Raises:
            ValueError: If an option is out of range
        """
        if self.sample_size < 2 or self.sample_size & (self.sample_size - 1):
            raise ValueError(f"sample_size must be a power of two >= 2, got {self.sample_size}")
        if self.hop_size is not None and self.hop_size <= 0:
            raise ValueError(f"hop_size must be positive, got {self.hop_size}")
        if self.subdivisions_per_beat < 1:
            raise ValueError("subdivisions_per_beat must be >= 1")
        if self.lanes < 1:
            raise ValueError("lanes must be >= 1")
        if self.heavy_note_interval < 0:
            raise ValueError("heavy_note_interval must be >= 0")
        if not 0.0 <= self.lane_change_chance <= 1.0:
            raise ValueError("lane_change_chance must be within [0, 1]")
        if not 0.0 <= self.smoothing_factor <= 1.0:
            raise ValueError("smoothing_factor must be within [0, 1]")
        if self.bpm is not None and self.bpm <= 0:
            raise ValueError(f"bpm must be positive, got {self.bpm}")
        if self.default_bpm <= 0:
            raise ValueError("default_bpm must be positive")
        if not 0 < self.min_bpm < self.max_bpm:
            raise ValueError("Tempo range must satisfy 0 < min_bpm < max_bpm")
        if self.tempo_window_seconds <= 0:
            raise ValueError("tempo_window_seconds must be positive")
        if self.yield_every < 1:
            raise ValueError("yield_every must be >= 1")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        data = asdict(self)
        if self.lane_strategy is not None:
            data["lane_strategy"] = self.lane_strategy.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneratorConfig":
        """
        Build a config from a dictionary.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data).validate()

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "GeneratorConfig":
        """Load a config from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))
