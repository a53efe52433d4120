"""Lane assignment - Map quantized hits to lanes and note types.

Three strategies are available:
- Descending pattern: fixed cycle per beat, independent of the audio
- Frequency mapping: lane of the loudest frequency band
- Random walk: drifts between neighbouring lanes with a seeded generator

All strategies share the note type rule: downbeats are counted, and a
downbeat whose count is a positive multiple of `heavy_note_interval` is
Heavy. The count increments after the downbeat is classified.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np

from ..core import GeneratorConfig, LaneStrategy, Note, NoteType, QuantizedHit
from ..core.constants import DEFAULT_LANES, DEFAULT_SUBDIVISIONS_PER_BEAT, ROOT_LANE


@dataclass
class BeatContext:
    """Position of a hit within the beat, as seen by a strategy."""

    lanes: int
    step_in_beat: int
    beat_counter: int
    note_type: NoteType = NoteType.STANDARD

    @property
    def is_downbeat(self) -> bool:
        return self.step_in_beat == 0


def clamp_lane(lane: int, lanes: int) -> int:
    return int(min(lanes - 1, max(0, lane)))


def descending_lane(step_in_beat: int, lanes: int) -> int:
    """
    Lane for the descending pattern.

    The downbeat goes to the root lane; later steps walk down from
    lanes-1 towards 1. Steps past lane 1 stay on lane 1.
    """
    if step_in_beat == 0:
        return ROOT_LANE
    lane = max(1, lanes - step_in_beat - 1)
    return min(lanes - 1, lane)


class LaneAssigner(ABC):
    """Base class for lane assignment strategies."""

    strategy: LaneStrategy

    def __init__(
        self,
        lanes: int = DEFAULT_LANES,
        subdivisions_per_beat: int = DEFAULT_SUBDIVISIONS_PER_BEAT,
        heavy_note_interval: int = 0,
    ):
        if lanes < 1:
            raise ValueError(f"lanes must be >= 1, got {lanes}")
        if subdivisions_per_beat < 1:
            raise ValueError(f"subdivisions_per_beat must be >= 1, got {subdivisions_per_beat}")
        self.lanes = lanes
        self.subdivisions_per_beat = subdivisions_per_beat
        self.heavy_note_interval = heavy_note_interval

    def reset(self) -> None:
        """Clear per-run state before a new map is assigned."""

    @abstractmethod
    def assign(self, hit: QuantizedHit, context: BeatContext) -> Tuple[int, NoteType]:
        """
        Choose lane and note type for one hit.

        Args:
            hit: Quantized hit
            context: Beat position and the classified note type

        Returns:
            Tuple of (lane, note type)
        """

    def classify(self, step_in_beat: int, beat_counter: int) -> NoteType:
        """Note type for a hit at this beat position."""
        if (
            step_in_beat == 0
            and self.heavy_note_interval > 0
            and beat_counter > 0
            and beat_counter % self.heavy_note_interval == 0
        ):
            return NoteType.HEAVY
        return NoteType.STANDARD

    def assign_all(self, hits: Iterable[QuantizedHit]) -> List[Note]:
        """
        Assign every hit of a run, in grid order.

        Args:
            hits: Quantized hits ascending by subdivision index

        Returns:
            Notes in the same order
        """
        self.reset()
        beat_counter = 0
        notes = []

        for hit in hits:
            step_in_beat = hit.subdivision_index % self.subdivisions_per_beat
            context = BeatContext(
                lanes=self.lanes,
                step_in_beat=step_in_beat,
                beat_counter=beat_counter,
                note_type=self.classify(step_in_beat, beat_counter),
            )
            lane, note_type = self.assign(hit, context)
            notes.append(
                Note(
                    time=hit.grid_time,
                    lane=clamp_lane(lane, self.lanes),
                    power=hit.energy,
                    type=note_type,
                )
            )
            if context.is_downbeat:
                beat_counter += 1

        return notes


class DescendingPatternAssigner(LaneAssigner):
    """Root lane on the downbeat, then descending lanes within the beat."""

    strategy = LaneStrategy.DESCENDING

    def assign(self, hit: QuantizedHit, context: BeatContext) -> Tuple[int, NoteType]:
        return descending_lane(context.step_in_beat, self.lanes), context.note_type


class FrequencyBandAssigner(LaneAssigner):
    """Lane of the frequency band holding the most energy."""

    strategy = LaneStrategy.FREQUENCY

    def __init__(self, *args, exclude_root_band: bool = True, **kwargs):
        """
        Args:
            exclude_root_band: Ignore band 0 for off-beat hits so they never
                fall back onto the root lane
        """
        super().__init__(*args, **kwargs)
        self.exclude_root_band = exclude_root_band

    def assign(self, hit: QuantizedHit, context: BeatContext) -> Tuple[int, NoteType]:
        if hit.frequency_bands is None or len(hit.frequency_bands) == 0:
            return descending_lane(context.step_in_beat, self.lanes), context.note_type

        bands = np.asarray(hit.frequency_bands, dtype=np.float64)
        if self.exclude_root_band and not context.is_downbeat and len(bands) > 1 and self.lanes > 1:
            lane = 1 + int(np.argmax(bands[1:]))
        else:
            lane = int(np.argmax(bands))
        return clamp_lane(lane, self.lanes), context.note_type


class RandomWalkAssigner(LaneAssigner):
    """Lane drifts to a neighbour with probability `lane_change_chance`."""

    strategy = LaneStrategy.RANDOM_WALK

    def __init__(
        self,
        *args,
        lane_change_chance: float = 0.3,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        **kwargs,
    ):
        """
        Args:
            lane_change_chance: Probability of moving lane on each hit
            seed: Seed for a fresh generator on every run
            rng: Generator to draw from (used as-is when no seed is given)
        """
        super().__init__(*args, **kwargs)
        if not 0.0 <= lane_change_chance <= 1.0:
            raise ValueError("lane_change_chance must be within [0, 1]")
        self.lane_change_chance = lane_change_chance
        self.seed = seed
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.current_lane = self.lanes // 2

    def reset(self) -> None:
        self.current_lane = self.lanes // 2
        if self.seed is not None:
            self.rng = np.random.default_rng(self.seed)

    def step(self) -> int:
        """Advance the walk by one hit and return the current lane."""
        if self.rng.random() < self.lane_change_chance:
            direction = 1 if self.rng.integers(0, 2) else -1
            self.current_lane = clamp_lane(self.current_lane + direction, self.lanes)
        return self.current_lane

    def assign(self, hit: QuantizedHit, context: BeatContext) -> Tuple[int, NoteType]:
        if context.is_downbeat and context.note_type == NoteType.HEAVY:
            return ROOT_LANE, context.note_type
        return self.step(), context.note_type


def create_lane_assigner(
    config: GeneratorConfig,
    rng: Optional[np.random.Generator] = None,
) -> LaneAssigner:
    """
    Build the lane assigner selected by a config.

    Args:
        config: Generator configuration
        rng: Optional generator for the random-walk strategy

    Returns:
        LaneAssigner for `config.effective_strategy`
    """
    common = dict(
        lanes=config.lanes,
        subdivisions_per_beat=config.subdivisions_per_beat,
        heavy_note_interval=config.heavy_note_interval,
    )
    strategy = config.effective_strategy

    if strategy == LaneStrategy.FREQUENCY:
        return FrequencyBandAssigner(exclude_root_band=config.exclude_root_band, **common)
    if strategy == LaneStrategy.RANDOM_WALK:
        return RandomWalkAssigner(
            lane_change_chance=config.lane_change_chance,
            seed=config.seed,
            rng=rng,
            **common,
        )
    return DescendingPatternAssigner(**common)
