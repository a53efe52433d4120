"""Beat grid quantization - Snap raw hits to a subdivided beat grid."""

from typing import Dict, Iterable, List

from ..core import QuantizedHit, RawHit
from ..core.constants import DEFAULT_SUBDIVISIONS_PER_BEAT, GRID_TOLERANCE


class GridQuantizer:
    """Quantize raw hits onto a fixed-subdivision beat grid."""

    def __init__(
        self,
        bpm: float = 120.0,
        subdivisions_per_beat: int = DEFAULT_SUBDIVISIONS_PER_BEAT,
        beat_offset: float = 0.0,
        tolerance: float = GRID_TOLERANCE,
    ):
        """
        Initialize GridQuantizer.

        Args:
            bpm: Tempo in BPM
            subdivisions_per_beat: Grid lines per beat (4 = sixteenth notes)
            beat_offset: Seconds before the first beat
            tolerance: Largest accepted distance to a grid line, as a
                fraction of the subdivision interval
        """
        if bpm <= 0:
            raise ValueError(f"BPM must be positive, got {bpm}")
        if subdivisions_per_beat < 1:
            raise ValueError(f"subdivisions_per_beat must be >= 1, got {subdivisions_per_beat}")

        self.bpm = bpm
        self.subdivisions_per_beat = subdivisions_per_beat
        self.beat_offset = beat_offset
        self.tolerance = tolerance

    @property
    def beat_duration(self) -> float:
        """Duration of one beat in seconds."""
        return 60.0 / self.bpm

    @property
    def subdivision_interval(self) -> float:
        """Duration of one grid unit in seconds."""
        return self.beat_duration / self.subdivisions_per_beat

    def grid_index(self, time: float) -> int:
        """Index of the grid line nearest to `time`."""
        return int(round((time - self.beat_offset) / self.subdivision_interval))

    def grid_time(self, index: int) -> float:
        """Time of grid line `index`."""
        return index * self.subdivision_interval + self.beat_offset

    def quantize(self, hits: Iterable[RawHit]) -> List[QuantizedHit]:
        """
        Snap hits to the grid, keeping the strongest hit per grid line.

        Hits further than `tolerance` subdivisions from their grid line are
        dropped. Equal energies keep the hit seen first.

        Args:
            hits: Raw hits in time order

        Returns:
            One QuantizedHit per occupied grid line, ascending by index
        """
        interval = self.subdivision_interval
        max_distance = interval * self.tolerance
        strongest: Dict[int, RawHit] = {}

        for hit in hits:
            index = self.grid_index(hit.time)
            if abs(self.grid_time(index) - hit.time) > max_distance:
                continue
            current = strongest.get(index)
            if current is None or hit.energy > current.energy:
                strongest[index] = hit

        return [
            QuantizedHit(
                grid_time=self.grid_time(index),
                subdivision_index=index,
                energy=hit.energy,
                frequency_bands=hit.frequency_bands,
                source_time=hit.time,
            )
            for index, hit in sorted(strongest.items())
        ]
