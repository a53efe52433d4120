"""Adaptive-threshold onset detection over an energy envelope."""

from typing import Iterable, Iterator, List, Optional, Tuple

from ..core import RawHit
from ..core.constants import DEFAULT_SMOOTHING_FACTOR
from .envelope import Baseline, EnvelopeBlock


class OnsetDetector:
    """Find energy peaks that stand out from a smoothed running baseline.

    A window is a hit when its energy exceeds both `minimum_energy` and
    `baseline * peak_sensitivity`, where the baseline is the value from
    before the window is folded in.
    """

    def __init__(
        self,
        minimum_energy: float = 0.1,
        peak_sensitivity: float = 1.5,
        smoothing_factor: float = DEFAULT_SMOOTHING_FACTOR,
    ):
        """
        Initialize OnsetDetector.

        Args:
            minimum_energy: Absolute energy floor for a hit
            peak_sensitivity: Required ratio over the baseline
            smoothing_factor: Baseline lerp factor per window
        """
        self.minimum_energy = minimum_energy
        self.peak_sensitivity = peak_sensitivity
        self.smoothing_factor = smoothing_factor

    def is_peak(self, energy: float, baseline: float) -> bool:
        return energy > self.minimum_energy and energy > baseline * self.peak_sensitivity

    def scan(
        self, blocks: Iterable[EnvelopeBlock]
    ) -> Iterator[Tuple[EnvelopeBlock, Optional[RawHit]]]:
        """
        Scan blocks in order, one step per block.

        The scan holds its baseline between steps, so a caller may suspend
        between any two blocks and resume later without losing state.

        Args:
            blocks: Envelope blocks in time order

        Yields:
            (block, hit) where hit is None when the block is not a peak
        """
        baseline = Baseline(self.smoothing_factor)
        for block in blocks:
            hit = None
            if self.is_peak(block.energy, baseline.value):
                hit = RawHit(
                    time=block.time,
                    energy=block.energy,
                    frequency_bands=block.bands,
                )
            baseline.update(block.energy)
            yield block, hit

    def detect(self, blocks: Iterable[EnvelopeBlock]) -> List[RawHit]:
        """
        Detect all hits in an envelope.

        Returns:
            RawHits in time order
        """
        return [hit for _, hit in self.scan(blocks) if hit is not None]
