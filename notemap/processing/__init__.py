"""Processing layer - Turn raw hits into gameplay notes.

- Quantization (snap hits to the beat grid)
- Lane assignment (descending pattern, frequency bands, random walk)
- Note type classification (Heavy beats)
"""

from .quantize import GridQuantizer
from .lanes import (
    BeatContext,
    DescendingPatternAssigner,
    FrequencyBandAssigner,
    LaneAssigner,
    RandomWalkAssigner,
    create_lane_assigner,
    descending_lane,
)

__all__ = [
    "GridQuantizer",
    "BeatContext",
    "DescendingPatternAssigner",
    "FrequencyBandAssigner",
    "LaneAssigner",
    "RandomWalkAssigner",
    "create_lane_assigner",
    "descending_lane",
]
