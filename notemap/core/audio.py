"""Sample buffer - decoded mono audio handed to the analysis layer."""

from dataclasses import dataclass

import numpy as np


@dataclass
class SampleBuffer:
    """Mono floating-point samples at a fixed sample rate.

    The buffer is owned by the caller; the pipeline only reads it.
    """

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        self.samples = np.asarray(self.samples, dtype=np.float64).reshape(-1)
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return len(self.samples) / self.sample_rate
