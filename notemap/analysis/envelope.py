"""Energy envelope over overlapping analysis windows."""

from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

from ..core import SampleBuffer
from ..core.constants import DEFAULT_SAMPLE_SIZE, DEFAULT_SMOOTHING_FACTOR
from .spectrum import SpectrumTransform


@dataclass
class EnvelopeBlock:
    """Energy of one analysis window."""

    index: int
    time: float  # window start in seconds
    energy: float  # sum of spectrum magnitudes
    bands: Optional[np.ndarray] = None


def band_energies(spectrum: np.ndarray, count: int) -> np.ndarray:
    """
    Split a spectrum into contiguous bands and sum each one.

    Args:
        spectrum: Magnitude spectrum
        count: Number of bands

    Returns:
        Array of `count` band energies, lowest frequencies first
    """
    edges = np.linspace(0, len(spectrum), count + 1).astype(int)
    return np.array([spectrum[lo:hi].sum() for lo, hi in zip(edges[:-1], edges[1:])])


class Baseline:
    """Exponentially smoothed running energy, used as the peak floor."""

    def __init__(self, smoothing_factor: float = DEFAULT_SMOOTHING_FACTOR, value: float = 0.0):
        self.smoothing_factor = smoothing_factor
        self.value = value

    def update(self, energy: float) -> float:
        """Move the baseline towards `energy` and return the new value."""
        self.value += (energy - self.value) * self.smoothing_factor
        return self.value


class EnergyEnvelope:
    """Reduces a sample buffer to a per-window energy series.

    Windows of `sample_size` samples start every `hop_size` samples (50%
    overlap by default). Each window is only emitted while it lies strictly
    inside the buffer. The series is produced lazily and in window order.
    """

    def __init__(
        self,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        hop_size: Optional[int] = None,
        bands: int = 0,
        transform: Optional[SpectrumTransform] = None,
    ):
        """
        Initialize EnergyEnvelope.

        Args:
            sample_size: Window length in samples (power of two)
            hop_size: Samples between window starts (default: sample_size // 2)
            bands: Frequency bands to compute per window, 0 to skip
            transform: Spectrum transform (default: Hann-windowed)
        """
        self.sample_size = sample_size
        self.hop_size = hop_size or sample_size // 2
        self.bands = bands
        self.transform = transform or SpectrumTransform()

        if self.hop_size <= 0:
            raise ValueError(f"Hop size must be positive, got {self.hop_size}")

    def block_count(self, num_samples: int) -> int:
        """Number of windows the envelope yields for a buffer of this length."""
        if num_samples <= self.sample_size:
            return 0
        return (num_samples - self.sample_size - 1) // self.hop_size + 1

    def blocks(self, buffer: SampleBuffer) -> Iterator[EnvelopeBlock]:
        """
        Iterate over the envelope of a buffer.

        Args:
            buffer: Mono samples

        Yields:
            EnvelopeBlock per analysis window, in time order
        """
        samples = buffer.samples
        pos = 0
        index = 0
        while pos + self.sample_size < len(samples):
            spectrum = self.transform.magnitude(samples[pos : pos + self.sample_size])
            yield EnvelopeBlock(
                index=index,
                time=pos / buffer.sample_rate,
                energy=float(spectrum.sum()),
                bands=band_energies(spectrum, self.bands) if self.bands else None,
            )
            pos += self.hop_size
            index += 1

    def energies(self, buffer: SampleBuffer) -> np.ndarray:
        """Total energy of every window as an array."""
        return np.array([block.energy for block in self.blocks(buffer)])
