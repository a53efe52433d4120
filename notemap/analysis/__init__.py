"""Analysis layer - Low-level signal analysis.

This layer turns raw samples into rhythmic evidence:
- Magnitude spectra (radix-2 FFT)
- Windowed energy envelope and frequency bands
- Tempo estimation
- Onset (peak) detection
"""

from .spectrum import SpectrumTransform, fft_radix2
from .envelope import Baseline, EnergyEnvelope, EnvelopeBlock, band_energies
from .tempo import TempoEstimator, TempoInfo
from .onset import OnsetDetector

__all__ = [
    "SpectrumTransform",
    "fft_radix2",
    "Baseline",
    "EnergyEnvelope",
    "EnvelopeBlock",
    "band_energies",
    "TempoEstimator",
    "TempoInfo",
    "OnsetDetector",
]
