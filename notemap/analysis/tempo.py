"""Tempo estimation by autocorrelation of a coarse energy envelope."""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..core.constants import (
    DEFAULT_BPM,
    TEMPO_MAX_ANALYSIS_SECONDS,
    TEMPO_MAX_BPM,
    TEMPO_MIN_ANALYSIS_SECONDS,
    TEMPO_MIN_BPM,
    TEMPO_WINDOW_SECONDS,
)

logger = logging.getLogger(__name__)


@dataclass
class TempoInfo:
    """Container for tempo estimation results."""

    bpm: float
    best_lag: int = 0  # in envelope windows
    correlation: float = 0.0
    window_seconds: float = TEMPO_WINDOW_SECONDS
    is_fallback: bool = False  # default tempo was used


class TempoEstimator:
    """Estimate a single dominant tempo from the opening of a track.

    The estimate is approximate; tempo changes within a track are not
    tracked.
    """

    def __init__(
        self,
        default_bpm: float = DEFAULT_BPM,
        window_seconds: float = TEMPO_WINDOW_SECONDS,
        max_seconds: float = TEMPO_MAX_ANALYSIS_SECONDS,
        min_seconds: float = TEMPO_MIN_ANALYSIS_SECONDS,
        min_bpm: float = TEMPO_MIN_BPM,
        max_bpm: float = TEMPO_MAX_BPM,
    ):
        """
        Initialize TempoEstimator.

        Args:
            default_bpm: Tempo returned when no estimate is possible
            window_seconds: Length of one energy window
            max_seconds: Only this much audio from the start is analysed
            min_seconds: Shorter audio falls back to the default tempo
            min_bpm: Slowest tempo considered
            max_bpm: Fastest tempo considered
        """
        self.default_bpm = default_bpm
        self.window_seconds = window_seconds
        self.max_seconds = max_seconds
        self.min_seconds = min_seconds
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm

    def estimate(self, samples: np.ndarray, sr: int) -> float:
        """
        Estimate tempo in BPM.

        Args:
            samples: Mono audio
            sr: Sample rate

        Returns:
            Tempo in BPM (default tempo if the estimate is degenerate)
        """
        return self.analyze(samples, sr).bpm

    def analyze(self, samples: np.ndarray, sr: int) -> TempoInfo:
        """
        Perform full tempo estimation.

        Args:
            samples: Mono audio
            sr: Sample rate

        Returns:
            TempoInfo with the chosen lag and its correlation
        """
        samples = np.asarray(samples, dtype=np.float64)
        duration = min(self.max_seconds, len(samples) / sr)
        analysis_samples = int(np.floor(duration * sr))

        if analysis_samples < sr * self.min_seconds:
            logger.debug(
                "Audio too short for tempo estimation (%.2fs), using %.1f BPM",
                len(samples) / sr,
                self.default_bpm,
            )
            return self._fallback()

        window_size = max(1, int(sr * self.window_seconds))
        envelope = self.energy_series(samples[:analysis_samples], window_size)
        return self.analyze_envelope(envelope, window_size / sr)

    def energy_series(self, samples: np.ndarray, window_size: int) -> np.ndarray:
        """Sum of squared amplitude per non-overlapping window."""
        count = len(range(0, len(samples) - window_size, window_size))
        if count <= 0:
            return np.zeros(0)
        frames = samples[: count * window_size].reshape(count, window_size)
        return np.sum(frames * frames, axis=1)

    def lag_range(self, window_seconds: float):
        """Lags (in windows) covering the tempo range, fastest tempo first."""
        min_lag = int(round(60.0 / self.max_bpm / window_seconds))
        max_lag = int(round(60.0 / self.min_bpm / window_seconds))
        return min_lag, max_lag

    def analyze_envelope(
        self, envelope: np.ndarray, window_seconds: Optional[float] = None
    ) -> TempoInfo:
        """
        Estimate tempo from an energy envelope.

        The lag maximising sum(e[i] * e[i + lag]) is taken as the beat period.

        Args:
            envelope: Energy per window, in time order
            window_seconds: Window length (default: estimator setting)

        Returns:
            TempoInfo (fallback when the lag range is degenerate or no lag
            correlates positively)
        """
        window_seconds = window_seconds or self.window_seconds
        envelope = np.asarray(envelope, dtype=np.float64)
        min_lag, max_lag = self.lag_range(window_seconds)

        if max_lag <= min_lag or min_lag < 1:
            logger.debug("Degenerate lag range [%d, %d], using default tempo", min_lag, max_lag)
            return self._fallback(window_seconds)

        best_lag = 0
        best_correlation = 0.0
        for lag in range(min_lag, max_lag + 1):
            if lag >= len(envelope):
                break
            correlation = float(np.dot(envelope[:-lag], envelope[lag:]))
            if correlation > best_correlation:
                best_correlation = correlation
                best_lag = lag

        if best_lag == 0:
            logger.debug("No positive envelope correlation, using default tempo")
            return self._fallback(window_seconds)

        return TempoInfo(
            bpm=60.0 / (best_lag * window_seconds),
            best_lag=best_lag,
            correlation=best_correlation,
            window_seconds=window_seconds,
        )

    def _fallback(self, window_seconds: Optional[float] = None) -> TempoInfo:
        return TempoInfo(
            bpm=self.default_bpm,
            window_seconds=window_seconds or self.window_seconds,
            is_fallback=True,
        )
