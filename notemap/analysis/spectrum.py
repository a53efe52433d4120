"""Magnitude spectrum of windowed sample blocks."""

from typing import Dict, Optional

import numpy as np
from scipy.signal import get_window


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def bit_reverse_indices(n: int) -> np.ndarray:
    """Permutation that reorders an array of length n into bit-reversed order."""
    bits = n.bit_length() - 1
    idx = np.arange(n)
    rev = np.zeros(n, dtype=np.intp)
    for _ in range(bits):
        rev = (rev << 1) | (idx & 1)
        idx = idx >> 1
    return rev


def fft_radix2(data: np.ndarray) -> np.ndarray:
    """
    Iterative radix-2 Cooley-Tukey FFT.

    Args:
        data: Real or complex sequence whose length is a power of two

    Returns:
        Complex spectrum of the same length

    Raises:
        ValueError: If the length is not a power of two
    """
    n = len(data)
    if not is_power_of_two(n):
        raise ValueError(f"FFT length must be a power of two, got {n}")

    a = np.asarray(data, dtype=np.complex128)[bit_reverse_indices(n)]

    m = 2
    while m <= n:
        half = m // 2
        twiddle = np.exp(-2j * np.pi * np.arange(half) / m)
        stage = a.reshape(-1, m)
        t = twiddle * stage[:, half:]
        u = stage[:, :half].copy()
        stage[:, :half] = u + t
        stage[:, half:] = u - t
        m *= 2

    return a


class SpectrumTransform:
    """Windows a sample block and computes its magnitude spectrum."""

    def __init__(self, window: Optional[str] = "hann"):
        """
        Initialize SpectrumTransform.

        Args:
            window: scipy window name ('hann', 'hamming', 'blackmanharris'),
                or None for a rectangular window
        """
        self.window = window
        self._windows: Dict[int, np.ndarray] = {}

    def window_for(self, n: int) -> np.ndarray:
        """Symmetric window of length n (w[i] = 0.5*(1 - cos(2*pi*i/(n-1))) for hann)."""
        if n not in self._windows:
            if self.window is None:
                self._windows[n] = np.ones(n)
            else:
                self._windows[n] = get_window(self.window, n, fftbins=False)
        return self._windows[n]

    def magnitude(self, block: np.ndarray) -> np.ndarray:
        """
        Compute the magnitude spectrum of a block.

        Args:
            block: N real samples, N a power of two (N >= 2)

        Returns:
            N/2 non-negative magnitudes, DC first

        Raises:
            ValueError: If N is not a power of two >= 2
        """
        block = np.asarray(block, dtype=np.float64)
        n = len(block)
        if n < 2 or not is_power_of_two(n):
            raise ValueError(f"Block size must be a power of two >= 2, got {n}")

        spectrum = fft_radix2(block * self.window_for(n))
        # Second half mirrors the first for real input
        return np.abs(spectrum[: n // 2])
