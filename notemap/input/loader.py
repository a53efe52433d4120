"""Audio file loading into clips."""

from pathlib import Path
from typing import Optional

import librosa
import numpy as np
import soundfile as sf

from .clip import AudioClip


class AudioLoader:
    """Decodes audio files into fully loaded AudioClips."""

    SUPPORTED_FORMATS = {".wav", ".mp3", ".flac", ".ogg", ".m4a", ".mp4"}

    def __init__(
        self,
        target_sr: Optional[int] = None,
        normalize: bool = False,
    ):
        """
        Initialize AudioLoader.

        Args:
            target_sr: Resample to this rate; None keeps the native rate
            normalize: Peak-normalize audio amplitude if True
        """
        self.target_sr = target_sr
        self.normalize = normalize

    def load(self, path: str) -> AudioClip:
        """
        Load an audio file as a decoded clip.

        Args:
            path: Path to audio file

        Returns:
            AudioClip named after the file stem, with interleaved samples

        Raises:
            ValueError: If file format not supported
            FileNotFoundError: If file doesn't exist
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        if path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {path.suffix}. "
                f"Supported: {self.SUPPORTED_FORMATS}"
            )

        # Keep channels separate, the clip exposes them interleaved
        audio, sr = librosa.load(str(path), sr=self.target_sr, mono=False)

        if self.normalize:
            audio = self._normalize(audio)

        return AudioClip.from_channels(path.stem, audio, int(sr))

    def probe(self, path: str):
        """Read file metadata (channels, rate, frames) without decoding."""
        return sf.info(str(path))

    def _normalize(self, audio: np.ndarray) -> np.ndarray:
        """Normalize audio to [-1, 1] range using peak normalization."""
        peak = np.abs(audio).max() if audio.size else 0.0
        if peak > 0:
            audio = audio / peak
        return audio
