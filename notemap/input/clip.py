"""Audio clip - the decoded audio surface the generator reads from."""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ..core import SampleBuffer


@dataclass
class AudioClip:
    """An audio asset as exposed by the playback engine.

    Samples are interleaved (frame-major) when ``channels > 1``. A clip is
    either already decoded (``samples``), decodable on demand (``reader``),
    or streaming-only, in which case no samples can be read up front.
    """

    name: str
    sample_rate: int
    channels: int = 1
    samples: Optional[np.ndarray] = None
    reader: Optional[Callable[[], np.ndarray]] = None
    streaming: bool = False

    def __post_init__(self):
        if self.channels < 1:
            raise ValueError(f"Channel count must be >= 1, got {self.channels}")
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")

    @classmethod
    def from_channels(cls, name: str, audio: np.ndarray, sample_rate: int) -> "AudioClip":
        """
        Build a clip from a (channels, frames) or (frames,) array.

        Args:
            name: Source identifier
            audio: Channel-major audio, as returned by librosa with mono=False
            sample_rate: Sample rate in Hz
        """
        audio = np.asarray(audio, dtype=np.float32)
        if audio.ndim == 1:
            return cls(name=name, sample_rate=sample_rate, channels=1, samples=audio)
        return cls(
            name=name,
            sample_rate=sample_rate,
            channels=audio.shape[0],
            samples=audio.T.reshape(-1),
        )

    @property
    def is_loaded(self) -> bool:
        """True when decoded samples are present."""
        return self.samples is not None

    @property
    def frames(self) -> int:
        """Samples per channel (0 until loaded)."""
        if self.samples is None:
            return 0
        return len(self.samples) // self.channels

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate

    def load_audio_data(self) -> np.ndarray:
        """
        Decode the clip if needed and return its interleaved samples.

        Raises:
            RuntimeError: If the clip is streaming-only or has nothing to read
        """
        if self.samples is None:
            if self.streaming or self.reader is None:
                raise RuntimeError(f"Clip '{self.name}' has no decoded sample data")
            self.samples = np.asarray(self.reader(), dtype=np.float32).reshape(-1)
        return self.samples

    def read_mono(self, downmix: bool = False) -> SampleBuffer:
        """
        Extract a mono sample buffer.

        Args:
            downmix: Average all channels instead of taking the first one

        Returns:
            SampleBuffer at the clip's sample rate
        """
        data = self.load_audio_data()
        frames = len(data) // self.channels
        frame_major = data[: frames * self.channels].reshape(frames, self.channels)
        if downmix:
            mono = frame_major.mean(axis=1)
        else:
            mono = frame_major[:, 0]
        return SampleBuffer(samples=mono, sample_rate=self.sample_rate)
