"""Input layer - Audio clips and file loading."""

from .clip import AudioClip
from .loader import AudioLoader

__all__ = ["AudioClip", "AudioLoader"]
