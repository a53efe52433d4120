"""Exceptions raised by the note map pipeline."""


class NoteMapError(Exception):
    """Base class for note map generation errors."""


class UnsupportedInputError(NoteMapError):
    """Audio source is streaming-only and has no decoded samples."""


class SampleReadError(NoteMapError):
    """Sample extraction from the audio source failed."""


class PersistenceError(NoteMapError):
    """A serialized note map could not be written or read."""
