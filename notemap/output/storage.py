"""JSON persistence of note maps, one file per audio source."""

import json
import logging
import os
import re
import tempfile
import threading
import weakref
from pathlib import Path
from typing import Union

from ..core import NoteMap, PersistenceError
from ..core.constants import MAP_FILE_SUFFIX

logger = logging.getLogger(__name__)

# Characters that are invalid in file names on common platforms
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_source_id(source_id: str) -> str:
    """
    Make a source identifier safe to use as a file name.

    The identifier is split on invalid characters and the pieces are joined
    with underscores.
    """
    return "_".join(_INVALID_FILENAME_CHARS.split(source_id))


class MapStore:
    """Stores note maps as JSON files keyed by source identifier.

    Access is serialized per source, so callers working on different
    sources never wait on each other. A source keeps its lock only while
    some caller holds it.
    """

    def __init__(self, directory: Union[str, Path]):
        """
        Initialize MapStore.

        Args:
            directory: Folder holding the map files (created on first save)
        """
        self.directory = Path(directory)
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    def _lock_for(self, source_id: str) -> threading.Lock:
        key = sanitize_source_id(source_id)
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def path_for(self, source_id: str) -> Path:
        """File path of the map for a source."""
        return self.directory / f"{sanitize_source_id(source_id)}{MAP_FILE_SUFFIX}"

    def exists(self, source_id: str) -> bool:
        return self.path_for(source_id).exists()

    def save(self, note_map: NoteMap) -> Path:
        """
        Write a map to disk, replacing any previous file atomically.

        Args:
            note_map: Map to persist

        Returns:
            Path of the written file

        Raises:
            PersistenceError: If the file cannot be written
        """
        path = self.path_for(note_map.source_id)
        with self._lock_for(note_map.source_id):
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=str(self.directory), prefix=".tmp_", suffix=".json"
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(note_map.to_dict(), f, indent=2)
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except (OSError, TypeError, ValueError) as e:
                raise PersistenceError(f"Failed to save map to {path}: {e}") from e

        logger.info("Saved %d notes to %s", len(note_map), path)
        return path

    def load(self, source_id: str) -> NoteMap:
        """
        Read the map for a source.

        Raises:
            PersistenceError: If the file is missing, unreadable or malformed
        """
        path = self.path_for(source_id)
        with self._lock_for(source_id):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                note_map = NoteMap.from_dict(data)
            except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
                raise PersistenceError(f"Failed to load map from {path}: {e}") from e

        note_map.sort()
        logger.info("Loaded %d notes from %s", len(note_map), path)
        return note_map

    def delete(self, source_id: str) -> bool:
        """Remove the stored map. Returns True if a file was removed."""
        path = self.path_for(source_id)
        with self._lock_for(source_id):
            if not path.exists():
                return False
            path.unlink()
            return True
