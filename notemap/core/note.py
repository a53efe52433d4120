"""Note data classes - the units of a generated beat map."""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

import numpy as np


class NoteType(Enum):
    """Gameplay category of a note."""

    STANDARD = "Standard"  # shoot
    HEAVY = "Heavy"  # dodge
    SPECIAL = "Special"  # collect, reserved

    @classmethod
    def parse(cls, value: Any) -> "NoteType":
        """Parse a serialized note type (name or integer ordinal)."""
        if isinstance(value, NoteType):
            return value
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            members = list(cls)
            if not 0 <= value < len(members):
                raise ValueError(f"Unknown note type ordinal: {value}")
            return members[int(value)]
        for member in cls:
            if str(value).lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown note type: {value!r}")


def clamp01(value: float) -> float:
    """Clamp a value into [0, 1]."""
    return float(min(1.0, max(0.0, value)))


@dataclass
class RawHit:
    """An energy peak found by onset detection, before grid alignment."""

    time: float  # seconds
    energy: float
    frequency_bands: Optional[np.ndarray] = None


@dataclass
class QuantizedHit:
    """A hit snapped onto the beat grid.

    grid_time == subdivision_index * subdivision_interval + beat_offset
    """

    grid_time: float
    subdivision_index: int
    energy: float
    frequency_bands: Optional[np.ndarray] = None
    source_time: Optional[float] = None  # time of the RawHit that survived


@dataclass
class Note:
    """A single gameplay note."""

    time: float  # seconds
    lane: int  # 0 .. lanes-1
    power: float = 0.0  # 0.0 - 1.0
    type: NoteType = NoteType.STANDARD

    def __post_init__(self):
        self.power = clamp01(self.power)

    @property
    def is_heavy(self) -> bool:
        return self.type == NoteType.HEAVY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": float(self.time),
            "lane": int(self.lane),
            "power": float(self.power),
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        return cls(
            time=float(data["time"]),
            lane=int(data["lane"]),
            power=float(data.get("power", 0.0)),
            type=NoteType.parse(data.get("type", 0)),
        )


@dataclass
class NoteMap:
    """Ordered note sequence generated for one audio source.

    Notes are kept sorted ascending by time. A map is filled during a
    generation run and treated as read-only once handed to the caller.
    """

    source_id: str
    notes: List[Note] = field(default_factory=list)
    bpm: Optional[float] = None

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self) -> Iterator[Note]:
        return iter(self.notes)

    @property
    def duration(self) -> float:
        """Time of the last note in seconds (0 for an empty map)."""
        return self.notes[-1].time if self.notes else 0.0

    def sort(self) -> None:
        """Sort notes by time (stable, so equal times keep grid order)."""
        self.notes.sort(key=lambda n: n.time)

    def notes_between(self, start: float, end: float) -> List[Note]:
        """
        Get notes due in the half-open window [start, end).

        Args:
            start: Window start in seconds
            end: Window end in seconds

        Returns:
            Notes whose time falls inside the window, in order
        """
        return [n for n in self.notes if start <= n.time < end]

    def lane_counts(self) -> Dict[int, int]:
        """Number of notes per lane, ordered by lane."""
        counts = Counter(n.lane for n in self.notes)
        return dict(sorted(counts.items()))

    def type_counts(self) -> Dict[NoteType, int]:
        """Number of notes per note type."""
        counts = Counter(n.type for n in self.notes)
        return {t: counts.get(t, 0) for t in NoteType}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON structure."""
        data: Dict[str, Any] = {
            "clipName": self.source_id,
            "notes": [n.to_dict() for n in self.notes],
        }
        if self.bpm is not None:
            data["bpm"] = float(self.bpm)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NoteMap":
        """Build a map from the persisted JSON structure."""
        bpm = data.get("bpm")
        return cls(
            source_id=str(data.get("clipName", "")),
            notes=[Note.from_dict(n) for n in data.get("notes") or []],
            bpm=float(bpm) if bpm is not None else None,
        )
