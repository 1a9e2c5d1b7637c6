"""
Data model shared by the estimator, stabilizer and recorder stages.

Note and Song use the durable camelCase shape on the wire
(``{"id", "pitch", "startTime", "duration"}``) so saved songs stay
compatible with the storage and playback collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

# Frequency reported when no usable pitch exists in a window.
UNDETERMINED = -1.0


@dataclass(frozen=True)
class PitchEstimate:
    frequency: float
    clarity: float

    @property
    def is_determined(self) -> bool:
        return self.frequency > 0.0


class StabilizerPhase(Enum):
    SILENT = "silent"
    TRACKING = "tracking"
    STABLE = "stable"
    RELEASING = "releasing"


@dataclass
class StabilizerState:
    """Per-session debounce state, owned by exactly one NoteStabilizer."""

    candidate: Optional[str] = None
    candidate_run: int = 0
    stable_note: Optional[str] = None
    release_counter: int = 0

    @property
    def phase(self) -> StabilizerPhase:
        if self.stable_note is not None:
            if self.release_counter > 0:
                return StabilizerPhase.RELEASING
            return StabilizerPhase.STABLE
        if self.candidate is not None:
            return StabilizerPhase.TRACKING
        return StabilizerPhase.SILENT

    def clear(self) -> None:
        self.candidate = None
        self.candidate_run = 0
        self.stable_note = None
        self.release_counter = 0


@dataclass(frozen=True)
class Note:
    id: str
    pitch: str
    start_time: int  # ms relative to session start
    duration: int    # ms

    def __post_init__(self) -> None:
        if self.start_time < 0:
            raise ValueError(f"Note start_time must be >= 0, got {self.start_time}")
        if self.duration <= 0:
            raise ValueError(f"Note duration must be > 0, got {self.duration}")

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

    def with_duration(self, duration_ms: int) -> "Note":
        return replace(self, duration=int(duration_ms))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pitch": self.pitch,
            "startTime": self.start_time,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        return cls(
            id=str(data["id"]),
            pitch=str(data["pitch"]),
            start_time=int(round(float(data["startTime"]))),
            duration=int(round(float(data["duration"]))),
        )


@dataclass(frozen=True)
class ActiveNote:
    pitch: str
    start_ms: int


@dataclass
class RecorderSession:
    """Mutable recording state, owned by exactly one NoteRecorder."""

    is_recording: bool = False
    start_time_ms: float = 0.0
    active_note: Optional[ActiveNote] = None
    notes: List[Note] = field(default_factory=list)
    last_emitted: Optional[Note] = None
    suppressed: int = 0


@dataclass
class Song:
    title: str
    notes: List[Note] = field(default_factory=list)
    bpm: float = 120.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "notes": [n.to_dict() for n in self.notes],
            "bpm": self.bpm,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Song":
        return cls(
            title=str(data.get("title", "")),
            notes=[Note.from_dict(n) for n in data.get("notes", [])],
            bpm=float(data.get("bpm", 120.0)),
        )
