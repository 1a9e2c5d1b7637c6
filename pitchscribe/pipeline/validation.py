"""Invariant checks for recorded note lists."""
from __future__ import annotations

import logging
from typing import Iterable

from .models import Note
from .note_utils import note_name_to_midi

logger = logging.getLogger(__name__)


def validate_notes(notes: Iterable[Note]) -> None:
    """Validate a session's notes.

    Raises AssertionError on invariant violations.
    """
    seen = set()
    prev_start = None
    for i, note in enumerate(notes):
        if note.start_time < 0:
            raise AssertionError(f"Note {i} starts before the session ({note.start_time} ms)")
        if note.duration <= 0:
            raise AssertionError(f"Note {i} has non-positive duration ({note.duration} ms)")
        if note.id in seen:
            raise AssertionError(f"Duplicate note id {note.id!r}")
        seen.add(note.id)
        if note_name_to_midi(note.pitch) < 0:
            raise AssertionError(f"Note {i} has malformed pitch {note.pitch!r}")
        if prev_start is not None and note.start_time < prev_start:
            raise AssertionError(
                f"Note {i} starts at {note.start_time} ms, before the previous note ({prev_start} ms)"
            )
        prev_start = note.start_time
