"""
Note recording: turns the stabilized note stream into Note records.

Idle --start()--> Recording --stop()--> Idle

Notes are emitted eagerly at onset with a fixed ``default_duration_ms``
instead of waiting for the release, so a held note yields exactly one event
and manual triggers look the same as microphone detections. Measuring the
real hold time is a superseded behaviour and is not done here.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, List, Optional

from .config import RecorderConfig, validate_recorder
from .models import ActiveNote, Note, RecorderSession
from .note_utils import note_name_to_midi

logger = logging.getLogger(__name__)

NoteListener = Callable[[Note], None]
Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.perf_counter() * 1000.0


class NoteRecorder:
    def __init__(
        self,
        config: Optional[RecorderConfig] = None,
        listener: Optional[NoteListener] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        config = config or RecorderConfig()
        validate_recorder(config)
        self.config = config
        self._clock = clock or monotonic_ms
        self._listeners: List[NoteListener] = []
        if listener is not None:
            self._listeners.append(listener)
        self._session = RecorderSession()

    def add_listener(self, listener: NoteListener) -> None:
        self._listeners.append(listener)

    @property
    def is_recording(self) -> bool:
        return self._session.is_recording

    @property
    def active_note(self) -> Optional[ActiveNote]:
        return self._session.active_note

    @property
    def notes(self) -> List[Note]:
        return list(self._session.notes)

    @property
    def suppressed_count(self) -> int:
        """Duplicate onsets dropped in the current take."""
        return self._session.suppressed

    def start(self) -> None:
        """Begin a new session. Calling this while recording discards the current one."""
        if self._session.is_recording and self._session.notes:
            logger.info("Recording restarted; discarding %d notes", len(self._session.notes))
        self._session = RecorderSession(is_recording=True, start_time_ms=self._clock())

    def stop(self) -> List[Note]:
        s = self._session
        # A dangling active note is dropped, not closed.
        s.active_note = None
        if s.is_recording:
            logger.debug("Recording stopped with %d notes", len(s.notes))
        s.is_recording = False
        return list(s.notes)

    def _relative_ms(self) -> int:
        return max(0, int(round(self._clock() - self._session.start_time_ms)))

    def _is_duplicate(self, pitch: str, start_ms: int) -> bool:
        last = self._session.last_emitted
        if last is None or last.pitch != pitch:
            return False
        return start_ms - last.start_time < self.config.duplicate_window_ms

    def _open_note(self, pitch: str, start_ms: int) -> Optional[Note]:
        if self._is_duplicate(pitch, start_ms):
            logger.debug("Suppressed duplicate %s at %d ms", pitch, start_ms)
            self._session.suppressed += 1
            return None

        note = Note(
            id=str(uuid.uuid4()),
            pitch=pitch,
            start_time=start_ms,
            duration=self.config.default_duration_ms,
        )
        self._session.notes.append(note)
        self._session.last_emitted = note
        logger.debug("Emitted %s at %d ms", pitch, start_ms)
        for listener in self._listeners:
            listener(note)
        return note

    def process(self, detected: Optional[str]) -> Optional[Note]:
        """Feed one stabilized frame. Returns the note emitted by this frame, if any."""
        s = self._session
        if not s.is_recording:
            return None

        t = self._relative_ms()
        if s.active_note is not None:
            if detected == s.active_note.pitch:
                return None
            s.active_note = None

        if not detected:
            return None

        # Track even a suppressed onset so a sustained note does not retrigger.
        # Must be set before _open_note notifies listeners.
        s.active_note = ActiveNote(detected, t)
        return self._open_note(detected, t)

    def record_manual_note(self, pitch: str) -> Optional[Note]:
        """Emit a note from a digital trigger (e.g. an on-screen key), bypassing detection."""
        s = self._session
        if not s.is_recording:
            return None
        if note_name_to_midi(pitch) < 0:
            raise ValueError(f"Malformed note name: {pitch!r}")

        s.active_note = None
        return self._open_note(pitch, self._relative_ms())

    def update_note_duration(self, note_id: str, duration_ms: int) -> Note:
        """Apply an external duration edit (e.g. a resize in the timeline editor)."""
        if duration_ms <= 0:
            raise ValueError(f"Note duration must be > 0, got {duration_ms}")
        s = self._session
        for i, note in enumerate(s.notes):
            if note.id == note_id:
                edited = note.with_duration(duration_ms)
                s.notes[i] = edited
                if s.last_emitted is not None and s.last_emitted.id == note_id:
                    s.last_emitted = edited
                return edited
        raise KeyError(note_id)
