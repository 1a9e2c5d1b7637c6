"""
Note stabilization: per-frame (frequency, clarity) to a debounced note name.

States: SILENT -> TRACKING(candidate, run) -> STABLE(note) -> RELEASING(note, n) -> SILENT.
A candidate must repeat for ``consistency_frames`` frames before it becomes
stable; a stable note survives up to ``release_frames - 1`` rejected frames so
short dropouts inside a sustained note do not split it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Optional

from .config import StabilizerConfig, validate_stabilizer
from .models import StabilizerPhase, StabilizerState
from .note_utils import frequency_to_midi, midi_to_note_name

logger = logging.getLogger(__name__)


class NoteStabilizer:
    def __init__(self, config: Optional[StabilizerConfig] = None) -> None:
        config = config or StabilizerConfig()
        validate_stabilizer(config)
        self.config = config
        self._bands = sorted(config.clarity_bands, key=lambda b: b[0])
        self._state = StabilizerState()

    @property
    def state(self) -> StabilizerState:
        return replace(self._state)

    @property
    def phase(self) -> StabilizerPhase:
        return self._state.phase

    @property
    def stable_note(self) -> Optional[str]:
        return self._state.stable_note

    def min_clarity_for(self, frequency: float) -> float:
        """Minimum acceptable clarity; drops as frequency rises past each band."""
        min_clarity = self.config.base_min_clarity
        for above_hz, clarity in self._bands:
            if frequency > above_hz:
                min_clarity = clarity
        return min_clarity

    def _accepts(self, frequency: float, clarity: float) -> bool:
        cfg = self.config
        # NaN slips past every range comparison below
        if not (math.isfinite(frequency) and math.isfinite(clarity)):
            return False
        if frequency < cfg.min_frequency or frequency > cfg.max_frequency:
            return False
        return clarity >= self.min_clarity_for(frequency)

    def process(self, frequency: float, clarity: float) -> Optional[str]:
        st = self._state

        if not self._accepts(frequency, clarity):
            if st.stable_note is not None:
                st.release_counter += 1
                if st.release_counter < self.config.release_frames:
                    return st.stable_note
                logger.debug("Released %s after %d silent frames", st.stable_note, st.release_counter)
            st.clear()
            return None

        note = midi_to_note_name(frequency_to_midi(frequency))
        st.release_counter = 0

        if note == st.candidate:
            st.candidate_run += 1
        else:
            st.candidate = note
            st.candidate_run = 1

        if st.candidate_run >= self.config.consistency_frames and st.stable_note != note:
            logger.debug("Stabilized %s after %d frames", note, st.candidate_run)
            st.stable_note = note

        return st.stable_note

    def reset(self) -> None:
        self._state.clear()
