"""
Live session driver.

Owns one estimator, stabilizer and recorder and runs them once per tick:

    window -> PitchEstimator -> NoteStabilizer -> NoteRecorder (only while recording)

Everything runs on the caller's thread; ticks must not overlap.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from .capture import WindowSource
from .config import PipelineConfig
from .errors import CaptureError
from .estimator import PitchEstimator
from .instrumentation import SessionLogger
from .models import Note, PitchEstimate, Song
from .recorder import Clock, NoteListener, NoteRecorder
from .stabilizer import NoteStabilizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    estimate: PitchEstimate
    stable_note: Optional[str]
    emitted: Optional[Note] = None


class LiveSession:
    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        source: Optional[WindowSource] = None,
        listener: Optional[NoteListener] = None,
        clock: Optional[Clock] = None,
        session_logger: Optional[SessionLogger] = None,
    ) -> None:
        self.config = (config or PipelineConfig()).validate()
        self.source = source
        self.session_logger = session_logger
        self.estimator = PitchEstimator(self.config.estimator)
        self.stabilizer = NoteStabilizer(self.config.stabilizer)
        self.recorder = NoteRecorder(self.config.recorder, clock=clock)
        if listener is not None:
            self.recorder.add_listener(listener)
        if session_logger is not None:
            self.recorder.add_listener(session_logger.log_note)
            session_logger.log_config(self.config)
        self._detected: Optional[str] = None
        self._frames = 0

    @property
    def detected_note(self) -> Optional[str]:
        return self._detected

    @property
    def is_recording(self) -> bool:
        return self.recorder.is_recording

    @property
    def notes(self) -> List[Note]:
        return self.recorder.notes

    @property
    def frames(self) -> int:
        return self._frames

    def tick(self, samples=None, sample_rate: Optional[float] = None) -> FrameResult:
        if samples is None:
            if self.source is None:
                raise CaptureError("tick() needs samples or a window source")
            samples = self.source.read_window(self.estimator.window_size)
            sample_rate = self.source.sample_rate
        elif sample_rate is None:
            sample_rate = self.source.sample_rate if self.source is not None else self.config.capture.sample_rate

        estimate = self.estimator.estimate(samples, sample_rate)
        stable = self.stabilizer.process(estimate.frequency, estimate.clarity)
        if stable != self._detected:
            logger.debug("Detected note: %s", stable)
        self._detected = stable
        self._frames += 1

        emitted = None
        if self.recorder.is_recording:
            emitted = self.recorder.process(stable)
        return FrameResult(estimate, stable, emitted)

    def start_recording(self) -> None:
        self.recorder.start()
        if self.session_logger is not None:
            self.session_logger.log_take_start()

    def stop_recording(self) -> List[Note]:
        suppressed = self.recorder.suppressed_count
        notes = self.recorder.stop()
        if self.session_logger is not None:
            self.session_logger.log_take_stop(len(notes), suppressed)
        return notes

    def record_manual_note(self, pitch: str) -> Optional[Note]:
        return self.recorder.record_manual_note(pitch)

    def update_note(self, note_id: str, duration_ms: int) -> Note:
        return self.recorder.update_note_duration(note_id, duration_ms)

    def reset_detection(self) -> None:
        self.stabilizer.reset()
        self._detected = None

    def to_song(self, title: str, bpm: float = 120.0) -> Song:
        return Song(title=title, notes=self.notes, bpm=bpm)

    def replay(self) -> int:
        """Tick until an offline source runs out. Returns the number of ticks."""
        if self.source is None or not hasattr(self.source, "exhausted"):
            raise CaptureError("replay() needs a finite source such as FileSource")
        t0 = time.perf_counter()
        n = 0
        while not self.source.exhausted:
            self.tick()
            n += 1
        if self.session_logger is not None:
            self.session_logger.record_timing("replay", time.perf_counter() - t0, ticks=n)
        return n

    def run_for(self, seconds: float) -> int:
        """Drive ticks at ``capture.tick_hz`` from a live source for ``seconds``."""
        if self.source is None:
            raise CaptureError("run_for() needs a window source")
        period = 1.0 / self.config.capture.tick_hz
        deadline = time.perf_counter() + seconds
        next_tick = time.perf_counter()
        n = 0
        while time.perf_counter() < deadline:
            if getattr(self.source, "exhausted", False):
                break
            self.tick()
            n += 1
            next_tick += period
            delay = next_tick - time.perf_counter()
            if delay > 0:
                time.sleep(delay)
        return n
