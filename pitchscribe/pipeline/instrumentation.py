"""Per-run diagnostics for recording sessions.

A run directory holds two files:

    events.jsonl   one line per config snapshot, take start/stop, note and timing
    summary.json   written by finalize(): timings plus note counts per take

Writes are best effort: a failed write is reported through the module logger
and never interrupts the live loop.
"""
from __future__ import annotations

import json
import logging
import os
import time
from collections import Counter
from dataclasses import asdict
from typing import Any, Dict, Optional

from .config import PipelineConfig
from .models import Note

logger = logging.getLogger(__name__)


class SessionLogger:
    def __init__(self, base_dir: str = "results", run_name: Optional[str] = None):
        self.run_name = run_name or time.strftime("session_%Y%m%d_%H%M%S")
        self.run_dir = os.path.join(base_dir, self.run_name)
        os.makedirs(self.run_dir, exist_ok=True)
        self.events_path = os.path.join(self.run_dir, "events.jsonl")
        self.summary_path = os.path.join(self.run_dir, "summary.json")
        self._t0 = time.perf_counter()
        self._timing: Dict[str, float] = {}
        self._pitches: Counter = Counter()
        self._suppressed = 0
        self._takes = 0

    def _elapsed_ms(self) -> float:
        return (time.perf_counter() - self._t0) * 1000.0

    def _write(self, kind: str, fields: Dict[str, Any]) -> None:
        entry = {"kind": kind, "t_ms": round(self._elapsed_ms(), 1)}
        entry.update(fields)
        try:
            with open(self.events_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.warning("Could not write %s event to %s: %s", kind, self.events_path, e)

    def log_config(self, config: PipelineConfig) -> None:
        self._write("config", asdict(config))

    def log_take_start(self) -> None:
        self._takes += 1
        self._write("take_start", {"take": self._takes})

    def log_take_stop(self, note_count: int, suppressed: int = 0) -> None:
        self._suppressed += suppressed
        self._write("take_stop", {"take": self._takes, "notes": note_count, "suppressed": suppressed})

    def log_note(self, note: Note) -> None:
        self._pitches[note.pitch] += 1
        self._write("note", {"take": self._takes, **note.to_dict()})

    def record_timing(self, label: str, seconds: float, **extra: Any) -> None:
        self._timing[label] = float(seconds)
        self._write("timing", {"label": label, "seconds": float(seconds), **extra})

    @property
    def timing(self) -> Dict[str, float]:
        return dict(self._timing)

    def summary(self) -> Dict[str, Any]:
        return {
            "run": self.run_name,
            "elapsed_s": round(self._elapsed_ms() / 1000.0, 3),
            "takes": self._takes,
            "timing": dict(self._timing),
            "notes": {
                "emitted": sum(self._pitches.values()),
                "suppressed": self._suppressed,
                "by_pitch": dict(sorted(self._pitches.items())),
            },
        }

    def finalize(self) -> Dict[str, Any]:
        """Write summary.json and return the summary."""
        summary = self.summary()
        try:
            with open(self.summary_path, "w", encoding="utf-8") as f:
                json.dump(summary, f, indent=2)
        except OSError as e:
            logger.warning("Could not write session summary: %s", e)
        return summary
