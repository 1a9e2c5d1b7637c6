from __future__ import annotations

import math
import re
from typing import Optional

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

_NOTE_RE = re.compile(r"^([A-G]#?)(-?\d+)$")


def frequency_to_midi(frequency: float) -> int:
    if frequency is None or frequency <= 0:
        return -1
    return int(round(69 + 12 * math.log2(frequency / 440.0)))


def midi_to_frequency(midi: float) -> float:
    return 440.0 * (2.0 ** ((midi - 69) / 12.0))


def midi_to_note_name(midi: int) -> str:
    if midi < 0:
        return ""
    return f"{NOTE_NAMES[midi % 12]}{midi // 12 - 1}"


def note_name_to_midi(name: str) -> int:
    m = _NOTE_RE.match(name or "")
    if not m:
        return -1
    midi = (int(m.group(2)) + 1) * 12 + NOTE_NAMES.index(m.group(1))
    return midi if midi >= 0 else -1


def frequency_to_note(frequency: float) -> str:
    return midi_to_note_name(frequency_to_midi(frequency))


def pitch_class(name: str) -> Optional[str]:
    """'C#4' -> 'C#'."""
    m = _NOTE_RE.match(name or "")
    return m.group(1) if m else None


def cents_between(frequency: float, reference: float) -> float:
    if frequency <= 0 or reference <= 0:
        return float("inf")
    return 1200.0 * math.log2(frequency / reference)


def is_frequency_in_note_range(frequency: float, midi: int, tolerance_cents: float = 50.0) -> bool:
    return abs(cents_between(frequency, midi_to_frequency(midi))) < tolerance_cents
