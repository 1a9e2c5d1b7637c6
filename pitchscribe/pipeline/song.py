"""
Song persistence (JSON, durable camelCase shape) and MIDI export via music21.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Union

from music21 import midi, note as m21note, stream, tempo

from .models import Song
from .validation import validate_notes

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

# MIDI grid resolution in quarter notes
_QL_GRID = 96


def song_to_json(song: Song, indent: int = 2) -> str:
    return json.dumps(song.to_dict(), indent=indent)


def song_from_json(text: str) -> Song:
    song = Song.from_dict(json.loads(text))
    validate_notes(song.notes)
    return song


def save_song(song: Song, path: PathLike) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(song_to_json(song))
    logger.info("Saved %r (%d notes) to %s", song.title, len(song.notes), path)


def load_song(path: PathLike) -> Song:
    with open(path, "r", encoding="utf-8") as f:
        return song_from_json(f.read())


def _ms_to_ql(ms: float, bpm: float) -> float:
    ql = (ms / 1000.0) * (bpm / 60.0)
    return round(ql * _QL_GRID) / _QL_GRID


def song_to_score(song: Song) -> stream.Score:
    bpm = float(song.bpm) if song.bpm and song.bpm > 0 else 120.0
    score = stream.Score()
    part = stream.Part()
    part.insert(0, tempo.MetronomeMark(number=bpm))

    for n in sorted(song.notes, key=lambda n: n.start_time):
        m21_obj = m21note.Note(n.pitch)
        m21_obj.quarterLength = max(1.0 / _QL_GRID, _ms_to_ql(n.duration, bpm))
        part.insert(_ms_to_ql(n.start_time, bpm), m21_obj)

    score.insert(0, part)
    return score


def song_to_midi_bytes(song: Song) -> bytes:
    mf = midi.translate.music21ObjectToMidiFile(song_to_score(song))
    return bytes(mf.writestr())


def export_midi(song: Song, path: PathLike) -> None:
    data = song_to_midi_bytes(song)
    with open(path, "wb") as f:
        f.write(data)
    logger.info("Exported MIDI for %r to %s", song.title, path)
