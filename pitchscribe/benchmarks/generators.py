from typing import List, Sequence, Tuple

import numpy as np
from music21 import note, stream, tempo

from pitchscribe.pipeline.note_utils import midi_to_frequency, midi_to_note_name, note_name_to_midi

# (note name, start sec, duration sec)
GroundTruth = List[Tuple[str, float, float]]


def create_sine_score(pitch="A4", seconds=2.0):
    """
    L0: A single long note at 60 bpm (1 beat per second).
    """
    p = stream.Part()
    p.append(tempo.MetronomeMark(number=60))
    n = note.Note(pitch)
    n.quarterLength = seconds
    p.append(n)
    return p


def create_c_major_scale(bpm=120):
    """
    L2: C major scale up and down in quarter notes.
    """
    p = stream.Part()
    p.append(tempo.MetronomeMark(number=bpm))
    pitches = ["C4", "D4", "E4", "F4", "G4", "A4", "B4", "C5",
               "B4", "A4", "G4", "F4", "E4", "D4", "C4"]
    for pi in pitches:
        n = note.Note(pi)
        n.quarterLength = 1.0
        p.append(n)
    return p


def create_repeated_notes(pitch="C4", count=3, bpm=120):
    """
    L3: The same pitch struck repeatedly, separated by rests longer than the release hold.
    """
    p = stream.Part()
    p.append(tempo.MetronomeMark(number=bpm))
    for _ in range(count):
        n = note.Note(pitch)
        n.quarterLength = 1.0
        p.append(n)
        r = note.Rest()
        r.quarterLength = 1.0
        p.append(r)
    return p


def score_ground_truth(part) -> GroundTruth:
    """Flatten a part into (name, start_sec, dur_sec) using its first tempo mark."""
    marks = list(part.recurse().getElementsByClass(tempo.MetronomeMark))
    bpm = float(marks[0].number) if marks else 120.0
    sec_per_ql = 60.0 / bpm
    out: GroundTruth = []
    for n in part.recurse().notes:
        out.append((
            midi_to_note_name(int(n.pitch.midi)),
            float(n.offset) * sec_per_ql,
            float(n.quarterLength) * sec_per_ql,
        ))
    return out


def synth_tone(freq: float, seconds: float, sr: int,
               harmonics: Sequence[float] = (1.0,), amplitude: float = 0.5) -> np.ndarray:
    """Additive tone; ``harmonics[k]`` is the relative amplitude of partial k+1."""
    t = np.arange(int(round(seconds * sr))) / float(sr)
    y = np.zeros_like(t)
    for k, a in enumerate(harmonics):
        if a:
            y += a * np.sin(2.0 * np.pi * freq * (k + 1) * t)
    peak = np.max(np.abs(y)) if y.size else 0.0
    if peak > 0:
        y *= amplitude / peak
    return y


def render_ground_truth(gt: GroundTruth, sr: int, harmonics: Sequence[float] = (1.0, 0.4, 0.2),
                        tail_seconds: float = 0.5) -> np.ndarray:
    total = max((s + d for _, s, d in gt), default=0.0) + tail_seconds
    y = np.zeros(int(round(total * sr)))
    attack = int(0.005 * sr)
    release = int(0.01 * sr)
    for name, start, dur in gt:
        tone = synth_tone(midi_to_frequency(note_name_to_midi(name)), dur, sr, harmonics)
        env = np.ones_like(tone)
        if tone.size > attack + release:
            env[:attack] = np.linspace(0.0, 1.0, attack)
            env[-release:] = np.linspace(1.0, 0.0, release)
        i0 = int(round(start * sr))
        y[i0: i0 + tone.size] += tone * env
    return y


def generate_benchmark_example(example_id: str, sr: int) -> Tuple[np.ndarray, GroundTruth]:
    if example_id == "sine_440":
        gt = score_ground_truth(create_sine_score("A4"))
        return render_ground_truth(gt, sr, harmonics=(1.0,)), gt
    if example_id == "strong_second_harmonic_a2":
        # 2nd partial twice as loud as the fundamental: classic octave-up trap
        gt = score_ground_truth(create_sine_score("A2"))
        return render_ground_truth(gt, sr, harmonics=(0.5, 1.0, 0.3)), gt
    if example_id == "c_major_scale":
        gt = score_ground_truth(create_c_major_scale())
        return render_ground_truth(gt, sr), gt
    if example_id == "repeated_c4":
        gt = score_ground_truth(create_repeated_notes())
        return render_ground_truth(gt, sr), gt
    raise ValueError(f"Unknown benchmark example: {example_id}")
