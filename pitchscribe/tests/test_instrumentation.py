import json

import pytest

from pitchscribe.pipeline.config import PipelineConfig
from pitchscribe.pipeline.instrumentation import SessionLogger
from pitchscribe.pipeline.models import Note
from pitchscribe.pipeline.validation import validate_notes


@pytest.fixture
def slog(tmp_path):
    return SessionLogger(base_dir=str(tmp_path), run_name="run_test")


def _events(slog):
    with open(slog.events_path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_run_dir_created_without_events(slog, tmp_path):
    assert slog.run_dir == str(tmp_path / "run_test")
    assert (tmp_path / "run_test").is_dir()
    assert not (tmp_path / "run_test" / "events.jsonl").exists()


def test_take_and_note_events_are_tagged(slog):
    slog.log_take_start()
    slog.log_note(Note(id="n1", pitch="C4", start_time=0, duration=500))
    slog.log_take_stop(note_count=1, suppressed=2)
    events = _events(slog)
    assert [e["kind"] for e in events] == ["take_start", "note", "take_stop"]
    assert events[1]["take"] == 1
    assert events[1]["pitch"] == "C4"
    assert events[1]["startTime"] == 0
    assert events[2]["suppressed"] == 2
    assert all(e["t_ms"] >= 0 for e in events)


def test_config_snapshot(slog):
    slog.log_config(PipelineConfig())
    event = _events(slog)[-1]
    assert event["kind"] == "config"
    assert event["recorder"]["duplicate_window_ms"] == 300
    assert event["stabilizer"]["clarity_bands"] == [[1000.0, 0.4], [2000.0, 0.3]]


def test_summary_counts_notes_across_takes(slog):
    for take in (["C4", "E4"], ["C4"]):
        slog.log_take_start()
        for i, pitch in enumerate(take):
            slog.log_note(Note(id=f"{pitch}{i}", pitch=pitch, start_time=i * 100, duration=500))
        slog.log_take_stop(len(take), suppressed=1)
    slog.record_timing("replay", 0.25, ticks=10)

    summary = slog.finalize()
    assert summary["takes"] == 2
    assert summary["notes"] == {"emitted": 3, "suppressed": 2, "by_pitch": {"C4": 2, "E4": 1}}
    assert summary["timing"] == {"replay": 0.25}
    with open(slog.summary_path, encoding="utf-8") as f:
        assert json.load(f)["notes"]["emitted"] == 3
    assert _events(slog)[-1]["ticks"] == 10


def test_unwritable_run_dir_does_not_raise(slog, tmp_path, caplog):
    slog.events_path = str(tmp_path / "missing" / "events.jsonl")
    slog.log_take_start()
    assert "Could not write" in caplog.text


def _note(i, start, pitch="C4", duration=500):
    return Note(id=f"n{i}", pitch=pitch, start_time=start, duration=duration)


def test_validate_notes_accepts_ordered_notes():
    validate_notes([_note(0, 0), _note(1, 0, "D4"), _note(2, 600)])


@pytest.mark.parametrize("notes", [
    [_note(0, 0), _note(0, 100)],
    [_note(0, 200), _note(1, 100)],
    [_note(0, 0, pitch="X9")],
])
def test_validate_notes_rejects(notes):
    with pytest.raises(AssertionError):
        validate_notes(notes)


def test_note_model_rejects_bad_values():
    with pytest.raises(ValueError):
        Note(id="a", pitch="C4", start_time=-1, duration=100)
    with pytest.raises(ValueError):
        Note(id="a", pitch="C4", start_time=0, duration=0)
