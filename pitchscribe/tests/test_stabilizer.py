import pytest

from pitchscribe.pipeline.config import StabilizerConfig
from pitchscribe.pipeline.errors import InvalidConfig
from pitchscribe.pipeline.models import StabilizerPhase, UNDETERMINED
from pitchscribe.pipeline.stabilizer import NoteStabilizer

A4 = 440.0
C5 = 523.25
SILENT = (UNDETERMINED, 0.0)


class TestNoteStabilizer:
    @pytest.fixture
    def k(self):
        return 3

    @pytest.fixture
    def r(self):
        return 4

    @pytest.fixture
    def stabilizer(self, k, r):
        return NoteStabilizer(StabilizerConfig(consistency_frames=k, release_frames=r))

    def _stabilize(self, stabilizer, freq, k):
        out = None
        for _ in range(k):
            out = stabilizer.process(freq, 0.9)
        return out

    def test_initial_state_is_silent(self, stabilizer):
        assert stabilizer.phase is StabilizerPhase.SILENT
        assert stabilizer.stable_note is None

    def test_k_minus_one_frames_do_not_stabilize(self, stabilizer, k):
        for _ in range(k - 1):
            assert stabilizer.process(A4, 0.9) is None
        assert stabilizer.phase is StabilizerPhase.TRACKING
        assert stabilizer.process(A4, 0.9) == "A4"
        assert stabilizer.phase is StabilizerPhase.STABLE

    def test_release_hold_bridges_r_minus_one_frames(self, stabilizer, k, r):
        self._stabilize(stabilizer, A4, k)
        for _ in range(r - 1):
            assert stabilizer.process(*SILENT) == "A4"
        assert stabilizer.phase is StabilizerPhase.RELEASING
        assert stabilizer.process(*SILENT) is None
        assert stabilizer.phase is StabilizerPhase.SILENT

    def test_signal_return_resets_release_counter(self, stabilizer, k, r):
        self._stabilize(stabilizer, A4, k)
        for _ in range(r - 1):
            stabilizer.process(*SILENT)
        assert stabilizer.process(A4, 0.9) == "A4"
        assert stabilizer.state.release_counter == 0
        # A full new hold is available again
        for _ in range(r - 1):
            assert stabilizer.process(*SILENT) == "A4"

    def test_note_change_needs_k_consistent_frames(self, stabilizer, k):
        self._stabilize(stabilizer, A4, k)
        for _ in range(k - 1):
            assert stabilizer.process(C5, 0.9) == "A4"
        assert stabilizer.process(C5, 0.9) == "C5"

    def test_alternating_candidates_never_stabilize(self, stabilizer):
        for _ in range(10):
            assert stabilizer.process(A4, 0.9) is None
            assert stabilizer.process(C5, 0.9) is None

    def test_rejected_frame_clears_unstable_candidate(self, stabilizer, k):
        for _ in range(k - 1):
            stabilizer.process(A4, 0.9)
        stabilizer.process(*SILENT)
        assert stabilizer.state.candidate is None
        for _ in range(k - 1):
            assert stabilizer.process(A4, 0.9) is None

    def test_small_pitch_wobble_maps_to_same_note(self, stabilizer, k):
        freqs = [438.0, 441.5, 443.0]
        out = [stabilizer.process(f, 0.9) for f in freqs[:k]]
        assert out[-1] == "A4"

    @pytest.mark.parametrize("freq,expected", [(500.0, 0.5), (1500.0, 0.4), (2500.0, 0.3)])
    def test_dynamic_min_clarity(self, stabilizer, freq, expected):
        assert stabilizer.min_clarity_for(freq) == pytest.approx(expected)

    def test_high_note_accepted_with_lower_clarity(self):
        s = NoteStabilizer(StabilizerConfig(consistency_frames=1))
        assert s.process(1500.0, 0.45) is not None
        s.reset()
        assert s.process(500.0, 0.45) is None

    @pytest.mark.parametrize("freq", [20.0, 5000.0, UNDETERMINED])
    def test_out_of_range_frequency_rejected(self, freq):
        s = NoteStabilizer(StabilizerConfig(consistency_frames=1))
        assert s.process(freq, 1.0) is None

    @pytest.mark.parametrize("freq,clarity", [
        (float("nan"), 0.9),
        (A4, float("nan")),
        (float("inf"), 0.9),
    ])
    def test_non_finite_input_is_rejected(self, freq, clarity):
        s = NoteStabilizer(StabilizerConfig(consistency_frames=1, release_frames=2))
        assert s.process(freq, clarity) is None
        assert s.phase is StabilizerPhase.SILENT
        # a held note treats it as a dropout frame
        assert s.process(A4, 0.9) == "A4"
        assert s.process(freq, clarity) == "A4"
        assert s.phase is StabilizerPhase.RELEASING

    def test_zero_release_threshold_releases_immediately(self):
        s = NoteStabilizer(StabilizerConfig(consistency_frames=1, release_frames=0))
        assert s.process(A4, 0.9) == "A4"
        assert s.process(*SILENT) is None

    def test_zero_consistency_promotes_first_frame(self):
        s = NoteStabilizer(StabilizerConfig(consistency_frames=0))
        assert s.process(A4, 0.9) == "A4"

    def test_reset_clears_state(self, stabilizer, k):
        self._stabilize(stabilizer, A4, k)
        stabilizer.reset()
        assert stabilizer.phase is StabilizerPhase.SILENT
        assert stabilizer.process(*SILENT) is None

    def test_state_is_a_snapshot(self, stabilizer, k):
        self._stabilize(stabilizer, A4, k)
        snap = stabilizer.state
        snap.clear()
        assert stabilizer.stable_note == "A4"

    def test_negative_thresholds_rejected(self):
        with pytest.raises(InvalidConfig):
            NoteStabilizer(StabilizerConfig(release_frames=-1))
        with pytest.raises(InvalidConfig):
            NoteStabilizer(StabilizerConfig(min_frequency=5000.0, max_frequency=4200.0))
