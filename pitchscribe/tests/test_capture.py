from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import scipy.io.wavfile

from pitchscribe.pipeline.capture import ArraySource, FileSource, MicrophoneSource
from pitchscribe.pipeline.config import CaptureConfig
from pitchscribe.pipeline.errors import CaptureError


class TestMicrophoneSource:
    @pytest.fixture
    def source(self):
        return MicrophoneSource(CaptureConfig(sample_rate=8000), buffer_seconds=0.01)  # 80-sample ring

    def test_window_before_audio_is_silent(self, source):
        assert np.all(source.read_window(32) == 0.0)

    def test_read_returns_most_recent_samples_in_order(self, source):
        source.write(np.arange(50, dtype=np.float32))
        source.write(np.arange(50, 100, dtype=np.float32))  # wraps the ring
        np.testing.assert_array_equal(source.read_window(10), np.arange(90, 100))

    def test_oversized_write_keeps_tail(self, source):
        source.write(np.arange(200, dtype=np.float32))
        np.testing.assert_array_equal(source.read_window(80), np.arange(120, 200))

    def test_window_larger_than_ring_raises(self, source):
        with pytest.raises(CaptureError):
            source.read_window(81)

    @patch("pitchscribe.pipeline.capture.sd")
    def test_start_opens_mono_float_stream(self, mock_sd, source):
        stream = mock_sd.InputStream.return_value
        with source:
            assert source.running
            kwargs = mock_sd.InputStream.call_args.kwargs
            assert kwargs["channels"] == 1
            assert kwargs["samplerate"] == 8000
            assert kwargs["dtype"] == "float32"
            # Audio thread delivers a (frames, channels) block
            kwargs["callback"](np.full((16, 1), 0.25, dtype=np.float32), 16, None, None)
            assert np.all(source.read_window(16) == 0.25)
        stream.start.assert_called_once()
        stream.stop.assert_called_once()
        stream.close.assert_called_once()
        assert not source.running

    @patch("pitchscribe.pipeline.capture.sd")
    def test_device_failure_raises_capture_error(self, mock_sd, source):
        mock_sd.InputStream.side_effect = RuntimeError("no device")
        with pytest.raises(CaptureError):
            source.start()

    @patch("pitchscribe.pipeline.capture.sd", None)
    def test_missing_portaudio_raises_capture_error(self, source):
        with pytest.raises(CaptureError):
            source.start()


class TestArraySource:
    def test_advances_one_tick_per_read(self):
        src = ArraySource(np.arange(1000, dtype=float), sample_rate=600, tick_hz=60.0)  # hop 10
        np.testing.assert_array_equal(src.read_window(4), np.arange(6, 10))
        np.testing.assert_array_equal(src.read_window(4), np.arange(16, 20))
        assert src.position_ms() == pytest.approx(1000.0 * 20 / 600)

    def test_front_is_zero_padded(self):
        src = ArraySource(np.ones(100), sample_rate=600, tick_hz=60.0)
        w = src.read_window(16)
        assert np.all(w[:6] == 0.0) and np.all(w[6:] == 1.0)

    def test_exhausts_after_signal(self):
        src = ArraySource(np.ones(25), sample_rate=600, tick_hz=60.0)
        reads = 0
        while not src.exhausted:
            src.read_window(8)
            reads += 1
        assert reads == 3

    def test_rejects_bad_rate(self):
        with pytest.raises(CaptureError):
            ArraySource(np.zeros(10), sample_rate=0)


def test_file_source_loads_mono(tmp_path):
    sr = 8000
    t = np.arange(sr // 2) / sr
    stereo = np.stack([np.sin(2 * np.pi * 440 * t)] * 2, axis=1).astype(np.float32) * 0.5
    path = tmp_path / "tone.wav"
    scipy.io.wavfile.write(str(path), sr, stereo)

    src = FileSource(str(path), sample_rate=None, tick_hz=50.0)
    assert src.sample_rate == sr
    assert src.samples.ndim == 1
    assert src.samples.size == sr // 2
    assert src.hop == pytest.approx(160.0)


def test_file_source_missing_file_raises(tmp_path):
    with pytest.raises(CaptureError):
        FileSource(str(tmp_path / "missing.wav"))
