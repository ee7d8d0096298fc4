"""Tests for YIN single-frame pitch detection"""

import threading

import pytest
import numpy as np

from vocal_pitch.audio.types import AudioBuffer, ConfigurationError, SignalError
from vocal_pitch.pitch.yin import (
    YinConfig,
    YinDetector,
    absolute_threshold,
    cumulative_mean_normalized_difference,
    detect,
    difference_function,
    parabolic_interpolation,
)


@pytest.mark.audio
@pytest.mark.unit
class TestYinDetection:
    """Accuracy and absence behaviour on synthetic frames"""

    def test_a4_at_cd_rate(self, sine_440):
        estimate = detect(sine_440[:2048], 44100)

        assert estimate is not None
        assert estimate.frequency == pytest.approx(440.0, abs=2.0)
        assert estimate.clarity > 0.8

    @pytest.mark.parametrize('frequency', [110.0, 220.0, 330.0, 880.0])
    def test_sine_frequencies(self, sample_audio_factory, frequency):
        frame = sample_audio_factory('sine', frequency=frequency, duration=0.1)[:2048]
        estimate = YinDetector().detect(frame, 44100)

        assert estimate is not None
        assert estimate.frequency == pytest.approx(frequency, rel=0.01)

    @pytest.mark.parametrize('sample_rate', [8000, 16000, 22050, 48000])
    def test_sample_rates(self, sample_audio_factory, sample_rate):
        frame = sample_audio_factory('sine', sample_rate=sample_rate, frequency=220.0, duration=0.1)
        estimate = detect(frame[:1024], sample_rate)
        assert estimate.frequency == pytest.approx(220.0, rel=0.01)

    def test_harmonic_tone_reports_fundamental(self, sample_audio_factory):
        frame = sample_audio_factory('harmonics', fundamental=196.0, num_harmonics=6, duration=0.1)[:2048]
        estimate = detect(frame, 44100)
        assert estimate.frequency == pytest.approx(196.0, rel=0.01)

    def test_silence_is_absent(self):
        assert detect(np.zeros(2048), 44100) is None

    def test_white_noise_is_absent(self, sample_audio_factory):
        noise = sample_audio_factory('noise', duration=0.1, seed=11)[:2048]
        assert detect(noise, 44100) is None

    def test_min_power_gate(self, sine_440):
        quiet = 0.001 * sine_440[:2048]
        assert detect(quiet, 44100) is not None
        assert detect(quiet, 44100, min_power=1.0) is None

    def test_window_size_limits_analysis(self, sine_440):
        estimate = detect(sine_440[:4096], 44100, window_size=2048)
        assert estimate.frequency == pytest.approx(440.0, abs=2.0)

    def test_window_larger_than_frame(self, sine_440):
        with pytest.raises(ConfigurationError):
            detect(sine_440[:1024], 44100, window_size=2048)

    @pytest.mark.parametrize('window_size', [0, 1, -5])
    def test_window_too_small(self, window_size):
        with pytest.raises(ConfigurationError):
            YinConfig(window_size=window_size)

    @pytest.mark.parametrize('threshold', [0.0, -0.1, 1.5])
    def test_invalid_threshold(self, threshold):
        with pytest.raises(ConfigurationError):
            YinConfig(threshold=threshold)

    def test_tiny_frame_is_absent(self):
        assert detect([0.5], 44100) is None

    def test_nan_rejected(self):
        frame = np.ones(64)
        frame[10] = np.nan
        with pytest.raises(SignalError):
            detect(frame, 44100)

    def test_audio_buffer_input(self, sine_440):
        estimate = YinDetector().detect(AudioBuffer(sine_440[:2048], 44100))
        assert estimate.frequency == pytest.approx(440.0, abs=2.0)

    def test_sample_rate_required_for_arrays(self, sine_440):
        with pytest.raises(ConfigurationError):
            YinDetector().detect(sine_440[:2048])

    def test_functional_form_matches_detector(self, sine_440):
        frame = sine_440[:2048]
        assert detect(frame, 44100, threshold=0.15) == YinDetector(YinConfig(threshold=0.15)).detect(frame, 44100)

    def test_shared_detector_across_threads(self, sample_audio_factory):
        detector = YinDetector()
        frames = {
            f: sample_audio_factory('sine', frequency=f, duration=0.05)[:2048]
            for f in (110.0, 220.0, 440.0, 880.0)
        }
        expected = {f: detector.detect(frame, 44100) for f, frame in frames.items()}
        results = {}

        def worker(f):
            for _ in range(10):
                assert detector.detect(frames[f], 44100) == expected[f]
            results[f] = True

        threads = [threading.Thread(target=worker, args=(f,)) for f in frames]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert set(results) == set(frames)

    def test_config_from_dict(self):
        config = YinConfig.from_config({'yin': {'threshold': 0.2}})
        assert config == YinConfig(threshold=0.2)


@pytest.mark.unit
class TestYinSteps:
    """Individual stages of the algorithm"""

    def test_difference_matches_direct_sum(self):
        frame = np.random.default_rng(5).standard_normal(64)
        half = 32
        direct = np.array([
            np.sum((frame[:half] - frame[tau:tau + half]) ** 2)
            for tau in range(half + 1)
        ])

        np.testing.assert_allclose(difference_function(frame), direct, atol=1e-9)

    def test_difference_at_zero_lag(self):
        assert difference_function(np.arange(16, dtype=float))[0] == pytest.approx(0.0, abs=1e-9)

    def test_cmnd_starts_at_one(self):
        cmnd = cumulative_mean_normalized_difference([0.0, 2.0, 4.0, 0.5])
        assert cmnd[0] == 1.0
        assert cmnd[1] == pytest.approx(1.0)
        assert cmnd[2] == pytest.approx(4.0 * 2 / 6.0)
        assert cmnd[3] == pytest.approx(0.5 * 3 / 6.5)

    def test_cmnd_with_zero_running_sum(self):
        np.testing.assert_array_equal(cumulative_mean_normalized_difference([0.0, 0.0, 0.0]), [1.0, 1.0, 1.0])

    def test_threshold_takes_first_dip_not_global_minimum(self):
        cmnd = np.array([1.0, 0.5, 0.08, 0.05, 0.09, 0.01])
        assert absolute_threshold(cmnd, 0.1) == 3

    def test_threshold_not_reached(self):
        assert absolute_threshold(np.array([1.0, 0.5, 0.4, 0.3]), 0.1) is None

    def test_parabolic_interpolation(self):
        values = np.array([4.0, 1.0, 2.0])
        assert parabolic_interpolation(values, 1) == pytest.approx(1.25)
        assert parabolic_interpolation(np.array([2.0, 1.0, 2.0]), 1) == pytest.approx(1.0)

    def test_parabolic_interpolation_at_edges(self):
        values = np.array([1.0, 2.0, 3.0])
        assert parabolic_interpolation(values, 0) == 0.0
        assert parabolic_interpolation(values, 2) == 2.0
