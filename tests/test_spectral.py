"""Tests for spectra, spectrograms and peak finding"""

import pytest
import numpy as np

from vocal_pitch.audio.types import AudioBuffer, ConfigurationError, SignalError
from vocal_pitch.audio.spectral import (
    Spectrogram,
    SpectrogramConfig,
    Spectrum,
    detect_moving_peak,
    find_peak,
    forward,
    spectrogram,
)


@pytest.mark.audio
@pytest.mark.unit
class TestSpectrum:
    """Forward/inverse transforms of single frames"""

    @pytest.mark.parametrize('length', [1, 2, 7, 64, 1000, 1024])
    def test_round_trip(self, length):
        rng = np.random.default_rng(length)
        frame = rng.standard_normal(length)

        restored = forward(frame, 8000).invert()

        assert restored.shape == frame.shape
        np.testing.assert_allclose(restored, frame, atol=1e-9)

    def test_sizes(self):
        spectrum = forward(np.zeros(1024), 8192)
        assert spectrum.n == len(spectrum) == 1024
        assert spectrum.magnitudes().shape == (1024,)
        assert spectrum.positive_magnitudes().shape == (512,)
        assert spectrum.bin_spacing == pytest.approx(8.0)
        assert spectrum.frequencies()[1] == pytest.approx(8.0)

    def test_peak_lands_on_tone_bin(self, sample_audio_factory):
        # 1000 Hz at 8192 Hz with N=1024 sits exactly on bin 125
        frame = sample_audio_factory('sine', sample_rate=8192, duration=1024 / 8192, frequency=1000.0)
        spectrum = forward(frame, 8192)

        index, value = find_peak(spectrum.positive_magnitudes())
        assert index == 125
        assert value == pytest.approx(0.5 * 1024 / 2, rel=1e-6)

    def test_bins_are_read_only(self):
        spectrum = forward([1.0, 2.0, 3.0, 4.0], 8000)
        with pytest.raises(ValueError):
            spectrum.bins[0] = 0.0

    def test_get_out_of_range(self):
        spectrum = forward([1.0, 0.0, 0.0, 0.0], 8000)
        assert spectrum.get(0) == pytest.approx(1.0 + 0.0j)
        assert spectrum.get(4) is None
        assert spectrum.get(-1) is None

    def test_empty_frame(self):
        spectrum = forward([], 8000)
        assert spectrum.n == 0
        assert spectrum.invert().shape == (0,)
        assert spectrum.positive_magnitudes().shape == (0,)

    def test_audio_buffer_input_uses_its_rate(self):
        spectrum = forward(AudioBuffer(np.ones(16), 16000), 8000)
        assert spectrum.sample_rate == 16000
        assert spectrum.to_audio().sample_rate == 16000

    def test_audio_buffer_without_explicit_rate(self):
        spectrum = forward(AudioBuffer(np.ones(16), 16000))
        assert spectrum.sample_rate == 16000
        assert spectrum.get(0) == pytest.approx(16.0)

    def test_array_requires_rate(self):
        with pytest.raises(ConfigurationError):
            forward(np.ones(16))

    def test_nan_rejected(self):
        with pytest.raises(SignalError):
            forward([0.0, np.nan], 8000)

    def test_from_waveform_matches_forward(self):
        frame = np.array([0.5, -0.25, 1.0, 0.0])
        np.testing.assert_array_equal(Spectrum.from_waveform(frame, 8000).bins, forward(frame, 8000).bins)


@pytest.mark.audio
@pytest.mark.unit
class TestSpectrogram:
    """Short-time spectra over overlapping frames"""

    def test_shape_and_times(self, sample_audio_factory):
        audio = AudioBuffer(sample_audio_factory('sine', sample_rate=8192, duration=1.0, frequency=1000.0), 8192)

        spec = spectrogram(audio, 1024, 512)

        assert spec.n_time_steps == len(spec) == (8192 - 1024) // 512 + 1
        assert spec.n_freq_bins == 512
        assert spec.magnitudes().shape == (spec.n_time_steps, 512)
        np.testing.assert_allclose(spec.times()[:3], [0.0, 512 / 8192, 1024 / 8192])
        assert spec.frequencies()[125] == pytest.approx(1000.0)

    def test_moving_peak_of_steady_tone(self, sample_audio_factory):
        audio = AudioBuffer(sample_audio_factory('sine', sample_rate=8192, duration=0.5, frequency=1000.0), 8192)
        peaks = detect_moving_peak(spectrogram(audio, 1024, 256))
        assert peaks and all(p == 125 for p in peaks)

    def test_moving_peak_follows_chirp(self, sample_audio_factory):
        samples = sample_audio_factory('chirp', sample_rate=8000, duration=2.0, f0=200.0, f1=1200.0)
        peaks = detect_moving_peak(spectrogram(AudioBuffer(samples, 8000), 1024, 1024))
        assert peaks[-1] > peaks[0]

    def test_moving_peak_of_plain_vectors(self):
        assert detect_moving_peak([[1.0, 3.0, 2.0], [5.0, 0.0, 0.0], []]) == [1, 0, 0]

    def test_buffer_shorter_than_window(self):
        spec = spectrogram(AudioBuffer(np.zeros(100), 8000), 1024, 256)
        assert len(spec) == 0
        assert spec.n_freq_bins == 0
        assert spec.magnitudes().shape == (0, 512)

    @pytest.mark.parametrize('window_size,step_size', [(0, 256), (1024, 0), (-1, 1)])
    def test_invalid_sizes(self, window_size, step_size):
        with pytest.raises(ConfigurationError):
            spectrogram(AudioBuffer(np.zeros(4096), 8000), window_size, step_size)

    def test_requires_audio_buffer(self):
        with pytest.raises(TypeError):
            spectrogram(np.zeros(4096), 1024, 256)

    def test_to_db_is_relative_to_peak(self, sine_440):
        spec = Spectrogram.from_waveform(AudioBuffer(sine_440, 44100), SpectrogramConfig(2048, 1024))
        db = spec.to_db()
        assert db.shape == spec.magnitudes().shape
        assert db.max() == pytest.approx(0.0)
        assert db.min() >= -80.0 - 1e-9

    def test_config_from_dict(self):
        config = SpectrogramConfig.from_config({'spectrogram': {'window_size': 2048}})
        assert config == SpectrogramConfig(window_size=2048, step_size=256)


@pytest.mark.unit
def test_find_peak_empty():
    assert find_peak([]) is None
