"""Noise profile estimation and spectral gating.

A noise profile is the spectrum of a quiet stretch of a recording, captured once
("record once, reuse"). ``SpectralGate`` compares every frame it processes
against that profile and attenuates the bins that do not rise far enough above
it:

1. transform the frame to the frequency domain
2. smooth the bin magnitudes over ``smoothing_window`` adjacent bins
3. attenuate bins below ``noise * 10^(threshold_db / 20)``, keeping their phase
4. transform back to the time domain

The gate never adapts on its own; its state only changes through
``update_noise_profile`` and ``update_config``.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

import numpy as np

from .types import AudioBuffer, ConfigurationError, SignalError, as_signal
from .spectral import Spectrum, forward
from ..utils.helpers import MathUtils, ValidationUtils
from ..utils.logging_config import log_execution_time

logger = logging.getLogger(__name__)

MAX_CACHED_FRAME_LENGTHS = 8


@dataclass(frozen=True)
class NoiseProfileConfig:
    """Where and how to look for a quiet region.

    Attributes:
        search_start_s: Start of the candidate region in seconds
        search_end_s: End of the candidate region in seconds (clipped to the buffer)
        zscore_threshold: A candidate is accepted when its RMS z-score is below this
        segment_duration_s: Length of the candidate segments; None uses the whole
            region as a single candidate
        min_relative_spread: Chunk RMS spread (std / mean) below which the buffer is
            considered uniformly loud and no profile is returned
        min_relative_drop: Fraction of the mean chunk RMS by which the candidate must
            be quieter; a candidate closer to the mean is ordinary level variation
    """

    search_start_s: float = 0.2
    search_end_s: float = 1.5
    zscore_threshold: float = -1.0
    segment_duration_s: Optional[float] = None
    min_relative_spread: float = 0.01
    min_relative_drop: float = 0.1

    def __post_init__(self):
        start = ValidationUtils.require_range(self.search_start_s, 'search_start_s', min_val=0.0)
        end = ValidationUtils.require_range(self.search_end_s, 'search_end_s', min_val=0.0)
        if start >= end:
            raise ConfigurationError(f"search_start_s ({start}) must be before search_end_s ({end})")
        ValidationUtils.require_finite(self.zscore_threshold, 'zscore_threshold')
        if self.segment_duration_s is not None:
            ValidationUtils.require_range(self.segment_duration_s, 'segment_duration_s',
                                          min_val=0.0, inclusive=False)
        ValidationUtils.require_range(self.min_relative_spread, 'min_relative_spread', min_val=0.0)
        ValidationUtils.require_range(self.min_relative_drop, 'min_relative_drop', min_val=0.0, max_val=1.0)

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "NoiseProfileConfig":
        section = (config or {}).get('noise_profile', config or {})
        return cls(
            search_start_s=section.get('search_start_s', cls.search_start_s),
            search_end_s=section.get('search_end_s', cls.search_end_s),
            zscore_threshold=section.get('zscore_threshold', cls.zscore_threshold),
            segment_duration_s=section.get('segment_duration_s', cls.segment_duration_s),
            min_relative_spread=section.get('min_relative_spread', cls.min_relative_spread),
            min_relative_drop=section.get('min_relative_drop', cls.min_relative_drop),
        )


def _chunk_rms(samples: np.ndarray, chunk_size: int) -> np.ndarray:
    return np.array([
        MathUtils.rms(samples[i:i + chunk_size])
        for i in range(0, samples.shape[0], chunk_size)
    ])


def find_noise_window(audio: AudioBuffer, config: Optional[NoiseProfileConfig] = None) -> Optional[np.ndarray]:
    """Locate a quiet stretch of ``audio`` suitable as a noise reference.

    The whole buffer is cut into chunks as long as one candidate segment and the
    RMS of each chunk gives a mean and standard deviation. The quietest candidate
    segment inside the search region is accepted when its RMS z-score against
    those chunks is below ``config.zscore_threshold`` and its RMS lies at least
    ``config.min_relative_drop`` (as a fraction) below their mean.

    This is a best-effort heuristic: None means no quiet region was found and the
    caller should fall back to bandpass-only cleaning.
    """
    config = config or NoiseProfileConfig()
    samples = audio.samples
    n_samples = samples.shape[0]
    if n_samples == 0:
        return None

    start = int(config.search_start_s * audio.sample_rate)
    end = min(int(config.search_end_s * audio.sample_rate), n_samples)
    if start >= end:
        logger.debug(f"Noise search region [{start}, {end}) is empty for {n_samples} samples")
        return None

    region_length = end - start
    if config.segment_duration_s is None:
        segment_length = region_length
    else:
        segment_length = min(int(config.segment_duration_s * audio.sample_rate), region_length)
    if segment_length <= 0:
        return None

    chunk_rms = _chunk_rms(samples, segment_length)
    rms_mean, rms_std = MathUtils.mean_std_deviation(chunk_rms)
    if rms_mean <= 0 or rms_std <= config.min_relative_spread * rms_mean:
        logger.info("No suitable noise window found: signal level is uniform across the buffer")
        return None

    candidates = range(start, end - segment_length + 1, segment_length)
    quietest = min(candidates, key=lambda s: MathUtils.rms(samples[s:s + segment_length]))
    window = samples[quietest:quietest + segment_length]
    window_rms = MathUtils.rms(window)
    zscore = (window_rms - rms_mean) / rms_std

    if rms_mean - window_rms <= config.min_relative_drop * rms_mean:
        logger.info(
            f"No suitable noise window found: quietest candidate is only "
            f"{1 - window_rms / rms_mean:.1%} below the mean level"
        )
        return None

    if zscore < config.zscore_threshold:
        logger.debug(
            f"Noise window found at {quietest / audio.sample_rate:.3f}s "
            f"({segment_length} samples, z-score {zscore:.2f})"
        )
        return window

    logger.info(
        f"No suitable noise window found based on RMS z-score "
        f"({zscore:.2f} >= {config.zscore_threshold})"
    )
    return None


@log_execution_time("Noise profile estimation")
def estimate_noise_profile(audio: AudioBuffer, config: Optional[NoiseProfileConfig] = None) -> Optional[Spectrum]:
    """Spectrum of the quiet region found by ``find_noise_window``, or None"""
    window = find_noise_window(audio, config)
    if window is None:
        return None
    return forward(window, audio.sample_rate)


@dataclass(frozen=True)
class SpectralGateConfig:
    """Gate parameters.

    Attributes:
        threshold_db: Bins whose smoothed magnitude stays below the noise level
            raised by this many dB are attenuated
        smoothing_window: Number of adjacent bins averaged before thresholding
            (1 disables smoothing)
    """

    threshold_db: float = 6.0
    smoothing_window: int = 1

    def __post_init__(self):
        ValidationUtils.require_finite(self.threshold_db, 'threshold_db')
        ValidationUtils.require_positive_int(self.smoothing_window, 'smoothing_window')

    @property
    def threshold_multiplier(self) -> float:
        return MathUtils.db_to_linear(self.threshold_db)

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "SpectralGateConfig":
        section = (config or {}).get('spectral_gate', config or {})
        return cls(
            threshold_db=section.get('threshold_db', cls.threshold_db),
            smoothing_window=section.get('smoothing_window', cls.smoothing_window),
        )


def _mirror(half: np.ndarray, n: int) -> np.ndarray:
    """Rebuild an N-bin Hermitian-symmetric magnitude vector from bins 0..N//2"""
    return np.concatenate((half, half[1:n - n // 2][::-1]))


def _smooth_half(magnitudes: np.ndarray, window: int) -> np.ndarray:
    """Smoothed magnitudes of bins 0..N//2 of a full N-bin magnitude vector"""
    return MathUtils.moving_average(magnitudes[: magnitudes.shape[0] // 2 + 1], window)


class _GateState:
    """Immutable snapshot of profile, config and derived noise levels"""

    __slots__ = ('noise_profile', 'config', 'noise_half', '_by_length')

    def __init__(self, noise_profile: Spectrum, config: SpectralGateConfig):
        self.noise_profile = noise_profile
        self.config = config
        self.noise_half = _smooth_half(noise_profile.magnitudes(), config.smoothing_window)
        # frame length -> resampled levels, oldest first
        self._by_length: Dict[int, np.ndarray] = {}

    def noise_for_length(self, n: int) -> np.ndarray:
        """Noise magnitudes (bins 0..n//2) matched to an n-sample frame.

        Unnormalised FFT magnitudes of stationary noise grow with sqrt(N), so a
        profile taken over a different length N is resampled on the normalised
        frequency axis and rescaled by sqrt(n / N). A longer profile is averaged
        over the bins that fall into each frame bin; a shorter one is linearly
        interpolated. At most ``MAX_CACHED_FRAME_LENGTHS`` resampled lengths are kept.
        """
        profile_n = self.noise_profile.n
        if n == profile_n:
            return self.noise_half
        levels = self._by_length.get(n)
        if levels is None:
            levels = _resample_levels(self.noise_half, profile_n, n) * np.sqrt(n / profile_n)
            if len(self._by_length) >= MAX_CACHED_FRAME_LENGTHS:
                self._by_length.pop(next(iter(self._by_length), None), None)
            self._by_length[n] = levels
        return levels


def _resample_levels(half: np.ndarray, profile_n: int, n: int) -> np.ndarray:
    """Map bins 0..profile_n//2 onto bins 0..n//2 of an n-point transform"""
    source_freqs = np.arange(half.shape[0]) / profile_n
    target_freqs = np.arange(n // 2 + 1) / n
    interpolated = np.interp(target_freqs, source_freqs, half)
    if profile_n < n:
        return interpolated

    # each frame bin k covers normalised frequencies [(k - 0.5) / n, (k + 0.5) / n)
    edges = (np.arange(n // 2 + 2) - 0.5) / n
    bounds = np.searchsorted(source_freqs, edges, side='left')
    counts = np.diff(bounds)
    sums = np.concatenate(([0.0], np.cumsum(half)))
    averaged = (sums[bounds[1:]] - sums[bounds[:-1]]) / np.maximum(counts, 1)
    return np.where(counts > 0, averaged, interpolated)


class SpectralGate:
    """Frequency-domain noise gate driven by a fixed noise profile.

    ``process`` is a pure function of the gate state and the frame: it never
    changes the state, and repeated calls with the same frame return the same
    output. The state (profile and config together) is replaced as a single
    object by ``update_noise_profile`` / ``update_config``, so a ``process`` call
    running alongside an update uses either the old or the new state, never a mix.
    Callers that share one gate between threads still order their own updates.

    Example:
        >>> profile = estimate_noise_profile(recording)
        >>> gate = SpectralGate(profile, SpectralGateConfig(threshold_db=6.0))
        >>> cleaned = gate.process(frame)
    """

    def __init__(self, noise_profile: Spectrum, config: Optional[SpectralGateConfig] = None):
        self._state = self._build_state(noise_profile, config or SpectralGateConfig())
        logger.info(
            f"SpectralGate initialized: profile_bins={noise_profile.n}, "
            f"threshold_db={self._state.config.threshold_db}, "
            f"smoothing_window={self._state.config.smoothing_window}"
        )

    @staticmethod
    def _build_state(noise_profile: Spectrum, config: SpectralGateConfig) -> _GateState:
        if not isinstance(noise_profile, Spectrum):
            raise ConfigurationError(
                f"noise_profile must be a Spectrum, got {type(noise_profile).__name__}"
            )
        if noise_profile.n == 0:
            raise ConfigurationError("noise_profile must contain at least one bin")
        if not isinstance(config, SpectralGateConfig):
            raise ConfigurationError(f"config must be a SpectralGateConfig, got {type(config).__name__}")
        return _GateState(noise_profile, config)

    @property
    def noise_profile(self) -> Spectrum:
        return self._state.noise_profile

    @property
    def config(self) -> SpectralGateConfig:
        return self._state.config

    def update_noise_profile(self, noise_profile: Spectrum) -> None:
        """Replace the noise profile, keeping the current config"""
        self._state = self._build_state(noise_profile, self._state.config)
        logger.info(f"SpectralGate noise profile updated ({noise_profile.n} bins)")

    def update_config(self, config: SpectralGateConfig) -> None:
        """Replace the config, keeping the current noise profile"""
        self._state = self._build_state(self._state.noise_profile, config)
        logger.info(
            f"SpectralGate config updated: threshold_db={config.threshold_db}, "
            f"smoothing_window={config.smoothing_window}"
        )

    def gains(self, frame) -> np.ndarray:
        """Per-bin gain the gate would apply to ``frame`` (1.0 = passed through)"""
        state = self._state
        samples = self._frame_samples(frame, state)
        if samples.size == 0:
            return np.zeros(0)
        return self._compute_gains(forward(samples, state.noise_profile.sample_rate), state)

    def process(self, frame: Union[np.ndarray, AudioBuffer]) -> Union[np.ndarray, AudioBuffer]:
        """Gate one frame.

        Args:
            frame: Samples as an array-like or an ``AudioBuffer`` at the profile's
                sample rate

        Returns:
            Gated samples of the same length, as the same kind of object as ``frame``

        Raises:
            SignalError: If ``frame`` is an ``AudioBuffer`` at a different sample rate
                or contains NaN/Inf
        """
        state = self._state
        samples = self._frame_samples(frame, state)
        if samples.size == 0:
            output = np.zeros(0)
        else:
            spectrum = forward(samples, state.noise_profile.sample_rate)
            gains = self._compute_gains(spectrum, state)
            gated = Spectrum(spectrum.bins * gains, spectrum.sample_rate)
            output = gated.invert()[: samples.shape[0]]

        if isinstance(frame, AudioBuffer):
            return frame.with_samples(output)
        return output

    @staticmethod
    def _frame_samples(frame, state: _GateState) -> np.ndarray:
        if isinstance(frame, AudioBuffer):
            if frame.sample_rate != state.noise_profile.sample_rate:
                raise SignalError(
                    f"Frame sample rate {frame.sample_rate}Hz does not match the noise "
                    f"profile's {state.noise_profile.sample_rate}Hz"
                )
            return frame.samples
        return as_signal(frame, name="frame")

    @staticmethod
    def _compute_gains(spectrum: Spectrum, state: _GateState) -> np.ndarray:
        n = spectrum.n
        smoothed = _smooth_half(spectrum.magnitudes(), state.config.smoothing_window)
        threshold = state.noise_for_length(n) * state.config.threshold_multiplier

        gains = np.ones_like(smoothed)
        below = smoothed < threshold
        gains[below] = smoothed[below] / threshold[below]
        return _mirror(gains, n)


__all__ = [
    'NoiseProfileConfig',
    'find_noise_window',
    'estimate_noise_profile',
    'SpectralGateConfig',
    'SpectralGate',
]
