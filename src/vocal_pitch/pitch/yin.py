"""YIN fundamental frequency estimation for single frames"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
from scipy import signal as sps

from ..audio.types import AudioBuffer, ConfigurationError, PitchEstimate, as_signal, validate_sample_rate
from ..utils.helpers import MathUtils, ValidationUtils

logger = logging.getLogger(__name__)

# Frequencies below this are treated as no pitch
MIN_FREQUENCY_HZ = 1.0


def difference_function(frame: np.ndarray) -> np.ndarray:
    """YIN difference d(tau) for tau in 0..W/2 over a W-sample frame.

    ``d(tau) = sum_j (x[j] - x[j + tau])^2`` for j in 0..W/2-1, expanded as
    ``E1 + E2(tau) - 2 r(tau)``. The energy terms come from a cumulative sum of
    squares and the cross term r from an FFT convolution, so the whole curve costs
    O(W log W).
    """
    half = frame.shape[0] // 2
    if half == 0:
        return np.zeros(1)
    squares = np.concatenate(([0.0], np.cumsum(frame * frame)))
    lags = np.arange(half + 1)
    energy_head = squares[half]
    energy_shifted = squares[lags + half] - squares[lags]
    correlation = sps.fftconvolve(frame, frame[:half][::-1], mode='valid')[: half + 1]
    diff = energy_head + energy_shifted - 2.0 * correlation
    # FFT round-off can push tiny values negative
    return np.maximum(diff, 0.0)


def cumulative_mean_normalized_difference(diff: np.ndarray) -> np.ndarray:
    """d'(0) = 1, d'(tau) = d(tau) * tau / sum(d(1..tau)); 1.0 where that sum is zero"""
    diff = np.asarray(diff, dtype=np.float64)
    cmnd = np.ones_like(diff)
    if diff.shape[0] < 2:
        return cmnd
    running = np.cumsum(diff[1:])
    lags = np.arange(1, diff.shape[0])
    nonzero = running > 0
    cmnd[1:][nonzero] = diff[1:][nonzero] * lags[nonzero] / running[nonzero]
    return cmnd


def absolute_threshold(cmnd: np.ndarray, threshold: float) -> Optional[int]:
    """First lag whose d' drops below ``threshold``, followed down to the bottom of its dip"""
    below = np.flatnonzero(cmnd[1:] < threshold)
    if below.size == 0:
        return None
    tau = int(below[0]) + 1
    while tau + 1 < cmnd.shape[0] and cmnd[tau + 1] < cmnd[tau]:
        tau += 1
    return tau


def parabolic_interpolation(values: np.ndarray, index: int) -> float:
    """Refine ``index`` to the vertex of the parabola through its neighbours.

    The shift is only applied when both neighbours exist and the vertex lies
    within one sample of ``index``.
    """
    if index <= 0 or index + 1 >= values.shape[0]:
        return float(index)
    a, b, c = values[index - 1], values[index], values[index + 1]
    denominator = a - 2.0 * b + c
    if denominator == 0:
        return float(index)
    shift = 0.5 * (a - c) / denominator
    if abs(shift) > 1.0:
        return float(index)
    return index + shift


@dataclass(frozen=True)
class YinConfig:
    """YIN parameters.

    Attributes:
        threshold: Absolute threshold on d' (lower is stricter), in (0, 1]
        window_size: Samples analysed per frame; None uses the whole frame
        min_power: Frames whose sum of squares is at or below this are absent
    """

    threshold: float = 0.1
    window_size: Optional[int] = None
    min_power: float = 0.0

    def __post_init__(self):
        ValidationUtils.require_range(self.threshold, 'threshold', min_val=0.0, max_val=1.0)
        if self.threshold <= 0:
            raise ConfigurationError(f"threshold must be greater than 0, got {self.threshold}")
        if self.window_size is not None:
            window_size = ValidationUtils.require_positive_int(self.window_size, 'window_size')
            if window_size < 2:
                raise ConfigurationError(f"window_size must be at least 2, got {window_size}")
        ValidationUtils.require_range(self.min_power, 'min_power', min_val=0.0)

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "YinConfig":
        section = (config or {}).get('yin', config or {})
        return cls(
            threshold=section.get('threshold', cls.threshold),
            window_size=section.get('window_size', cls.window_size),
            min_power=section.get('min_power', cls.min_power),
        )


class YinDetector:
    """Single-frame YIN pitch detector.

    Holds configuration only, so one instance can be shared between threads and
    every call is independent of the previous ones.

    Example:
        >>> detector = YinDetector(YinConfig(threshold=0.1))
        >>> estimate = detector.detect(frame, 44100)
        >>> if estimate is not None:
        ...     print(f"{estimate.frequency:.1f} Hz (clarity {estimate.clarity:.2f})")
    """

    def __init__(self, config: Optional[YinConfig] = None):
        self.config = config or YinConfig()

    def detect(self, frame: Union[np.ndarray, AudioBuffer], sample_rate: Optional[int] = None) -> Optional[PitchEstimate]:
        """Estimate the fundamental frequency of one frame.

        Args:
            frame: Samples as an array-like or ``AudioBuffer``
            sample_rate: Sample rate in Hz; taken from the buffer when ``frame``
                is an ``AudioBuffer``

        Returns:
            PitchEstimate, or None when the frame has no detectable pitch

        Raises:
            ConfigurationError: If the configured window is longer than the frame
            SignalError: If the frame contains NaN or infinite values
        """
        if isinstance(frame, AudioBuffer):
            samples, sample_rate = frame.samples, frame.sample_rate
        else:
            samples = as_signal(frame, name="frame")
        if sample_rate is None:
            raise ConfigurationError("sample_rate is required when frame is not an AudioBuffer")
        sample_rate = validate_sample_rate(sample_rate)

        window_size = self.config.window_size
        if window_size is None:
            if samples.shape[0] < 2:
                return None
            window_size = samples.shape[0]
        elif window_size > samples.shape[0]:
            raise ConfigurationError(
                f"window_size ({window_size}) is larger than the frame ({samples.shape[0]} samples)"
            )

        window = samples[:window_size]
        if MathUtils.power(window) <= self.config.min_power or not np.any(window):
            return None

        cmnd = cumulative_mean_normalized_difference(difference_function(window))
        tau = absolute_threshold(cmnd, self.config.threshold)
        if tau is None:
            return None

        refined_tau = parabolic_interpolation(cmnd, tau)
        if refined_tau <= 0:
            return None
        frequency = sample_rate / refined_tau
        if frequency < MIN_FREQUENCY_HZ or frequency > sample_rate / 2.0:
            logger.debug(f"Discarding out-of-range pitch {frequency:.2f}Hz")
            return None

        return PitchEstimate(frequency=frequency, clarity=1.0 - float(cmnd[tau]))

    def __repr__(self) -> str:
        return f"YinDetector({self.config})"


def detect(frame, sample_rate: int, threshold: float = 0.1, window_size: Optional[int] = None,
           min_power: float = 0.0) -> Optional[PitchEstimate]:
    """Functional form of ``YinDetector(YinConfig(...)).detect(frame, sample_rate)``"""
    config = YinConfig(threshold=threshold, window_size=window_size, min_power=min_power)
    return YinDetector(config).detect(frame, sample_rate)


__all__ = [
    'MIN_FREQUENCY_HZ',
    'difference_function',
    'cumulative_mean_normalized_difference',
    'absolute_threshold',
    'parabolic_interpolation',
    'YinConfig',
    'YinDetector',
    'detect',
]
