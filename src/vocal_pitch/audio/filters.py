"""Time-domain bandpass filtering for vocal-range isolation"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import signal as sps

from .types import AudioBuffer, ConfigurationError, as_signal, validate_sample_rate
from ..utils.helpers import ValidationUtils

logger = logging.getLogger(__name__)

# Vocal range presets (Hz)
DEFAULT_VOCAL_LOW_HZ = 80.0
DEFAULT_VOCAL_HIGH_HZ = 1200.0
NARROW_VOCAL_HIGH_HZ = 800.0

DEFAULT_FILTER_ORDER = 4


@dataclass(frozen=True)
class BandpassConfig:
    """Cutoffs and order for the vocal bandpass filter"""

    low_hz: float = DEFAULT_VOCAL_LOW_HZ
    high_hz: float = DEFAULT_VOCAL_HIGH_HZ
    order: int = DEFAULT_FILTER_ORDER

    def __post_init__(self):
        low = ValidationUtils.require_range(self.low_hz, 'low_hz', min_val=0.0)
        high = ValidationUtils.require_range(self.high_hz, 'high_hz', min_val=0.0)
        ValidationUtils.require_positive_int(self.order, 'order')
        if low >= high:
            raise ConfigurationError(f"low_hz ({low}) must be below high_hz ({high})")

    @classmethod
    def narrow(cls) -> "BandpassConfig":
        """The 80-800 Hz preset"""
        return cls(low_hz=DEFAULT_VOCAL_LOW_HZ, high_hz=NARROW_VOCAL_HIGH_HZ)

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "BandpassConfig":
        section = (config or {}).get('bandpass', config or {})
        return cls(
            low_hz=section.get('low_hz', cls.low_hz),
            high_hz=section.get('high_hz', cls.high_hz),
            order=section.get('order', cls.order),
        )


def design_bandpass(sample_rate: int, low_hz: float, high_hz: float,
                    order: int = DEFAULT_FILTER_ORDER) -> Optional[np.ndarray]:
    """Butterworth second-order sections for the band at ``sample_rate``.

    A cutoff at 0 Hz turns the design into a lowpass and a cutoff at Nyquist into a
    highpass. When the band spans [0, Nyquist] no filtering is needed and None is
    returned.

    Raises:
        ConfigurationError: For cutoffs outside [0, Nyquist], low >= high, or a
            non-positive order or sample rate
    """
    sample_rate = validate_sample_rate(sample_rate)
    nyquist = sample_rate / 2.0
    ValidationUtils.require_positive_int(order, 'order')
    low_hz = ValidationUtils.require_range(low_hz, 'low_hz', min_val=0.0, max_val=nyquist)
    high_hz = ValidationUtils.require_range(high_hz, 'high_hz', min_val=0.0, max_val=nyquist)
    if low_hz >= high_hz:
        raise ConfigurationError(f"low_hz ({low_hz}) must be below high_hz ({high_hz})")

    if low_hz <= 0 and high_hz >= nyquist:
        return None
    if low_hz <= 0:
        return sps.butter(order, high_hz, btype='lowpass', fs=sample_rate, output='sos')
    if high_hz >= nyquist:
        return sps.butter(order, low_hz, btype='highpass', fs=sample_rate, output='sos')
    return sps.butter(order, [low_hz, high_hz], btype='bandpass', fs=sample_rate, output='sos')


def bandpass(samples, sample_rate: int, low_hz: float = DEFAULT_VOCAL_LOW_HZ,
             high_hz: float = DEFAULT_VOCAL_HIGH_HZ, order: int = DEFAULT_FILTER_ORDER) -> np.ndarray:
    """Attenuate energy outside [low_hz, high_hz].

    The filter is causal (``sosfilt`` starting from rest) and its coefficients are
    computed for the given sample rate. No gain compensation is applied.

    Args:
        samples: Input samples
        sample_rate: Sample rate of ``samples`` in Hz
        low_hz: Low cutoff frequency in Hz
        high_hz: High cutoff frequency in Hz
        order: Butterworth order per band edge

    Returns:
        Filtered samples, same length as the input
    """
    samples = as_signal(samples)
    sos = design_bandpass(sample_rate, low_hz, high_hz, order)
    if samples.size == 0:
        return np.zeros(0)
    if sos is None:
        return samples.copy()
    return sps.sosfilt(sos, samples)


def bandpass_vocal_range(audio: AudioBuffer, config: Optional[BandpassConfig] = None) -> AudioBuffer:
    """Bandpass an ``AudioBuffer`` with ``config`` (80-1200 Hz by default)"""
    config = config or BandpassConfig()
    filtered = bandpass(audio.samples, audio.sample_rate, config.low_hz, config.high_hz, config.order)
    return audio.with_samples(filtered)


__all__ = [
    'DEFAULT_VOCAL_LOW_HZ',
    'DEFAULT_VOCAL_HIGH_HZ',
    'NARROW_VOCAL_HIGH_HZ',
    'BandpassConfig',
    'design_bandpass',
    'bandpass',
    'bandpass_vocal_range',
]
