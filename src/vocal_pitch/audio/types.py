"""Core value types shared by the spectral, cleaning and pitch modules"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, Optional

import numpy as np


class SignalError(ValueError):
    """Raised when sample data cannot be processed (non-finite values, wrong shape)"""
    pass


class ConfigurationError(ValueError):
    """Raised for invalid processing parameters (window sizes, cutoffs, thresholds)"""
    pass


def as_signal(samples, name: str = "samples") -> np.ndarray:
    """Convert caller samples into a one-dimensional float64 array.

    NaN and infinite values are rejected rather than clamped, so that they never
    propagate silently into spectra or pitch estimates.

    Args:
        samples: Any sequence accepted by ``numpy.asarray``
        name: Argument name used in error messages

    Returns:
        One-dimensional float64 array (a copy only when conversion requires one)

    Raises:
        SignalError: If the data is not one-dimensional or contains NaN/Inf
    """
    signal = np.asarray(samples, dtype=np.float64)
    if signal.ndim == 0:
        signal = signal.reshape(1)
    if signal.ndim != 1:
        raise SignalError(f"{name} must be one-dimensional, got shape {signal.shape}")
    if signal.size and not np.all(np.isfinite(signal)):
        raise SignalError(f"{name} contains NaN or infinite values")
    return signal


def validate_sample_rate(sample_rate) -> int:
    """Return ``sample_rate`` as an int, rejecting non-positive or fractional rates"""
    if isinstance(sample_rate, bool) or not float(sample_rate).is_integer() or sample_rate <= 0:
        raise ConfigurationError(f"Invalid sample_rate: {sample_rate}")
    return int(sample_rate)


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """Mono audio samples tagged with their sample rate.

    The samples are stored as a read-only float64 array; the buffer never changes
    after construction and every operation that returns audio builds a new buffer
    carrying the same sample rate.

    Attributes:
        samples: One-dimensional, finite sample data (may be empty)
        sample_rate: Sample rate in Hz, always > 0
    """

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self):
        signal = np.array(as_signal(self.samples), copy=True)
        signal.setflags(write=False)
        object.__setattr__(self, 'samples', signal)
        object.__setattr__(self, 'sample_rate', validate_sample_rate(self.sample_rate))

    def __len__(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        """Duration in seconds"""
        return len(self) / self.sample_rate

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2.0

    def with_samples(self, samples) -> "AudioBuffer":
        """New buffer with ``samples`` and this buffer's sample rate"""
        return AudioBuffer(samples, self.sample_rate)

    def frames(self, window_size: int, step_size: int):
        """Overlapping frames of this buffer as read-only arrays (see ``sliding_windows``)"""
        from .framing import sliding_windows
        return sliding_windows(self.samples, window_size, step_size)

    def sliding_windows(self, window_size: int, step_size: int) -> Iterator["AudioBuffer"]:
        """Yield each frame as its own ``AudioBuffer`` with this buffer's sample rate"""
        for frame in self.frames(window_size, step_size):
            yield AudioBuffer(frame, self.sample_rate)


@dataclass(frozen=True)
class PitchEstimate:
    """A detected fundamental frequency.

    ``clarity`` is YIN's confidence score (1 - normalized difference at the chosen
    lag), not a probability. Absent estimates are represented by ``None``.
    """

    frequency: float
    clarity: float = field(default=1.0)

    def __post_init__(self):
        if not np.isfinite(self.frequency) or self.frequency <= 0:
            raise SignalError(f"Invalid pitch frequency: {self.frequency}")
        object.__setattr__(self, 'frequency', float(self.frequency))
        object.__setattr__(self, 'clarity', float(min(1.0, max(0.0, self.clarity))))


def frequency_or_zero(estimate: Optional[PitchEstimate]) -> float:
    """Flatten an optional estimate to a frequency, with 0.0 meaning no pitch"""
    return estimate.frequency if estimate is not None else 0.0


__all__ = [
    'SignalError',
    'ConfigurationError',
    'as_signal',
    'validate_sample_rate',
    'AudioBuffer',
    'PitchEstimate',
    'frequency_or_zero',
]
