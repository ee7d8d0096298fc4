"""Spectrum and spectrogram computation.

The transform is always sized to the frame it is given (no implicit zero padding)
and no analysis window is applied, so a spectrogram column is the plain FFT of
the raw frame. ``scipy.fft`` keeps a cache of transform plans, which makes
repeated transforms of the same length cheap after the first one.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import scipy.fft
import librosa

from .types import AudioBuffer, ConfigurationError, as_signal, validate_sample_rate
from .framing import sliding_windows
from ..utils.helpers import ValidationUtils

logger = logging.getLogger(__name__)


class Spectrum:
    """Complex spectrum of an N-sample real frame.

    Holds all N bins (bin ``k`` sits at ``k * sample_rate / N`` Hz) so that the
    frame can be rebuilt exactly with ``invert``. The bin array is read-only;
    callers that want to modify bins work on a copy and build a new ``Spectrum``.
    """

    def __init__(self, bins, sample_rate: int):
        bins = np.array(bins, dtype=np.complex128, copy=True).reshape(-1)
        bins.setflags(write=False)
        self._bins = bins
        self.sample_rate = validate_sample_rate(sample_rate)

    @classmethod
    def from_waveform(cls, frame, sample_rate: int) -> "Spectrum":
        return forward(frame, sample_rate)

    @property
    def bins(self) -> np.ndarray:
        return self._bins

    @property
    def n(self) -> int:
        """Transform size (equal to the source frame length)"""
        return int(self._bins.shape[0])

    def __len__(self) -> int:
        return self.n

    @property
    def bin_spacing(self) -> float:
        return self.sample_rate / self.n if self.n else 0.0

    def magnitudes(self) -> np.ndarray:
        """Magnitude of every bin, ordered from DC upward (N values)"""
        return np.abs(self._bins)

    def positive_magnitudes(self) -> np.ndarray:
        """Magnitudes of the first N/2 bins (the non-redundant half for real input)"""
        return self.magnitudes()[: self.n // 2]

    def frequencies(self) -> np.ndarray:
        """Frequency in Hz of every bin"""
        return np.arange(self.n) * self.bin_spacing

    def get(self, index: int) -> Optional[complex]:
        """Bin value at ``index``, or None when out of range"""
        if 0 <= index < self.n:
            return complex(self._bins[index])
        return None

    def invert(self) -> np.ndarray:
        """Inverse transform back to N real samples"""
        if self.n == 0:
            return np.zeros(0)
        return np.real(scipy.fft.ifft(self._bins))

    def to_audio(self) -> AudioBuffer:
        return AudioBuffer(self.invert(), self.sample_rate)

    def __repr__(self) -> str:
        return f"Spectrum(n={self.n}, sample_rate={self.sample_rate})"


def forward(frame, sample_rate: Optional[int] = None) -> Spectrum:
    """Forward transform of a real frame into ``len(frame)`` complex bins.

    Args:
        frame: Real samples (array-like or ``AudioBuffer``)
        sample_rate: Sample rate in Hz; required for plain arrays and ignored in
            favour of the buffer's own rate when ``frame`` is an ``AudioBuffer``

    Returns:
        Spectrum with one bin per input sample

    Raises:
        ConfigurationError: If ``frame`` is not an ``AudioBuffer`` and no
            ``sample_rate`` is given
    """
    if isinstance(frame, AudioBuffer):
        samples, sample_rate = frame.samples, frame.sample_rate
    else:
        if sample_rate is None:
            raise ConfigurationError("sample_rate is required when frame is not an AudioBuffer")
        samples = as_signal(frame, name="frame")
    if samples.size == 0:
        return Spectrum(np.zeros(0, dtype=np.complex128), sample_rate)
    return Spectrum(scipy.fft.fft(samples), sample_rate)


@dataclass(frozen=True)
class SpectrogramConfig:
    """Framing parameters for a short-time spectrogram"""

    window_size: int = 1024
    step_size: int = 256

    def __post_init__(self):
        ValidationUtils.require_positive_int(self.window_size, 'window_size')
        ValidationUtils.require_positive_int(self.step_size, 'step_size')

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "SpectrogramConfig":
        """Build from the ``spectrogram`` section of a loaded configuration"""
        section = (config or {}).get('spectrogram', config or {})
        return cls(
            window_size=section.get('window_size', cls.window_size),
            step_size=section.get('step_size', cls.step_size),
        )


class Spectrogram:
    """Sequence of spectra taken from overlapping frames of one buffer.

    Attributes:
        spectra: One ``Spectrum`` per frame, in time order
        window_size: Samples per frame
        step_size: Samples between frame starts
        sample_rate: Sample rate of the source buffer
    """

    def __init__(self, spectra: Sequence[Spectrum], window_size: int, step_size: int, sample_rate: int):
        self.spectra: Tuple[Spectrum, ...] = tuple(spectra)
        self.window_size = window_size
        self.step_size = step_size
        self.sample_rate = validate_sample_rate(sample_rate)

    @classmethod
    def from_waveform(cls, audio: AudioBuffer, config: Optional[SpectrogramConfig] = None) -> "Spectrogram":
        config = config or SpectrogramConfig()
        return spectrogram(audio, config.window_size, config.step_size)

    def __len__(self) -> int:
        return len(self.spectra)

    def __iter__(self):
        return iter(self.spectra)

    def __getitem__(self, index: int) -> Spectrum:
        return self.spectra[index]

    @property
    def n_time_steps(self) -> int:
        return len(self.spectra)

    @property
    def n_freq_bins(self) -> int:
        """Positive-frequency bins per time step (0 for an empty spectrogram)"""
        if not self.spectra:
            return 0
        return self.window_size // 2

    def times(self) -> np.ndarray:
        """Start time in seconds of each frame (i * step_size / sample_rate)"""
        return np.arange(self.n_time_steps) * self.step_size / self.sample_rate

    def frequencies(self) -> np.ndarray:
        """Frequency in Hz of each positive-frequency bin"""
        return np.arange(self.window_size // 2) * self.sample_rate / self.window_size

    def magnitudes(self) -> np.ndarray:
        """Positive-frequency magnitudes as a [time_steps, freq_bins] array"""
        if not self.spectra:
            return np.zeros((0, self.window_size // 2))
        return np.stack([spectrum.positive_magnitudes() for spectrum in self.spectra])

    def to_db(self, ref=np.max, top_db: Optional[float] = 80.0) -> np.ndarray:
        """Magnitudes in decibels, for display"""
        magnitudes = self.magnitudes()
        if magnitudes.size == 0:
            return magnitudes
        return librosa.amplitude_to_db(magnitudes, ref=ref, top_db=top_db)


def spectrogram(audio: AudioBuffer, window_size: int, step_size: int) -> Spectrogram:
    """Short-time spectra of ``audio`` over frames of ``window_size`` every ``step_size``.

    No window function is applied to the frames.

    Raises:
        ConfigurationError: If window_size or step_size is not positive
    """
    if not isinstance(audio, AudioBuffer):
        raise TypeError(f"spectrogram expects an AudioBuffer, got {type(audio).__name__}")
    config = SpectrogramConfig(window_size=window_size, step_size=step_size)
    spectra = [
        forward(frame, audio.sample_rate)
        for frame in sliding_windows(audio.samples, config.window_size, config.step_size)
    ]
    logger.debug(
        f"Computed spectrogram: {len(spectra)} frames of {window_size} samples "
        f"(step {step_size}) at {audio.sample_rate}Hz"
    )
    return Spectrogram(spectra, config.window_size, config.step_size, audio.sample_rate)


def find_peak(values) -> Optional[Tuple[int, float]]:
    """Index and value of the largest element, or None for empty input"""
    values = as_signal(values, name="values")
    if values.size == 0:
        return None
    index = int(np.argmax(values))
    return index, float(values[index])


def detect_moving_peak(spectra: Union[Spectrogram, Sequence]) -> List[int]:
    """Peak bin index of every time step (0 when a step is empty).

    Accepts a ``Spectrogram`` (positive-frequency magnitudes are searched) or any
    sequence of magnitude vectors.
    """
    if isinstance(spectra, Spectrogram):
        rows = [spectrum.positive_magnitudes() for spectrum in spectra]
    else:
        rows = spectra
    peaks = []
    for row in rows:
        peak = find_peak(row)
        peaks.append(peak[0] if peak is not None else 0)
    return peaks


__all__ = [
    'Spectrum',
    'Spectrogram',
    'SpectrogramConfig',
    'forward',
    'spectrogram',
    'find_peak',
    'detect_moving_peak',
]
