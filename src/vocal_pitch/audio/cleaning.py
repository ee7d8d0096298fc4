"""Signal cleaning ahead of pitch detection, and before/after comparisons"""

from __future__ import annotations
import logging
from typing import Callable, Optional, Tuple

import numpy as np

from .types import AudioBuffer, SignalError
from .spectral import Spectrum, forward
from .filters import BandpassConfig, bandpass
from .noise import SpectralGate, SpectralGateConfig
from ..utils.helpers import MathUtils

logger = logging.getLogger(__name__)


def clean_signal_for_pitch(
    samples,
    sample_rate: int,
    noise_profile: Optional[Spectrum] = None,
    gate_config: Optional[SpectralGateConfig] = None,
    bandpass_config: Optional[BandpassConfig] = None,
) -> np.ndarray:
    """Clean a whole signal for pitch detection.

    With a noise profile the signal is spectrally gated as a single frame.
    Without one it is bandpassed to the vocal range (80-1200 Hz unless
    ``bandpass_config`` says otherwise).

    Args:
        samples: Input samples
        sample_rate: Sample rate in Hz
        noise_profile: Optional noise spectrum, typically from ``estimate_noise_profile``
        gate_config: Gate parameters used with ``noise_profile``
        bandpass_config: Filter parameters used when there is no profile

    Returns:
        Cleaned samples, same length as the input
    """
    audio = AudioBuffer(samples, sample_rate)
    if noise_profile is not None:
        if noise_profile.sample_rate != audio.sample_rate:
            raise SignalError(
                f"Noise profile sample rate {noise_profile.sample_rate}Hz does not match "
                f"signal sample rate {audio.sample_rate}Hz"
            )
        logger.debug(f"Cleaning {len(audio)} samples with spectral gating")
        gate = SpectralGate(noise_profile, gate_config)
        return gate.process(audio).samples.copy()

    config = bandpass_config or BandpassConfig()
    logger.debug(
        f"Cleaning {len(audio)} samples with bandpass {config.low_hz}-{config.high_hz}Hz "
        "(no noise profile)"
    )
    return bandpass(audio.samples, audio.sample_rate, config.low_hz, config.high_hz, config.order)


def clean_audio_for_pitch(
    audio: AudioBuffer,
    noise_profile: Optional[Spectrum] = None,
    gate_config: Optional[SpectralGateConfig] = None,
    bandpass_config: Optional[BandpassConfig] = None,
) -> AudioBuffer:
    """``clean_signal_for_pitch`` for an ``AudioBuffer``; the sample rate is kept"""
    cleaned = clean_signal_for_pitch(
        audio.samples, audio.sample_rate, noise_profile, gate_config, bandpass_config
    )
    return audio.with_samples(cleaned)


class FilteringComparison:
    """Audio before and after a filtering step, for reviewing its effect.

    Spectra are computed on first use and kept for later calls.
    """

    def __init__(self, before: AudioBuffer, after: AudioBuffer):
        if before.sample_rate != after.sample_rate:
            raise SignalError(
                f"Cannot compare audio at {before.sample_rate}Hz with audio at {after.sample_rate}Hz"
            )
        self.before = before
        self.after = after
        self.before_spectrum: Optional[Spectrum] = None
        self.after_spectrum: Optional[Spectrum] = None

    @property
    def sample_rate(self) -> int:
        return self.before.sample_rate

    def compute_spectra(self) -> Tuple[Spectrum, Spectrum]:
        self.before_spectrum = forward(self.before, self.sample_rate)
        self.after_spectrum = forward(self.after, self.sample_rate)
        return self.before_spectrum, self.after_spectrum

    def magnitude_spectra(self) -> Tuple[np.ndarray, np.ndarray]:
        """Positive-frequency magnitudes (N/2 values each) of before and after"""
        if self.before_spectrum is None or self.after_spectrum is None:
            self.compute_spectra()
        return self.before_spectrum.positive_magnitudes(), self.after_spectrum.positive_magnitudes()

    def waveforms(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.before.samples, self.after.samples

    def energy_ratio_db(self) -> float:
        """Energy of the filtered audio relative to the original, in dB"""
        before_power = MathUtils.power(self.before.samples)
        after_power = MathUtils.power(self.after.samples)
        if before_power <= 0:
            return 0.0
        # power ratio, so 10*log10 == 20*log10 of the amplitude ratio
        return MathUtils.linear_to_db(np.sqrt(after_power / before_power), min_db=-np.inf)

    def __repr__(self) -> str:
        return (
            f"FilteringComparison(before={len(self.before)} samples, "
            f"after={len(self.after)} samples, sample_rate={self.sample_rate})"
        )


def compare_filtering(audio: AudioBuffer, filter_fn: Callable[[AudioBuffer], AudioBuffer]) -> FilteringComparison:
    """Apply ``filter_fn`` to ``audio`` and pair the result with the original.

    Example:
        >>> comparison = compare_filtering(audio, clean_audio_for_pitch)
        >>> before_mags, after_mags = comparison.magnitude_spectra()
    """
    return FilteringComparison(audio, filter_fn(audio))


__all__ = [
    'clean_signal_for_pitch',
    'clean_audio_for_pitch',
    'FilteringComparison',
    'compare_filtering',
]
