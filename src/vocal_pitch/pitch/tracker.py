"""Frame-by-frame pitch tracking over a whole buffer or a stream of frames"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np

from ..audio.types import (
    AudioBuffer,
    ConfigurationError,
    PitchEstimate,
    SignalError,
    as_signal,
    frequency_or_zero,
    validate_sample_rate,
)
from ..audio.filters import BandpassConfig, bandpass_vocal_range
from ..audio.noise import SpectralGate
from ..utils.helpers import MathUtils, ValidationUtils, safe_divide
from ..utils.logging_config import log_execution_time
from .yin import YinConfig, YinDetector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackerConfig:
    """Framing and gating parameters for ``PitchTracker``.

    Attributes:
        window_size: Samples per analysis frame
        step_size: Samples between frame starts
        power_threshold: Frames with a sum of squares below this are reported as
            absent without running the detector
        yin_threshold: YIN absolute threshold used by the default detector
    """

    window_size: int = 2048
    step_size: int = 256
    power_threshold: float = 5.0
    yin_threshold: float = 0.1

    def __post_init__(self):
        ValidationUtils.require_positive_int(self.window_size, 'window_size')
        ValidationUtils.require_positive_int(self.step_size, 'step_size')
        ValidationUtils.require_range(self.power_threshold, 'power_threshold', min_val=0.0)
        ValidationUtils.require_range(self.yin_threshold, 'yin_threshold', min_val=0.0, max_val=1.0)
        if self.yin_threshold <= 0:
            raise ConfigurationError(f"yin_threshold must be greater than 0, got {self.yin_threshold}")

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "TrackerConfig":
        section = (config or {}).get('tracker', config or {})
        return cls(
            window_size=section.get('window_size', cls.window_size),
            step_size=section.get('step_size', cls.step_size),
            power_threshold=section.get('power_threshold', cls.power_threshold),
            yin_threshold=section.get('yin_threshold', cls.yin_threshold),
        )


@dataclass(frozen=True)
class PitchTrack:
    """One optional estimate per analysis frame, in frame order.

    Frame ``i`` covers samples ``[i * step_size, i * step_size + window_size)``.
    """

    estimates: Tuple[Optional[PitchEstimate], ...]
    sample_rate: int
    window_size: int
    step_size: int

    def __len__(self) -> int:
        return len(self.estimates)

    def __iter__(self) -> Iterator[Optional[PitchEstimate]]:
        return iter(self.estimates)

    def __getitem__(self, index: int) -> Optional[PitchEstimate]:
        return self.estimates[index]

    def times(self) -> np.ndarray:
        """Start time of every frame in seconds"""
        return np.arange(len(self.estimates)) * self.step_size / self.sample_rate

    def frequencies(self) -> np.ndarray:
        """Frequency of every frame, 0.0 where no pitch was found"""
        return np.array([frequency_or_zero(e) for e in self.estimates], dtype=np.float64)

    def clarities(self) -> np.ndarray:
        return np.array([e.clarity if e is not None else 0.0 for e in self.estimates], dtype=np.float64)

    def voiced_fraction(self) -> float:
        voiced = sum(1 for e in self.estimates if e is not None)
        return safe_divide(voiced, len(self.estimates))


class PitchTracker:
    """Runs a detector over successive frames of a signal.

    Processing order for a buffer:
        1. optional bandpass over the whole buffer
        2. framing by ``window_size`` / ``step_size``
        3. optional spectral gate on every frame
        4. power check, then detection

    The tracker keeps no state between frames or between calls.

    Example:
        >>> tracker = PitchTracker(TrackerConfig(window_size=2048, step_size=512))
        >>> track = tracker.track(AudioBuffer(samples, 44100))
        >>> track.frequencies()
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        detector: Optional[YinDetector] = None,
        gate: Optional[SpectralGate] = None,
        bandpass: Optional[BandpassConfig] = None,
    ):
        self.config = config or TrackerConfig()
        self.detector = detector or YinDetector(YinConfig(threshold=self.config.yin_threshold))
        self.gate = gate
        self.bandpass = bandpass
        logger.debug(
            f"PitchTracker initialized: window_size={self.config.window_size}, "
            f"step_size={self.config.step_size}, gate={'on' if gate else 'off'}, "
            f"bandpass={'on' if bandpass else 'off'}"
        )

    def _detect_frame(self, frame: np.ndarray, sample_rate: int) -> Optional[PitchEstimate]:
        if self.gate is not None:
            frame = self.gate.process(frame)
        if MathUtils.power(frame) < self.config.power_threshold:
            return None
        return self.detector.detect(frame, sample_rate)

    def _check_gate_rate(self, sample_rate: int) -> None:
        if self.gate is not None and self.gate.noise_profile.sample_rate != sample_rate:
            raise SignalError(
                f"Gate noise profile is at {self.gate.noise_profile.sample_rate}Hz, "
                f"audio is at {sample_rate}Hz"
            )

    @log_execution_time("Pitch tracking")
    def track(self, audio: AudioBuffer) -> PitchTrack:
        """Estimate the pitch of every full frame of ``audio``.

        Returns:
            PitchTrack with ``floor((len - window_size) / step_size) + 1`` slots
            (none when the buffer is shorter than one window)
        """
        if not isinstance(audio, AudioBuffer):
            raise TypeError(f"track expects an AudioBuffer, got {type(audio).__name__}")
        self._check_gate_rate(audio.sample_rate)
        if self.bandpass is not None:
            audio = bandpass_vocal_range(audio, self.bandpass)

        frames = audio.frames(self.config.window_size, self.config.step_size)
        estimates = tuple(self._detect_frame(frame, audio.sample_rate) for frame in frames)
        track = PitchTrack(estimates, audio.sample_rate, self.config.window_size, self.config.step_size)
        logger.debug(
            f"Tracked {len(track)} frames, {track.voiced_fraction():.0%} voiced"
        )
        return track

    def track_frames(self, frames: Iterable, sample_rate: int) -> Iterator[Optional[PitchEstimate]]:
        """Yield one estimate per incoming frame, in order.

        Frames are used as given (no bandpass, no re-framing); the gate and the
        power check still apply.
        """
        sample_rate = validate_sample_rate(sample_rate)
        self._check_gate_rate(sample_rate)
        for frame in frames:
            if isinstance(frame, AudioBuffer):
                if frame.sample_rate != sample_rate:
                    raise SignalError(
                        f"Frame sample rate {frame.sample_rate}Hz does not match {sample_rate}Hz"
                    )
                frame = frame.samples
            yield self._detect_frame(as_signal(frame, name="frame"), sample_rate)


def track_pitch(signal, sample_rate: int, config: Optional[TrackerConfig] = None) -> List[float]:
    """Pitch of every frame of ``signal`` in Hz, with 0.0 for frames without pitch"""
    track = PitchTracker(config).track(AudioBuffer(signal, sample_rate))
    return track.frequencies().tolist()


__all__ = [
    'TrackerConfig',
    'PitchTrack',
    'PitchTracker',
    'track_pitch',
]
