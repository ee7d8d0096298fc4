"""Overlapping analysis frames over a sample buffer"""

from __future__ import annotations
import logging
from typing import Iterator

import numpy as np
import librosa

from .types import ConfigurationError, as_signal

logger = logging.getLogger(__name__)


def frame_count(length: int, window_size: int, step_size: int) -> int:
    """Number of full frames produced for a buffer of ``length`` samples.

    ``floor((length - window_size) / step_size) + 1`` when the buffer holds at least
    one window, otherwise 0. Degenerate window or step sizes give 0.
    """
    if window_size <= 0 or step_size <= 0 or length < window_size:
        return 0
    return (length - window_size) // step_size + 1


class FrameSequence:
    """Lazy, restartable sequence of fixed-size frames.

    Frame ``i`` starts at sample ``i * step_size``; iteration stops once fewer than
    ``window_size`` samples remain (no padding). The step may be smaller than the
    window (overlap), equal to it (tiling) or larger (gaps). Every call to
    ``iter()`` starts again from the first frame.

    Frames are read-only views into the source array, built with
    ``librosa.util.frame``; nothing is copied until a caller copies a frame.
    """

    def __init__(self, samples, window_size: int, step_size: int):
        for name, value in (('window_size', window_size), ('step_size', step_size)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        self.samples = as_signal(samples)
        self.window_size = int(window_size)
        self.step_size = int(step_size)
        if self.window_size <= 0 or self.step_size <= 0:
            logger.debug(
                f"Degenerate framing (window_size={self.window_size}, "
                f"step_size={self.step_size}); no frames will be produced"
            )

    def __len__(self) -> int:
        return frame_count(self.samples.shape[0], self.window_size, self.step_size)

    def __iter__(self) -> Iterator[np.ndarray]:
        if len(self) == 0:
            return iter(())
        frames = librosa.util.frame(
            self.samples,
            frame_length=self.window_size,
            hop_length=self.step_size,
            axis=0,
        )
        return iter(frames)

    def start_indices(self) -> np.ndarray:
        """Sample index at which each frame starts"""
        return np.arange(len(self)) * self.step_size

    def __repr__(self) -> str:
        return (
            f"FrameSequence(n_samples={self.samples.shape[0]}, window_size={self.window_size}, "
            f"step_size={self.step_size}, n_frames={len(self)})"
        )


def sliding_windows(samples, window_size: int, step_size: int) -> FrameSequence:
    """Frames of ``window_size`` samples advancing by ``step_size``.

    Args:
        samples: One-dimensional sample data
        window_size: Frame length W (W <= 0 yields no frames)
        step_size: Hop between frame starts S (S <= 0 yields no frames)

    Returns:
        A ``FrameSequence`` that can be iterated any number of times
    """
    return FrameSequence(samples, window_size, step_size)


__all__ = ['frame_count', 'FrameSequence', 'sliding_windows']
