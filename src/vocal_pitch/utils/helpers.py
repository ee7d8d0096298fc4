"""Math and validation helper utilities for vocal_pitch."""

import math
import logging
from typing import Optional, Tuple, Union

import numpy as np

from ..audio.types import ConfigurationError

logger = logging.getLogger(__name__)


class MathUtils:
    """Numerical helpers shared by the cleaning and pitch modules."""

    @staticmethod
    def db_to_linear(db: float) -> float:
        """Convert decibels to a linear amplitude factor (10^(db/20))."""
        return 10 ** (db / 20)

    @staticmethod
    def linear_to_db(linear: float, min_db: float = -80.0) -> float:
        """Convert a linear amplitude ratio to decibels."""
        if linear <= 0:
            return min_db
        return 20 * math.log10(linear)

    @staticmethod
    def rms(values) -> Optional[float]:
        """Root mean square of ``values``, or None when empty."""
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return None
        return float(np.sqrt(np.mean(values * values)))

    @staticmethod
    def power(values) -> float:
        """Total power (sum of squares) of ``values``."""
        values = np.asarray(values, dtype=np.float64)
        return float(np.dot(values, values))

    @staticmethod
    def mean_std_deviation(values) -> Optional[Tuple[float, float]]:
        """Population mean and standard deviation, or None when empty."""
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return None
        return float(np.mean(values)), float(np.std(values))

    @staticmethod
    def moving_average(values, window_size: int) -> np.ndarray:
        """Centred moving average over ``window_size`` bins.

        Edges average over the bins that exist, so the output has the same length
        as the input. Even sizes are widened by one bin to stay centred. A window
        of 1 (or less) returns the values unchanged.
        """
        values = np.asarray(values, dtype=np.float64)
        if window_size <= 1 or values.size == 0:
            return values
        half_window = window_size // 2
        padded = np.concatenate(([0.0], np.cumsum(values)))
        idx = np.arange(values.size)
        start = np.maximum(idx - half_window, 0)
        end = np.minimum(idx + half_window + 1, values.size)
        return (padded[end] - padded[start]) / (end - start)


class ValidationUtils:
    """Parameter validation; every failure raises ``ConfigurationError``."""

    @staticmethod
    def require_positive_int(value, name: str) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
            raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        return int(value)

    @staticmethod
    def require_finite(value, name: str) -> float:
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be a number, got {value!r}")
        if not math.isfinite(value):
            raise ConfigurationError(f"{name} must be finite, got {value!r}")
        return value

    @staticmethod
    def require_range(
        value: Union[int, float],
        name: str,
        min_val: Optional[Union[int, float]] = None,
        max_val: Optional[Union[int, float]] = None,
        inclusive: bool = True
    ) -> float:
        """Validate that ``value`` lies in the given range and return it as float."""
        value = ValidationUtils.require_finite(value, name)
        if min_val is not None:
            if (inclusive and value < min_val) or (not inclusive and value <= min_val):
                raise ConfigurationError(f"{name}={value} is below the allowed minimum {min_val}")
        if max_val is not None:
            if (inclusive and value > max_val) or (not inclusive and value >= max_val):
                raise ConfigurationError(f"{name}={value} is above the allowed maximum {max_val}")
        return value


def safe_divide(a: float, b: float, default: float = 0.0) -> float:
    """Safe division with default value for division by zero."""
    return a / b if b != 0 else default


__all__ = [
    'MathUtils',
    'ValidationUtils',
    'safe_divide',
]
