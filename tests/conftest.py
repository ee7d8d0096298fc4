"""
Pytest configuration and shared fixtures for vocal_pitch tests.
"""
import os
import sys
from typing import Optional

import pytest
import numpy as np

# Make the src/ layout importable without an editable install
_SRC_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if _SRC_DIR not in sys.path:
    sys.path.insert(0, _SRC_DIR)


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (component interactions)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow tests (>1 second)"
    )
    config.addinivalue_line(
        "markers", "audio: Audio processing tests"
    )


# ============================================================================
# Audio Fixtures
# ============================================================================

@pytest.fixture
def sample_audio_factory():
    """Factory fixture for generating synthetic test signals.

    Returns a callable producing float64 samples of the requested type:
    sine, harmonics, noise, silence, chirp.

    Examples:
        audio = sample_audio_factory('sine', frequency=440, duration=2.0)
        audio = sample_audio_factory('harmonics', fundamental=220, num_harmonics=5)
        audio = sample_audio_factory('noise', amplitude=0.01, seed=3)
    """
    def factory(
        audio_type: str = 'sine',
        sample_rate: int = 44100,
        duration: float = 1.0,
        **kwargs
    ) -> np.ndarray:
        num_samples = int(sample_rate * duration)
        t = np.arange(num_samples) / sample_rate
        amplitude = kwargs.get('amplitude', 0.5)

        if audio_type == 'sine':
            frequency = kwargs.get('frequency', 440.0)
            return amplitude * np.sin(2 * np.pi * frequency * t)

        elif audio_type == 'harmonics':
            fundamental = kwargs.get('fundamental', 220.0)
            num_harmonics = kwargs.get('num_harmonics', 5)
            audio = np.zeros(num_samples)
            for h in range(1, num_harmonics + 1):
                audio += np.sin(2 * np.pi * fundamental * h * t) / h
            return amplitude * audio / np.max(np.abs(audio))

        elif audio_type == 'noise':
            rng = np.random.default_rng(kwargs.get('seed', 0))
            return amplitude * rng.standard_normal(num_samples)

        elif audio_type == 'silence':
            return np.zeros(num_samples)

        elif audio_type == 'chirp':
            f0 = kwargs.get('f0', 200.0)
            f1 = kwargs.get('f1', 800.0)
            phase = 2 * np.pi * (f0 * t + (f1 - f0) * t ** 2 / (2 * duration))
            return amplitude * np.sin(phase)

        raise ValueError(f"Unknown audio type: {audio_type}")

    return factory


@pytest.fixture
def sine_440(sample_audio_factory) -> np.ndarray:
    """One second of a 440 Hz sine at 44.1 kHz."""
    return sample_audio_factory('sine', frequency=440.0, duration=1.0)


@pytest.fixture
def noisy_recording_factory(sample_audio_factory):
    """Recordings that start with quiet background noise and then a loud tone.

    The quiet part covers the noise search region (0.2 s to 1.5 s), so a noise
    profile can be found in it.
    """
    def factory(
        sample_rate: int = 8000,
        quiet_duration: float = 1.5,
        loud_duration: float = 2.5,
        frequency: float = 220.0,
        noise_amplitude: float = 0.01,
        tone_amplitude: float = 1.0,
        seed: Optional[int] = 0,
    ) -> np.ndarray:
        total = quiet_duration + loud_duration
        noise = sample_audio_factory('noise', sample_rate=sample_rate, duration=total,
                                     amplitude=noise_amplitude, seed=seed)
        tone = sample_audio_factory('sine', sample_rate=sample_rate, duration=total,
                                    frequency=frequency, amplitude=tone_amplitude)
        tone[: int(quiet_duration * sample_rate)] = 0.0
        return noise + tone

    return factory


@pytest.fixture
def clean_env(monkeypatch):
    """Remove vocal_pitch and logging environment overrides for the test."""
    for key in list(os.environ):
        if key.startswith('VOCAL_PITCH_') or key in ('LOG_LEVEL', 'LOG_FORMAT', 'LOG_DIR'):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
