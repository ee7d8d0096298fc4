"""vocal_pitch: pitch detection and noise reduction for monophonic vocal audio"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .audio.types import AudioBuffer, PitchEstimate, SignalError, ConfigurationError
    from .audio.spectral import Spectrum, Spectrogram, spectrogram
    from .audio.filters import BandpassConfig, bandpass
    from .audio.noise import SpectralGate, SpectralGateConfig, NoiseProfileConfig, estimate_noise_profile
    from .audio.cleaning import clean_signal_for_pitch, clean_audio_for_pitch, compare_filtering
    from .pitch.yin import YinConfig, YinDetector
    from .pitch.tracker import TrackerConfig, PitchTrack, PitchTracker, track_pitch
    from .utils.config_loader import load_config
    from .utils.logging_config import setup_logging

__version__ = "0.1.0"

# Public name -> defining module, imported on first access
_LAZY_IMPORTS = {
    'AudioBuffer': '.audio.types',
    'PitchEstimate': '.audio.types',
    'SignalError': '.audio.types',
    'ConfigurationError': '.audio.types',
    'Spectrum': '.audio.spectral',
    'Spectrogram': '.audio.spectral',
    'spectrogram': '.audio.spectral',
    'BandpassConfig': '.audio.filters',
    'bandpass': '.audio.filters',
    'SpectralGate': '.audio.noise',
    'SpectralGateConfig': '.audio.noise',
    'NoiseProfileConfig': '.audio.noise',
    'estimate_noise_profile': '.audio.noise',
    'clean_signal_for_pitch': '.audio.cleaning',
    'clean_audio_for_pitch': '.audio.cleaning',
    'compare_filtering': '.audio.cleaning',
    'YinConfig': '.pitch.yin',
    'YinDetector': '.pitch.yin',
    'TrackerConfig': '.pitch.tracker',
    'PitchTrack': '.pitch.tracker',
    'PitchTracker': '.pitch.tracker',
    'track_pitch': '.pitch.tracker',
    'load_config': '.utils.config_loader',
    'setup_logging': '.utils.logging_config',
}

__all__ = list(_LAZY_IMPORTS)

# Module-level cache for lazy-loaded components
_module_cache = {}


def __getattr__(name):
    """Lazy import mechanism for vocal_pitch components.

    Keeps ``import vocal_pitch`` cheap: scipy and librosa are only imported once
    a component that needs them is accessed.
    """
    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

    if name in _module_cache:
        return _module_cache[name]

    import importlib
    module = importlib.import_module(_LAZY_IMPORTS[name], __name__)
    value = getattr(module, name)
    _module_cache[name] = value
    return value
