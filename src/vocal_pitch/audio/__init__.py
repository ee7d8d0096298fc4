"""Audio types, spectra, filtering and noise reduction"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import AudioBuffer, PitchEstimate, SignalError, ConfigurationError
    from .framing import FrameSequence, sliding_windows
    from .spectral import Spectrum, Spectrogram, SpectrogramConfig, forward, spectrogram
    from .filters import BandpassConfig, bandpass, bandpass_vocal_range
    from .noise import NoiseProfileConfig, SpectralGate, SpectralGateConfig, estimate_noise_profile
    from .cleaning import FilteringComparison, clean_audio_for_pitch, clean_signal_for_pitch, compare_filtering

_SUBMODULES = {
    'types': ['AudioBuffer', 'PitchEstimate', 'SignalError', 'ConfigurationError'],
    'framing': ['FrameSequence', 'sliding_windows'],
    'spectral': ['Spectrum', 'Spectrogram', 'SpectrogramConfig', 'forward', 'spectrogram'],
    'filters': ['BandpassConfig', 'bandpass', 'bandpass_vocal_range'],
    'noise': ['NoiseProfileConfig', 'SpectralGate', 'SpectralGateConfig', 'estimate_noise_profile'],
    'cleaning': ['FilteringComparison', 'clean_audio_for_pitch', 'clean_signal_for_pitch', 'compare_filtering'],
}

__all__ = [name for names in _SUBMODULES.values() for name in names]

# Module-level cache for lazy-loaded classes
_module_cache = {}


def __getattr__(name):
    """Lazy import of audio components, so importing one submodule does not load the rest."""
    if name in _module_cache:
        return _module_cache[name]

    for submodule, names in _SUBMODULES.items():
        if name in names:
            import importlib
            module = importlib.import_module(f'.{submodule}', __name__)
            _module_cache[name] = getattr(module, name)
            return _module_cache[name]

    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
