"""Pitch detection (YIN) and frame-by-frame tracking"""

from .yin import YinConfig, YinDetector, detect
from .tracker import TrackerConfig, PitchTrack, PitchTracker, track_pitch

__all__ = [
    'YinConfig',
    'YinDetector',
    'detect',
    'TrackerConfig',
    'PitchTrack',
    'PitchTracker',
    'track_pitch',
]
