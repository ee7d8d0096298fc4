"""Configuration loader module for vocal_pitch."""

import os
import json
import copy
import logging
from typing import Optional, Dict, Any
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = 'VOCAL_PITCH_'

# Default configuration
DEFAULT_CONFIG = {
    'audio': {
        'sample_rate': 44100,
    },
    'spectrogram': {
        'window_size': 1024,
        'step_size': 256,
    },
    'bandpass': {
        'low_hz': 80.0,
        'high_hz': 1200.0,
        'order': 4,
    },
    'noise_profile': {
        'search_start_s': 0.2,
        'search_end_s': 1.5,
        'zscore_threshold': -1.0,
        'segment_duration_s': None,
        'min_relative_spread': 0.01,
        'min_relative_drop': 0.1,
    },
    'spectral_gate': {
        'threshold_db': 6.0,
        'smoothing_window': 1,
    },
    'yin': {
        'threshold': 0.1,
        'window_size': None,
        'min_power': 0.0,
    },
    'tracker': {
        'window_size': 2048,
        'step_size': 256,
        'power_threshold': 5.0,
        'yin_threshold': 0.1,
    },
    'logging': {
        'level': 'INFO',
        'format': 'text',
        'dir': None,
    },
}

REQUIRED_SECTIONS = tuple(DEFAULT_CONFIG.keys())


def load_config_with_defaults() -> Dict[str, Any]:
    """Load configuration with default values.

    Returns:
        Dict containing a deep copy of the default configuration
    """
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config_from_file(path: str, strict: bool = False) -> Dict[str, Any]:
    """Load configuration from a file.

    Args:
        path: Path to configuration file (YAML, JSON or Python)
        strict: If True, raise error if file doesn't exist

    Returns:
        Dict containing loaded configuration

    Raises:
        FileNotFoundError: If strict=True and file doesn't exist
        ValueError: If file format is invalid
    """
    config_path = Path(path)

    if not config_path.exists():
        if strict:
            raise FileNotFoundError(f"Configuration file not found: {path}")
        logger.debug(f"Config file {path} not found, skipping")
        return {}

    suffix = config_path.suffix.lower()

    if suffix == '.json':
        try:
            with open(config_path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file {path}: {e}")
            raise ValueError(f"Invalid JSON in config file {path}: {e}")

    elif suffix == '.py':
        import importlib.util
        spec = importlib.util.spec_from_file_location("vocal_pitch_config", config_path)
        if spec is None or spec.loader is None:
            raise ValueError(f"Cannot import config file {path}")
        config_module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(config_module)

        if hasattr(config_module, 'CONFIG'):
            return config_module.CONFIG
        elif hasattr(config_module, 'config'):
            return config_module.config
        # Fall back to uppercase module attributes
        return {
            key.lower(): getattr(config_module, key)
            for key in dir(config_module)
            if key.isupper() and not key.startswith('_')
        }

    elif suffix in ('.yml', '.yaml'):
        try:
            with open(config_path, 'r') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in config file {path}: {e}")
            raise ValueError(f"Invalid YAML in config file {path}: {e}")

    raise ValueError(f"Unsupported config file format: {config_path.suffix}")


def merge_configs(base: dict, override: dict) -> dict:
    """Deep merge two configuration dictionaries.

    Args:
        base: Base configuration dict
        override: Override configuration dict

    Returns:
        Merged configuration dict (modifies base in-place)
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            merge_configs(base[key], value)
        else:
            base[key] = value
    return base


def _parse_env_value(env_value: str) -> Any:
    # JSON first: numbers, booleans, null, lists and objects
    try:
        return json.loads(env_value)
    except ValueError:
        pass
    lowered = env_value.lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    if lowered in ('none', 'null'):
        return None
    return env_value


def load_config_from_env(config: dict, prefix: str = ENV_PREFIX) -> dict:
    """Load configuration overrides from environment variables.

    Environment variable format:
    - VOCAL_PITCH_SECTION__KEY for nested values (double underscore)
    - Values are parsed as JSON where possible, so numbers and booleans keep their type
    - Example: VOCAL_PITCH_TRACKER__WINDOW_SIZE=4096

    Args:
        config: Configuration dict to update
        prefix: Environment variable prefix

    Returns:
        Updated configuration dict

    Raises:
        ValueError: If config is not a dictionary
    """
    if not isinstance(config, dict):
        raise ValueError("Config must be a dictionary")

    for env_key, env_value in os.environ.items():
        if not env_key.startswith(prefix):
            continue

        keys = [key for key in env_key[len(prefix):].lower().split('__') if key]
        if not keys:
            continue

        current = config
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            elif not isinstance(current[key], dict):
                logger.warning(f"Ignoring {env_key}: '{key}' is not a config section")
                break
            current = current[key]
        else:
            current[keys[-1]] = _parse_env_value(env_value)
            logger.debug(f"Config override from environment: {env_key}")

    return config


def _require_number(section: str, key: str, value: Any, minimum: Optional[float] = None,
                    strict: bool = False, integer: bool = False) -> None:
    kinds = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kinds):
        raise ValueError(f"Invalid {section}.{key}: {value!r}")
    if minimum is not None and (value < minimum or (strict and value == minimum)):
        raise ValueError(f"Invalid {section}.{key}: {value!r}")


def validate_config(config: dict) -> None:
    """Validate configuration structure and values.

    Args:
        config: Configuration dict to validate

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ValueError("Configuration must be a dictionary")

    if not config:
        raise ValueError("Configuration cannot be empty")

    for section in REQUIRED_SECTIONS:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")
        if not isinstance(config[section], dict):
            raise ValueError(f"Config section '{section}' must be a dictionary")

    audio = config['audio']
    if 'sample_rate' in audio:
        _require_number('audio', 'sample_rate', audio['sample_rate'], minimum=0, strict=True, integer=True)

    for section in ('spectrogram', 'tracker'):
        for key in ('window_size', 'step_size'):
            if key in config[section]:
                _require_number(section, key, config[section][key], minimum=0, strict=True, integer=True)

    bandpass = config['bandpass']
    low = bandpass.get('low_hz', 0.0)
    high = bandpass.get('high_hz', 0.0)
    _require_number('bandpass', 'low_hz', low, minimum=0)
    _require_number('bandpass', 'high_hz', high, minimum=0)
    if low >= high:
        raise ValueError(f"bandpass.low_hz ({low}) must be below bandpass.high_hz ({high})")
    if 'order' in bandpass:
        _require_number('bandpass', 'order', bandpass['order'], minimum=0, strict=True, integer=True)

    noise = config['noise_profile']
    start = noise.get('search_start_s', 0.0)
    end = noise.get('search_end_s', 0.0)
    _require_number('noise_profile', 'search_start_s', start, minimum=0)
    _require_number('noise_profile', 'search_end_s', end, minimum=0)
    if start >= end:
        raise ValueError(f"noise_profile.search_start_s ({start}) must be before search_end_s ({end})")
    if 'min_relative_drop' in noise:
        drop = noise['min_relative_drop']
        _require_number('noise_profile', 'min_relative_drop', drop, minimum=0)
        if drop > 1:
            raise ValueError(f"Invalid noise_profile.min_relative_drop: {drop}")

    gate = config['spectral_gate']
    if 'smoothing_window' in gate:
        _require_number('spectral_gate', 'smoothing_window', gate['smoothing_window'],
                        minimum=0, strict=True, integer=True)

    for section, key in (('yin', 'threshold'), ('tracker', 'yin_threshold')):
        if key in config[section]:
            threshold = config[section][key]
            _require_number(section, key, threshold, minimum=0, strict=True)
            if threshold > 1:
                raise ValueError(f"Invalid {section}.{key}: {threshold}")

    logging_section = config['logging']
    if 'level' in logging_section:
        level = logging_section['level']
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if not isinstance(level, str) or level.upper() not in valid_levels:
            raise ValueError(f"Invalid logging level: {level}")


def load_config(config_path: Optional[str] = None, use_defaults: bool = True) -> dict:
    """Load configuration from file, environment, and defaults.

    Loading order:
    1. Start with default configuration (if use_defaults=True)
    2. Merge configuration from file (if config_path provided)
    3. Apply environment variable overrides
    4. Validate final configuration

    Args:
        config_path: Optional path to configuration file
        use_defaults: Whether to use default configuration as base

    Returns:
        Final merged and validated configuration dict

    Raises:
        ValueError: If configuration is invalid
    """
    config = load_config_with_defaults() if use_defaults else {}

    if config_path:
        file_config = load_config_from_file(config_path, strict=False)
        config = merge_configs(config, file_config)

    config = load_config_from_env(config)

    try:
        validate_config(config)
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise

    return config


__all__ = [
    'ENV_PREFIX',
    'DEFAULT_CONFIG',
    'load_config',
    'load_config_with_defaults',
    'load_config_from_file',
    'merge_configs',
    'load_config_from_env',
    'validate_config',
]
