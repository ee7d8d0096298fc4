"""Utilities module for vocal_pitch"""

# Configuration utilities
from .config_loader import (
    load_config,
    load_config_with_defaults,
    load_config_from_file,
    merge_configs,
    load_config_from_env,
    validate_config,
    DEFAULT_CONFIG
)

# Logging utilities
from .logging_config import (
    setup_logging,
    JSONFormatter,
    ColoredFormatter,
    LogContext,
    log_execution_time
)

# General helper utilities
from .helpers import (
    MathUtils,
    ValidationUtils,
    safe_divide
)

__all__ = [
    # Config utilities
    'load_config',
    'load_config_with_defaults',
    'load_config_from_file',
    'merge_configs',
    'load_config_from_env',
    'validate_config',
    'DEFAULT_CONFIG',

    # Logging utilities
    'setup_logging',
    'JSONFormatter',
    'ColoredFormatter',
    'LogContext',
    'log_execution_time',

    # Helper utilities
    'MathUtils',
    'ValidationUtils',
    'safe_divide'
]
