"""Utility modules: configuration and logging."""

from .config_loader import (
    DEFAULT_CONFIG,
    ConfigLoader,
    get_nested,
    load_config,
    validate_config,
)
from .logger import (
    LoggerMixin,
    ProgressLogger,
    get_logger,
    setup_logger,
    setup_logger_from_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "ConfigLoader",
    "load_config",
    "validate_config",
    "get_nested",
    "setup_logger",
    "setup_logger_from_config",
    "get_logger",
    "LoggerMixin",
    "ProgressLogger",
]
