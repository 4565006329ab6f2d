"""Common utilities for flash_bundle."""

from .config import ConfigLoader
from .logging import ContextFormatter, JsonFormatter, LogContext, configure_logging
from .logging_config import LoggingConfig
from .errors import BundleError, ConfigurationError

__all__ = [
    'ConfigLoader',
    'LoggingConfig',
    'configure_logging',
    'ContextFormatter',
    'JsonFormatter',
    'LogContext',
    'BundleError',
    'ConfigurationError',
]
