"""Keyed access to Flash payloads (.swf, .spl, .gfx, .abc) inside ZIP archives."""

from .bundle import Bundle, ExternalSource, OwnedFileSource, ZippedBundle, open_source
from .config import BundleConfig, FlashBundleConfig
from .common import (
    BundleError,
    ConfigLoader,
    ConfigurationError,
    LogContext,
    LoggingConfig,
    configure_logging,
)
from .errors import (
    ContainerError,
    ContainerOpenError,
    ContainerReadError,
    ContainerReplaceError,
    ContainerRewriteError,
)
from .loader import load_config, open_bundle

__version__ = "0.1.0"

__all__ = [
    'Bundle',
    'ZippedBundle',
    'ExternalSource',
    'OwnedFileSource',
    'open_source',
    'BundleConfig',
    'FlashBundleConfig',
    'BundleError',
    'ConfigurationError',
    'ContainerError',
    'ContainerReadError',
    'ContainerOpenError',
    'ContainerRewriteError',
    'ContainerReplaceError',
    'ConfigLoader',
    'LoggingConfig',
    'LogContext',
    'configure_logging',
    'load_config',
    'open_bundle',
]
