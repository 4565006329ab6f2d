"""Open a bundle with settings from the layered configuration."""

import logging
from pathlib import Path
from typing import BinaryIO, Optional

from .bundle import ZippedBundle
from .common import ConfigLoader, configure_logging
from .config import FlashBundleConfig

logger = logging.getLogger(__name__)


def load_config(defaults_path: Optional[Path] = None) -> FlashBundleConfig:
    """Load FlashBundleConfig from defaults, system, user config and environment."""
    loader = ConfigLoader(app_name="flash-bundle", config_class=FlashBundleConfig)
    return loader.load(defaults_path)


def open_bundle(
    path: Optional[Path] = None,
    stream: Optional[BinaryIO] = None,
    config: Optional[FlashBundleConfig] = None,
    defaults_path: Optional[Path] = None,
) -> ZippedBundle:
    """Configure logging and open a ZippedBundle over path or stream.

    Args:
        path: Archive file (the bundle owns the handle)
        stream: Caller-owned archive stream (read-only bundle)
        config: Settings to use; loaded with load_config when omitted
        defaults_path: Defaults file passed to load_config

    Raises:
        ConfigurationError: If the configuration cannot be loaded
        ContainerOpenError: If the archive cannot be opened or indexed
    """
    if config is None:
        config = load_config(defaults_path)

    configure_logging(config.logging)
    logger.debug(f"Opening bundle {path or 'stream'} (extensions: {', '.join(config.bundle.extensions)})")

    return ZippedBundle(stream=stream, path=path, config=config.bundle)
