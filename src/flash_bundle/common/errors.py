"""Base error definitions for flash_bundle."""

from typing import Any, Dict


class BundleError(Exception):
    """Base exception for all flash_bundle errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class ConfigurationError(BundleError):
    """Configuration is invalid or missing."""
    pass
