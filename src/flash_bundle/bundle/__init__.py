"""Bundles of Flash payloads stored in containers."""

from .base import Bundle
from .source import ReReadableSource, ExternalSource, OwnedFileSource, open_source
from .zipped import ZippedBundle

__all__ = [
    'Bundle',
    'ReReadableSource',
    'ExternalSource',
    'OwnedFileSource',
    'open_source',
    'ZippedBundle',
]
