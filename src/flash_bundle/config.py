"""Configuration schema for flash bundles."""

import zipfile
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, Field, ConfigDict, field_validator

from flash_bundle.common import LoggingConfig

DEFAULT_EXTENSIONS = (".swf", ".spl", ".gfx", ".abc")

COMPRESSION_METHODS = {
    "stored": zipfile.ZIP_STORED,
    "deflated": zipfile.ZIP_DEFLATED,
    "bzip2": zipfile.ZIP_BZIP2,
    "lzma": zipfile.ZIP_LZMA,
}


class BundleConfig(BaseModel):
    """Configuration for ZIP-backed bundles."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    extensions: Tuple[str, ...] = Field(
        default=DEFAULT_EXTENSIONS,
        min_length=1,
        description="Entry name suffixes recognized as bundle payloads"
    )
    temp_suffix: str = Field(
        default=".tmp",
        pattern=r"^\.[^/\\]+$",
        description="Suffix of the temporary container written during replacement"
    )
    compression: Literal["stored", "deflated", "bzip2", "lzma"] = Field(
        default="deflated",
        description="Compression method for replaced entries"
    )
    compress_level: Optional[int] = Field(
        default=None,
        ge=0,
        le=9,
        description="Compression level for replaced entries (method default if unset)"
    )
    spool_max_size: int = Field(
        default=16 * 1024 * 1024,
        ge=0,
        description="Bytes of a non-seekable stream kept in memory before spilling to disk (0: always on disk)"
    )
    verify_rewrite: bool = Field(
        default=True,
        description="Check CRCs of the rewritten container before replacing the original"
    )

    @field_validator('extensions', mode='before')
    @classmethod
    def normalize_extensions(cls, v):
        """Lowercase suffixes and ensure a leading dot."""
        if isinstance(v, str):
            v = [v]
        normalized = []
        for ext in v:
            if not isinstance(ext, str) or not ext.strip('.'):
                raise ValueError(f"Invalid extension: {ext!r}")
            ext = ext.lower()
            normalized.append(ext if ext.startswith('.') else f".{ext}")
        return tuple(normalized)

    @field_validator('compression', mode='before')
    @classmethod
    def normalize_compression(cls, v: str) -> str:
        """Normalize compression name to lowercase."""
        if isinstance(v, str):
            return v.lower()
        return v

    @property
    def compress_type(self) -> int:
        """zipfile constant for the configured compression method."""
        return COMPRESSION_METHODS[self.compression]

    def matches(self, name: str) -> bool:
        """Whether an entry name carries a recognized payload extension."""
        return name.lower().endswith(self.extensions)


class FlashBundleConfig(BaseModel):
    """Root configuration for flash_bundle."""

    model_config = ConfigDict(extra='forbid')

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    bundle: BundleConfig = Field(default_factory=BundleConfig)
