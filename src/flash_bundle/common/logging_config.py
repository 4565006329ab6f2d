"""Logging section of the flash_bundle configuration."""

from typing import Literal
from pydantic import BaseModel, Field, ConfigDict, ValidationInfo, field_validator


class LoggingConfig(BaseModel):
    """Settings consumed by configure_logging."""

    model_config = ConfigDict(extra='forbid')

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Level of the flash_bundle logger"
    )
    format: Literal["simple", "detailed", "json"] = Field(
        default="simple",
        description="Console format; files are always JSON"
    )
    file: str | None = Field(default=None, description="Optional rotating log file")
    max_file_size_mb: int = Field(default=10, ge=1, description="Rotate the log file at this size")
    backup_count: int = Field(default=5, ge=0, description="Rotated log files to keep")

    @field_validator('level', 'format', mode='before')
    @classmethod
    def normalize_case(cls, v, info: ValidationInfo):
        """Accept level and format names in any case."""
        if not isinstance(v, str):
            return v
        return v.upper() if info.field_name == 'level' else v.lower()
