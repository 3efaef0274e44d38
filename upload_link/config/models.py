"""
Configuration models for upload_link.

This module defines the file and environment backed configuration with
validation and defaults.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..options import LinkOptions


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default=LogLevel.INFO, description="Default logging level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    file_path: Optional[Path] = Field(default=None, description="Log file path")
    enable_console: bool = Field(default=True, description="Enable console logging")
    enable_structured: bool = Field(
        default=False, description="Enable structured JSON logging"
    )
    mask_sensitive: bool = Field(default=True, description="Mask credentials in logs")

    # Component-specific log levels
    component_levels: Dict[str, LogLevel] = Field(
        default_factory=dict, description="Per-component log levels"
    )


class UploadLinkConfig(BaseModel):
    """Top-level configuration loaded from files and the environment."""

    model_config = ConfigDict(extra="forbid")

    link: LinkOptions = Field(default_factory=LinkOptions, description="Link defaults")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging setup")

    def link_options(self, **overrides: Any) -> LinkOptions:
        """Return the link options, with runtime-only fields such as ``fetch`` applied."""
        if not overrides:
            return self.link
        return self.link.model_copy(update=overrides)
