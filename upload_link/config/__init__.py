"""
Configuration management for upload_link.

This module provides configuration loading from files and environment
variables.
"""

from .loader import ConfigError, ConfigLoader, load_config
from .models import LoggingConfig, LogLevel, UploadLinkConfig

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "load_config",
    "LoggingConfig",
    "LogLevel",
    "UploadLinkConfig",
]
