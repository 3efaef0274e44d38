"""
Logging manager for upload_link.

This module provides centralized logging configuration and management.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from ..config.models import LoggingConfig, LogLevel
from .filters import SensitiveDataFilter
from .formatters import ColoredFormatter, StructuredFormatter


class LoggingManager:
    """Centralized logging manager."""

    def __init__(self) -> None:
        """Initialize logging manager."""
        self._configured = False
        self._handlers: Dict[str, logging.Handler] = {}

    def setup_logging(self, config: LoggingConfig) -> None:
        """
        Setup logging based on configuration.

        Args:
            config: Logging configuration
        """
        if self._configured:
            self.cleanup()

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, config.level.value))

        if config.enable_console:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(self._formatter(config, console=True))
            self._add_handler("console", handler, config)

        if config.file_path:
            log_path = Path(str(config.file_path))
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(str(log_path), encoding="utf-8")
            handler.setFormatter(self._formatter(config, console=False))
            self._add_handler("file", handler, config)

        for component, level in config.component_levels.items():
            logging.getLogger(component).setLevel(getattr(logging, level.value))

        self._configured = True
        logging.getLogger(__name__).debug("Logging system configured")

    @staticmethod
    def _formatter(config: LoggingConfig, console: bool) -> logging.Formatter:
        if config.enable_structured:
            return StructuredFormatter()
        if console:
            return ColoredFormatter(config.format)
        return logging.Formatter(config.format)

    def _add_handler(self, name: str, handler: logging.Handler, config: LoggingConfig) -> None:
        handler.setLevel(getattr(logging, config.level.value))
        if config.mask_sensitive:
            handler.addFilter(SensitiveDataFilter())
        logging.getLogger().addHandler(handler)
        self._handlers[name] = handler

    def set_level(self, level: LogLevel, component: Optional[str] = None) -> None:
        """
        Set logging level.

        Args:
            level: New logging level
            component: Specific component (None for root logger)
        """
        log_level = getattr(logging, level.value)

        if component:
            logging.getLogger(component).setLevel(log_level)
            return

        logging.getLogger().setLevel(log_level)
        for handler in self._handlers.values():
            handler.setLevel(log_level)

    def cleanup(self) -> None:
        """Remove and close the handlers installed by this manager."""
        root_logger = logging.getLogger()
        for handler in self._handlers.values():
            root_logger.removeHandler(handler)
            handler.close()

        self._handlers.clear()
        self._configured = False

    def is_configured(self) -> bool:
        """Check if logging is configured."""
        return self._configured


_logging_manager = LoggingManager()


def setup_logging(config: Optional[LoggingConfig] = None) -> LoggingManager:
    """
    Setup logging with configuration.

    Args:
        config: Logging configuration, defaults to LoggingConfig()

    Returns:
        The global logging manager
    """
    _logging_manager.setup_logging(config or LoggingConfig())
    return _logging_manager


def cleanup_logging() -> None:
    """Cleanup logging system."""
    _logging_manager.cleanup()
