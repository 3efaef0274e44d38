"""
Configuration loader for upload_link.

Configuration is read from a JSON or YAML file, then from environment
variables, which take precedence.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from ..exceptions import UploadLinkError
from .models import UploadLinkConfig


class ConfigError(UploadLinkError):
    """Raised when configuration cannot be loaded."""

    pass


class ConfigLoader:
    """Configuration loader with support for files and environment variables."""

    def __init__(self, env_prefix: str = "UPLOAD_LINK_") -> None:
        """
        Initialize configuration loader.

        Args:
            env_prefix: Prefix of the environment variables to read
        """
        self.config_paths: List[Path] = [
            Path("upload_link.yaml"),
            Path("upload_link.yml"),
            Path("upload_link.json"),
            Path.home() / ".upload_link" / "config.yaml",
            Path.home() / ".upload_link" / "config.json",
        ]
        self.env_prefix = env_prefix

    def load_config(self, config_file: Optional[Union[str, Path]] = None) -> UploadLinkConfig:
        """
        Load configuration from all available sources.

        Args:
            config_file: Specific config file to load; it must exist

        Returns:
            UploadLinkConfig with merged configuration

        Raises:
            ConfigError: If a file cannot be parsed or the result is invalid
        """
        config_data: Dict[str, Any] = {}

        file_config = self._load_from_file(config_file)
        if file_config:
            config_data.update(file_config)

        env_config = self._load_from_environment()
        if env_config:
            config_data = self._deep_merge(config_data, env_config)

        try:
            return UploadLinkConfig(**config_data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def _load_from_file(self, config_file: Optional[Union[str, Path]] = None) -> Optional[Dict[str, Any]]:
        if config_file:
            config_path = Path(config_file)
            if not config_path.exists():
                raise ConfigError(f"Config file not found: {config_path}")
            return self._parse_config_file(config_path)

        for config_path in self.config_paths:
            if config_path.exists():
                return self._parse_config_file(config_path)
        return None

    def _parse_config_file(self, config_path: Path) -> Dict[str, Any]:
        """Parse configuration file based on extension."""
        suffix = config_path.suffix.lower()
        if suffix not in (".yaml", ".yml", ".json"):
            raise ConfigError(f"Unsupported config file format: {config_path.suffix}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                if suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to parse config file {config_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        return data

    def _env_mappings(self) -> Dict[str, Tuple[str, ...]]:
        prefix = self.env_prefix
        return {
            f"{prefix}URI": ("link", "uri"),
            f"{prefix}CREDENTIALS": ("link", "credentials"),
            f"{prefix}INCLUDE_EXTENSIONS": ("link", "include_extensions"),
            f"{prefix}INCLUDE_QUERY": ("link", "include_query"),
            f"{prefix}ENCODING": ("link", "encoding"),
            f"{prefix}TIMEOUT": ("link", "timeout"),
            f"{prefix}LOG_LEVEL": ("logging", "level"),
            f"{prefix}LOG_FILE": ("logging", "file_path"),
            f"{prefix}LOG_STRUCTURED": ("logging", "enable_structured"),
        }

    def _load_from_environment(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        for env_var, config_path in self._env_mappings().items():
            value = os.getenv(env_var)
            if value is None:
                continue

            current = config
            for key in config_path[:-1]:
                current = current.setdefault(key, {})
            current[config_path[-1]] = self._convert_env_value(value)

        return config

    @staticmethod
    def _convert_env_value(value: str) -> Any:
        """Convert environment variable string to appropriate type."""
        lower = value.lower()
        if lower in ("true", "yes", "on"):
            return True
        if lower in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        return value

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


def load_config(config_file: Optional[Union[str, Path]] = None) -> UploadLinkConfig:
    """Load configuration with the default loader."""
    return ConfigLoader().load_config(config_file)
