"""
Configuration management for the view engine with validation.
"""
import logging
import os
import yaml
import json
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from ..error.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_RECURSION_DEPTH = 32

ENV_PREFIX = "VIEW_ENGINE_"

CONFIG_FILENAMES = ("view_engine.yaml", "view_engine.yml", "view_engine.json")


class RenderingConfiguration(BaseModel):
    """Configuration for template compilation and rendering."""

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    # Directories
    views_dir: Path = Field(description="Base directory holding template sources")
    cache_dir: Path = Field(default=Path("./cache/views"), description="Directory for compiled artifacts")
    assets_dir: Optional[Path] = Field(default=None, description="Directory holding css/ and js/ assets")
    assets_web_path: str = Field(default="/resources", description="Public URL prefix for local assets")

    # Compilation settings
    template_extension: str = Field(default=".html", description="Canonical template file extension")
    max_recursion_depth: int = Field(
        default=DEFAULT_RECURSION_DEPTH,
        description="Maximum nesting of extends, includes and partials",
        ge=1,
        le=256
    )
    cache_enabled: bool = Field(default=True, description="Reuse compiled artifacts from the cache directory")
    memory_cache_size: int = Field(default=128, description="Parsed templates kept in memory", ge=1)
    default_layout: str = Field(default="layout/main", description="Layout used by pages without one")

    # Logging settings
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    json_logging: bool = False

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        value_upper = value.upper()
        if value_upper not in valid_levels:
            raise ValueError(f"Invalid log level '{value}'. Must be one of: {valid_levels}")
        return value_upper

    @field_validator("template_extension")
    @classmethod
    def validate_extension(cls, value: str) -> str:
        """Ensure the extension carries exactly one leading dot."""
        value = value.strip()
        if not value.strip("."):
            raise ValueError("template_extension cannot be empty")
        return "." + value.lstrip(".")

    @field_validator("views_dir", "cache_dir", "assets_dir", "log_file", mode="before")
    @classmethod
    def convert_single_path(cls, value: Any) -> Optional[Path]:
        """Convert single path strings to resolved Path objects."""
        if value is None or value == "":
            return None
        if isinstance(value, (str, Path)):
            return Path(value).expanduser().resolve()
        raise ValueError(f"Invalid path value: {value}")

    @model_validator(mode="before")
    @classmethod
    def resolve_workspace_paths(cls, values: Any) -> Any:
        """Resolve ${WORKSPACE_ROOT} in string settings."""
        if not isinstance(values, dict):
            return values
        workspace_root = os.environ.get("WORKSPACE_ROOT", os.getcwd())
        return {
            key: value.replace("${WORKSPACE_ROOT}", workspace_root)
            if isinstance(value, str) and "${WORKSPACE_ROOT}" in value
            else value
            for key, value in values.items()
        }

    @model_validator(mode="after")
    def validate_paths_exist(self) -> 'RenderingConfiguration':
        """Validate that the views directory exists and create the cache directory."""
        if not self.views_dir.is_dir():
            raise ValueError(f"views_dir is not a directory: {self.views_dir}")

        if self.assets_dir is not None and not self.assets_dir.is_dir():
            logger.warning(f"Assets directory not found: {self.assets_dir}")

        if self.cache_enabled and not self.cache_dir.exists():
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
                logger.info(f"Created cache directory: {self.cache_dir}")
            except OSError as e:
                # The cache degrades to always recompiling when it cannot be written
                logger.warning(f"Failed to create cache directory {self.cache_dir}: {e}")

        return self


def ensure_rendering_config(config: Optional[Any] = None) -> RenderingConfiguration:
    """Ensure a valid rendering configuration."""
    if isinstance(config, RenderingConfiguration):
        return config

    if config is None:
        config = {}

    default_config = find_default_config() or {}

    merged_config = merge_configs(default_config, config)

    try:
        return RenderingConfiguration(**merged_config)
    except Exception as e:
        raise ConfigurationError(f"Invalid configuration: {str(e)}")


def find_default_config() -> Optional[Dict[str, Any]]:
    """
    Find and load the default configuration file from standard locations.

    Returns:
        Configuration dictionary or None if no config file found
    """
    search_paths = [Path.cwd() / filename for filename in CONFIG_FILENAMES] + [
        Path.home() / ".view_engine" / "config.yaml",
        Path.home() / ".view_engine" / "config.json",
    ]

    for path in search_paths:
        try:
            if path.exists():
                return load_config_file(str(path))
        except ConfigurationError as e:
            logger.warning(f"Error loading config from {path}: {e}")

    logger.debug("No configuration file found, using defaults")
    return None


def load_config_file(file_path: str) -> Dict[str, Any]:
    """
    Load configuration from a file (YAML or JSON).

    Args:
        file_path: Path to the configuration file

    Returns:
        Dictionary with configuration

    Raises:
        ConfigurationError: If the file is not found or cannot be parsed
    """
    path = Path(file_path).expanduser()

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {file_path}")

    try:
        content = path.read_text(encoding='utf-8')

        if file_path.endswith((".yaml", ".yml")):
            loaded_config = yaml.safe_load(content) or {}
        elif file_path.endswith(".json"):
            loaded_config = json.loads(content) or {}
        else:
            raise ConfigurationError(f"Unsupported config file format: {file_path}")

        if not isinstance(loaded_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {file_path}")

        logger.debug(f"Loaded configuration from {file_path}")
        return loaded_config

    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML format in {file_path}: {str(e)}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON format in {file_path}: {str(e)}")
    except OSError as e:
        raise ConfigurationError(f"Error reading config file {file_path}: {str(e)}")


def load_configuration_from_env(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    """
    Collect settings from environment variables.

    ``VIEW_ENGINE_VIEWS_DIR=/srv/views`` becomes ``{"views_dir": "/srv/views"}``.
    Only known settings are picked up; values are left as strings for
    pydantic to coerce.

    Args:
        prefix: Environment variable prefix

    Returns:
        Configuration dictionary
    """
    known = set(RenderingConfiguration.model_fields)
    config = {}
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        name = key[len(prefix):].lower()
        if name in known:
            config[name] = value
    return config


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two configuration dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if isinstance(value, dict) and key in result and isinstance(result[key], dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value
    return result
