"""
Configuration loading for the view engine.

Settings are layered: defaults, then a YAML or JSON file (given explicitly or
discovered in the search paths), then ``VIEW_ENGINE_*`` environment
variables.
"""
import os
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List, Sequence

from .configuration import (
    CONFIG_FILENAMES,
    ENV_PREFIX,
    RenderingConfiguration,
    load_config_file,
    load_configuration_from_env,
    merge_configs,
    ensure_rendering_config
)

logger = logging.getLogger(__name__)


def default_search_paths() -> List[str]:
    """The working directory and its ``config`` subdirectory."""
    return [os.getcwd(), str(Path(os.getcwd()) / "config")]


def discover_config_file(search_paths: Sequence[str]) -> Optional[str]:
    """
    First configuration file found in the search paths.

    Directories are searched in order; within a directory the YAML names win
    over JSON.

    Returns:
        Path of the file, or None
    """
    for path in search_paths:
        for filename in CONFIG_FILENAMES:
            candidate = os.path.join(path, filename)
            if os.path.isfile(candidate):
                return candidate
    return None


def load_config(
    config_path: Optional[str] = None,
    env_prefix: str = ENV_PREFIX,
    defaults: Optional[Dict[str, Any]] = None,
    search_paths: Optional[List[str]] = None
) -> RenderingConfiguration:
    """
    Load the rendering configuration from files and environment.

    Args:
        config_path: Configuration file to use instead of discovery
        env_prefix: Prefix of the environment variables to consider
        defaults: Values used when neither file nor environment sets them
        search_paths: Directories searched for a configuration file

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the file cannot be read or a value is invalid
    """
    config = dict(defaults or {})

    if config_path:
        logger.info(f"Loading configuration from specified file: {config_path}")
    else:
        config_path = discover_config_file(
            search_paths if search_paths is not None else default_search_paths()
        )
        if config_path:
            logger.info(f"Loading configuration from discovered file: {config_path}")
        else:
            logger.debug("No configuration file found, using defaults and environment variables")

    if config_path:
        config = merge_configs(config, load_config_file(config_path))

    # Environment takes precedence over files
    config = merge_configs(config, load_configuration_from_env(env_prefix))

    return ensure_rendering_config(config)
