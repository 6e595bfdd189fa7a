"""
Configuration components for the view engine.
"""
from .configuration import (
    DEFAULT_RECURSION_DEPTH,
    RenderingConfiguration,
    ensure_rendering_config,
    load_config_file,
    load_configuration_from_env,
    merge_configs,
)
from .loader import load_config

__all__ = [
    "DEFAULT_RECURSION_DEPTH",
    "RenderingConfiguration",
    "ensure_rendering_config",
    "load_config",
    "load_config_file",
    "load_configuration_from_env",
    "merge_configs",
]
