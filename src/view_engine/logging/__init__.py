"""
Logging setup for the view engine.
"""
from .config import LOGGER_NAME, LogConfig, JsonFormatter, reset

__all__ = ['LOGGER_NAME', 'LogConfig', 'JsonFormatter', 'reset']
