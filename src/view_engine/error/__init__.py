"""
Error handling utilities and exceptions.
"""
from .exceptions import (
    ErrorContext,
    RenderingError,
    ConfigurationError,
    ValidationError,
    PathNotFound,
    PathEscape,
    CompileError,
    DuplicateSectionError,
    LayoutCycleError,
    RecursionLimitExceeded,
    CacheWriteError,
    RenderError,
    AssetError,
)

from .handler import (
    ErrorHandler,
    ErrorCategory,
    describe_error,
)

__all__ = [
    # Exceptions
    'ErrorContext',
    'RenderingError',
    'ConfigurationError',
    'ValidationError',
    'PathNotFound',
    'PathEscape',
    'CompileError',
    'DuplicateSectionError',
    'LayoutCycleError',
    'RecursionLimitExceeded',
    'CacheWriteError',
    'RenderError',
    'AssetError',

    # Error handling utilities
    'ErrorHandler',
    'ErrorCategory',
    'describe_error',
]
