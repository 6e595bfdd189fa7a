"""
Error classification helpers for standardized error management.
"""
from .exceptions import (
    AssetError,
    CacheWriteError,
    CompileError,
    ConfigurationError,
    LayoutCycleError,
    PathEscape,
    PathNotFound,
    RecursionLimitExceeded,
    RenderError,
    RenderingError,
    ValidationError,
)


class ErrorCategory:
    """Error categories for classification."""
    PATH = "path"                    # Template lookup and traversal issues
    COMPILE = "compile"              # Directive syntax and layout issues
    CACHE = "cache"                  # Compiled artifact storage issues
    RECURSION = "recursion"          # Runaway nesting
    RENDER = "render"                # Expression evaluation issues
    CONFIGURATION = "configuration"  # Invalid settings or input
    SYSTEM = "system"                # Anything unexpected


class ErrorHandler:
    """Centralized error classification."""

    @staticmethod
    def classify_error(error: Exception) -> str:
        """
        Classify error into categories.

        Args:
            error: Exception to classify

        Returns:
            Error category string
        """
        if isinstance(error, (PathNotFound, PathEscape, AssetError)):
            return ErrorCategory.PATH
        elif isinstance(error, (CompileError, LayoutCycleError)):
            return ErrorCategory.COMPILE
        elif isinstance(error, CacheWriteError):
            return ErrorCategory.CACHE
        elif isinstance(error, RecursionLimitExceeded):
            return ErrorCategory.RECURSION
        elif isinstance(error, RenderError):
            return ErrorCategory.RENDER
        elif isinstance(error, (ConfigurationError, ValidationError)):
            return ErrorCategory.CONFIGURATION
        elif isinstance(error, RenderingError):
            return ErrorCategory.RENDER
        else:
            return ErrorCategory.SYSTEM

    @staticmethod
    def is_recoverable(error: Exception) -> bool:
        """
        Determine if rendering can continue after an error.

        Only cache failures are recoverable: the freshly compiled text is
        still usable without its on-disk copy.

        Args:
            error: Exception to check

        Returns:
            True if the render may proceed, False otherwise
        """
        return ErrorHandler.classify_error(error) == ErrorCategory.CACHE

    @staticmethod
    def exit_code(error: Exception) -> int:
        """Process exit code for an error surfaced by the CLI."""
        if ErrorHandler.classify_error(error) == ErrorCategory.CONFIGURATION:
            return 2
        return 1


def describe_error(error: Exception) -> str:
    """Short human readable description including the category."""
    category = ErrorHandler.classify_error(error)
    return f"[{category}] {error.__class__.__name__}: {error}"
