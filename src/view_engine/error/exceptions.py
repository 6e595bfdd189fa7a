"""
Centralized exception definitions for the view engine.
"""
from typing import Optional, Sequence


class ErrorContext:
    """Context information for errors."""

    def __init__(self, component: str = None, operation: str = None, **kwargs):
        self.component = component
        self.operation = operation
        self.details = kwargs


class RenderingError(Exception):
    """Base class for all view engine errors."""

    def __init__(self, message: str, context: ErrorContext = None, details: dict = None):
        super().__init__(message)
        self.context = context or ErrorContext()
        self.details = details or {}

    def __str__(self):
        base_str = super().__str__()
        if self.context.component and self.context.operation:
            return f"{base_str} [in {self.context.component}.{self.context.operation}]"
        return base_str


class ConfigurationError(RenderingError):
    """Error in configuration."""
    pass


class ValidationError(RenderingError):
    """Error in renderable or builder input."""
    pass


class PathNotFound(RenderingError):
    """Template file does not exist or is not readable."""
    pass


class PathEscape(RenderingError):
    """Template name resolves outside of the views directory."""
    pass


class CompileError(RenderingError):
    """Malformed, misplaced or duplicated directive."""

    def __init__(
        self,
        message: str,
        directive: Optional[str] = None,
        line: Optional[int] = None,
        template: Optional[str] = None,
        context: ErrorContext = None,
    ):
        super().__init__(message, context=context, details={"directive": directive, "line": line})
        self.directive = directive
        self.line = line
        self.template = template

    def __str__(self):
        base_str = super().__str__()
        if self.template:
            return f"{base_str} (template '{self.template}')"
        return base_str


class DuplicateSectionError(CompileError):
    """Section defined twice in one template."""
    pass


class LayoutCycleError(RenderingError):
    """A template reappears on its own extends chain."""

    def __init__(self, chain: Sequence[str], context: ErrorContext = None):
        self.chain = list(chain)
        super().__init__(
            "Layout cycle detected: " + " -> ".join(self.chain),
            context=context,
            details={"chain": self.chain},
        )


class RecursionLimitExceeded(RenderingError):
    """Extends, include or partial nesting went past the configured depth."""

    def __init__(
        self,
        chain: Sequence[str],
        limit: int,
        reason: Optional[str] = None,
        context: ErrorContext = None,
    ):
        self.chain = list(chain)
        self.limit = limit
        reason = reason or f"Recursion limit of {limit} exceeded"
        super().__init__(
            f"{reason}: " + " -> ".join(self.chain),
            context=context,
            details={"chain": self.chain, "limit": limit},
        )


class CacheWriteError(RenderingError):
    """Compiled artifact could not be written to the cache directory."""

    def __init__(self, message: str, path: Optional[str] = None, context: ErrorContext = None):
        super().__init__(message, context=context, details={"path": path})
        self.path = path


class RenderError(RenderingError):
    """Failure while executing a compiled template."""

    def __init__(self, message: str, template: Optional[str] = None, context: ErrorContext = None):
        super().__init__(message, context=context, details={"template": template})
        self.template = template


class AssetError(RenderingError):
    """Invalid or missing asset."""
    pass
