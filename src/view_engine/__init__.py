"""
View Engine: compiles a small directive template language to Jinja2 and
renders pages, views and partials to HTML.
"""
# Set up package version
__version__ = "1.0.0"

from .error.exceptions import (
    CacheWriteError,
    CompileError,
    LayoutCycleError,
    PathEscape,
    PathNotFound,
    RecursionLimitExceeded,
    RenderError,
    RenderingError,
)
from .kernel import RenderingKernel
from .rendering.models import Page, Partial, View

__all__ = [
    "CacheWriteError",
    "CompileError",
    "LayoutCycleError",
    "Page",
    "Partial",
    "PathEscape",
    "PathNotFound",
    "RecursionLimitExceeded",
    "RenderError",
    "RenderingError",
    "RenderingKernel",
    "View",
    "__version__",
]
