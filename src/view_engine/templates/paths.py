"""
Resolution of logical template names to files inside the views directory.
"""
import logging
import os
from pathlib import Path
from typing import Union

from ..error.exceptions import PathEscape, PathNotFound

logger = logging.getLogger(__name__)


def validate_template_name(name: str) -> str:
    """
    Reject names that can never refer to a template file.

    Args:
        name: Logical template name

    Returns:
        The name with surrounding whitespace removed

    Raises:
        PathNotFound: If the name is empty or contains control characters
    """
    if not isinstance(name, str) or not name.strip():
        raise PathNotFound("Template name cannot be empty")
    if any(ord(ch) < 32 for ch in name):
        raise PathNotFound(f"Template name contains control characters: {name!r}")
    return name.strip()


def normalize_template_name(name: str, extension: str) -> str:
    """Use forward slashes, drop leading separators and append the extension."""
    normalized = name.replace("\\", "/").lstrip("/")
    if not normalized.endswith(extension):
        normalized += extension
    return normalized


def is_within(path: str, base_dir: str) -> bool:
    """True if ``path`` is ``base_dir`` or one of its descendants. Both must be canonical."""
    try:
        return os.path.commonpath([path, base_dir]) == base_dir
    except ValueError:
        # Different drives on Windows
        return False


class TemplatePathResolver:
    """
    Resolves a template name into an absolute, validated file path inside a
    fixed base directory.
    """

    def __init__(self, views_dir: Union[str, Path], extension: str = ".html"):
        """
        Initialize the resolver.

        Args:
            views_dir: Base directory holding template sources
            extension: Canonical template extension appended when missing
        """
        base_dir = os.path.realpath(str(views_dir))
        if not os.path.isdir(base_dir):
            raise PathNotFound(f"Views directory not found: {views_dir}")
        self.base_dir = base_dir
        self.extension = extension

    def resolve(self, name: str) -> str:
        """
        Resolve a logical template name.

        Args:
            name: Template name such as ``layout/main`` or ``partial/nav.html``

        Returns:
            Canonical absolute path of the template source

        Raises:
            PathEscape: If the name resolves outside of the views directory
            PathNotFound: If the file does not exist or is not readable
        """
        name = validate_template_name(name)
        normalized = normalize_template_name(name, self.extension)
        candidate = os.path.join(self.base_dir, *normalized.split("/"))
        real_path = os.path.realpath(candidate)

        if not is_within(real_path, self.base_dir):
            logger.warning(f"Rejected template name escaping the views directory: {name}")
            raise PathEscape(f"Template '{name}' resolves outside of the views directory")

        if not os.path.isfile(real_path) or not os.access(real_path, os.R_OK):
            raise PathNotFound(f"Template source file not found or not readable: {candidate}")

        return real_path
