"""
Mapping of asset identifiers to public URLs.
"""
import logging
import os
from pathlib import Path
from typing import Iterable, List, Union

from ..error.exceptions import AssetError

logger = logging.getLogger(__name__)

ASSET_DIRECTORIES = {".css": "css", ".js": "js"}


class AssetPathResolver:
    """
    Turns an asset identifier into a URL.

    External ``http(s)`` URLs are returned unchanged. Anything else must be a
    bare ``.css`` or ``.js`` filename that exists under the matching
    subdirectory of the assets directory.
    """

    def __init__(self, assets_dir: Union[str, Path], web_path: str = "/resources"):
        self.assets_dir = os.path.abspath(str(assets_dir))
        self.web_path = web_path.rstrip("/")

    def resolve(self, identifier: str) -> str:
        """
        Resolve one asset.

        Args:
            identifier: URL or local filename such as ``main.css``

        Returns:
            Public URL of the asset

        Raises:
            AssetError: If the identifier is not a permitted filename, has an
                unsupported type or the file does not exist
        """
        if identifier.startswith(("http://", "https://")):
            return identifier

        if not identifier or ".." in identifier or "/" in identifier or "\\" in identifier:
            raise AssetError(f"Invalid local asset name '{identifier}'. Only filenames are permitted.")

        extension = os.path.splitext(identifier)[1].lower()
        subdirectory = ASSET_DIRECTORIES.get(extension)
        if subdirectory is None:
            raise AssetError(f"Unsupported asset type for filename: {identifier}")

        physical_path = os.path.join(self.assets_dir, subdirectory, identifier)
        if not os.path.isfile(physical_path) or not os.access(physical_path, os.R_OK):
            raise AssetError(f"Asset source file not found or not readable: {physical_path}")

        return f"{self.web_path}/{subdirectory}/{identifier}"

    def resolve_all(self, identifiers: Iterable[str]) -> List[str]:
        return [self.resolve(identifier) for identifier in identifiers]
