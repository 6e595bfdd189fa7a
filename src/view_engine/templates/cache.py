"""
Content-addressed storage of compiled templates on disk.
"""
import contextlib
import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

from ..error.exceptions import CacheWriteError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledArtifact:
    """A compiled template read back from the cache."""
    path: str
    text: str
    mtime: float


class TemplateCache:
    """
    Stores compiled templates under ``cache_dir/ab/cd/<sha256>.j2``.

    The digest is taken over the normalized absolute source path, so one
    source always maps to the same artifact. A ``.deps.json`` manifest next
    to each artifact lists every source file that went into it.
    """

    ARTIFACT_SUFFIX = ".j2"
    MANIFEST_SUFFIX = ".deps.json"

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = os.path.abspath(str(cache_dir))

    def compiled_path_for(self, source_path: str) -> str:
        """
        Derive the artifact path for a source file.

        Args:
            source_path: Template source path

        Returns:
            Absolute artifact path inside the cache directory
        """
        normalized = os.path.normcase(os.path.abspath(source_path))
        digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
        return os.path.join(self.cache_dir, digest[:2], digest[2:4], digest + self.ARTIFACT_SUFFIX)

    def manifest_path_for(self, compiled_path: str) -> str:
        return compiled_path[:-len(self.ARTIFACT_SUFFIX)] + self.MANIFEST_SUFFIX

    def is_stale(self, source_path: str, compiled_path: str) -> bool:
        """
        Check whether a compiled artifact must be rebuilt.

        The artifact is stale when it is missing or older than the source.
        Any filesystem error while checking counts as stale.
        """
        try:
            compiled_mtime = os.path.getmtime(compiled_path)
        except OSError:
            return True
        try:
            return os.path.getmtime(source_path) > compiled_mtime
        except OSError:
            return True

    def dependencies_stale(self, compiled_path: str) -> bool:
        """True if any source recorded in the artifact's manifest changed since compilation."""
        try:
            dependencies = self.read_dependencies(compiled_path)
        except ValueError as e:
            logger.warning(f"Ignoring unreadable dependency manifest for {compiled_path}: {e}")
            return True
        return any(self.is_stale(dependency, compiled_path) for dependency in dependencies)

    def read(self, compiled_path: str) -> CompiledArtifact:
        """
        Read a compiled artifact.

        Raises:
            OSError: If the artifact cannot be read
        """
        with open(compiled_path, "r", encoding="utf-8") as handle:
            text = handle.read()
        return CompiledArtifact(compiled_path, text, os.path.getmtime(compiled_path))

    def write(self, compiled_path: str, content: str) -> None:
        """
        Atomically replace the artifact at ``compiled_path``.

        Raises:
            CacheWriteError: If the artifact could not be written
        """
        self._atomic_write(compiled_path, content)
        logger.debug(f"Wrote compiled template {compiled_path}")

    def write_dependencies(self, compiled_path: str, dependencies: Sequence[str]) -> None:
        """Record the source files an artifact was built from."""
        self._atomic_write(self.manifest_path_for(compiled_path), json.dumps(list(dependencies), indent=2))

    def read_dependencies(self, compiled_path: str) -> List[str]:
        """
        Source files recorded for an artifact.

        Returns:
            List of source paths, empty if no manifest exists

        Raises:
            ValueError: If the manifest exists but is malformed
        """
        manifest_path = self.manifest_path_for(compiled_path)
        try:
            with open(manifest_path, "r", encoding="utf-8") as handle:
                dependencies = json.load(handle)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise ValueError(f"Cannot read {manifest_path}: {e}") from e
        if not isinstance(dependencies, list) or not all(isinstance(d, str) for d in dependencies):
            raise ValueError(f"Manifest {manifest_path} is not a list of paths")
        return dependencies

    def clear(self) -> int:
        """
        Remove every artifact and manifest.

        Returns:
            Number of compiled artifacts removed
        """
        removed = 0
        if not os.path.isdir(self.cache_dir):
            return removed
        for root, dirs, files in os.walk(self.cache_dir, topdown=False):
            for filename in files:
                if filename.endswith(self.ARTIFACT_SUFFIX):
                    os.remove(os.path.join(root, filename))
                    removed += 1
                elif filename.endswith(self.MANIFEST_SUFFIX):
                    os.remove(os.path.join(root, filename))
            if root != self.cache_dir and not os.listdir(root):
                os.rmdir(root)
        logger.info(f"Removed {removed} compiled template(s) from {self.cache_dir}")
        return removed

    def _atomic_write(self, path: str, content: str) -> None:
        directory = os.path.dirname(path)
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise CacheWriteError(f"Cannot create cache directory {directory}: {e}", path=path) from e

        temp_path = None
        try:
            fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".part")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.chmod(temp_path, 0o644)
            os.replace(temp_path, path)
        except OSError as e:
            if temp_path is not None:
                with contextlib.suppress(OSError):
                    os.unlink(temp_path)
            raise CacheWriteError(f"Failed to write cache file {path}: {e}", path=path) from e
