"""Pytest configuration and fixtures."""
import os
import time
from pathlib import Path
from typing import Callable

import pytest

from view_engine.kernel import RenderingKernel
from view_engine.rendering.engine import TemplateEngine
from view_engine.templates.cache import TemplateCache
from view_engine.templates.paths import TemplatePathResolver
from view_engine.templates.processing import TemplateParsingService


@pytest.fixture
def views_dir(tmp_path: Path) -> Path:
    """Create an empty views directory."""
    path = tmp_path / "views"
    path.mkdir()
    return path


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Create an empty cache directory."""
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def write_template(views_dir: Path) -> Callable[[str, str], Path]:
    """Write a template source below the views directory."""
    def _write(name: str, content: str) -> Path:
        path = views_dir / f"{name}.html"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def touch() -> Callable[[Path], None]:
    """Move a file's modification time into the future."""
    def _touch(path: Path, offset: float = 10.0) -> None:
        future = time.time() + offset
        os.utime(path, (future, future))
    return _touch


@pytest.fixture
def resolver(views_dir: Path) -> TemplatePathResolver:
    return TemplatePathResolver(views_dir)


@pytest.fixture
def cache(cache_dir: Path) -> TemplateCache:
    return TemplateCache(cache_dir)


@pytest.fixture
def engine() -> TemplateEngine:
    return TemplateEngine()


@pytest.fixture
def processor(resolver, cache, engine) -> TemplateParsingService:
    """Parsing service with a small depth limit and syntax checking."""
    return TemplateParsingService(resolver, cache, max_depth=8, syntax_checker=engine.check_syntax)


@pytest.fixture
def kernel(views_dir: Path, cache_dir: Path) -> RenderingKernel:
    """Fully wired kernel over the temporary directories."""
    return RenderingKernel({
        "views_dir": str(views_dir),
        "cache_dir": str(cache_dir),
        "max_recursion_depth": 8,
    })
