"""
Wiring of the view engine components from a configuration.
"""
import logging
from typing import Any, Dict, Mapping, Optional, Union

from .config.configuration import RenderingConfiguration, ensure_rendering_config
from .rendering.assets import AssetPathResolver
from .rendering.builder import PageBuilder
from .rendering.component import create_component_rendering_service
from .rendering.engine import TemplateEngine
from .rendering.models import Renderable
from .templates.cache import TemplateCache
from .templates.paths import TemplatePathResolver
from .templates.pipeline import DirectivePipeline
from .templates.processing import TemplateParsingService

logger = logging.getLogger(__name__)


class RenderingKernel:
    """
    Builds and owns one set of engine components.

    Example:
        kernel = RenderingKernel({"views_dir": "views", "cache_dir": "cache"})
        html = kernel.render_template("home/index", {"name": "Ada"})
    """

    def __init__(self, config: Optional[Union[RenderingConfiguration, Dict[str, Any]]] = None):
        """
        Initialize the kernel.

        Args:
            config: Configuration model or dictionary

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = ensure_rendering_config(config)

        self.resolver = TemplatePathResolver(self.config.views_dir, self.config.template_extension)
        self.cache = TemplateCache(self.config.cache_dir)
        self.engine = TemplateEngine(memory_cache_size=self.config.memory_cache_size)
        self.pipeline = DirectivePipeline()
        self.processor = TemplateParsingService(
            self.resolver,
            self.cache,
            self.pipeline,
            max_depth=self.config.max_recursion_depth,
            cache_enabled=self.config.cache_enabled,
            syntax_checker=self.engine.check_syntax,
        )
        self.renderer = create_component_rendering_service(
            self.engine,
            self.processor,
            max_depth=self.config.max_recursion_depth,
        )
        self.asset_resolver = (
            AssetPathResolver(self.config.assets_dir, self.config.assets_web_path)
            if self.config.assets_dir is not None
            else None
        )

        logger.debug(f"View engine ready (views: {self.config.views_dir}, cache: {self.config.cache_dir})")

    def render(self, renderable: Renderable) -> str:
        """Render a page, view or partial."""
        return self.renderer.render(renderable)

    def render_template(self, name: str, data: Optional[Mapping[str, Any]] = None) -> str:
        """Render a template by name with a data bag."""
        return self.renderer.render_included_partial(name, data)

    def compile(self, name: str) -> str:
        """Compiled text of a template, compiling it if the cache is stale."""
        return self.processor.get_compiled(name)

    def page_builder(self) -> PageBuilder:
        return PageBuilder(default_layout=self.config.default_layout, asset_resolver=self.asset_resolver)

    def clear_cache(self) -> int:
        """
        Drop compiled artifacts on disk and parsed templates in memory.

        Returns:
            Number of compiled artifacts removed from disk
        """
        self.engine.clear()
        return self.cache.clear()
