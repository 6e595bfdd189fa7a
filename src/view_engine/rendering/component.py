"""
Component rendering: dispatches renderables to the renderer for their kind.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Type

from ..config.configuration import DEFAULT_RECURSION_DEPTH
from ..error.exceptions import RecursionLimitExceeded, RenderError
from ..templates.processing import TemplateParsingService
from .context import RenderContext
from .engine import TemplateEngine
from .models import Page, Partial, Renderable, RenderableKind, View
from .view_api import ViewApi

logger = logging.getLogger(__name__)


def layer_context(
    parent: Optional[RenderContext],
    data: Optional[Mapping[str, Any]],
    template: str,
    partials: Optional[Mapping[str, Any]] = None
) -> RenderContext:
    """New context for ``template``, layered over ``parent`` when given."""
    if parent is None:
        return RenderContext(data, template=template, partials=partials)
    return parent.child(data, template=template, partials=partials)


class ComponentRenderer(ABC):
    """Renders one kind of renderable."""

    kind: RenderableKind

    def render(
        self,
        renderable: Renderable,
        service: "ComponentRenderingService",
        parent: Optional[RenderContext] = None
    ) -> str:
        context = self.build_context(renderable, parent)
        return service.render_template(renderable.template, context)

    @abstractmethod
    def build_context(self, renderable: Renderable, parent: Optional[RenderContext]) -> RenderContext:
        """
        Context the renderable's template executes against.

        Args:
            renderable: Value being rendered
            parent: Context of the enclosing template, if any

        Returns:
            Render context
        """
        pass


class PageRenderer(ComponentRenderer):
    """
    Renders a page layout.

    The view's data is layered over the page's. The header, the view and the
    footer are reachable from the layout as the ``header``, ``content`` and
    ``footer`` partials, next to every partial declared by the page, its
    header, its footer and its view.
    """

    kind = RenderableKind.PAGE

    def build_context(self, renderable: Page, parent: Optional[RenderContext]) -> RenderContext:
        data: Dict[str, Any] = dict(renderable.data)
        data.update(renderable.view.data)
        data.update({
            "page": renderable,
            "title": renderable.title,
            "assets": renderable.assets,
            "css_links": list(renderable.assets.css),
            "js_links": list(renderable.assets.js),
        })

        partials: Dict[str, Any] = dict(renderable.partials)
        for slot in (renderable.header, renderable.footer, renderable.view):
            if slot is not None:
                partials.update(slot.partials)
        if renderable.header is not None:
            partials["header"] = renderable.header
        partials["content"] = renderable.view
        if renderable.footer is not None:
            partials["footer"] = renderable.footer

        return layer_context(parent, data, renderable.template, partials)


class ViewRenderer(ComponentRenderer):
    """Renders a view with its title."""

    kind = RenderableKind.VIEW

    def build_context(self, renderable: View, parent: Optional[RenderContext]) -> RenderContext:
        data: Dict[str, Any] = dict(renderable.data)
        if renderable.title is not None:
            data["title"] = renderable.title
        return layer_context(parent, data, renderable.template, renderable.partials)


class PartialRenderer(ComponentRenderer):
    """Renders a partial."""

    kind = RenderableKind.PARTIAL

    def build_context(self, renderable: Partial, parent: Optional[RenderContext]) -> RenderContext:
        data: Dict[str, Any] = dict(renderable.data)
        data["partial"] = renderable
        return layer_context(parent, data, renderable.template, renderable.partials)


class ComponentRenderingService:
    """
    Entry point for rendering renderables and templates.

    Nested rendering (partials and runtime includes) comes back through this
    service with the enclosing context as parent, so the render depth is the
    length of the context chain.
    """

    def __init__(
        self,
        renderers: Mapping[RenderableKind, ComponentRenderer],
        engine: TemplateEngine,
        processor: TemplateParsingService,
        max_depth: int = DEFAULT_RECURSION_DEPTH
    ):
        """
        Initialize the service.

        Args:
            renderers: Dispatch table keyed by renderable kind
            engine: Template execution engine
            processor: Source of compiled template text
            max_depth: Maximum nesting of rendered templates
        """
        self.renderers: Dict[RenderableKind, ComponentRenderer] = dict(renderers)
        self.engine = engine
        self.processor = processor
        self.max_depth = max_depth

    def render(self, renderable: Renderable, parent: Optional[RenderContext] = None) -> str:
        """
        Render a page, view or partial.

        Args:
            renderable: Value to render
            parent: Context of the enclosing template when rendering nested content

        Returns:
            Rendered HTML

        Raises:
            RenderError: If no renderer handles the value
            RecursionLimitExceeded: If nesting goes past the depth limit
        """
        kind = getattr(type(renderable), "kind", None)
        renderer = self.renderers.get(kind)
        if renderer is None:
            raise RenderError(f"No renderer registered for {type(renderable).__name__}")
        logger.debug(f"Rendering {renderer.kind.value} '{renderable.template}'")
        return renderer.render(renderable, self, parent)

    def render_included_partial(
        self,
        name: str,
        data: Optional[Mapping[str, Any]] = None,
        parent: Optional[RenderContext] = None
    ) -> str:
        """
        Render a template by name with a data bag.

        Args:
            name: Logical template name
            data: Variables layered over the parent context
            parent: Context of the including template

        Returns:
            Rendered HTML
        """
        return self.render_template(name, layer_context(parent, data, name))

    def render_template(self, name: str, context: RenderContext) -> str:
        """
        Compile (or fetch) a template and execute it against ``context``.

        Raises:
            RecursionLimitExceeded: If the context chain is deeper than the limit
        """
        if context.depth > self.max_depth:
            raise RecursionLimitExceeded(context.template_chain(), self.max_depth)
        compiled = self.processor.get_compiled(name)
        return self.engine.execute(compiled, context, extra={"view": ViewApi(self, context)})


RENDERER_MAP: Dict[RenderableKind, Type[ComponentRenderer]] = {
    RenderableKind.PAGE: PageRenderer,
    RenderableKind.VIEW: ViewRenderer,
    RenderableKind.PARTIAL: PartialRenderer,
}


def create_component_rendering_service(
    engine: TemplateEngine,
    processor: TemplateParsingService,
    max_depth: int = DEFAULT_RECURSION_DEPTH
) -> ComponentRenderingService:
    """Build a rendering service with the default renderer for every kind."""
    renderers = {kind: renderer_class() for kind, renderer_class in RENDERER_MAP.items()}
    return ComponentRenderingService(renderers, engine, processor, max_depth=max_depth)
