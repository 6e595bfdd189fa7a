"""
Rendering of pages, views and partials.
"""
from .assets import AssetPathResolver
from .builder import PageBuilder
from .component import (
    ComponentRenderer,
    ComponentRenderingService,
    PageRenderer,
    PartialRenderer,
    ViewRenderer,
    create_component_rendering_service,
)
from .context import RenderContext
from .engine import MemoryCache, TemplateEngine
from .models import Assets, Page, Partial, Renderable, RenderableKind, View
from .view_api import ViewApi

__all__ = [
    "AssetPathResolver",
    "Assets",
    "ComponentRenderer",
    "ComponentRenderingService",
    "MemoryCache",
    "Page",
    "PageBuilder",
    "PageRenderer",
    "Partial",
    "PartialRenderer",
    "RenderContext",
    "Renderable",
    "RenderableKind",
    "TemplateEngine",
    "View",
    "ViewApi",
    "ViewRenderer",
    "create_component_rendering_service",
]
