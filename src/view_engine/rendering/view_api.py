"""
The ``view`` object compiled templates call back into.
"""
import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

from markupsafe import Markup

from .context import RenderContext

if TYPE_CHECKING:
    from .component import ComponentRenderingService

logger = logging.getLogger(__name__)


class ViewApi:
    """Renders nested partials and runtime includes from inside a template."""

    def __init__(self, renderer: "ComponentRenderingService", context: RenderContext):
        self.renderer = renderer
        self.context = context

    def partial(self, name: str) -> Markup:
        """
        Render the nested partial called ``name``.

        Unknown partials render as an empty string.
        """
        found = self.context.find_partial(name)
        if found is None:
            logger.warning(
                f"Partial '{name}' is not defined for template '{self.context.template}'",
                extra={"template": self.context.template},
            )
            return Markup("")
        return Markup(self.renderer.render(found, parent=self.context))

    def include(self, name: str, data: Optional[Mapping[str, Any]] = None) -> Markup:
        """Render another template with ``data`` layered over the current variables."""
        return Markup(self.renderer.render_included_partial(name, data, parent=self.context))
