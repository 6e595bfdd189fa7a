"""
Fluent construction of pages.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlparse

import pydantic

from ..error.exceptions import AssetError, ValidationError
from .assets import AssetPathResolver
from .models import Assets, Page, Partial, View

logger = logging.getLogger(__name__)

PartialDeclaration = Union[Partial, Tuple[str, Mapping[str, Any]]]


def build_partials(partials: Optional[Mapping[str, PartialDeclaration]]) -> Dict[str, Partial]:
    """
    Normalize nested partial declarations.

    Args:
        partials: Partials keyed by name, each a ``Partial`` or a
            ``(template, data)`` tuple

    Returns:
        Partials keyed by name

    Raises:
        ValidationError: If a declaration is neither form
    """
    result: Dict[str, Partial] = {}
    for name, declaration in (partials or {}).items():
        if isinstance(declaration, Partial):
            result[name] = declaration
        elif isinstance(declaration, tuple) and len(declaration) == 2 and isinstance(declaration[0], str):
            template, data = declaration
            result[name] = _create(Partial, template=template, data=dict(data or {}))
        else:
            raise ValidationError(f"Partial '{name}' must be a Partial or a (template, data) tuple")
    return result


def _create(model: type, **fields: Any) -> Any:
    try:
        return model(**fields)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid {model.__name__.lower()}: {e}") from e


class _PartialState:
    """Mutable description of a partial until the page is built."""

    def __init__(self, template: Optional[str] = None):
        self.template = template
        self.data: Dict[str, Any] = {}
        self.partials: Dict[str, Partial] = {}
        self.configured = False

    def set(self, template: str, data: Optional[Mapping[str, Any]], partials: Optional[Mapping[str, PartialDeclaration]]) -> None:
        self.template = template
        self.data = dict(data or {})
        self.partials = build_partials(partials)
        self.configured = True

    def add_partial(self, name: str, template: str, data: Optional[Mapping[str, Any]], nested: Optional[Mapping[str, PartialDeclaration]]) -> None:
        self.partials[name] = _create(Partial, template=template, data=dict(data or {}), partials=build_partials(nested))
        self.configured = True


class PageBuilder:
    """
    Builds a ``Page`` step by step.

    Example:
        page = (PageBuilder()
                .set_title("Home")
                .set_view("home/index", {"items": items})
                .set_navigation_links([{"label": "Home", "url": "/"}])
                .set_copyright("Example Ltd")
                .build())
    """

    DEFAULT_HEADER = "partial/header"
    DEFAULT_FOOTER = "partial/footer"
    NAVIGATION_TEMPLATE = "partial/navigation"
    DEFAULT_COPYRIGHT_MESSAGE = "All rights reserved."

    def __init__(self, default_layout: str = "layout/main", asset_resolver: Optional[AssetPathResolver] = None):
        self.layout = default_layout
        self.asset_resolver = asset_resolver
        self.title: Optional[str] = None
        self.data: Dict[str, Any] = {}
        self.partials: Dict[str, Partial] = {}
        self.view: Optional[_PartialState] = None
        self.header = _PartialState(self.DEFAULT_HEADER)
        self.footer = _PartialState(self.DEFAULT_FOOTER)
        self.css: List[str] = []
        self.js: List[str] = []

    def set_layout(self, layout: str) -> "PageBuilder":
        self.layout = layout
        return self

    def set_title(self, title: str) -> "PageBuilder":
        self.title = title
        return self

    def set_data(self, data: Mapping[str, Any]) -> "PageBuilder":
        """Page level variables, available to the layout and everything it renders."""
        self.data = dict(data)
        return self

    def set_view(
        self,
        template: str,
        data: Optional[Mapping[str, Any]] = None,
        partials: Optional[Mapping[str, PartialDeclaration]] = None
    ) -> "PageBuilder":
        self.view = _PartialState()
        self.view.set(template, data, partials)
        return self

    def set_header(
        self,
        template: str = DEFAULT_HEADER,
        data: Optional[Mapping[str, Any]] = None,
        partials: Optional[Mapping[str, PartialDeclaration]] = None
    ) -> "PageBuilder":
        nested = dict(self.header.partials)
        self.header.set(template, data, partials)
        for name, partial in nested.items():
            self.header.partials.setdefault(name, partial)
        return self

    def set_footer(
        self,
        template: str = DEFAULT_FOOTER,
        data: Optional[Mapping[str, Any]] = None,
        partials: Optional[Mapping[str, PartialDeclaration]] = None
    ) -> "PageBuilder":
        copyright_notice = self.footer.data.get("copyright")
        self.footer.set(template, data, partials)
        if copyright_notice is not None:
            self.footer.data.setdefault("copyright", copyright_notice)
        return self

    def set_navigation_links(self, links: Iterable[Mapping[str, Any]]) -> "PageBuilder":
        """
        Add a ``navigation`` partial to the header.

        Args:
            links: Mappings with ``label``, ``url`` and optional ``active`` keys

        Raises:
            ValidationError: If a link has no label or URL
        """
        normalized = []
        for link in links:
            if not isinstance(link, Mapping) or not link.get("label") or not link.get("url"):
                raise ValidationError('Each navigation link must have non-empty "label" and "url" keys')
            normalized.append({
                "label": link["label"],
                "url": link["url"],
                "active": bool(link.get("active", False)),
            })
        self.header.add_partial("navigation", self.NAVIGATION_TEMPLATE, {"links": normalized}, None)
        return self

    def set_copyright(self, owner: str, message: str = DEFAULT_COPYRIGHT_MESSAGE) -> "PageBuilder":
        """Set the footer's ``copyright`` notice, e.g. ``© 2025 Owner. All rights reserved.``"""
        self.footer.data["copyright"] = f"© {date.today().year} {owner}. {message}"
        self.footer.configured = True
        return self

    def add_page_partial(self, name: str, template: str, data: Optional[Mapping[str, Any]] = None,
                         nested: Optional[Mapping[str, PartialDeclaration]] = None) -> "PageBuilder":
        self.partials[name] = _create(Partial, template=template, data=dict(data or {}), partials=build_partials(nested))
        return self

    def add_view_partial(self, name: str, template: str, data: Optional[Mapping[str, Any]] = None,
                         nested: Optional[Mapping[str, PartialDeclaration]] = None) -> "PageBuilder":
        if self.view is None:
            raise ValidationError("set_view must be called before adding view partials")
        self.view.add_partial(name, template, data, nested)
        return self

    def add_header_partial(self, name: str, template: str, data: Optional[Mapping[str, Any]] = None,
                           nested: Optional[Mapping[str, PartialDeclaration]] = None) -> "PageBuilder":
        self.header.add_partial(name, template, data, nested)
        return self

    def add_footer_partial(self, name: str, template: str, data: Optional[Mapping[str, Any]] = None,
                           nested: Optional[Mapping[str, PartialDeclaration]] = None) -> "PageBuilder":
        self.footer.add_partial(name, template, data, nested)
        return self

    def set_assets(self, identifiers: Iterable[str]) -> "PageBuilder":
        """
        Attach stylesheets and scripts.

        Local filenames are resolved through the asset resolver when one is
        configured; the file extension decides between ``css`` and ``js``.

        Raises:
            AssetError: If an identifier is neither a stylesheet nor a script
        """
        css: List[str] = []
        js: List[str] = []
        for identifier in identifiers:
            path = urlparse(identifier).path if identifier.startswith(("http://", "https://")) else identifier
            if path.lower().endswith(".css"):
                target = css
            elif path.lower().endswith(".js"):
                target = js
            else:
                raise AssetError(f"Unsupported asset type for: {identifier}")
            target.append(self.asset_resolver.resolve(identifier) if self.asset_resolver else identifier)
        self.css, self.js = css, js
        return self

    def build(self) -> Page:
        """
        Create the page.

        Raises:
            ValidationError: If no view was set or a value is invalid
        """
        if self.view is None:
            raise ValidationError("A view must be set before building the page")

        view = _create(
            View,
            template=self.view.template,
            data=self.view.data,
            partials=self.view.partials,
            title=self.title,
        )
        header = self._build_slot(self.header, {"title": self.title or ""})
        footer = self._build_slot(self.footer, {})

        page = _create(
            Page,
            template=self.layout,
            view=view,
            header=header,
            footer=footer,
            assets=Assets(css=self.css, js=self.js),
            data=self.data,
            partials=self.partials,
        )
        logger.debug(f"Built page '{page.template}' with view '{view.template}'")
        return page

    @staticmethod
    def _build_slot(state: _PartialState, defaults: Dict[str, Any]) -> Optional[Partial]:
        if not state.configured:
            return None
        data = dict(defaults)
        data.update(state.data)
        return _create(Partial, template=state.template, data=data, partials=state.partials)
