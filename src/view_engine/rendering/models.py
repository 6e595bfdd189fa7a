"""
Renderable values: pages, views and partials.
"""
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RenderableKind(str, Enum):
    """Dispatch key of a renderable."""
    PAGE = "page"
    VIEW = "view"
    PARTIAL = "partial"


def validate_reference(value: str, what: str = "template") -> str:
    """Strip a template or partial name and reject empty ones."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{what} name cannot be empty")
    return value.strip()


class Renderable(BaseModel):
    """
    Common shape of everything the rendering service accepts.

    Attributes:
        template: Logical template name
        data: Variables made available to the template
        partials: Named nested partials reachable through ``@partial``
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: ClassVar[RenderableKind]

    template: str
    data: Dict[str, Any] = Field(default_factory=dict)
    partials: Dict[str, "Partial"] = Field(default_factory=dict)

    @field_validator("template")
    @classmethod
    def validate_template(cls, value: str) -> str:
        return validate_reference(value)

    @field_validator("partials")
    @classmethod
    def validate_partial_names(cls, value: Dict[str, "Partial"]) -> Dict[str, "Partial"]:
        for name in value:
            validate_reference(name, "partial")
        return value


class Partial(Renderable):
    """A reusable fragment."""
    kind: ClassVar[RenderableKind] = RenderableKind.PARTIAL


class View(Renderable):
    """The main content of a page."""
    kind: ClassVar[RenderableKind] = RenderableKind.VIEW

    title: Optional[str] = None


class Assets(BaseModel):
    """Stylesheet and script web paths of a page."""

    model_config = ConfigDict(frozen=True)

    css: List[str] = Field(default_factory=list)
    js: List[str] = Field(default_factory=list)


class Page(Renderable):
    """
    A full document: a layout template wrapping a header, a view and a footer.

    ``template`` names the layout.
    """
    kind: ClassVar[RenderableKind] = RenderableKind.PAGE

    view: View
    header: Optional[Partial] = None
    footer: Optional[Partial] = None
    assets: Assets = Field(default_factory=Assets)

    @property
    def title(self) -> str:
        return self.view.title or ""


Renderable.model_rebuild()
Partial.model_rebuild()
View.model_rebuild()
Page.model_rebuild()
