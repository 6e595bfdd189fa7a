"""
Layered, read-only render contexts.
"""
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional


class RenderContext(Mapping[str, Any]):
    """
    Variables visible to one template execution.

    A context layers its own data over its parent's. Lookups fall through to
    the parent; nothing ever writes to a parent. The context also records the
    template being rendered and the nested partials declared at this level.
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        parent: Optional["RenderContext"] = None,
        template: Optional[str] = None,
        partials: Optional[Mapping[str, Any]] = None
    ):
        self._data = MappingProxyType(dict(data or {}))
        self._parent = parent
        self._template = template
        self._partials = MappingProxyType(dict(partials or {}))
        self._depth = parent.depth + 1 if parent is not None else 1

    @property
    def data(self) -> Mapping[str, Any]:
        """Variables set at this level only."""
        return self._data

    @property
    def parent(self) -> Optional["RenderContext"]:
        return self._parent

    @property
    def template(self) -> Optional[str]:
        return self._template

    @property
    def partials(self) -> Mapping[str, Any]:
        return self._partials

    @property
    def depth(self) -> int:
        """Number of contexts from the root to this one, inclusive."""
        return self._depth

    def __getitem__(self, key: str) -> Any:
        if key in self._data:
            return self._data[key]
        if self._parent is not None:
            return self._parent[key]
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        if key in self._data:
            return True
        return self._parent is not None and key in self._parent

    def __iter__(self) -> Iterator[str]:
        return iter(self.to_dict())

    def __len__(self) -> int:
        return len(self.to_dict())

    def child(
        self,
        data: Optional[Mapping[str, Any]] = None,
        template: Optional[str] = None,
        partials: Optional[Mapping[str, Any]] = None
    ) -> "RenderContext":
        """Context layered over this one."""
        return RenderContext(data, parent=self, template=template, partials=partials)

    def to_dict(self) -> Dict[str, Any]:
        """Flattened copy of every visible variable."""
        merged = self._parent.to_dict() if self._parent is not None else {}
        merged.update(self._data)
        return merged

    def find_partial(self, name: str) -> Optional[Any]:
        """Nearest nested partial called ``name``, searching outwards."""
        context: Optional[RenderContext] = self
        while context is not None:
            if name in context._partials:
                return context._partials[name]
            context = context._parent
        return None

    def template_chain(self) -> List[str]:
        """Template names from the outermost context to this one."""
        chain = []
        context: Optional[RenderContext] = self
        while context is not None:
            if context._template is not None:
                chain.append(context._template)
            context = context._parent
        return list(reversed(chain))

    def __repr__(self) -> str:
        return f"RenderContext(template={self._template!r}, depth={self._depth}, keys={sorted(self._data)})"
