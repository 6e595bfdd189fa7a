"""
Template parsing service: layout merging, compilation and cache coordination.
"""
import logging
import os
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..config.configuration import DEFAULT_RECURSION_DEPTH
from ..error.exceptions import (
    CacheWriteError,
    CompileError,
    LayoutCycleError,
    PathNotFound,
    RecursionLimitExceeded,
)
from .cache import TemplateCache
from .parsing import LayoutParser, MergedTemplate, SectionMap, SectionParser, TemplateSource
from .paths import TemplatePathResolver
from .pipeline import DirectivePipeline

logger = logging.getLogger(__name__)

SyntaxChecker = Callable[[str], None]


class TemplateParsingService:
    """
    Produces compiled text for a template name.

    Compiled output is served from the cache while neither the template nor
    any layout or include it was built from has changed. Otherwise the extends
    chain is merged, every section and the root body are compiled, yields are
    substituted and the result is written back to the cache.
    """

    def __init__(
        self,
        resolver: TemplatePathResolver,
        cache: TemplateCache,
        pipeline: Optional[DirectivePipeline] = None,
        layout_parser: Optional[LayoutParser] = None,
        section_parser: Optional[SectionParser] = None,
        max_depth: int = DEFAULT_RECURSION_DEPTH,
        cache_enabled: bool = True,
        syntax_checker: Optional[SyntaxChecker] = None
    ):
        """
        Initialize the service.

        Args:
            resolver: Template path resolver
            cache: Compiled template cache
            pipeline: Directive pipeline
            layout_parser: ``@extends`` parser
            section_parser: ``@section`` parser
            max_depth: Maximum length of layout and include chains
            cache_enabled: Whether compiled output is read from and written to the cache
            syntax_checker: Callable validating the final compiled text
        """
        self.resolver = resolver
        self.cache = cache
        self.pipeline = pipeline or DirectivePipeline()
        self.layout_parser = layout_parser or LayoutParser()
        self.section_parser = section_parser or SectionParser()
        self.max_depth = max_depth
        self.cache_enabled = cache_enabled
        self.syntax_checker = syntax_checker
        self.compile_count = 0
        self.cache_failures = 0

    def get_compiled(self, name: str) -> str:
        """
        Compiled text for a template.

        Args:
            name: Logical template name

        Returns:
            Compiled template text ready for execution

        Raises:
            PathNotFound: If the template or one of its layouts or includes is missing
            PathEscape: If a name resolves outside the views directory
            CompileError: If a directive is malformed
            LayoutCycleError: If the extends chain loops
            RecursionLimitExceeded: If layout or include nesting is too deep
        """
        source_path = self.resolver.resolve(name)
        compiled_path = self.cache.compiled_path_for(source_path)

        if self.cache_enabled and self._is_fresh(source_path, compiled_path):
            try:
                artifact = self.cache.read(compiled_path)
                logger.debug(f"Using cached compilation of '{name}' from {compiled_path}")
                return artifact.text
            except OSError as e:
                logger.warning(f"Could not read cached template {compiled_path}: {e}")

        compiled, dependencies = self._compile(name)

        if self.cache_enabled:
            self._store(compiled_path, compiled, dependencies)

        return compiled

    def compiled_path(self, name: str) -> str:
        """Cache path the compiled form of a template is stored at."""
        return self.cache.compiled_path_for(self.resolver.resolve(name))

    def merge_layouts(self, name: str) -> MergedTemplate:
        """
        Walk the extends chain of a template.

        Sections are collected on the way up; a section defined by a more
        derived template wins over the same section in its ancestors. The
        body of the root layout becomes the working text.

        Args:
            name: Logical template name

        Returns:
            Merged template

        Raises:
            LayoutCycleError: If a template appears twice on the chain
            RecursionLimitExceeded: If the chain is longer than the depth limit
        """
        sections: SectionMap = {}
        chain: List[str] = []
        paths: List[str] = []
        body = ""
        pending: Optional[str] = name

        while pending is not None:
            path = self.resolver.resolve(pending)
            if path in paths:
                raise LayoutCycleError(chain + [pending])
            if len(paths) >= self.max_depth:
                raise RecursionLimitExceeded(chain + [pending], self.max_depth)
            chain.append(pending)
            paths.append(path)

            source = self._read_source(pending, path)
            try:
                parent, text = self.layout_parser.extract_layout(source.text)
                own_sections, body = self.section_parser.extract_sections(text, keep_lines=parent is not None)
                if parent is not None:
                    self.section_parser.check_outside_sections(body, parent)
            except CompileError as e:
                if e.template is None:
                    e.template = pending
                raise

            for section_name, section_text in own_sections.items():
                sections.setdefault(section_name, section_text)
            pending = parent

        return MergedTemplate(body=body, sections=sections, chain=tuple(chain), dependencies=tuple(paths))

    def expand_include(self, name: str, chain: Tuple[str, ...], dependencies: List[str]) -> str:
        """
        Source of an included template with its layouts merged, its includes
        expanded and its yields resolved.

        Args:
            name: Logical name of the included template
            chain: Source paths of the templates currently being included
            dependencies: Collected source paths, extended in place

        Returns:
            Expanded template text, not yet compiled

        Raises:
            RecursionLimitExceeded: If the template is already on the include
                chain or the chain is too long
        """
        path = self.resolver.resolve(name)
        names = [self._display_name(p) for p in chain] + [name]
        if path in chain:
            raise RecursionLimitExceeded(names, self.max_depth, reason="Include cycle detected")
        if len(chain) >= self.max_depth:
            raise RecursionLimitExceeded(names, self.max_depth)

        merged = self.merge_layouts(name)
        dependencies.extend(merged.dependencies)
        include_compiler = self.pipeline.create_include_compiler(
            partial(self.expand_include, chain=chain + (path,), dependencies=dependencies)
        )
        try:
            sections = {
                section_name: self.pipeline.expand(section_text, include_compiler)
                for section_name, section_text in merged.sections.items()
            }
            body = self.pipeline.expand(merged.body, include_compiler)
            return self.pipeline.apply_yields(body, sections)
        except CompileError as e:
            if e.template is None:
                e.template = name
            raise

    def _compile(self, name: str) -> Tuple[str, List[str]]:
        merged = self.merge_layouts(name)
        dependencies = list(merged.dependencies)
        include_compiler = self.pipeline.create_include_compiler(
            partial(self.expand_include, chain=merged.dependencies[:1], dependencies=dependencies)
        )

        try:
            sections = {
                section_name: self.pipeline.compile(section_text, include_compiler)
                for section_name, section_text in merged.sections.items()
            }
            body = self.pipeline.compile(merged.body, include_compiler)
            compiled = self.pipeline.finalize(self.pipeline.apply_yields(body, sections))
            if self.syntax_checker is not None:
                self.syntax_checker(compiled)
        except CompileError as e:
            if e.template is None:
                e.template = name
            raise

        self.compile_count += 1
        dependencies = _unique(dependencies)
        logger.info(
            f"Compiled template '{name}' "
            f"(layout chain: {' -> '.join(merged.chain)}, {len(dependencies)} source file(s))",
            extra={"template": name},
        )
        return compiled, dependencies

    def _is_fresh(self, source_path: str, compiled_path: str) -> bool:
        if self.cache.is_stale(source_path, compiled_path):
            return False
        return not self.cache.dependencies_stale(compiled_path)

    def _store(self, compiled_path: str, compiled: str, dependencies: Sequence[str]) -> None:
        try:
            # An artifact is never newer than its manifest
            self.cache.write_dependencies(compiled_path, dependencies)
            self.cache.write(compiled_path, compiled)
        except CacheWriteError as e:
            self.cache_failures += 1
            logger.warning(f"Template cache unavailable, using uncached output: {e}")

    def _read_source(self, name: str, path: str) -> TemplateSource:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                text = handle.read()
            mtime = os.path.getmtime(path)
        except UnicodeDecodeError as e:
            raise CompileError(f"Template is not valid UTF-8: {e}", template=name)
        except OSError as e:
            raise PathNotFound(f"Cannot read template '{name}': {e}")
        return TemplateSource(name=name, path=path, text=text, mtime=mtime)

    def _display_name(self, path: str) -> str:
        relative = os.path.relpath(path, self.resolver.base_dir)
        extension = self.resolver.extension
        if relative.endswith(extension):
            relative = relative[:-len(extension)]
        return relative.replace(os.sep, "/")


def _unique(items: Sequence[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return list(seen)
