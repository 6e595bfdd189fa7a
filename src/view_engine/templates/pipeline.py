"""
Ordered pipeline of directive compiler passes.
"""
import logging
from typing import Dict, Mapping, Optional, Sequence, Type

from .compilers import (
    CommentCompiler,
    ConditionalCompiler,
    DirectiveCompiler,
    EchoCompiler,
    Expander,
    IncludeCompiler,
    LiteralAtCompiler,
    LoopCompiler,
    PartialCompiler,
    RawEchoCompiler,
    ScopeCompiler,
    ValidationCompiler,
    YieldCompiler,
)

logger = logging.getLogger(__name__)


class DirectivePipeline:
    """
    Runs template text through the compiler passes in a fixed order.

    Includes are expanded before validation, so included text is checked and
    compiled together with the including template. Escaped echoes run before
    every pass that emits ``{{ ... }}`` itself. ``@@`` escapes are resolved
    by ``finalize`` once yields have been substituted.
    The include pass needs a callback into the parsing service and is handed
    in per call; every other pass is stateless and shared.
    """

    COMPILATION_ORDER: Sequence[Type[DirectiveCompiler]] = (
        CommentCompiler,
        IncludeCompiler,
        ValidationCompiler,
        EchoCompiler,
        RawEchoCompiler,
        ConditionalCompiler,
        LoopCompiler,
        ScopeCompiler,
        PartialCompiler,
    )

    FINALIZATION_ORDER: Sequence[Type[DirectiveCompiler]] = (
        LiteralAtCompiler,
    )

    EXPANSION_ORDER: Sequence[Type[DirectiveCompiler]] = (
        CommentCompiler,
        IncludeCompiler,
    )

    def __init__(self, compilers: Optional[Mapping[Type[DirectiveCompiler], DirectiveCompiler]] = None):
        """
        Initialize the pipeline.

        Args:
            compilers: Optional replacements for the stateless passes keyed by pass class
        """
        self.compilers: Dict[Type[DirectiveCompiler], DirectiveCompiler] = {
            compiler_class: compiler_class()
            for compiler_class in tuple(self.COMPILATION_ORDER) + tuple(self.FINALIZATION_ORDER)
            if compiler_class is not IncludeCompiler
        }
        if compilers:
            self.compilers.update(compilers)

    def create_include_compiler(self, expander: Expander) -> IncludeCompiler:
        return IncludeCompiler(expander)

    def create_yield_compiler(self, sections: Mapping[str, str]) -> YieldCompiler:
        return YieldCompiler(sections)

    def expand(self, text: str, include_compiler: IncludeCompiler) -> str:
        """Strip comments and inline includes without compiling anything else."""
        return self._run(text, self.EXPANSION_ORDER, include_compiler)

    def compile(self, text: str, include_compiler: IncludeCompiler) -> str:
        """
        Run every stateless pass.

        Args:
            text: Template text with layout and section declarations removed
            include_compiler: Include pass bound to the current compilation

        Returns:
            Compiled text that may still contain ``@yield`` directives and
            ``@@`` escapes
        """
        return self._run(text, self.COMPILATION_ORDER, include_compiler)

    def apply_yields(self, text: str, sections: Mapping[str, str]) -> str:
        """Substitute ``@yield`` directives with section text."""
        return self.create_yield_compiler(sections).compile(text)

    def finalize(self, text: str) -> str:
        """Turn ``@@name`` escapes into literal ``@name`` text."""
        for compiler_class in self.FINALIZATION_ORDER:
            text = self.compilers[compiler_class].compile(text)
        return text

    def _run(
        self,
        text: str,
        order: Sequence[Type[DirectiveCompiler]],
        include_compiler: IncludeCompiler
    ) -> str:
        for compiler_class in order:
            if compiler_class is IncludeCompiler:
                compiler = include_compiler
            else:
                compiler = self.compilers[compiler_class]
            text = compiler.compile(text)
        return text
