"""
Directive compiler passes.

Every pass maps template text to template text. The stateless passes are
applied in a fixed order by ``DirectivePipeline``; ``YieldCompiler`` is built
per compilation from the section map of the template being compiled.
"""
import logging
import re
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Mapping, Tuple

from markupsafe import escape

from ..error.exceptions import CompileError
from .directives import (
    Directive,
    find_top_level,
    is_quoted,
    iter_directives,
    line_of,
    normalize_bindings,
    replace_directives,
    split_top_level,
    unquote,
)

logger = logging.getLogger(__name__)

Expander = Callable[[str], str]


def _with_fallback(expression: str) -> str:
    """Translate ``a ?? b`` into a Jinja default filter."""
    position = find_top_level(expression, "??")
    if position == -1:
        return expression
    left = expression[:position].strip()
    right = expression[position + 2:].strip()
    if not left or not right:
        raise ValueError("'??' needs an expression on both sides")
    return f"({left}) | default({_with_fallback(right)})"


class DirectiveCompiler(ABC):
    """Base class for one compilation pass."""

    @abstractmethod
    def compile(self, text: str) -> str:
        """
        Transform template text.

        Args:
            text: Template text produced by the previous pass

        Returns:
            Transformed text
        """
        pass


class BlockDirectiveCompiler(DirectiveCompiler):
    """
    Compiles ``@name(expression)`` and bare ``@name`` directives from two
    lookup tables of Jinja replacements.
    """

    PARAMETERIZED: Dict[str, str] = {}
    PARAMETERLESS: Dict[str, str] = {}

    def compile(self, text: str) -> str:
        names = list(self.PARAMETERIZED) + list(self.PARAMETERLESS)

        def replace(directive: Directive) -> str:
            if directive.name in self.PARAMETERLESS:
                return self.PARAMETERLESS[directive.name]
            expression = (directive.arguments or "").strip()
            if not expression:
                raise CompileError(
                    f"@{directive.name} requires an expression",
                    directive=directive.name,
                    line=line_of(text, directive.start),
                )
            return self.build(directive.name, expression, line_of(text, directive.start))

        return replace_directives(text, names, replace, parameterized=self.PARAMETERIZED)

    def build(self, name: str, expression: str, line: int) -> str:
        return self.PARAMETERIZED[name].format(expression=expression)


class CommentCompiler(DirectiveCompiler):
    """Strips ``{{-- ... --}}`` comments."""

    PATTERN = re.compile(r"\{\{--.*?--\}\}", re.S)

    def compile(self, text: str) -> str:
        return self.PATTERN.sub("", text)


class IncludeCompiler(DirectiveCompiler):
    """
    Inlines ``@include('name')`` and ``@include('name', data)``.

    The expander returns the source of the included template with its own
    layouts merged, includes expanded and yields resolved; later passes then
    compile it together with the including template. A data bag becomes a
    ``@with`` scope around the inlined text.
    """

    def __init__(self, expander: Expander):
        self.expander = expander

    def compile(self, text: str) -> str:
        def replace(directive: Directive) -> str:
            line = line_of(text, directive.start)
            if directive.arguments is None or not directive.arguments.strip():
                raise CompileError("@include requires a template name", directive="include", line=line)

            parts = split_top_level(directive.arguments)
            name_argument = parts[0]
            if not is_quoted(name_argument) or not unquote(name_argument).strip():
                raise CompileError(
                    f"@include expects a quoted template name, got {name_argument.strip()!r}",
                    directive="include",
                    line=line,
                )
            name = unquote(name_argument).strip()
            data = ",".join(parts[1:]).strip()

            bindings = None
            if data:
                try:
                    bindings = normalize_bindings(data)
                except ValueError as e:
                    raise CompileError(f"Invalid data for @include('{name}'): {e}", directive="include", line=line)

            fragment = self.expander(name)
            if bindings:
                return f"@with({bindings}){fragment}@endwith"
            return fragment

        return replace_directives(text, ["include"], replace, parameterized={"include"})


class ValidationCompiler(DirectiveCompiler):
    """
    Checks directive structure without changing the text.

    Raises ``CompileError`` with the directive and line of the first problem.
    """

    BLOCKS = {
        "if": "endif",
        "unless": "endunless",
        "isset": "endisset",
        "foreach": "endforeach",
        "forelse": "endforelse",
        "for": "endfor",
        "with": "endwith",
    }
    BRANCHES = {
        "elseif": ("if",),
        "else": ("if", "unless", "isset"),
        "empty": ("forelse",),
    }
    LOOP_CONTROLS = ("break", "continue")
    LOOPS = ("foreach", "forelse", "for")
    LEFTOVERS = ("section", "endsection", "extends")
    RESERVED = ("{%", "{#")

    def compile(self, text: str) -> str:
        self._check_reserved(text)
        self._check_delimiters(text)
        self._check_blocks(text)
        return text

    def _check_reserved(self, text: str) -> None:
        for sequence in self.RESERVED:
            position = text.find(sequence)
            if position != -1:
                raise CompileError(
                    f"Reserved sequence '{sequence}' on line {line_of(text, position)}",
                    line=line_of(text, position),
                )

    def _check_delimiters(self, text: str) -> None:
        position = text.find("{{--")
        if position != -1:
            raise CompileError(
                f"Unterminated comment on line {line_of(text, position)}",
                line=line_of(text, position),
            )
        for opening, closing in (("{!!", "!!}"), ("{{", "}}")):
            position = 0
            while True:
                start = text.find(opening, position)
                if start == -1:
                    break
                end = text.find(closing, start + len(opening))
                if end == -1:
                    raise CompileError(
                        f"Unterminated '{opening}' on line {line_of(text, start)}",
                        line=line_of(text, start),
                    )
                position = end + len(closing)

    def _check_blocks(self, text: str) -> None:
        closers = {closer: opener for opener, closer in self.BLOCKS.items()}
        names = (
            list(self.BLOCKS) + list(closers) + list(self.BRANCHES)
            + list(self.LOOP_CONTROLS) + list(self.LEFTOVERS)
        )
        parameterized = set(self.BLOCKS) | {"elseif", "section", "extends"}
        # Each frame: [opener, line, seen_else]
        stack: List[list] = []

        for directive in iter_directives(text, names, parameterized):
            name = directive.name
            line = line_of(text, directive.start)

            if name in self.LEFTOVERS:
                raise CompileError(
                    f"Unexpected @{name} on line {line}; only allowed at the top level of a template",
                    directive=name,
                    line=line,
                )

            if name in self.BLOCKS:
                if directive.arguments is None or not directive.arguments.strip():
                    raise CompileError(f"@{name} requires an expression on line {line}", directive=name, line=line)
                stack.append([name, line, False])

            elif name in closers:
                if not stack or stack[-1][0] != closers[name]:
                    expected = f"@{self.BLOCKS[stack[-1][0]]}" if stack else "no closing directive"
                    raise CompileError(
                        f"Unexpected @{name} on line {line} (expected {expected})",
                        directive=name,
                        line=line,
                    )
                stack.pop()

            elif name in self.BRANCHES:
                if not stack or stack[-1][0] not in self.BRANCHES[name]:
                    raise CompileError(f"Misplaced @{name} on line {line}", directive=name, line=line)
                if stack[-1][2]:
                    raise CompileError(f"@{name} after @else on line {line}", directive=name, line=line)
                if name == "elseif" and not (directive.arguments or "").strip():
                    raise CompileError(f"@elseif requires an expression on line {line}", directive=name, line=line)
                if name in ("else", "empty"):
                    stack[-1][2] = True

            elif name in self.LOOP_CONTROLS:
                if not any(frame[0] in self.LOOPS for frame in stack):
                    raise CompileError(f"@{name} outside of a loop on line {line}", directive=name, line=line)

        if stack:
            opener, line, _ = stack[-1]
            raise CompileError(
                f"Unclosed @{opener} opened on line {line} (expected @{self.BLOCKS[opener]})",
                directive=opener,
                line=line,
            )


class EchoCompiler(DirectiveCompiler):
    """``{{ expr }}`` to escaped output, ``{{ a ?? b }}`` with a fallback."""

    PATTERN = re.compile(r"\{\{(?!--)(.+?)\}\}", re.S)

    def compile(self, text: str) -> str:
        def replace(match: "re.Match[str]") -> str:
            expression = match.group(1).strip()
            line = line_of(text, match.start())
            if not expression:
                raise CompileError(f"Empty echo on line {line}", line=line)
            try:
                return "{{ " + _with_fallback(expression) + " }}"
            except ValueError as e:
                raise CompileError(f"Invalid echo on line {line}: {e}", line=line)

        return self.PATTERN.sub(replace, text)


class RawEchoCompiler(DirectiveCompiler):
    """``{!! expr !!}`` to unescaped output."""

    PATTERN = re.compile(r"\{!!(.+?)!!\}", re.S)

    def compile(self, text: str) -> str:
        def replace(match: "re.Match[str]") -> str:
            expression = match.group(1).strip()
            line = line_of(text, match.start())
            if not expression:
                raise CompileError(f"Empty raw echo on line {line}", line=line)
            try:
                return "{{ (" + _with_fallback(expression) + ") | safe }}"
            except ValueError as e:
                raise CompileError(f"Invalid raw echo on line {line}: {e}", line=line)

        return self.PATTERN.sub(replace, text)


class ConditionalCompiler(BlockDirectiveCompiler):
    """``@if``, ``@unless`` and ``@isset`` blocks."""

    PARAMETERIZED = {
        "if": "{{% if {expression} %}}",
        "elseif": "{{% elif {expression} %}}",
        "unless": "{{% if not ({expression}) %}}",
        "isset": "{{% if ({expression}) is defined and ({expression}) is not none %}}",
    }
    PARAMETERLESS = {
        "else": "{% else %}",
        "endif": "{% endif %}",
        "endunless": "{% endif %}",
        "endisset": "{% endif %}",
    }


class LoopCompiler(BlockDirectiveCompiler):
    """``@foreach``, ``@forelse`` and ``@for`` loops with ``@break`` and ``@continue``."""

    PARAMETERIZED = {
        "foreach": "",
        "forelse": "",
        "for": "{{% for {expression} %}}",
    }
    PARAMETERLESS = {
        "endforeach": "{% endfor %}",
        "empty": "{% else %}",
        "endforelse": "{% endfor %}",
        "endfor": "{% endfor %}",
        "break": "{% break %}",
        "continue": "{% continue %}",
    }

    def build(self, name: str, expression: str, line: int) -> str:
        if name == "for":
            return super().build(name, expression, line)
        items, target = self.split_loop(name, expression, line)
        if "=>" in target:
            key, _, value = target.partition("=>")
            return f"{{% for {key.strip()}, {value.strip()} in ({items}).items() %}}"
        return f"{{% for {target} in {items} %}}"

    @staticmethod
    def split_loop(name: str, expression: str, line: int) -> Tuple[str, str]:
        """Split ``items as target`` into its two halves."""
        position = find_top_level(expression, " as ", last=True)
        if position == -1:
            raise CompileError(f"@{name} expects 'items as item' on line {line}", directive=name, line=line)
        items = expression[:position].strip()
        target = expression[position + 4:].strip()
        if not items or not target:
            raise CompileError(f"@{name} expects 'items as item' on line {line}", directive=name, line=line)
        return items, target


class ScopeCompiler(BlockDirectiveCompiler):
    """``@with(name=expr) ... @endwith`` scopes."""

    PARAMETERIZED = {"with": ""}
    PARAMETERLESS = {"endwith": "{% endwith %}"}

    def build(self, name: str, expression: str, line: int) -> str:
        try:
            bindings = normalize_bindings(expression)
        except ValueError as e:
            raise CompileError(f"Invalid @with bindings on line {line}: {e}", directive=name, line=line)
        if not bindings:
            return "{% with %}"
        return f"{{% with {bindings} %}}"


class PartialCompiler(DirectiveCompiler):
    """``@partial('name')`` to a runtime lookup of a nested partial."""

    def compile(self, text: str) -> str:
        def replace(directive: Directive) -> str:
            line = line_of(text, directive.start)
            argument = directive.arguments or ""
            name = unquote(argument).strip()
            if not is_quoted(argument) or not name:
                raise CompileError(
                    f"@partial expects a quoted partial name on line {line}",
                    directive="partial",
                    line=line,
                )
            return "{{ view.partial(%r) }}" % name

        return replace_directives(text, ["partial"], replace, parameterized={"partial"})


class LiteralAtCompiler(DirectiveCompiler):
    """``@@name`` to a literal ``@name``."""

    PATTERN = re.compile(r"@@(?=\w)")

    def compile(self, text: str) -> str:
        return self.PATTERN.sub("@", text)


class YieldCompiler(DirectiveCompiler):
    """
    Replaces ``@yield('name')`` and ``@yield('name', 'default')`` with section
    text.

    Undefined sections produce the (escaped) default or nothing. Section text
    may yield other sections; a section reached again while it is being
    substituted is a compile error. Directives inside expressions and tags
    are literal text and stay untouched.
    """

    EXPRESSION_PATTERN = re.compile(r"\{\{.*?\}\}|\{!!.*?!!\}|\{%.*?%\}", re.S)

    def __init__(self, sections: Mapping[str, str]):
        self.sections = sections

    def compile(self, text: str) -> str:
        return self._substitute(text, ())

    def _substitute(self, text: str, active: Tuple[str, ...]) -> str:
        expressions = [match.span() for match in self.EXPRESSION_PATTERN.finditer(text)]

        def replace(directive: Directive) -> str:
            if any(start <= directive.start < end for start, end in expressions):
                return text[directive.start:directive.end]
            line = line_of(text, directive.start)
            arguments = split_top_level(directive.arguments or "")
            name = unquote(arguments[0]).strip()
            if not name:
                raise CompileError(f"@yield requires a section name on line {line}", directive="yield", line=line)
            if name in active:
                chain = " -> ".join(active + (name,))
                raise CompileError(f"Section '{name}' yields itself ({chain})", directive="yield", line=line)
            if name not in self.sections:
                logger.debug(f"Section '{name}' is not defined, using its default")
                default = unquote(",".join(arguments[1:])) if len(arguments) > 1 else ""
                return str(escape(default))
            return self._substitute(self.sections[name], active + (name,))

        return replace_directives(text, ["yield"], replace, parameterized={"yield"})

