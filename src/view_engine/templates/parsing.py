"""
Extraction of ``@extends`` and ``@section`` declarations from template source.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..error.exceptions import CompileError, DuplicateSectionError
from .directives import line_of

SectionMap = Dict[str, str]

EXTENDS_PATTERN = re.compile(r"(?<![\w@])@extends\s*\(\s*(['\"])(.+?)\1\s*\)")

# Either @section('name', 'inline text') or @section('name') ... @endsection
SECTION_PATTERN = re.compile(
    r"(?<![\w@])@section\s*\(\s*(?P<q>['\"])(?P<name>[^'\"]+)(?P=q)\s*"
    r"(?:,\s*(?P<iq>['\"])(?P<inline>.*?)(?P=iq)\s*\)"
    r"|\)(?P<block>.*?)(?<![\w@])@endsection\b)",
    re.S,
)

# Text a template extending a layout may keep outside its sections
IGNORABLE_PATTERN = re.compile(r"(?:\s+|\{\{--.*?--\}\})+", re.S)

DIRECTIVE_START = re.compile(r"@(\w+)")


@dataclass(frozen=True)
class TemplateSource:
    """Source text of one template file."""
    name: str
    path: str
    text: str
    mtime: float


@dataclass(frozen=True)
class MergedTemplate:
    """
    Result of walking a template's extends chain.

    Attributes:
        body: Body of the top-most layout with its own declarations removed
        sections: Section text keyed by name, the most derived definition wins
        chain: Template names from the requested template up to the root layout
        dependencies: Source paths matching ``chain``
    """
    body: str
    sections: SectionMap = field(default_factory=dict)
    chain: Tuple[str, ...] = ()
    dependencies: Tuple[str, ...] = ()


class LayoutParser:
    """Finds the parent layout declared with ``@extends``."""

    def extract_layout(self, source: str) -> Tuple[Optional[str], str]:
        """
        Split the parent declaration off a template.

        Args:
            source: Template source text

        Returns:
            Tuple of parent layout name (or None) and the source with the
            declaration removed

        Raises:
            CompileError: If more than one ``@extends`` is declared
        """
        matches = list(EXTENDS_PATTERN.finditer(source))
        if not matches:
            return None, source
        if len(matches) > 1:
            raise CompileError(
                f"Template declares more than one @extends (line {line_of(source, matches[1].start())})",
                directive="extends",
                line=line_of(source, matches[1].start()),
            )
        match = matches[0]
        parent = match.group(2).strip()
        return parent, source[:match.start()] + source[match.end():]


class SectionParser:
    """Collects ``@section`` blocks and inline sections."""

    def extract_sections(self, source: str, keep_lines: bool = False) -> Tuple[SectionMap, str]:
        """
        Remove section declarations from a template.

        Block sections are trimmed of surrounding whitespace; inline sections
        keep their literal text.

        Args:
            source: Template source text
            keep_lines: Replace each removed declaration with its line breaks
                so the remaining text keeps the line numbers of the source

        Returns:
            Tuple of the section map and the remaining text

        Raises:
            DuplicateSectionError: If a section name is declared twice
        """
        sections: SectionMap = {}

        def capture(match: "re.Match[str]") -> str:
            name = match.group("name").strip()
            if name in sections:
                line = line_of(source, match.start())
                raise DuplicateSectionError(
                    f"Section '{name}' is defined more than once (line {line})",
                    directive="section",
                    line=line,
                )
            if match.group("inline") is not None:
                sections[name] = match.group("inline")
            else:
                sections[name] = match.group("block").strip()
            return "\n" * match.group(0).count("\n") if keep_lines else ""

        remaining = SECTION_PATTERN.sub(capture, source)
        return sections, remaining

    def check_outside_sections(self, remaining: str, parent: str) -> None:
        """
        Reject content left outside the sections of a template that extends
        ``parent``.

        Only whitespace and comments may remain; anything else would be
        dropped when the layout replaces the template body.

        Args:
            remaining: Text returned by ``extract_sections``
            parent: Name of the extended layout

        Raises:
            CompileError: Naming the first offending line
        """
        position = 0
        match = IGNORABLE_PATTERN.match(remaining)
        if match:
            position = match.end()
        if position >= len(remaining):
            return

        line = line_of(remaining, position)
        directive_match = DIRECTIVE_START.match(remaining, position)
        directive = directive_match.group(1) if directive_match else None
        if directive == "section":
            message = f"@section on line {line} is not closed with @endsection"
        elif directive == "endsection":
            message = f"@endsection on line {line} has no matching @section"
        else:
            snippet = remaining[position:].split("\n", 1)[0].strip()
            message = (
                f"Content outside of a section on line {line} of a template "
                f"extending '{parent}': {snippet[:40]!r}"
            )
        raise CompileError(message, directive=directive, line=line)
