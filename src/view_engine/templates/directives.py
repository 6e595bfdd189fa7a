"""
Pure helpers for locating and taking apart ``@directive(...)`` tokens.

A directive is an ``@`` followed by a known name. The ``@`` must not follow a
word character or another ``@`` so that e-mail addresses and ``@@escaped``
text are left alone. Arguments, when present, are read up to the matching
closing parenthesis, skipping over quoted strings and nested brackets.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Collection, Iterator, List, Optional

from ..error.exceptions import CompileError

_OPENING = {"(": ")", "[": "]", "{": "}"}
_CLOSING = {")", "]", "}"}
_BINDING_PATTERN = re.compile(r"^\s*([A-Za-z_]\w*)\s*=(?!=)(.*)$", re.S)


@dataclass(frozen=True)
class Directive:
    """A directive occurrence in a piece of template text."""
    name: str
    arguments: Optional[str]
    start: int
    end: int


def line_of(text: str, offset: int) -> int:
    """1-based line number of ``offset`` in ``text``."""
    return text.count("\n", 0, offset) + 1


@lru_cache(maxsize=64)
def _directive_pattern(names: tuple) -> "re.Pattern[str]":
    # Longest names first so that ``@endforeach`` is not read as ``@endfor``
    alternatives = "|".join(re.escape(name) for name in sorted(names, key=len, reverse=True))
    return re.compile(r"(?<![\w@])@(" + alternatives + r")\b")


def find_closing(text: str, open_index: int) -> int:
    """
    Index of the bracket closing the one at ``open_index``.

    Quoted strings are skipped; backslash escapes inside quotes are honoured.

    Returns:
        Index of the closing bracket or -1 if the text ends first
    """
    stack: List[str] = []
    quote = None
    index = open_index
    while index < len(text):
        char = text[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char in _OPENING:
            stack.append(_OPENING[char])
        elif char in _CLOSING:
            if not stack or stack.pop() != char:
                return -1
            if not stack:
                return index
        index += 1
    return -1


def iter_directives(
    text: str,
    names: Collection[str],
    parameterized: Collection[str] = ()
) -> Iterator[Directive]:
    """
    Yield directives named in ``names`` in document order.

    Args:
        text: Template text
        names: Directive names to look for, without the ``@``
        parameterized: Names whose ``(...)`` argument list should be read

    Raises:
        CompileError: If an argument list is never closed
    """
    pattern = _directive_pattern(tuple(sorted(names)))
    position = 0
    while True:
        match = pattern.search(text, position)
        if match is None:
            return
        name = match.group(1)
        end = match.end()
        arguments = None
        if name in parameterized:
            cursor = end
            while cursor < len(text) and text[cursor] in " \t":
                cursor += 1
            if cursor < len(text) and text[cursor] == "(":
                closing = find_closing(text, cursor)
                if closing == -1:
                    raise CompileError(
                        f"Unclosed argument list for @{name} on line {line_of(text, match.start())}",
                        directive=name,
                        line=line_of(text, match.start()),
                    )
                arguments = text[cursor + 1:closing]
                end = closing + 1
        yield Directive(name, arguments, match.start(), end)
        position = end


def replace_directives(
    text: str,
    names: Collection[str],
    replace: Callable[[Directive], str],
    parameterized: Collection[str] = ()
) -> str:
    """Replace every directive found by ``iter_directives`` with ``replace(directive)``."""
    parts = []
    last = 0
    for directive in iter_directives(text, names, parameterized):
        parts.append(text[last:directive.start])
        parts.append(replace(directive))
        last = directive.end
    if last == 0:
        return text
    parts.append(text[last:])
    return "".join(parts)


def _scan_top_level(expression: str) -> Iterator[int]:
    """Yield indexes of characters that sit outside quotes and brackets."""
    depth = 0
    quote = None
    index = 0
    while index < len(expression):
        char = expression[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char in _OPENING:
            depth += 1
        elif char in _CLOSING:
            depth -= 1
        elif depth == 0:
            yield index
        index += 1


def find_top_level(expression: str, token: str, last: bool = False) -> int:
    """Index of ``token`` outside quotes and brackets, or -1."""
    found = -1
    for index in _scan_top_level(expression):
        if expression.startswith(token, index):
            if not last:
                return index
            found = index
    return found


def split_top_level(expression: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` occurrences that sit outside quotes and brackets."""
    parts = []
    start = 0
    for index in _scan_top_level(expression):
        if index >= start and expression.startswith(separator, index):
            parts.append(expression[start:index])
            start = index + len(separator)
    parts.append(expression[start:])
    return parts


def unquote(argument: str) -> str:
    """Strip whitespace and one pair of matching quotes."""
    value = argument.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def is_quoted(argument: str) -> bool:
    value = argument.strip()
    return len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"')


def normalize_bindings(data: str) -> str:
    """
    Turn an include data bag into ``name=expr`` bindings.

    Accepts a dict literal with quoted string keys (``{'title': page.title}``)
    or keyword bindings (``title=page.title, items=rows``).

    Args:
        data: Data bag source text

    Returns:
        Comma separated ``name=expr`` bindings, empty for an empty dict

    Raises:
        ValueError: If the data bag cannot be turned into bindings
    """
    data = data.strip()
    bindings = []

    if data.startswith("{") and find_closing(data, 0) == len(data) - 1:
        for item in split_top_level(data[1:-1]):
            if not item.strip():
                continue
            colon = find_top_level(item, ":")
            if colon == -1:
                raise ValueError(f"Expected 'key': value in data bag, got {item.strip()!r}")
            key, value = item[:colon], item[colon + 1:]
            name = unquote(key)
            if not is_quoted(key) or not name.isidentifier():
                raise ValueError(f"Data bag keys must be quoted identifiers, got {key.strip()!r}")
            if not value.strip():
                raise ValueError(f"Missing value for data bag key {name!r}")
            bindings.append(f"{name}={value.strip()}")
        return ", ".join(bindings)

    for item in split_top_level(data):
        if not item.strip():
            continue
        match = _BINDING_PATTERN.match(item)
        if match is None or not match.group(2).strip():
            raise ValueError(f"Expected name=value binding, got {item.strip()!r}")
        bindings.append(f"{match.group(1)}={match.group(2).strip()}")

    if not bindings:
        raise ValueError("Data bag is empty")
    return ", ".join(bindings)
