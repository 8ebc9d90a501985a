"""Route patterns and the pattern unifier.

A route pattern is either a :class:`Literal` path (``/users/{user_id}``,
optionally containing the ``*`` wildcard) or a :class:`Regex` already written
in the router's regex dialect. Namespaces build the pattern they register by
folding their own pattern with the patterns of every enclosing namespace::

    compose(Literal("/api"), Literal("/users"), outermost=False)
    # Literal("/api/users")

    compose(Literal("/api"), Regex(r"/(?P<id>\\d+)"), outermost=True)
    # Regex(r"^/api/(?P<id>\\d+)$")

Literals are concatenated verbatim: no separator is inserted between the two
halves. When the two halves differ in kind, a regex made only of plain text
is turned back into a literal first. Otherwise the literal half is compiled by
the router's own path compiler and anchors are stripped from both halves, so
both sides speak the same dialect.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .exceptions import InvalidScopeArgument


@dataclass(frozen=True, slots=True)
class Literal:
    source: str

    def __str__(self) -> str:
        return self.source


@dataclass(frozen=True, slots=True)
class Regex:
    source: str

    def __str__(self) -> str:
        return self.source


Pattern = Literal | Regex

CATCH_ALL = Literal("*")

_LEADING_ANCHOR = re.compile(r"\A(?:\^|\\A)")
_TRAILING_ANCHOR = re.compile(r"(?<!\\)(?:\$|\\z)\Z")
_PLAIN_REGEX = re.compile(r"(?:[^.^$*+?{}\[\]|()\\]|\\[^A-Za-z0-9])*")
_ESCAPED = re.compile(r"\\(.)")


def coerce_pattern(value: Any) -> Pattern | None:
    """Normalise user input into a :data:`Pattern`.

    ``str`` becomes a :class:`Literal` and a compiled :class:`re.Pattern`
    becomes a :class:`Regex` of its source text.
    """

    if value is None or isinstance(value, (Literal, Regex)):
        return value
    if isinstance(value, str):
        return Literal(value)
    if isinstance(value, re.Pattern):
        if not isinstance(value.pattern, str):
            raise InvalidScopeArgument("byte patterns cannot be used as routes")
        return Regex(value.pattern)
    raise InvalidScopeArgument(f"unsupported route pattern: {value!r}")


def strip_anchors(source: str) -> str:
    source = _LEADING_ANCHOR.sub("", source, count=1)
    return _TRAILING_ANCHOR.sub("", source, count=1)


def regexpify(pattern: Pattern) -> Regex:
    """Return ``pattern`` as an unanchored :class:`Regex`."""

    if isinstance(pattern, Regex):
        return Regex(strip_anchors(pattern.source))
    from .routing import compile_path

    source, _ = compile_path(pattern.source)
    return Regex(strip_anchors(source))


def decompile(pattern: Pattern) -> Literal | None:
    """Return ``pattern`` as a :class:`Literal`, or ``None`` if it needs a regex.

    Only regexes made of plain characters (and escaped punctuation) convert.
    The result must not contain text the path compiler would read as a
    parameter or wildcard.
    """

    if isinstance(pattern, Literal):
        return pattern
    source = strip_anchors(pattern.source)
    if _PLAIN_REGEX.fullmatch(source) is None:
        return None
    text = _ESCAPED.sub(r"\1", source)
    if any(char in text for char in "{}*"):
        return None
    return Literal(text)


def compose(parent: Pattern | None, child: Pattern | None, *, outermost: bool) -> Pattern | None:
    """Concatenate ``parent`` and ``child`` into a single pattern.

    Only a regex produced at the outermost fold is anchored; inner folds stay
    unanchored because an enclosing namespace will prefix them again.
    """

    if parent is None and child is None:
        return CATCH_ALL
    if parent is None:
        return child
    if child is None:
        return parent
    if type(parent) is not type(child):
        literal_parent, literal_child = decompile(parent), decompile(child)
        if literal_parent is not None and literal_child is not None:
            parent, child = literal_parent, literal_child
        else:
            parent, child = regexpify(parent), regexpify(child)
    elif isinstance(parent, Regex):
        parent, child = regexpify(parent), regexpify(child)
    composed: Pattern = type(parent)(parent.source + child.source)
    if outermost and isinstance(composed, Regex):
        composed = Regex(f"^{composed.source}$")
    return composed


__all__ = [
    "CATCH_ALL",
    "Literal",
    "Pattern",
    "Regex",
    "coerce_pattern",
    "compose",
    "decompile",
    "regexpify",
    "strip_anchors",
]
