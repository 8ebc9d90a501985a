"""Request-matching conditions.

Conditions are a plain mapping of condition name to value attached to a route
or filter. Namespaces merge their conditions over those of the enclosing
scope with :func:`merge_conditions`; the router evaluates them per request
with :func:`evaluate`.
"""

from __future__ import annotations

import mimetypes
import re
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from .exceptions import InvalidScopeArgument

if TYPE_CHECKING:
    from .requests import Request

Conditions = dict[str, Any]
Predicate = Callable[["Request", Any], bool]


def merge_conditions(parent: Mapping[str, Any] | None, child: Mapping[str, Any] | None) -> Conditions:
    """Return ``parent`` overridden key by key with ``child``."""

    merged: Conditions = dict(parent or {})
    merged.update(child or {})
    return merged


def mime_type(value: str) -> str:
    """Expand shorthand such as ``"json"`` into a full mime type."""

    if "/" in value:
        return value
    guessed, _ = mimetypes.guess_type(f"file.{value.lstrip('.')}")
    if guessed is None:
        raise InvalidScopeArgument(f"unknown media type {value!r}")
    return guessed


def provided_types(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = (value,)
    return tuple(mime_type(item) for item in value)


def parse_accept(header: str | None) -> list[tuple[str, float]]:
    if not header:
        return [("*/*", 1.0)]
    entries: list[tuple[str, float]] = []
    for position, raw in enumerate(header.split(",")):
        parts = [part.strip() for part in raw.split(";")]
        if not parts[0]:
            continue
        quality = 1.0
        for param in parts[1:]:
            key, _, value = param.partition("=")
            if key.strip() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        entries.append((parts[0].lower(), quality - position * 1e-6))
    entries.sort(key=lambda entry: entry[1], reverse=True)
    return entries


def _accepts(accepted: str, offered: str) -> bool:
    if accepted == "*/*":
        return True
    accepted_main, _, accepted_sub = accepted.partition("/")
    offered_main, _, offered_sub = offered.partition("/")
    if accepted_sub == "*":
        return accepted_main == offered_main
    return accepted == offered


def negotiate(accept: str | None, offered: Iterable[str]) -> str | None:
    """Return the first offered type the ``Accept`` header allows."""

    candidates = tuple(offered)
    for accepted, quality in parse_accept(accept):
        if quality <= 0:
            continue
        for offer in candidates:
            if _accepts(accepted, offer.lower()):
                return offer
    return None


def _provides(request: "Request", value: Any) -> bool:
    return negotiate(request.accept, provided_types(value)) is not None


def _attribute_matches(attribute: str) -> Predicate:
    def predicate(request: "Request", value: Any) -> bool:
        actual = getattr(request, attribute)
        if actual is None:
            return False
        return re.search(value, actual) is not None

    return predicate


PREDICATES: Mapping[str, Predicate] = MappingProxyType(
    {
        "provides": _provides,
        "host_name": _attribute_matches("host"),
        "user_agent": _attribute_matches("user_agent"),
    }
)


def validate(conditions: Mapping[str, Any]) -> None:
    unknown = sorted(set(conditions) - set(PREDICATES))
    if unknown:
        raise InvalidScopeArgument(f"unknown route condition(s): {', '.join(unknown)}")
    if "provides" in conditions:
        provided_types(conditions["provides"])


def evaluate(conditions: Mapping[str, Any], request: "Request") -> bool:
    """Return ``True`` when every condition accepts ``request``."""

    return all(PREDICATES[name](request, value) for name, value in conditions.items())


__all__ = [
    "Conditions",
    "PREDICATES",
    "evaluate",
    "merge_conditions",
    "mime_type",
    "negotiate",
    "parse_accept",
    "provided_types",
    "validate",
]
