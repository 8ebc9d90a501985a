"""Routing utilities."""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Iterator,
    Mapping,
    MutableMapping,
    get_type_hints,
)

import msgspec
import rure
from rure.regex import RegexObject

from . import conditions as route_conditions
from .exceptions import HTTPError, MethodNotAllowed, NotFound
from .http import Status
from .patterns import Literal, Pattern, Regex, coerce_pattern
from .requests import Request

Endpoint = Callable[..., Awaitable[Any] | Any]

FILTER_KINDS = ("BEFORE", "AFTER")

_PATH_TOKEN = re.compile(r"{([a-zA-Z_][a-zA-Z0-9_]*)(?::([a-zA-Z_][a-zA-Z0-9_]*))?}|\*")
_NAMED_GROUP = re.compile(r"\(\?P<([a-zA-Z_][a-zA-Z0-9_]*)>")
_REGEX_META = frozenset("\\.+*?()|[]{}^$")
_CONVERTERS = {
    None: "[^/]+",
    "int": r"\d+",
    "path": ".*",
}


@dataclass(slots=True)
class Route:
    verb: str
    pattern: Pattern
    conditions: Mapping[str, Any]
    endpoint: Endpoint
    regex: RegexObject
    param_names: tuple[str, ...]
    signature: inspect.Signature
    type_hints: Mapping[str, Any]
    name: str | None = None
    scope: Any = field(default=None, repr=False)

    @property
    def path(self) -> str:
        return self.pattern.source


@dataclass(slots=True)
class RouteMatch:
    route: Route
    params: Mapping[str, str]


class Router:
    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._static_routes: dict[str, dict[str, list[Route]]] = {}
        self._dynamic_routes: dict[str, dict[str | None, list[Route]]] = {}
        self._filters: dict[str, list[Route]] = {kind: [] for kind in FILTER_KINDS}

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    def add_route(
        self,
        pattern: Pattern | str,
        *,
        methods: tuple[str, ...] | list[str],
        endpoint: Endpoint,
        conditions: Mapping[str, Any] | None = None,
        name: str | None = None,
        scope: Any = None,
    ) -> Route:
        normalized_methods = tuple(dict.fromkeys(m.upper() for m in methods))
        routes = [
            self._build(method, pattern, endpoint, conditions, name=name, scope=scope)
            for method in normalized_methods
        ]
        for route in routes:
            self._routes.append(route)
            if isinstance(route.pattern, Literal) and not _PATH_TOKEN.search(route.path):
                self._static_routes.setdefault(route.verb, {}).setdefault(route.path, []).append(route)
            else:
                prefix = _dynamic_prefix_key(route.pattern)
                self._dynamic_routes.setdefault(route.verb, {}).setdefault(prefix, []).append(route)
        return routes[0]

    def add_filter(
        self,
        kind: str,
        pattern: Pattern | str,
        *,
        endpoint: Endpoint,
        conditions: Mapping[str, Any] | None = None,
        scope: Any = None,
    ) -> Route:
        kind = kind.upper()
        if kind not in self._filters:
            raise ValueError(f"Unknown filter kind: {kind}")
        route = self._build(kind, pattern, endpoint, conditions, scope=scope)
        self._filters[kind].append(route)
        return route

    def filters(self, kind: str, method: str, path: str, *, request: Request | None = None) -> Iterator[RouteMatch]:
        """Yield the ``kind`` filters matching ``path`` in registration order."""

        request = request or Request(method=method, path=path)
        for route in self._filters[kind.upper()]:
            match = _match(route, path, request)
            if match is not None:
                yield match

    def find(self, method: str, path: str, *, request: Request | None = None) -> RouteMatch:
        method = method.upper()
        request = request or Request(method=method, path=path)
        method_keys = (method, "GET", "*") if method == "HEAD" else (method, "*")
        for method_key in method_keys:
            for route in self._static_routes.get(method_key, {}).get(path, ()):
                if route_conditions.evaluate(route.conditions, request):
                    return RouteMatch(route=route, params={})

        seen: set[int] = set()
        prefix = _request_prefix_key(path)
        for method_key in method_keys:
            method_routes = self._dynamic_routes.get(method_key)
            if not method_routes:
                continue
            for key in (prefix, None):
                for candidate in method_routes.get(key, ()):
                    identity = id(candidate)
                    if identity in seen:
                        continue
                    seen.add(identity)
                    match = _match(candidate, path, request)
                    if match is not None:
                        return match

        allowed = {
            route.verb
            for route in self._routes
            if route.verb not in method_keys and _match(route, path, request) is not None
        }
        if allowed:
            raise MethodNotAllowed(allowed, {"method": method, "path": path})
        raise NotFound({"method": method, "path": path})

    def _build(
        self,
        verb: str,
        pattern: Pattern | str,
        endpoint: Endpoint,
        conditions: Mapping[str, Any] | None,
        *,
        name: str | None = None,
        scope: Any = None,
    ) -> Route:
        resolved = coerce_pattern(pattern)
        if resolved is None:
            raise ValueError("Routes require a pattern")
        condition_map = dict(conditions or {})
        route_conditions.validate(condition_map)
        if isinstance(resolved, Regex):
            source = resolved.source
            param_names = tuple(_NAMED_GROUP.findall(source))
        else:
            source, param_names = compile_path(resolved.source)
        if len(set(param_names)) != len(param_names):
            raise ValueError(f"Duplicate path parameter in {resolved.source!r}")
        return Route(
            verb=verb,
            pattern=resolved,
            conditions=condition_map,
            endpoint=endpoint,
            regex=rure.compile(source),
            param_names=param_names,
            signature=inspect.signature(endpoint),
            type_hints=_type_hints(endpoint),
            name=name,
            scope=scope,
        )


def _type_hints(endpoint: Endpoint) -> Mapping[str, Any]:
    try:
        return get_type_hints(endpoint)
    except (NameError, TypeError):
        return getattr(endpoint, "__annotations__", {})


def convert_param(value: str, annotation: Any, *, name: str) -> Any:
    """Convert the captured path segment ``value`` to the handler's ``annotation``.

    Conversion runs msgspec in lax mode, so ``"7"`` becomes ``7`` for an
    ``int`` and ``"false"`` becomes ``False`` for a ``bool``. Failures are
    reported to the client as ``400 Bad Request``.
    """

    if annotation in (str, Any, inspect.Signature.empty):
        return value
    try:
        return msgspec.convert(value, type=annotation, strict=False)
    except (msgspec.ValidationError, TypeError) as exc:
        raise HTTPError(
            Status.BAD_REQUEST,
            {"parameter": name, "expected": getattr(annotation, "__name__", repr(annotation)), "value": value},
        ) from exc


def _match(route: Route, path: str, request: Request) -> RouteMatch | None:
    captures = route.regex.match(path)
    if captures is None:
        return None
    if not route_conditions.evaluate(route.conditions, request):
        return None
    params: MutableMapping[str, str] = {}
    for name in route.param_names:
        group = captures.group(name)
        if group is None:
            continue
        params[name] = group
    return RouteMatch(route=route, params=params)


def _dynamic_prefix_key(pattern: Pattern) -> str | None:
    if isinstance(pattern, Regex):
        return None
    trimmed = pattern.source.lstrip("/")
    if not trimmed or trimmed[0] in "{*":
        return None
    segment = trimmed.split("/", 1)[0]
    if "{" in segment or "*" in segment:
        return None
    return segment or None


def _request_prefix_key(path: str) -> str | None:
    trimmed = path.lstrip("/")
    if not trimmed:
        return None
    segment = trimmed.split("/", 1)[0]
    return segment or None


def _escape(text: str) -> str:
    return "".join(f"\\{char}" if char in _REGEX_META else char for char in text)


def compile_path(path: str) -> tuple[str, tuple[str, ...]]:
    """Compile a literal route path into an anchored regex source.

    ``{name}`` matches one path segment, ``{name:int}`` digits only,
    ``{name:path}`` the remainder of the path and ``*`` anything at all.
    Every other character matches itself.
    """

    param_names: list[str] = []
    parts = ["^"]
    position = 0
    for token in _PATH_TOKEN.finditer(path):
        parts.append(_escape(path[position : token.start()]))
        position = token.end()
        if token.group(0) == "*":
            parts.append(".*")
            continue
        name, converter = token.group(1), token.group(2)
        if converter not in _CONVERTERS:
            raise ValueError(f"Unsupported path converter: {converter}")
        param_names.append(name)
        parts.append(f"(?P<{name}>{_CONVERTERS[converter]})")
    parts.append(_escape(path[position:]))
    parts.append("$")
    return "".join(parts), tuple(param_names)
