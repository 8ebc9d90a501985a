"""Nested routing scopes.

A namespace groups route declarations under a shared pattern prefix and a
shared set of conditions. Namespaces nest, and everything declared on one
(error handlers, templates, helpers, extensions, the ``views`` setting) is
visible to the namespaces nested inside it unless they override it::

    app = WarrenApp()

    @app.namespace("/api", provides="json")
    def api(ns):
        @ns.error(404)
        def missing():
            return {"error": "missing"}

        @ns.namespace("/users")
        def users(ns):
            @ns.get("/{user_id:int}")
            def show(user_id: int):
                return {"id": user_id}

The route above is registered with the router as ``/api/users/{user_id:int}``
with ``provides="json"``. Each namespace is frozen once its body returns.
"""

from __future__ import annotations

import logging
import weakref
from functools import partial
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator, Mapping, TypeVar

from . import conditions as route_conditions
from .conditions import Conditions, merge_conditions
from .exceptions import InvalidScopeArgument, ScopeFrozenError, UnresolvedMethod
from .patterns import CATCH_ALL, Pattern, coerce_pattern, compose
from .templates import TemplateBody, TemplateEntry, TemplateRegistry

if TYPE_CHECKING:
    from .application import WarrenApp
    from .context import RequestContext
    from .routing import Route

logger = logging.getLogger(__name__)

EndpointT = TypeVar("EndpointT", bound=Callable[..., Any])

VERBS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "LINK", "UNLINK")
FILTERS = ("BEFORE", "AFTER")

_SETTABLE = frozenset({"views"})
_HOOKS = frozenset({"registered", "route_added"})
_MISSING: Any = object()


def _split_pattern(pattern: Any, conditions: Mapping[str, Any] | None) -> tuple[Any, Mapping[str, Any] | None]:
    if isinstance(pattern, Mapping):
        if conditions is not None:
            raise InvalidScopeArgument("conditions were given both positionally and as the pattern")
        return None, pattern
    return pattern, conditions


def _error_codes(codes: Iterable[Any]) -> list[Any]:
    flattened: list[Any] = []
    for code in codes:
        if isinstance(code, (list, tuple, set, frozenset)):
            flattened.extend(code)
        else:
            flattened.append(code)
    for code in flattened:
        if isinstance(code, bool) or not (
            isinstance(code, int) or (isinstance(code, type) and issubclass(code, BaseException))
        ):
            raise InvalidScopeArgument(f"error handlers are keyed by status code or exception class, not {code!r}")
    return flattened or [Exception]


class Scope:
    """Declarations shared by the application and every namespace."""

    pattern: Pattern | None = None

    def __init__(self, templates: TemplateRegistry) -> None:
        self.conditions: Conditions = {}
        self.extensions: list[Any] = []
        self.errors: dict[Any, Callable[..., Any]] = {}
        self.templates = templates
        self._helpers: dict[str, Callable[..., Any]] = {}

    @property
    def app(self) -> "WarrenApp":
        raise NotImplementedError

    def _ensure_mutable(self) -> None:
        return None

    def forward(
        self,
        verb: str,
        pattern: Any = None,
        conditions: Mapping[str, Any] | None = None,
        endpoint: Callable[..., Any] | None = None,
        *,
        name: str | None = None,
    ) -> "Route":
        raise NotImplementedError

    # ------------------------------------------------------------------ nesting
    def namespace(
        self,
        pattern: Any = None,
        conditions: Mapping[str, Any] | None = None,
        /,
        *,
        body: Callable[["Namespace"], Any] | None = None,
        **extra: Any,
    ) -> Any:
        """Declare a nested namespace.

        With ``body`` the namespace is declared immediately and returned.
        Without it a decorator is returned that evaluates the decorated
        function as the body and replaces it with the namespace.
        """

        self._ensure_mutable()
        pattern, conditions = _split_pattern(pattern, conditions)
        scope = Namespace(self, pattern, merge_conditions(conditions, extra))
        if body is not None:
            return scope.declare(body)
        return scope.declare

    # ------------------------------------------------------------------ routes
    def route(
        self,
        verb: str,
        pattern: Any = None,
        conditions: Mapping[str, Any] | None = None,
        /,
        *,
        name: str | None = None,
        **extra: Any,
    ) -> Callable[[EndpointT], EndpointT]:
        pattern, conditions = _split_pattern(pattern, conditions)
        merged = merge_conditions(conditions, extra)

        def decorator(endpoint: EndpointT) -> EndpointT:
            self.forward(verb, pattern, merged, endpoint, name=name)
            return endpoint

        return decorator

    def get(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("GET", pattern, conditions, **kwargs)

    def post(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("POST", pattern, conditions, **kwargs)

    def put(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("PUT", pattern, conditions, **kwargs)

    def patch(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("PATCH", pattern, conditions, **kwargs)

    def delete(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("DELETE", pattern, conditions, **kwargs)

    def head(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("HEAD", pattern, conditions, **kwargs)

    def options(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("OPTIONS", pattern, conditions, **kwargs)

    def link(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("LINK", pattern, conditions, **kwargs)

    def unlink(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("UNLINK", pattern, conditions, **kwargs)

    def before(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("BEFORE", pattern, conditions, **kwargs)

    def after(self, pattern: Any = None, conditions: Mapping[str, Any] | None = None, /, **kwargs: Any):
        return self.route("AFTER", pattern, conditions, **kwargs)

    def respond_to(self, *types: str) -> Any:
        if not types:
            return self.conditions.get("provides")
        self._ensure_mutable()
        route_conditions.provided_types(types)
        self.conditions["provides"] = list(types)
        return None

    # ------------------------------------------------------------------ extensions
    def register(self, *extensions: Any) -> None:
        self._ensure_mutable()
        for extension in extensions:
            self.extensions.append(extension)
            registered = getattr(extension, "registered", None)
            if callable(registered):
                registered(self)

    def invoke_hook(self, name: str, *args: Any) -> None:
        for extension in self.extensions:
            hook = getattr(extension, name, None)
            if callable(hook):
                hook(*args)

    # ------------------------------------------------------------------ errors
    def error(self, *codes: Any) -> Callable[[EndpointT], EndpointT]:
        self._ensure_mutable()
        keys = _error_codes(codes)

        def decorator(handler: EndpointT) -> EndpointT:
            self._ensure_mutable()
            for key in keys:
                self.errors[key] = handler
            return handler

        return decorator

    def not_found(self) -> Callable[[EndpointT], EndpointT]:
        return self.error(404)

    def resolve_error_handler(self, keys: Iterable[Any]) -> Callable[..., Any] | None:
        """Return the handler for the first of ``keys`` this scope knows, or ``None``."""

        for key in keys:
            handler = self.errors.get(key)
            if handler is not None:
                return handler
        return None

    # ------------------------------------------------------------------ helpers
    def helpers(self, *objects: Any, **functions: Callable[..., Any]) -> None:
        """Expose request-time helpers to handlers running in this scope.

        Public callables of each object in ``objects`` and every keyword
        function become helpers; a helper receives the request context as its
        first argument.
        """

        self._ensure_mutable()
        for obj in objects:
            for attr in dir(obj):
                if attr.startswith("_"):
                    continue
                member = getattr(obj, attr)
                if callable(member) and not isinstance(member, type):
                    self._helpers[attr] = member
        self._helpers.update(functions)

    def helper(self, func: EndpointT) -> EndpointT:
        self.helpers(**{func.__name__: func})
        return func

    def find_helper(self, name: str) -> Callable[["RequestContext"], Any] | None:
        return self._helpers.get(name)

    # ------------------------------------------------------------------ templates
    def template(self, name: str, body: TemplateBody | None = None, *, stacklevel: int = 1) -> Any:
        if body is None:
            return partial(self._define_template, name)
        return self._define_template(name, body, stacklevel=stacklevel)

    def layout(self, name: str = "layout", body: TemplateBody | None = None) -> Any:
        return self.template(name, body, stacklevel=2)

    def _define_template(self, name: str, body: TemplateBody, *, stacklevel: int = 1) -> TemplateBody:
        self._ensure_mutable()
        self.templates[name] = TemplateEntry.capture(body, stacklevel=stacklevel + 1)
        return body


class Namespace(Scope):
    """A routing scope nested inside the application or another namespace."""

    def __init__(self, base: Scope, pattern: Any = None, conditions: Mapping[str, Any] | None = None) -> None:
        super().__init__(TemplateRegistry(base.templates))
        self._base = weakref.ref(base)
        self.pattern = coerce_pattern(pattern)
        self.conditions = dict(conditions or {})
        route_conditions.validate(self.conditions)
        self._settings: dict[str, Any] = {}
        self.frozen = False
        activation_pattern, activation_conditions = self.compile(CATCH_ALL, {})
        self.app.add_filter("BEFORE", activation_pattern, activation_conditions, self._activate, scope=self)

    def __repr__(self) -> str:
        return f"<Namespace {self.pattern!s} {self.conditions!r}>"

    @property
    def base(self) -> Scope:
        base = self._base()
        if base is None:
            raise ReferenceError("the enclosing scope of this namespace no longer exists")
        return base

    @property
    def app(self) -> "WarrenApp":
        return self.base.app

    @property
    def settings(self) -> Mapping[str, Any]:
        return MappingProxyType(self._settings)

    def chain(self) -> Iterator["Namespace"]:
        """Yield this namespace and each enclosing namespace, innermost first."""

        node: Scope = self
        while isinstance(node, Namespace):
            yield node
            node = node.base

    def declare(self, body: Callable[["Namespace"], Any]) -> "Namespace":
        try:
            body(self)
        finally:
            self.freeze()
        logger.debug("Declared %r with %d extension(s)", self, len(self.extensions))
        return self

    def freeze(self) -> None:
        if self.frozen:
            return
        self.frozen = True
        self.errors = MappingProxyType(self.errors)  # type: ignore[assignment]
        self._helpers = MappingProxyType(self._helpers)  # type: ignore[assignment]
        self._settings = MappingProxyType(self._settings)  # type: ignore[assignment]
        self.conditions = MappingProxyType(self.conditions)  # type: ignore[assignment]
        self.extensions = tuple(self.extensions)  # type: ignore[assignment]
        self.templates.freeze()

    def _ensure_mutable(self) -> None:
        if self.frozen:
            raise ScopeFrozenError(f"{self!r} cannot be changed after its body has run")

    def _activate(self, context: "RequestContext") -> None:
        context.activate(self)

    # ------------------------------------------------------------------ compilation
    def compile(
        self,
        pattern: Pattern | None,
        conditions: Mapping[str, Any],
        *,
        require_pattern: bool = False,
    ) -> tuple[Pattern, Conditions]:
        """Fold ``pattern`` and ``conditions`` through every enclosing namespace."""

        app = self.app
        merged: Conditions = dict(conditions)
        for node in self.chain():
            if node.pattern is not None:
                pattern = compose(node.pattern, pattern, outermost=node.base is app)
            merged = merge_conditions(node.conditions, merged)
        if pattern is None:
            if require_pattern:
                raise InvalidScopeArgument("routes need a pattern on the route or on an enclosing namespace")
            pattern = CATCH_ALL
        return pattern, merge_conditions(app.conditions, merged)

    def forward(
        self,
        verb: str,
        pattern: Any = None,
        conditions: Mapping[str, Any] | None = None,
        endpoint: Callable[..., Any] | None = None,
        *,
        name: str | None = None,
    ) -> "Route":
        self._ensure_mutable()
        if endpoint is None:
            raise InvalidScopeArgument(f"{verb} declarations need an endpoint")
        verb = verb.upper()
        is_filter = verb in FILTERS
        resolved = coerce_pattern(pattern)
        if resolved is None and is_filter:
            resolved = CATCH_ALL
        composed, merged = self.compile(resolved, conditions or {}, require_pattern=not is_filter)
        if is_filter:
            handle = self.app.add_filter(verb, composed, merged, endpoint, scope=self)
        else:
            handle = self.app.add_route(verb, composed, merged, endpoint, name=name, scope=self)
        self.invoke_hook("route_added", verb, composed, endpoint)
        return handle

    # ------------------------------------------------------------------ hooks and fallback
    def invoke_hook(self, name: str, *args: Any) -> None:
        """Call hook ``name`` on every extension in the namespace chain, outermost first."""

        for node in reversed(tuple(self.chain())):
            Scope.invoke_hook(node, name, *args)

    def resolve_error_handler(self, keys: Iterable[Any]) -> Callable[..., Any] | None:
        keys = tuple(keys)
        handler = super().resolve_error_handler(keys)
        if handler is not None:
            return handler
        return self.base.resolve_error_handler(keys)

    def find_helper(self, name: str) -> Callable[["RequestContext"], Any] | None:
        helper = super().find_helper(name)
        if helper is not None:
            return helper
        return self.base.find_helper(name)

    def respond_to(self, *types: str) -> Any:
        if types:
            return super().respond_to(*types)
        provides = self.conditions.get("provides")
        if provides is not None:
            return provides
        return self.base.respond_to()

    def set(self, key: Any, value: Any = _MISSING) -> None:
        self._ensure_mutable()
        if isinstance(key, Mapping) and value is _MISSING:
            for name, item in key.items():
                self.set(name, item)
            return
        if key not in _SETTABLE:
            raise InvalidScopeArgument(f"may not set {key}")
        if value is _MISSING:
            raise InvalidScopeArgument(f"a value is required to set {key}")
        self._settings[key] = value

    def enable(self, *keys: str) -> None:
        for key in keys:
            self.set(key, True)

    def disable(self, *keys: str) -> None:
        for key in keys:
            self.set(key, False)

    def _lookup_capability(self, name: str) -> Any:
        state = self.__dict__
        settings = state.get("_settings", {})
        if name in settings:
            value = settings[name]
            return value() if callable(value) else value
        if name not in _HOOKS:
            for extension in reversed(state.get("extensions", ())):
                member = getattr(extension, name, None)
                if callable(member):
                    return partial(member, self)
        raise LookupError(name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or "_base" not in self.__dict__:
            raise AttributeError(name)
        try:
            return self._lookup_capability(name)
        except LookupError:
            pass
        try:
            return getattr(self.base, name)
        except AttributeError:
            raise UnresolvedMethod(self, name) from None


__all__ = ["FILTERS", "VERBS", "Namespace", "Scope"]
