"""Per-request view over the active routing scope."""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Any, Callable, NoReturn

from kida.utils.html import Markup

from .content import ContentBlocks
from .exceptions import Halt
from .http import Status, status_for
from .requests import Request
from .responses import RedirectResponse, Response, TextResponse
from .templates import TemplateEntry

if TYPE_CHECKING:
    from .application import WarrenApp
    from .namespace import Scope
    from .routing import Route


def error_keys(error: BaseException) -> tuple[Any, ...]:
    """Error handler keys for ``error``, most specific first."""

    cls = type(error)
    keys: list[Any] = [cls, status_for(error)]
    keys.extend(base for base in cls.__mro__[1:] if issubclass(base, Exception))
    return tuple(dict.fromkeys(keys))


class RequestContext:
    """Everything a handler sees about the request being served.

    The context starts out bound to the application. Each namespace
    activation filter that matches the request re-binds it, and once a route
    matches it is bound to the scope that declared the route. ``settings``,
    helpers, templates and error handlers resolve through that scope. Nothing
    on the shared scope objects is modified.
    """

    __slots__ = (
        "_content",
        "_current_engine",
        "app",
        "content_type",
        "params",
        "request",
        "response_headers",
        "route",
        "scope",
        "status",
    )

    def __init__(self, app: "WarrenApp", request: Request) -> None:
        self.app = app
        self.request = request
        self.scope: "Scope" = app
        self.params: dict[str, str] = {}
        self.route: "Route | None" = None
        self.status = int(Status.OK)
        self.content_type: str | None = None
        self.response_headers: list[tuple[str, str]] = []
        self._content = ContentBlocks()
        self._current_engine: str | None = None

    @property
    def settings(self) -> "Scope":
        return self.scope

    def activate(self, scope: "Scope") -> None:
        self.scope = scope

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        helper = self.scope.find_helper(name)
        if helper is None:
            raise AttributeError(f"No helper named {name!r} is available in this scope")
        return partial(helper, self)

    # ------------------------------------------------------------------ errors
    def error_handler(self, error: BaseException) -> Callable[..., Any] | None:
        return self.scope.resolve_error_handler(error_keys(error))

    def halt(self, status: int = int(Status.OK), body: str | Response | None = None) -> NoReturn:
        if isinstance(body, Response):
            raise Halt(body)
        content_type = self.content_type or self.app.config.default_content_type
        raise Halt(TextResponse(body or "", status=status, content_type=content_type))

    def redirect(self, location: str, status: int = int(Status.FOUND)) -> NoReturn:
        raise Halt(RedirectResponse(location, status=status))

    def header(self, name: str, value: str) -> None:
        self.response_headers.append((name.lower(), value))

    # ------------------------------------------------------------------ templates
    def find_template(self, name: str, engine: str = "template") -> TemplateEntry | None:
        entry = self.scope.templates.get(name)
        if entry is not None:
            return entry
        return self.app.engine.load(self.scope.views, name, engine)

    def render(self, name: str, /, *, engine: str = "template", layout: str | bool = True, **values: Any) -> str:
        entry = self.find_template(name, engine)
        if entry is None:
            raise LookupError(f"Template {name!r} not found")
        engine_was, self._current_engine = self._current_engine, engine
        try:
            output = self.app.engine.render(entry, self, values, engine=engine)
            if layout is False:
                return output
            layout_name = "layout" if layout is True else layout
            layout_entry = self.find_template(layout_name, engine)
            if layout_entry is None:
                if layout is True:
                    return output
                raise LookupError(f"Layout {layout_name!r} not found")
            return self.app.engine.render(layout_entry, self, {**values, "content": Markup(output)}, engine=engine)
        finally:
            self._current_engine = engine_was

    # ------------------------------------------------------------------ content capture
    def content_for(self, key: str, block: Any = None, /, *, engine: str | None = None) -> Any:
        if block is None:
            return partial(self._capture_decorator, key, engine)
        self._content.add(key, block, engine or self._current_engine or "python")
        return block

    def _capture_decorator(self, key: str, engine: str | None, block: Any) -> Any:
        return self.content_for(key, block, engine=engine)

    def has_content(self, key: str) -> bool:
        return self._content.has(key)

    def clear_content(self, key: str) -> None:
        self._content.clear(key)

    def yield_content(self, key: str, /, *args: Any, **values: Any) -> str:
        return self._content.render(self.app.engine, key, args, values)
