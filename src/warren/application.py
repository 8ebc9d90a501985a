"""Application core."""

from __future__ import annotations

import inspect
import logging
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, Mapping, get_type_hints

import msgspec

from .conditions import negotiate, provided_types
from .config import AppConfig
from .context import RequestContext
from .exceptions import Halt, HTTPError, InvalidScopeArgument
from .http import Status, status_for
from .namespace import FILTERS, Scope
from .patterns import CATCH_ALL, coerce_pattern
from .requests import Request
from .responses import (
    JSONResponse,
    Response,
    TextResponse,
    apply_default_security_headers,
    exception_to_response,
)
from .routing import Route, Router, convert_param
from .templates import TemplateEngine, TemplateRegistry

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _describe(func: Callable[..., Any]) -> tuple[inspect.Signature, Mapping[str, Any]]:
    signature = inspect.signature(func)
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError):
        hints = dict(getattr(func, "__annotations__", {}))
    return signature, hints


class WarrenApp(Scope):
    """Central application object and the outermost routing scope."""

    def __init__(self, config: AppConfig | None = None) -> None:
        super().__init__(TemplateRegistry())
        self.config = config or AppConfig()
        self.router = Router()
        self.engine = TemplateEngine(autoescape=self.config.autoescape)
        self._named_routes: dict[str, str] = {}
        self._startup_hooks: list[Callable[[], Awaitable[None] | None]] = []
        self._shutdown_hooks: list[Callable[[], Awaitable[None] | None]] = []
        self._route_log_level = logging.getLevelName(self.config.logging.route_log_level.upper())
        if not isinstance(self._route_log_level, int):
            raise InvalidScopeArgument(f"unknown log level {self.config.logging.route_log_level!r}")

    @classmethod
    def from_config(cls, config: AppConfig | Mapping[str, Any]) -> "WarrenApp":
        if isinstance(config, AppConfig):
            return cls(config=config)
        return cls(config=msgspec.convert(config, type=AppConfig))

    @property
    def app(self) -> "WarrenApp":
        return self

    @property
    def views(self) -> str:
        return self.config.views

    # ------------------------------------------------------------------ routing
    def forward(
        self,
        verb: str,
        pattern: Any = None,
        conditions: Mapping[str, Any] | None = None,
        endpoint: Callable[..., Any] | None = None,
        *,
        name: str | None = None,
    ) -> Route:
        if endpoint is None:
            raise InvalidScopeArgument(f"{verb} declarations need an endpoint")
        verb = verb.upper()
        resolved = coerce_pattern(pattern)
        merged = {**self.conditions, **(conditions or {})}
        if verb in FILTERS:
            return self.add_filter(verb, resolved or CATCH_ALL, merged, endpoint)
        if resolved is None:
            raise InvalidScopeArgument(f"{verb} routes need a pattern")
        return self.add_route(verb, resolved, merged, endpoint, name=name)

    def add_route(
        self,
        verb: str,
        pattern: Any,
        conditions: Mapping[str, Any] | None,
        endpoint: Callable[..., Any],
        *,
        name: str | None = None,
        scope: Scope | None = None,
    ) -> Route:
        route = self.router.add_route(
            pattern,
            methods=(verb,),
            endpoint=endpoint,
            conditions=conditions,
            name=name,
            scope=scope or self,
        )
        if name is not None:
            self._named_routes[name] = route.path
        logger.log(self._route_log_level, "Registered route %s %s %r", route.verb, route.pattern, route.conditions)
        self.invoke_hook("route_added", route.verb, route.pattern, endpoint)
        return route

    def add_filter(
        self,
        kind: str,
        pattern: Any,
        conditions: Mapping[str, Any] | None,
        endpoint: Callable[..., Any],
        *,
        scope: Scope | None = None,
    ) -> Route:
        route = self.router.add_filter(kind, pattern, endpoint=endpoint, conditions=conditions, scope=scope or self)
        logger.log(self._route_log_level, "Registered %s filter %s", route.verb.lower(), route.pattern)
        return route

    def url_path_for(self, name: str, /, **params: Any) -> str:
        template = self._named_routes.get(name)
        if template is None:
            raise LookupError(f"Route {name!r} not found")
        path = template
        for key, value in params.items():
            path = path.replace(f"{{{key}}}", str(value))
            path = path.replace(f"{{{key}:int}}", str(value)).replace(f"{{{key}:path}}", str(value))
        return path

    # ------------------------------------------------------------------ lifecycle
    def on_startup(self, func: Callable[[], Awaitable[None] | None]) -> Callable[[], Awaitable[None] | None]:
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[[], Awaitable[None] | None]) -> Callable[[], Awaitable[None] | None]:
        self._shutdown_hooks.append(func)
        return func

    async def startup(self) -> None:
        for hook in self._startup_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    async def shutdown(self) -> None:
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    # ------------------------------------------------------------------ request handling
    async def dispatch(
        self,
        method: str,
        path: str,
        *,
        query_string: str | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> Response:
        request = Request(
            method=method,
            path=path,
            headers=headers or {},
            query_string=query_string or "",
            body=body,
        )
        context = RequestContext(self, request)
        try:
            response = await self._route(context)
        except Halt as halt:
            response = halt.response
        except Exception as exc:
            handled = await self._handle_exception(context, exc)
            if handled is None:
                raise
            response = handled
        response = await self._after(context, response)
        if context.response_headers:
            response = response.with_headers(context.response_headers)
        if request.method == "HEAD":
            response = Response(status=response.status, headers=response.headers)
        if self.config.security_headers:
            response = apply_default_security_headers(response)
        return response

    async def _route(self, context: RequestContext) -> Response:
        request = context.request
        for match in self.router.filters("BEFORE", request.method, request.path, request=request):
            await self._invoke(match.route.endpoint, context, params=match.params)
        match = self.router.find(request.method, request.path, request=request)
        context.route = match.route
        context.params = dict(match.params)
        if match.route.scope is not None:
            context.activate(match.route.scope)
        provides = match.route.conditions.get("provides")
        if provides is not None:
            context.content_type = negotiate(request.accept, provided_types(provides))
        result = await self._invoke(
            match.route.endpoint,
            context,
            signature=match.route.signature,
            hints=match.route.type_hints,
        )
        return self._coerce_response(context, result)

    async def _after(self, context: RequestContext, response: Response) -> Response:
        request = context.request
        for match in self.router.filters("AFTER", request.method, request.path, request=request):
            try:
                await self._invoke(match.route.endpoint, context, params=match.params)
            except Halt as halt:
                return halt.response
            except Exception as exc:
                handled = await self._handle_exception(context, exc)
                if handled is None:
                    raise
                return handled
        return response

    async def _handle_exception(self, context: RequestContext, exc: Exception) -> Response | None:
        handler = context.error_handler(exc)
        if handler is None:
            if isinstance(exc, HTTPError):
                return exception_to_response(exc)
            if self.config.logging.log_unhandled_errors:
                logger.exception("Unhandled error while serving %s %s", context.request.method, context.request.path)
            if self.config.raise_server_errors:
                return None
            return exception_to_response(HTTPError(Status.INTERNAL_SERVER_ERROR, {"detail": "internal_server_error"}))
        context.status = status_for(exc)
        try:
            result = await self._invoke(handler, context, error=exc)
        except Halt as halt:
            return halt.response
        return self._coerce_response(context, result)

    async def _invoke(
        self,
        endpoint: Callable[..., Any],
        context: RequestContext,
        *,
        params: Mapping[str, str] | None = None,
        error: BaseException | None = None,
        signature: inspect.Signature | None = None,
        hints: Mapping[str, Any] | None = None,
    ) -> Any:
        if signature is None or hints is None:
            signature, hints = _describe(endpoint)
        values = context.params if params is None else params
        call_args: Dict[str, Any] = {}
        for name, parameter in signature.parameters.items():
            if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD, parameter.POSITIONAL_ONLY):
                continue
            annotation = hints.get(name, parameter.annotation)
            if annotation is Request or name == "request":
                call_args[name] = context.request
                continue
            if annotation is RequestContext or name == "context":
                call_args[name] = context
                continue
            if error is not None and (name in ("error", "exc") or _is_exception_type(annotation)):
                call_args[name] = error
                continue
            if name in values:
                call_args[name] = convert_param(values[name], annotation, name=name)
                continue
            if parameter.default is not parameter.empty:
                continue
            raise HTTPError(
                Status.INTERNAL_SERVER_ERROR,
                {"parameter": name, "detail": "handler parameter cannot be resolved"},
            )
        result = endpoint(**call_args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _coerce_response(self, context: RequestContext, result: Any) -> Response:
        status = context.status
        if isinstance(result, Response):
            return result
        if result is None:
            return Response(status=int(Status.NO_CONTENT) if status == int(Status.OK) else status)
        if isinstance(result, str):
            content_type = context.content_type or self.config.default_content_type
            return TextResponse(result, status=status, content_type=content_type)
        if isinstance(result, bytes):
            content_type = context.content_type or "application/octet-stream"
            return Response(status=status, headers=(("content-type", content_type),), body=result)
        return JSONResponse(result, status=status)

    # ------------------------------------------------------------------ interface adapters
    async def __call__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[Mapping[str, Any]]],
        send: Callable[[Mapping[str, Any]], Awaitable[None]],
    ) -> None:
        scope_type = scope.get("type")
        if scope_type == "http":
            await self._handle_http(scope, receive, send)
            return
        if scope_type == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        raise RuntimeError("WarrenApp only supports HTTP and lifespan scopes")

    async def _handle_http(
        self,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[Mapping[str, Any]]],
        send: Callable[[Mapping[str, Any]], Awaitable[None]],
    ) -> None:
        headers = {key.decode().lower(): value.decode() for key, value in scope.get("headers", [])}
        body = bytearray()
        while True:
            message = await receive()
            message_type = message.get("type")
            if message_type == "http.disconnect":
                return
            if message_type != "http.request":
                continue
            body.extend(message.get("body", b""))
            if not message.get("more_body", False):
                break
        response = await self.dispatch(
            scope["method"],
            scope["path"],
            query_string=(scope.get("query_string") or b"").decode(),
            headers=headers,
            body=bytes(body),
        )
        await send(
            {
                "type": "http.response.start",
                "status": response.status,
                "headers": [(k.encode("latin-1"), v.encode("latin-1")) for k, v in response.headers],
            }
        )
        await send({"type": "http.response.body", "body": response.body})

    async def _handle_lifespan(
        self,
        receive: Callable[[], Awaitable[Mapping[str, Any]]],
        send: Callable[[Mapping[str, Any]], Awaitable[None]],
    ) -> None:
        while True:
            message = await receive()
            message_type = message.get("type")
            if message_type == "lifespan.startup":
                await self.startup()
                await send({"type": "lifespan.startup.complete"})
            elif message_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return


def _is_exception_type(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseException)
