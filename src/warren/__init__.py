"""Warren asynchronous web framework with nested routing namespaces."""

from .application import WarrenApp
from .conditions import merge_conditions
from .config import AppConfig, LoggingConfig
from .context import RequestContext
from .exceptions import (
    HTTPError,
    InvalidScopeArgument,
    MethodNotAllowed,
    NotFound,
    ScopeFrozenError,
    UnresolvedMethod,
    WarrenError,
)
from .namespace import Namespace, Scope
from .patterns import CATCH_ALL, Literal, Regex, compose
from .requests import Request
from .responses import JSONResponse, PlainTextResponse, Response, TextResponse
from .templates import TemplateEntry, TemplateRegistry
from .testing import TestClient

__all__ = [
    "CATCH_ALL",
    "AppConfig",
    "HTTPError",
    "InvalidScopeArgument",
    "JSONResponse",
    "Literal",
    "LoggingConfig",
    "MethodNotAllowed",
    "Namespace",
    "NotFound",
    "PlainTextResponse",
    "Regex",
    "Request",
    "RequestContext",
    "Response",
    "Scope",
    "ScopeFrozenError",
    "TemplateEntry",
    "TemplateRegistry",
    "TestClient",
    "TextResponse",
    "UnresolvedMethod",
    "WarrenApp",
    "WarrenError",
    "compose",
    "merge_conditions",
]
