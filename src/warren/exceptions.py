"""Framework exception types."""

from __future__ import annotations

from typing import Any, Iterable

from .http import Status, ensure_status, reason_phrase
from .serialization import json_encode


class WarrenError(Exception):
    """Base error type."""


class HTTPError(WarrenError):
    """Structured HTTP error that is msgspec serializable."""

    def __init__(self, status: int | Status, detail: Any = None) -> None:
        status_code = ensure_status(status)
        super().__init__(status_code, detail)
        self.status = status_code
        self.detail = detail
        self.reason = reason_phrase(status_code)

    def to_response_body(self) -> bytes:
        return json_encode({"error": {"status": self.status, "reason": self.reason, "detail": self.detail}})


class NotFound(HTTPError, LookupError):
    def __init__(self, detail: Any = None) -> None:
        super().__init__(Status.NOT_FOUND, detail)


class MethodNotAllowed(HTTPError, LookupError):
    def __init__(self, allowed: Iterable[str], detail: Any = None) -> None:
        super().__init__(Status.METHOD_NOT_ALLOWED, detail)
        self.allowed = tuple(sorted(allowed))


class InvalidScopeArgument(WarrenError, ValueError):
    """Raised when a scope declaration receives an argument of the wrong shape."""


class UnresolvedMethod(WarrenError, AttributeError):
    """Raised when no scope in the ancestor chain can answer an attribute lookup."""

    def __init__(self, scope: Any, name: str) -> None:
        super().__init__(f"{type(scope).__name__!s} has no attribute {name!r} and no ancestor provides it")
        self.name = name


class ScopeFrozenError(WarrenError, RuntimeError):
    """Raised when a scope is modified after its declaring body has finished."""


class Halt(WarrenError):
    """Stop request processing and respond with ``response`` immediately."""

    def __init__(self, response: Any) -> None:
        super().__init__(response)
        self.response = response
