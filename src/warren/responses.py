"""Response primitives."""

from __future__ import annotations

from typing import Any, Iterable

import msgspec

from .exceptions import HTTPError
from .http import Status
from .serialization import json_encode

DEFAULT_SECURITY_HEADERS: tuple[tuple[str, str], ...] = (
    ("x-content-type-options", "nosniff"),
    ("referrer-policy", "no-referrer"),
    ("x-frame-options", "DENY"),
)

Headers = tuple[tuple[str, str], ...]


class Response(msgspec.Struct, frozen=True):
    """Immutable response payload."""

    status: int = int(Status.OK)
    headers: Headers = ()
    body: bytes = b""

    def with_headers(self, headers: Iterable[tuple[str, str]]) -> "Response":
        """Return a new response with ``headers`` appended."""

        return Response(status=self.status, headers=self.headers + tuple(headers), body=self.body)

    def with_status(self, status: int) -> "Response":
        return Response(status=int(status), headers=self.headers, body=self.body)

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


def apply_default_security_headers(
    response: Response,
    *,
    headers: Iterable[tuple[str, str]] | None = None,
) -> Response:
    """Append default security headers to ``response`` when missing."""

    baseline = tuple(headers or DEFAULT_SECURITY_HEADERS)
    existing = {name.lower() for name, _ in response.headers}
    additions = tuple((name, value) for name, value in baseline if name.lower() not in existing)
    if not additions:
        return response
    return response.with_headers(additions)


def TextResponse(
    text: str,
    *,
    status: int = int(Status.OK),
    content_type: str = "text/html; charset=utf-8",
    headers: Iterable[tuple[str, str]] | None = None,
) -> Response:
    """Create a text response with an explicit content type."""

    combined = (("content-type", content_type),) + tuple(headers or ())
    return Response(status=status, headers=combined, body=text.encode("utf-8"))


def PlainTextResponse(
    text: str,
    *,
    status: int = int(Status.OK),
    headers: Iterable[tuple[str, str]] | None = None,
) -> Response:
    """Create a plain text response."""

    return TextResponse(text, status=status, content_type="text/plain; charset=utf-8", headers=headers)


def JSONResponse(
    data: Any,
    *,
    status: int = int(Status.OK),
    headers: Iterable[tuple[str, str]] | None = None,
) -> Response:
    """Create a JSON response encoded via :mod:`msgspec`."""

    combined = (("content-type", "application/json"),) + tuple(headers or ())
    return Response(status=status, headers=combined, body=json_encode(data))


def RedirectResponse(location: str, *, status: int = int(Status.FOUND)) -> Response:
    return Response(status=status, headers=(("location", location),))


def exception_to_response(exc: HTTPError) -> Response:
    headers: Headers = (("content-type", "application/json"),)
    allowed = getattr(exc, "allowed", None)
    if allowed:
        headers += (("allow", ", ".join(allowed)),)
    return Response(status=exc.status, headers=headers, body=exc.to_response_body())


__all__ = [
    "DEFAULT_SECURITY_HEADERS",
    "JSONResponse",
    "PlainTextResponse",
    "RedirectResponse",
    "Response",
    "TextResponse",
    "apply_default_security_headers",
    "exception_to_response",
]
