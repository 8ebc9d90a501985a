"""The request as the router sees it."""

from __future__ import annotations

from typing import Mapping


class Request:
    """Method, path and headers of an incoming request.

    Route conditions read ``accept``, ``host`` and ``user_agent``. The body is
    carried through untouched for handlers that want it.
    """

    __slots__ = ("_body", "headers", "method", "path", "query_string")

    def __init__(
        self,
        *,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        query_string: str | None = None,
        body: bytes | None = None,
    ) -> None:
        self.method = method.upper()
        self.path = path
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.query_string = query_string or ""
        self._body = body or b""

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    @property
    def accept(self) -> str | None:
        return self.headers.get("accept")

    @property
    def host(self) -> str | None:
        return self.headers.get("host")

    @property
    def user_agent(self) -> str | None:
        return self.headers.get("user-agent")

    def text(self) -> str:
        return self._body.decode()

    def body(self) -> bytes:
        return self._body
