"""Testing helpers."""

from __future__ import annotations

from typing import Any, Mapping
from urllib.parse import urlencode

from .application import WarrenApp
from .responses import Response
from .serialization import json_encode


class TestClient:
    """Async test client that executes requests in-process."""

    __test__ = False

    def __init__(self, app: WarrenApp, *, headers: Mapping[str, str] | None = None) -> None:
        self.app = app
        self.headers = dict(headers or {})

    async def __aenter__(self) -> "TestClient":
        await self.app.startup()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.app.shutdown()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
        body: bytes | None = None,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        payload = body or b""
        request_headers = {**self.headers, **(headers or {})}
        if json is not None:
            payload = json_encode(json)
            request_headers.setdefault("content-type", "application/json")
        query_string = urlencode(query or {}, doseq=True)
        return await self.app.dispatch(
            method,
            path,
            query_string=query_string,
            headers=request_headers,
            body=payload,
        )

    async def get(
        self,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return await self.request("GET", path, query=query, headers=headers)

    async def head(self, path: str, *, headers: Mapping[str, str] | None = None) -> Response:
        return await self.request("HEAD", path, headers=headers)

    async def post(
        self,
        path: str,
        *,
        json: Any | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return await self.request("POST", path, json=json, headers=headers)

    async def put(
        self,
        path: str,
        *,
        json: Any | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        return await self.request("PUT", path, json=json, headers=headers)

    async def delete(self, path: str, *, headers: Mapping[str, str] | None = None) -> Response:
        return await self.request("DELETE", path, headers=headers)
