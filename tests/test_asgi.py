from __future__ import annotations

from typing import Mapping

import pytest

from warren import WarrenApp
from warren.namespace import Namespace
from warren.requests import Request
from warren.responses import Response


@pytest.mark.asyncio
async def test_asgi_interface_handles_namespaced_request() -> None:
    app = WarrenApp()

    @app.namespace("/health")
    def health(ns: Namespace) -> None:
        @ns.get("/ping")
        async def ping() -> str:
            return "pong"

    messages: list[dict[str, object]] = []
    incoming = [
        {"type": "lifespan.startup"},
        {"type": "http.request", "body": b"", "more_body": False},
    ]

    async def receive() -> Mapping[str, object]:
        return incoming.pop(0) if incoming else {"type": "http.disconnect"}

    async def send(message: Mapping[str, object]) -> None:
        messages.append(dict(message))

    await app(
        {
            "type": "http",
            "method": "GET",
            "path": "/health/ping",
            "query_string": b"",
            "headers": [(b"host", b"example.com")],
        },
        receive,
        send,
    )
    assert messages[0]["status"] == 200
    assert (b"content-type", b"text/html; charset=utf-8") in messages[0]["headers"]
    assert messages[1]["body"] == b"pong"


@pytest.mark.asyncio
async def test_asgi_collects_body_chunks() -> None:
    app = WarrenApp()

    @app.post("/upload")
    async def upload(request: Request) -> Response:
        return Response(body=request.body())

    messages: list[dict[str, object]] = []
    chunks = [
        {"type": "http.request", "body": b"", "more_body": True},
        {"type": "http.request", "body": b"chunk-1", "more_body": True},
        {"type": "http.request", "body": b"chunk-2", "more_body": False},
    ]

    async def receive() -> Mapping[str, object]:
        if chunks:
            return chunks.pop(0)
        return {"type": "http.disconnect"}

    async def send(message: Mapping[str, object]) -> None:
        messages.append(dict(message))

    await app(
        {"type": "http", "method": "POST", "path": "/upload", "query_string": b"", "headers": []},
        receive,
        send,
    )
    assert messages[1]["body"] == b"chunk-1chunk-2"


@pytest.mark.asyncio
async def test_asgi_disconnect_before_body_sends_nothing() -> None:
    app = WarrenApp()

    async def receive() -> Mapping[str, object]:
        return {"type": "http.disconnect"}

    async def send(message: Mapping[str, object]) -> None:
        raise AssertionError("send should not be called")

    await app({"type": "http", "method": "GET", "path": "/", "headers": []}, receive, send)


@pytest.mark.asyncio
async def test_asgi_lifespan_runs_hooks() -> None:
    app = WarrenApp()
    events: list[str] = []
    app.on_startup(lambda: events.append("up"))
    app.on_shutdown(lambda: events.append("down"))

    incoming = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
    messages: list[Mapping[str, object]] = []

    async def receive() -> Mapping[str, object]:
        return incoming.pop(0)

    async def send(message: Mapping[str, object]) -> None:
        messages.append(dict(message))

    await app({"type": "lifespan"}, receive, send)
    assert events == ["up", "down"]
    assert messages == [{"type": "lifespan.startup.complete"}, {"type": "lifespan.shutdown.complete"}]


@pytest.mark.asyncio
async def test_asgi_rejects_unknown_scope() -> None:
    app = WarrenApp()

    async def receive() -> Mapping[str, object]:
        return {"type": "websocket.connect"}

    async def send(message: Mapping[str, object]) -> None:
        return None

    with pytest.raises(RuntimeError):
        await app({"type": "websocket", "headers": []}, receive, send)
