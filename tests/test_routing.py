from __future__ import annotations

import inspect
from typing import Optional

import pytest

from warren.exceptions import HTTPError, MethodNotAllowed, NotFound
from warren.patterns import Literal, Regex
from warren.requests import Request
from warren.routing import Router, _dynamic_prefix_key, _request_prefix_key, compile_path, convert_param


def test_router_matches_path_parameters() -> None:
    router = Router()

    async def handler(item_id: int) -> int:
        return item_id

    route = router.add_route("/items/{item_id}", methods=["GET"], endpoint=handler, name="get_item")
    match = router.find("GET", "/items/123")
    assert match.route is route
    assert match.params["item_id"] == "123"
    assert route.type_hints["item_id"] is int


def test_router_scopes_routes_by_method() -> None:
    router = Router()

    async def handler() -> str:
        return "ok"

    router.add_route("/items", methods=["GET"], endpoint=handler)

    with pytest.raises(MethodNotAllowed) as excinfo:
        router.find("POST", "/items")
    assert excinfo.value.allowed == ("GET",)
    with pytest.raises(LookupError):
        router.find("GET", "/missing")


def test_router_registers_multiple_methods() -> None:
    router = Router()

    async def handler() -> str:
        return "ok"

    route = router.add_route("/items", methods=["GET", "post"], endpoint=handler)

    assert route.verb == "GET"
    assert [r.verb for r in router.routes] == ["GET", "POST"]
    assert router.find("GET", "/items").route is route
    assert router.find("POST", "/items").route.verb == "POST"


def test_head_falls_back_to_get_routes() -> None:
    router = Router()

    def handler() -> str:
        return "ok"

    route = router.add_route("/items/{item_id}", methods=["GET"], endpoint=handler)
    assert router.find("HEAD", "/items/1").route is route


def test_path_converters() -> None:
    router = Router()

    def by_id(item_id: int) -> int:
        return item_id

    def by_path(rest: str) -> str:
        return rest

    router.add_route("/items/{item_id:int}", methods=["GET"], endpoint=by_id)
    router.add_route("/files/{rest:path}", methods=["GET"], endpoint=by_path)

    assert router.find("GET", "/items/42").params == {"item_id": "42"}
    with pytest.raises(NotFound):
        router.find("GET", "/items/abc")
    assert router.find("GET", "/files/a/b/c.txt").params == {"rest": "a/b/c.txt"}


def test_compile_path_escapes_literal_text() -> None:
    assert compile_path("/a.b/{name}") == (r"^/a\.b/(?P<name>[^/]+)$", ("name",))
    assert compile_path("/static/*") == ("^/static/.*$", ())
    with pytest.raises(ValueError):
        compile_path("/items/{item_id:uuid}")


def test_duplicate_parameters_are_rejected() -> None:
    router = Router()

    def handler() -> None:
        return None

    with pytest.raises(ValueError):
        router.add_route("/{name}/{name}", methods=["GET"], endpoint=handler)


def test_regex_routes_expose_named_groups() -> None:
    router = Router()

    def handler(slug: str) -> str:
        return slug

    route = router.add_route(Regex(r"^/posts/(?P<slug>[a-z-]+)$"), methods=["GET"], endpoint=handler)
    assert route.param_names == ("slug",)
    match = router.find("GET", "/posts/hello-world")
    assert match.route is route
    assert match.params == {"slug": "hello-world"}
    with pytest.raises(NotFound):
        router.find("GET", "/posts/Hello")


def test_conditions_take_part_in_matching() -> None:
    router = Router()

    def json_handler() -> str:
        return "json"

    def html_handler() -> str:
        return "html"

    json_route = router.add_route("/report", methods=["GET"], endpoint=json_handler, conditions={"provides": "json"})
    html_route = router.add_route("/report", methods=["GET"], endpoint=html_handler, conditions={"provides": "html"})

    json_request = Request(method="GET", path="/report", headers={"accept": "application/json"})
    html_request = Request(method="GET", path="/report", headers={"accept": "text/html"})
    assert router.find("GET", "/report", request=json_request).route is json_route
    assert router.find("GET", "/report", request=html_request).route is html_route

    csv_request = Request(method="GET", path="/report", headers={"accept": "text/csv"})
    with pytest.raises(NotFound):
        router.find("GET", "/report", request=csv_request)


def test_filters_match_in_registration_order() -> None:
    router = Router()

    def first() -> None:
        return None

    def second() -> None:
        return None

    def elsewhere() -> None:
        return None

    router.add_filter("before", Literal("*"), endpoint=first)
    router.add_filter("BEFORE", Literal("/admin*"), endpoint=second)
    router.add_filter("BEFORE", Literal("/public*"), endpoint=elsewhere)

    matched = [m.route.endpoint for m in router.filters("BEFORE", "GET", "/admin/users")]
    assert matched == [first, second]
    assert list(router.filters("AFTER", "GET", "/admin/users")) == []
    assert router.routes == ()
    with pytest.raises(ValueError):
        router.add_filter("AROUND", Literal("*"), endpoint=first)


def test_prefix_helpers() -> None:
    assert _dynamic_prefix_key(Literal("/users/{user_id}")) == "users"
    assert _dynamic_prefix_key(Literal("/{tenant}/users")) is None
    assert _dynamic_prefix_key(Literal("/files*")) is None
    assert _dynamic_prefix_key(Regex("^/users/(?P<id>\\d+)$")) is None
    assert _request_prefix_key("/users/1") == "users"
    assert _request_prefix_key("/") is None


def test_convert_param_uses_handler_annotations() -> None:
    assert convert_param("7", int, name="item_id") == 7
    assert convert_param("2.5", float, name="ratio") == 2.5
    assert convert_param("false", bool, name="flag") is False
    assert convert_param("3", Optional[int], name="page") == 3
    assert convert_param("text", str, name="slug") == "text"
    assert convert_param("raw", inspect.Signature.empty, name="slug") == "raw"


def test_convert_param_failures_are_bad_requests() -> None:
    with pytest.raises(HTTPError) as excinfo:
        convert_param("abc", int, name="item_id")
    assert excinfo.value.status == 400
    assert excinfo.value.detail == {"parameter": "item_id", "expected": "int", "value": "abc"}
    with pytest.raises(HTTPError):
        convert_param("maybe", bool, name="flag")
