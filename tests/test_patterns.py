from __future__ import annotations

import re

import pytest

from warren.exceptions import InvalidScopeArgument
from warren.patterns import CATCH_ALL, Literal, Regex, coerce_pattern, compose, decompile, regexpify, strip_anchors


def test_literals_concatenate_without_separator_or_anchors() -> None:
    assert compose(Literal("/a"), Literal("/b"), outermost=False) == Literal("/a/b")
    assert compose(Literal("/a"), Literal("b"), outermost=False) == Literal("/ab")
    assert compose(Literal("/a"), Literal("/b"), outermost=True) == Literal("/a/b")


def test_regexes_concatenate_and_anchor_only_when_outermost() -> None:
    assert compose(Regex("/a"), Regex(r"/\d+"), outermost=False) == Regex(r"/a/\d+")
    assert compose(Regex("/a"), Regex(r"/\d+"), outermost=True) == Regex(r"^/a/\d+$")


def test_mixed_kinds_convert_the_literal_half() -> None:
    composed = compose(Literal("/api"), Regex(r"/(?P<id>\d+)"), outermost=False)
    assert composed == Regex(r"/api/(?P<id>\d+)")

    anchored = compose(Literal("/api"), Regex(r"/(?P<id>\d+)"), outermost=True)
    assert anchored == Regex(r"^/api/(?P<id>\d+)$")

    reversed_kinds = compose(Regex("/v[12]"), Literal("/users/{name}"), outermost=True)
    assert reversed_kinds == Regex(r"^/v[12]/users/(?P<name>[^/]+)$")


def test_converted_literal_does_not_widen_matches() -> None:
    composed = compose(Literal("/a.b"), Regex("/c+"), outermost=True)
    assert isinstance(composed, Regex)
    compiled = re.compile(composed.source)
    assert compiled.match("/a.b/cc")
    assert compiled.match("/axb/c") is None
    assert compiled.match("/a.b/c/d") is None


def test_single_side_is_returned_unchanged() -> None:
    literal = Literal("/only")
    regex = Regex("/only")
    assert compose(literal, None, outermost=True) is literal
    assert compose(None, regex, outermost=True) is regex


def test_two_empty_patterns_yield_catch_all() -> None:
    assert compose(None, None, outermost=True) is CATCH_ALL
    assert compose(None, None, outermost=False) is CATCH_ALL


def test_regexpify_strips_compiler_anchors() -> None:
    assert regexpify(Literal("/users/{user_id}")) == Regex("/users/(?P<user_id>[^/]+)")
    assert regexpify(Literal("/files/*")) == Regex("/files/.*")
    assert regexpify(Regex("/kept")) == Regex("/kept")
    assert regexpify(Regex(r"^/items/(?P<item>\d+)$")) == Regex(r"/items/(?P<item>\d+)")


def test_strip_anchors_variants() -> None:
    assert strip_anchors("^/a$") == "/a"
    assert strip_anchors(r"\A/a\z") == "/a"
    assert strip_anchors(r"^/price\$$") == r"/price\$"
    assert strip_anchors("/plain") == "/plain"


def test_coerce_pattern() -> None:
    assert coerce_pattern("/x") == Literal("/x")
    assert coerce_pattern(re.compile(r"/\d+")) == Regex(r"/\d+")
    assert coerce_pattern(None) is None
    existing = Regex("/y")
    assert coerce_pattern(existing) is existing
    with pytest.raises(InvalidScopeArgument):
        coerce_pattern(42)
    with pytest.raises(InvalidScopeArgument):
        coerce_pattern(re.compile(rb"/bytes"))


def test_anchored_regexes_lose_their_anchors_when_composed() -> None:
    composed = compose(Literal("/api"), Regex(r"^/items/(?P<item>\d+)$"), outermost=True)
    assert composed == Regex(r"^/api/items/(?P<item>\d+)$")
    assert re.match(composed.source, "/api/items/7")

    nested = compose(Regex(r"^/v\d$"), Regex(r"^/(?P<slug>[a-z]+)$"), outermost=False)
    assert nested == Regex(r"/v\d/(?P<slug>[a-z]+)")


def test_plain_regexes_compose_as_literals() -> None:
    assert decompile(Regex("^/reports$")) == Literal("/reports")
    assert decompile(Regex(r"/a\.b\-c")) == Literal("/a.b-c")
    assert decompile(Literal("/kept")) == Literal("/kept")
    assert decompile(Regex(r"/\d+")) is None
    assert decompile(Regex("/(?P<id>[^/]+)")) is None
    assert decompile(Regex(r"/\{name\}")) is None
    assert decompile(Regex(r"/\*")) is None

    assert compose(Literal("/admin"), Regex("^/reports$"), outermost=True) == Literal("/admin/reports")
    assert compose(Regex("/v1"), Literal("/users/{name}"), outermost=False) == Literal("/v1/users/{name}")
    assert compose(Literal("/admin"), Regex(r"/\d+"), outermost=False) == Regex(r"/admin/\d+")
