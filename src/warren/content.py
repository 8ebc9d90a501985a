"""Capture blocks of content during a request and render them later.

A view can contribute markup to a region of its layout::

    context.content_for("scripts", '<script src="/app.js"></script>')

    @context.content_for("title", engine="python")
    def title(page):
        return f"<title>{page}</title>"

and the layout renders every captured block for that key, in capture order::

    context.yield_content("scripts")
    context.yield_content("title", "Home")

Blocks are stored per request and never shared between requests.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping

from kida.utils.html import Markup

if TYPE_CHECKING:
    from .templates import TemplateEngine

Capture = Callable[["TemplateEngine", Any, tuple[Any, ...], Mapping[str, Any]], str]


def _capture_python(templates: "TemplateEngine", block: Any, args: tuple[Any, ...], values: Mapping[str, Any]) -> str:
    if callable(block):
        return str(block(*args, **values))
    return str(block)


def _capture_template(templates: "TemplateEngine", block: Any, args: tuple[Any, ...], values: Mapping[str, Any]) -> str:
    return templates.compile(block).render(dict(values))


# engine name -> how a captured block of that engine is rendered
CAPTURE: Mapping[str, Capture] = MappingProxyType(
    {
        "python": _capture_python,
        "template": _capture_template,
    }
)


class ContentBlocks:
    __slots__ = ("_blocks",)

    def __init__(self) -> None:
        self._blocks: dict[str, list[tuple[str, Any]]] = {}

    def add(self, key: str, block: Any, engine: str) -> None:
        if engine not in CAPTURE:
            raise ValueError(f"Unknown capture engine: {engine}")
        self._blocks.setdefault(key, []).append((engine, block))

    def has(self, key: str) -> bool:
        return bool(self._blocks.get(key))

    def clear(self, key: str) -> None:
        self._blocks.pop(key, None)

    def render(self, templates: "TemplateEngine", key: str, args: tuple[Any, ...], values: Mapping[str, Any]) -> Markup:
        blocks = self._blocks.get(key, ())
        return Markup("".join(CAPTURE[engine](templates, block, args, values) for engine, block in blocks))
