"""Template registries and the kida-backed template engine."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterator, Mapping, MutableMapping

from kida import Environment, FileSystemLoader

from .exceptions import ScopeFrozenError

if TYPE_CHECKING:
    from kida.template import Template

    from .context import RequestContext

TemplateBody = str | Callable[..., str]


@dataclass(frozen=True, slots=True)
class TemplateEntry:
    body: "TemplateBody | Template"
    file: str | None = None
    line: int = 0

    @classmethod
    def capture(cls, body: TemplateBody, *, stacklevel: int = 1) -> "TemplateEntry":
        """Build an entry recording where ``body`` was declared."""

        code = getattr(body, "__code__", None)
        if code is not None:
            return cls(body, code.co_filename, code.co_firstlineno)
        frame = sys._getframe(stacklevel + 1)
        return cls(body, frame.f_code.co_filename, frame.f_lineno)


class TemplateRegistry(MutableMapping[str, TemplateEntry]):
    """Template mapping that falls back to ``parent`` for unknown names.

    Writes and deletes only ever touch the local entries, so a child registry
    can shadow a parent template without changing what the parent sees.
    """

    def __init__(self, parent: Mapping[str, TemplateEntry] | None = None) -> None:
        self._entries: dict[str, TemplateEntry] = {}
        self._parent = parent
        self._frozen = False

    @property
    def parent(self) -> Mapping[str, TemplateEntry] | None:
        return self._parent

    @property
    def local(self) -> Mapping[str, TemplateEntry]:
        return MappingProxyType(self._entries)

    def freeze(self) -> None:
        self._frozen = True

    def __getitem__(self, name: str) -> TemplateEntry:
        if name in self._entries:
            return self._entries[name]
        if self._parent is None:
            raise KeyError(name)
        return self._parent[name]

    def __setitem__(self, name: str, entry: TemplateEntry) -> None:
        if self._frozen:
            raise ScopeFrozenError(f"cannot define template {name!r} after the scope was declared")
        self._entries[name] = entry

    def __delitem__(self, name: str) -> None:
        if self._frozen:
            raise ScopeFrozenError(f"cannot remove template {name!r} after the scope was declared")
        del self._entries[name]

    def __contains__(self, name: object) -> bool:
        if name in self._entries:
            return True
        return self._parent is not None and name in self._parent

    def __iter__(self) -> Iterator[str]:
        yield from self._entries
        if self._parent is not None:
            for name in self._parent:
                if name not in self._entries:
                    yield name

    def __len__(self) -> int:
        return sum(1 for _ in self)


class TemplateEngine:
    """Render template entries.

    ``template`` bodies are kida sources (or callables returning one), or
    templates loaded from a ``views`` directory. ``python`` bodies are
    callables receiving the request context and the locals and returning the
    rendered text.
    """

    ENGINES = ("template", "python")
    EXTENSIONS = MappingProxyType({"template": ".html"})

    def __init__(self, *, autoescape: bool = True) -> None:
        self.autoescape = autoescape
        self._inline = Environment(autoescape=autoescape)
        self._views: dict[str, Environment] = {}
        self._compiled: dict[str, Template] = {}

    def environment(self, views: str | Path) -> Environment:
        """Return the environment loading files from ``views``, one per directory."""

        key = str(views)
        env = self._views.get(key)
        if env is None:
            env = self._views[key] = Environment(loader=FileSystemLoader(key), autoescape=self.autoescape)
        return env

    def load(self, views: str | Path, name: str, engine: str) -> TemplateEntry | None:
        extension = self.EXTENSIONS.get(engine)
        if extension is None:
            return None
        path = Path(views) / f"{name}{extension}"
        if not path.is_file():
            return None
        template = self.environment(views).get_template(f"{name}{extension}")
        return TemplateEntry(template, str(path), 1)

    def compile(self, body: Any) -> Template:
        if isinstance(body, str):
            source = body
        elif hasattr(body, "render"):
            return body
        else:
            source = body()
        compiled = self._compiled.get(source)
        if compiled is None:
            compiled = self._compiled[source] = self._inline.from_string(source)
        return compiled

    def render(
        self,
        entry: TemplateEntry,
        context: "RequestContext",
        values: Mapping[str, Any],
        *,
        engine: str = "template",
    ) -> str:
        if engine == "python":
            if not callable(entry.body):
                raise TypeError(f"python templates must be callables, got {entry.body!r}")
            return str(entry.body(context, **values))
        if engine != "template":
            raise ValueError(f"Unknown template engine: {engine}")
        return self.compile(entry.body).render(dict(values))
