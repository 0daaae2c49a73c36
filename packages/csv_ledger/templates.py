"""Template engine capability.

The renderer depends on the narrow :class:`TemplateEngine` protocol: a pure
function from a template string and a read-only ``name -> text`` mapping to
text, failing with :class:`~csv_ledger.errors.UnknownPlaceholder` when the
template names something the mapping lacks.

:class:`JinjaTemplateEngine` is the production implementation. Handlebars
style ``{{label}}`` placeholders are valid Jinja2 expressions, so existing
configurations work unchanged. Output is never HTML-escaped.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from jinja2 import Environment, StrictUndefined, Template, TemplateSyntaxError, UndefinedError, meta

from .errors import ConfigError, UnknownPlaceholder


class TemplateEngine(Protocol):
    def render(self, template: str, values: Mapping[str, str]) -> str: ...


class JinjaTemplateEngine:
    """Jinja2-backed :class:`TemplateEngine` with strict undefined handling.

    Compiled templates and their referenced names are cached per template
    string; nothing else is mutated after construction.
    """

    def __init__(self) -> None:
        self._env = Environment(
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self._cache: dict[str, tuple[Template, frozenset[str]]] = {}

    def _compile(self, template: str) -> tuple[Template, frozenset[str]]:
        hit = self._cache.get(template)
        if hit is not None:
            return hit
        try:
            ast = self._env.parse(template)
        except TemplateSyntaxError as e:
            raise ConfigError(f"invalid template {template!r}: {e.message}") from e
        names = frozenset(meta.find_undeclared_variables(ast))
        compiled = (self._env.from_string(template), names)
        self._cache[template] = compiled
        return compiled

    def validate(self, template: str) -> frozenset[str]:
        """Compile ``template`` and return the names it references."""

        return self._compile(template)[1]

    def render(self, template: str, values: Mapping[str, str]) -> str:
        compiled, names = self._compile(template)
        for name in sorted(names):
            if name not in values:
                raise UnknownPlaceholder(name)
        try:
            return compiled.render(dict(values))
        except UndefinedError as e:
            # Attribute/item lookups on a present name, e.g. {{amount.foo}}.
            raise UnknownPlaceholder(e.message or "?") from e


__all__ = ["TemplateEngine", "JinjaTemplateEngine"]
