"""Jinja2-backed template processing for blueprint fields.

Blueprints carry literal strings in which generators may reference context
variables (``{{project.name}}``) and conditional blocks
(``{{#if module.parameters.useAuth}}...{{else}}...{{/if}}``).  The
``TemplateProcessor`` translates that small syntax into a Jinja2 template and
renders it against a ``ProjectContext``.  Everything in the template that is
*not* one of those tags is passed through verbatim, so source code containing
``{{`` (JSX style objects, Vue templates, etc.) survives rendering untouched.

Unresolved variables fail loudly with ``TemplateError``; missing names in a
conditional simply evaluate as false.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from jinja2 import ChainableUndefined, Environment, Undefined
from jinja2.exceptions import TemplateError as JinjaTemplateError
from jinja2.exceptions import TemplateSyntaxError, UndefinedError

from .context import ProjectContext
from .errors import TemplateError
from .utils import camel_case, kebab_case, pascal_case, slugify, snake_case


# ---------------------------------------------------------------------------
# Tag grammar
# ---------------------------------------------------------------------------

_PATH = r"[A-Za-z_]\w*(?:\.\w+)*"

_TAG_RE = re.compile(
    r"\{\{\s*(?:"
    r"#(?P<open>if|unless)\s+(?P<cond>[^{}]+?)"
    r"|(?P<else>else)"
    r"|/(?P<close>if|unless)"
    rf"|(?P<var>{_PATH}(?:\s*\|\s*[A-Za-z_]\w*)*)"
    r")\s*\}\}"
)

_JINJA_DELIMITERS = ("{{", "{%", "{#")


class _ProjectUndefined(ChainableUndefined):
    """Chains through missing attributes and is falsy, but refuses to render."""

    __slots__ = ()

    __str__ = Undefined._fail_with_undefined_error  # type: ignore[assignment]
    __iter__ = Undefined._fail_with_undefined_error  # type: ignore[assignment]
    __len__ = Undefined._fail_with_undefined_error  # type: ignore[assignment]
    __html__ = Undefined._fail_with_undefined_error  # type: ignore[assignment]


# ---------------------------------------------------------------------------
# TemplateProcessor
# ---------------------------------------------------------------------------


class TemplateProcessor:
    """Renders blueprint strings against a ``ProjectContext``.

    The processor is stateless apart from a cache of compiled templates, so a
    single instance can be shared by every action of a run.
    """

    def __init__(self) -> None:
        self.env = Environment(
            undefined=_ProjectUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self.env.filters["slugify"] = slugify
        self.env.filters["pascal_case"] = pascal_case
        self.env.filters["snake_case"] = snake_case
        self.env.filters["camel_case"] = camel_case
        self.env.filters["kebab_case"] = kebab_case
        self.env.filters["truthy"] = is_truthy
        self._cache: dict[str, Any] = {}

    # -- Rendering ---------------------------------------------------------

    def render(self, template: str, context: ProjectContext | Mapping[str, Any]) -> str:
        """Render a single template string.

        Strings without any ``{{`` are returned unchanged without touching
        Jinja2 at all.

        Raises:
            TemplateError: On unresolved variables or malformed blocks.
        """
        if "{{" not in template:
            return template

        compiled = self._cache.get(template)
        if compiled is None:
            source = self.to_jinja(template)
            try:
                compiled = self.env.from_string(source)
            except TemplateSyntaxError as exc:
                raise TemplateError(f"Malformed template: {exc.message}") from exc
            self._cache[template] = compiled

        try:
            return compiled.render(**_vars(context))
        except UndefinedError as exc:
            raise TemplateError(f"Unresolved template variable: {exc.message}") from exc
        except JinjaTemplateError as exc:
            raise TemplateError(f"Template rendering failed: {exc}") from exc

    def render_value(self, value: Any, context: ProjectContext | Mapping[str, Any]) -> Any:
        """Recursively render every string (keys included) inside *value*."""
        if isinstance(value, str):
            return self.render(value, context)
        if isinstance(value, Mapping):
            return {
                self.render(k, context) if isinstance(k, str) else k: self.render_value(v, context)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self.render_value(v, context) for v in value]
        return value

    def evaluate_condition(
        self, condition: str, context: ProjectContext | Mapping[str, Any]
    ) -> bool:
        """Evaluate an action ``condition`` such as ``module.parameters.useAuth``.

        A leading ``!`` negates the result.  The literals ``true`` and
        ``false`` are accepted.  Missing names evaluate as false.
        """
        expr = condition.strip()
        negate = expr.startswith("!")
        if negate:
            expr = expr[1:].strip()
        # Accept the ``{{ path }}`` spelling too.
        if expr.startswith("{{") and expr.endswith("}}"):
            expr = expr[2:-2].strip()

        if expr.lower() in ("true", "false"):
            result = expr.lower() == "true"
        else:
            try:
                compiled = self.env.compile_expression(expr, undefined_to_none=True)
                result = is_truthy(compiled(**_vars(context)))
            except TemplateSyntaxError as exc:
                raise TemplateError(f"Malformed condition {condition!r}: {exc.message}") from exc

        return not result if negate else result

    # -- Introspection -----------------------------------------------------

    def to_jinja(self, template: str) -> str:
        """Translate blueprint template syntax into a Jinja2 source string.

        Raises:
            TemplateError: If conditional blocks are unbalanced.
        """
        out: list[str] = []
        stack: list[str] = []
        pos = 0
        for match in _TAG_RE.finditer(template):
            out.append(_literal(template[pos : match.start()]))
            pos = match.end()

            if match.group("open"):
                kind = match.group("open")
                cond = match.group("cond").strip()
                stack.append(kind)
                if kind == "if":
                    out.append(f"{{% if ({cond}) | truthy %}}")
                else:
                    out.append(f"{{% if not (({cond}) | truthy) %}}")
            elif match.group("else"):
                if not stack:
                    raise TemplateError("'{{else}}' outside of a conditional block")
                out.append("{% else %}")
            elif match.group("close"):
                kind = match.group("close")
                if not stack or stack[-1] != kind:
                    raise TemplateError(f"Unbalanced '{{{{/{kind}}}}}' in template")
                stack.pop()
                out.append("{% endif %}")
            else:
                out.append("{{ " + match.group("var").strip() + " }}")

        out.append(_literal(template[pos:]))
        if stack:
            raise TemplateError(f"Unclosed '{{{{#{stack[-1]}}}}}' block in template")
        return "".join(out)

    def extract_variables(self, template: str) -> list[str]:
        """Return the variable paths a template interpolates, in first-use order."""
        seen: dict[str, None] = {}
        for match in _TAG_RE.finditer(template):
            var = match.group("var")
            if var:
                seen.setdefault(var.split("|", 1)[0].strip(), None)
        return list(seen)

    def validate(self, template: str) -> list[str]:
        """Return a list of problems with *template* (empty when it is valid)."""
        try:
            self.env.parse(self.to_jinja(template))
        except TemplateError as exc:
            return [exc.message]
        except TemplateSyntaxError as exc:
            return [exc.message or str(exc)]
        return []


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_truthy(value: Any) -> bool:
    """Handlebars-style truthiness: ``"false"``, ``"0"`` and empty values are false."""
    if value is None or isinstance(value, Undefined):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value not in ("", "false", "0")
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return bool(value)


def _literal(text: str) -> str:
    if any(delim in text for delim in _JINJA_DELIMITERS):
        return "{% raw %}" + text + "{% endraw %}"
    return text


def _vars(context: ProjectContext | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(context, ProjectContext):
        return context.as_template_vars()
    return dict(context)
