"""JSX element wrapping.

Wraps every ``<target>`` element of a component file in a provider-style
element, e.g. ``<body>...</body>`` becomes
``<Sentry.Provider dsn="...">`` ``<body>...</body>`` ``</Sentry.Provider>``,
and imports the wrapper's root name. Elements already wrapped by the same
component are left alone.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator
from tree_sitter import Node

from ..errors import ModifierError
from .imports import ImportSpec, inject_import
from .source import INDENT, Edit, SourceModule, is_expression, render_value

_ELEMENT_TYPES = ("jsx_element", "jsx_self_closing_element")


class JsxWrapperParams(BaseModel):
    """Parameters for ``jsx-wrapper``.

    Also accepts ``{targetComponent, wrapperComponent: {name, importFrom,
    props}, wrapStrategy}``. The strategies render identically.
    """

    target: str = Field(..., min_length=1, pattern=r"^[A-Za-z_$][\w$.:-]*$")
    wrapper: str = Field(..., min_length=1, pattern=r"^[A-Za-z_$][\w$.]*$")
    import_from: str | None = None
    props: dict[str, Any] = Field(default_factory=dict)
    strategy: Literal["provider", "hoc", "wrapper"] = "provider"

    @model_validator(mode="before")
    @classmethod
    def _aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        component = data.pop("wrapperComponent", None)
        if isinstance(component, dict):
            data.setdefault("wrapper", component.get("name"))
            if component.get("importFrom"):
                data.setdefault("import_from", component["importFrom"])
            if component.get("props"):
                data.setdefault("props", component["props"])
        for alias, key in (
            ("targetComponent", "target"),
            ("importFrom", "import_from"),
            ("wrapStrategy", "strategy"),
        ):
            if alias in data:
                data.setdefault(key, data.pop(alias))
        return data


def render_props(props: dict[str, Any]) -> str:
    """Render JSX attributes: strings quoted, everything else in braces."""
    parts: list[str] = []
    for key, value in props.items():
        if isinstance(value, str) and '"' not in value:
            parts.append(f'{key}="{value}"')
        elif isinstance(value, str):
            parts.append(f"{key}={{{json.dumps(value)}}}")
        elif is_expression(value) or value is True or value is False or isinstance(value, (int, float)):
            parts.append(f"{key}={{{render_value(value)}}}")
        else:
            parts.append(f"{key}={{{json.dumps(value, separators=(', ', ': '))}}}")
    return " ".join(parts)


def tag_name(module: SourceModule, element: Node) -> str | None:
    if element.type == "jsx_self_closing_element":
        opening = element
    else:
        opening = element.child_by_field_name("open_tag") or next(
            (c for c in element.named_children if c.type == "jsx_opening_element"), None
        )
    if opening is None:
        return None
    name = opening.child_by_field_name("name")
    return module.node_text(name) if name is not None else None


def find_elements(module: SourceModule, name: str) -> list[Node]:
    """Outermost JSX elements whose tag is *name*, in source order."""
    found: list[Node] = []
    stack = [module.root]
    while stack:
        node = stack.pop()
        if node.type in _ELEMENT_TYPES and tag_name(module, node) == name:
            found.append(node)
            continue
        stack.extend(reversed(node.children))
    return found


def _is_wrapped_by(module: SourceModule, element: Node, wrapper: str) -> bool:
    parent = element.parent
    return parent is not None and parent.type == "jsx_element" and tag_name(module, parent) == wrapper


def wrap_jsx(content: str, params: JsxWrapperParams, path: str) -> str:
    """Wrap each ``params.target`` element in ``params.wrapper``."""
    module = SourceModule(content, path)
    targets = find_elements(module, params.target)
    if not targets:
        raise ModifierError(f"No <{params.target}> element to wrap in {path}", path=path)

    props = render_props(params.props)
    opening = f"<{params.wrapper} {props}>" if props else f"<{params.wrapper}>"
    edits: list[Edit] = []
    for element in targets:
        if _is_wrapped_by(module, element, params.wrapper):
            continue
        indent = module.line_indent(element.start_byte)
        body = module.node_text(element).replace("\n", "\n" + INDENT)
        body = "\n".join(line.rstrip() for line in body.split("\n"))
        edits.append(
            Edit(
                element.start_byte,
                element.end_byte,
                f"{opening}\n{indent}{INDENT}{body}\n{indent}</{params.wrapper}>",
            )
        )
    module.apply(edits)

    if params.import_from:
        inject_import(module, ImportSpec(module_source=params.import_from, names=[params.wrapper.split(".", 1)[0]]))
    return module.text
