"""Wrapper-call injection for config modules.

Turns ``export default config`` into ``export default withX(config, {...})``
(or the ``module.exports`` equivalent) and makes sure ``withX`` is imported.
Running it twice with the same wrapper leaves the file unchanged.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, Field, model_validator
from tree_sitter import Node

from ..errors import ModifierError
from .imports import ImportSpec, inject_import
from .source import Edit, SourceModule, quote, render_value, string_value


class WrapperParams(BaseModel):
    """Parameters for ``js-export-wrapper``.

    Also accepts ``{exportToWrap, wrapperFunction: {name, importFrom},
    wrapperOptions}``.
    """

    wrapper: str = Field(..., min_length=1, pattern=r"^[A-Za-z_$][\w$.]*$")
    import_from: str | None = None
    default_import: bool = False
    options: dict[str, Any] = Field(default_factory=dict)
    export_name: str = "default"

    @model_validator(mode="before")
    @classmethod
    def _aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        function = data.pop("wrapperFunction", None)
        if isinstance(function, dict):
            data.setdefault("wrapper", function.get("name"))
            if function.get("importFrom"):
                data.setdefault("import_from", function["importFrom"])
        for alias, key in (
            ("wrapperName", "wrapper"),
            ("importFrom", "import_from"),
            ("wrapperOptions", "options"),
            ("exportToWrap", "export_name"),
        ):
            if alias in data:
                data.setdefault(key, data.pop(alias))
        return data


def is_wrapped(module: SourceModule, wrapper: str, export_name: str = "default") -> bool:
    value = module.export_value(export_name)
    if value is None or value.type != "call_expression":
        return False
    function = value.child_by_field_name("function")
    return function is not None and module.node_text(function) == wrapper


def wrap_export(content: str, params: WrapperParams, path: str) -> str:
    """Wrap the export named ``params.export_name`` in a call to ``params.wrapper``."""
    module = SourceModule(content, path)
    value = module.export_value(params.export_name)
    if value is None:
        raise ModifierError(f"No export '{params.export_name}' to wrap in {path}", path=path)

    if not is_wrapped(module, params.wrapper, params.export_name):
        args = module.node_text(value)
        if params.options:
            args += ", " + render_value(params.options, module.line_indent(value.start_byte))
        module.apply([Edit(value.start_byte, value.end_byte, f"{params.wrapper}({args})")])

    if params.import_from:
        root_name = params.wrapper.split(".", 1)[0]
        if module.is_commonjs() and not module.imports():
            _ensure_require(module, root_name, params.import_from, params.default_import)
        else:
            spec = (
                ImportSpec(module_source=params.import_from, default=root_name)
                if params.default_import
                else ImportSpec(module_source=params.import_from, names=[root_name])
            )
            inject_import(module, spec)
    return module.text


def _require_source(module: SourceModule, value: Node | None) -> str | None:
    """Module path of a ``require("...")`` call, or None for anything else."""
    if value is None or value.type != "call_expression":
        return None
    function = value.child_by_field_name("function")
    arguments = value.child_by_field_name("arguments")
    if function is None or module.node_text(function) != "require" or arguments is None:
        return None
    strings = [c for c in arguments.named_children if c.type == "string"]
    if len(strings) != 1 or len(arguments.named_children) != 1:
        return None
    return string_value(module.node_text(strings[0]))


def _binds(module: SourceModule, pattern: Node, name: str) -> bool:
    if pattern.type == "identifier":
        return module.node_text(pattern) == name
    if pattern.type != "object_pattern":
        return False
    for child in pattern.named_children:
        if child.type == "shorthand_property_identifier_pattern" and module.node_text(child) == name:
            return True
        if child.type == "pair_pattern":
            value = child.child_by_field_name("value")
            if value is not None and value.type == "identifier" and module.node_text(value) == name:
                return True
    return False


def _require_declarations(module: SourceModule) -> Iterator[tuple[Node, Node, str]]:
    """``(statement, declarator, module path)`` for each top-level ``require``."""
    for node in module.root.named_children:
        if node.type not in ("lexical_declaration", "variable_declaration"):
            continue
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            source = _require_source(module, declarator.child_by_field_name("value"))
            if source is not None:
                yield node, declarator, source


def _ensure_require(module: SourceModule, name: str, source: str, default_import: bool) -> None:
    declarations = list(_require_declarations(module))
    for _, declarator, required in declarations:
        pattern = declarator.child_by_field_name("name")
        if required != source or pattern is None:
            continue
        if default_import and pattern.type != "identifier":
            continue
        if _binds(module, pattern, name):
            return

    binding = name if default_import else f"{{ {name} }}"
    statement = f"const {binding} = require({quote(source, module.quote_char())});"
    if declarations:
        anchor = declarations[-1][0].end_byte
        module.apply([Edit(anchor, anchor, "\n" + statement)])
    else:
        module.insert_top_level(statement)
