"""Object-tree merging inside configuration source files.

Merges a partial tree into the object literal exported by a config module
(``export default {...}``, ``module.exports = {...}``,
``export default defineConfig({...})``, ``const config = {...}; export
default config``).  Only the properties being merged are rewritten; unrelated
keys, comments and formatting are left as they are.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator
from tree_sitter import Node

from ..errors import ModifierError
from ..merge import MergeStrategy, split_key_path
from .source import INDENT, Edit, SourceModule, format_key, is_expression, render_value

EMPTY_CONFIG = "export default {};\n"

_TRANSPARENT = {"parenthesized_expression", "satisfies_expression", "as_expression"}


class ObjectMergerParams(BaseModel):
    """Parameters for ``js-config-merger``.

    ``key_path`` locates the nested object to merge into (empty means the
    exported object itself).  Values of the form ``{"$expr": "..."}`` are
    printed verbatim as JS expressions.
    """

    export_name: str = "default"
    key_path: list[str] = Field(default_factory=list)
    properties: dict[str, Any]
    strategy: MergeStrategy = MergeStrategy.DEEP

    @model_validator(mode="before")
    @classmethod
    def _aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for alias, key in (
            ("exportName", "export_name"),
            ("targetPath", "key_path"),
            ("keyPath", "key_path"),
            ("propertiesToMerge", "properties"),
            ("config", "properties"),
            ("mergeStrategy", "strategy"),
        ):
            if alias in data:
                data.setdefault(key, data.pop(alias))
        if isinstance(data.get("key_path"), str) or data.get("key_path") is None:
            data["key_path"] = split_key_path(data.get("key_path"))
        return data


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------


def literal_object(node: Node | None) -> Node | None:
    """Unwrap parentheses and type assertions down to an object literal."""
    while node is not None and node.type in _TRANSPARENT and node.named_children:
        node = node.named_children[0]
    return node if node is not None and node.type == "object" else None


def merge_edits(
    module: SourceModule,
    obj: Node,
    incoming: dict[str, Any],
    strategy: MergeStrategy = MergeStrategy.DEEP,
) -> list[Edit]:
    """Edits that merge *incoming* into the object literal *obj*."""
    if strategy is MergeStrategy.REPLACE:
        return [Edit(obj.start_byte, obj.end_byte, render_value(incoming, module.line_indent(obj.start_byte)))]

    props = module.object_properties(obj)
    edits: list[Edit] = []
    additions: dict[str, Any] = {}

    for key, value in incoming.items():
        prop = props.get(key)
        if prop is None:
            additions[key] = value
            continue

        indent = module.line_indent(prop.start_byte)
        if prop.type == "pair":
            value_node = prop.child_by_field_name("value")
            assert value_node is not None
            if strategy is MergeStrategy.DEEP and isinstance(value, dict) and not is_expression(value):
                nested = literal_object(value_node)
                if nested is not None:
                    edits.extend(merge_edits(module, nested, value, strategy))
                    continue
            edits.append(Edit(value_node.start_byte, value_node.end_byte, render_value(value, indent)))
        else:
            edits.append(
                Edit(prop.start_byte, prop.end_byte, f"{format_key(key)}: {render_value(value, indent)}")
            )

    if additions:
        edits.append(_insert_properties(module, obj, additions))
    return edits


def _insert_properties(module: SourceModule, obj: Node, additions: dict[str, Any]) -> Edit:
    elements = [c for c in obj.named_children if c.type != "comment"]
    base_indent = module.line_indent(obj.start_byte)

    if not elements:
        inner = base_indent + INDENT
        body = "".join(f"\n{inner}{format_key(k)}: {render_value(v, inner)}," for k, v in additions.items())
        return Edit(obj.start_byte, obj.end_byte, "{" + body + f"\n{base_indent}}}")

    last = elements[-1]
    comma = next((c for c in obj.children if c.type == "," and c.start_byte >= last.end_byte), None)

    if "\n" in module.node_text(obj):
        inner = module.line_indent(elements[0].start_byte)
        if len(inner) <= len(base_indent):
            inner = base_indent + INDENT
        rendered = [f"{format_key(k)}: {render_value(v, inner)}" for k, v in additions.items()]
        if comma is not None:
            return Edit(comma.end_byte, comma.end_byte, "".join(f"\n{inner}{r}," for r in rendered))
        return Edit(last.end_byte, last.end_byte, "".join(f",\n{inner}{r}" for r in rendered))

    rendered = [f"{format_key(k)}: {render_value(v, base_indent)}" for k, v in additions.items()]
    if comma is not None:
        return Edit(comma.end_byte, comma.end_byte, " " + ", ".join(rendered))
    return Edit(last.end_byte, last.end_byte, ", " + ", ".join(rendered))


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


def merge_config_object(content: str, params: ObjectMergerParams, path: str) -> str:
    """Merge ``params.properties`` into the exported config object of *content*."""
    module = SourceModule(content if content.strip() else EMPTY_CONFIG, path)
    target = module.resolve_object(module.export_value(params.export_name))
    if target is None:
        raise ModifierError(
            f"No exported object literal found for export '{params.export_name}' in {path}",
            path=path,
        )

    keys = list(params.key_path)
    while keys:
        prop = module.object_properties(target).get(keys[0])
        nested = None
        if prop is not None and prop.type == "pair":
            nested = literal_object(prop.child_by_field_name("value"))
        if nested is None:
            # Build the missing branch and merge it at this level.
            branch: dict[str, Any] = dict(params.properties)
            for key in reversed(keys[1:]):
                branch = {key: branch}
            module.apply(merge_edits(module, target, {keys[0]: branch}, MergeStrategy.DEEP))
            return module.text
        target = nested
        keys.pop(0)

    module.apply(merge_edits(module, target, params.properties, params.strategy))
    return module.text
