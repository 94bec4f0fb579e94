"""Structural view of a JavaScript/TypeScript module.

``SourceModule`` parses source text with tree-sitter and exposes the few
queries the modifiers need (imports, top-level declarations, exported
values, object literals) plus byte-span edits.  Edits are applied in one
batch and the module is re-parsed, so every modifier works as
parse -> mutate -> print without regex surgery.
"""

from __future__ import annotations

import json
import posixpath
import re
from collections.abc import Iterator
from dataclasses import dataclass

import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser

TYPESCRIPT = Language(tsts.language_typescript())
TSX = Language(tsts.language_tsx())

_TS_EXTENSIONS = {".ts", ".mts", ".cts"}
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")

# Node types that merely wrap the expression we are interested in.
_TRANSPARENT = {"parenthesized_expression", "satisfies_expression", "as_expression", "non_null_expression"}

_DECLARATIONS = {
    "function_declaration",
    "generator_function_declaration",
    "class_declaration",
    "abstract_class_declaration",
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
    "module",
    "internal_module",
}

INDENT = "  "


def language_for(path: str) -> Language:
    """TypeScript grammar for ``.ts`` files; the TSX grammar for everything else."""
    _, ext = posixpath.splitext(path.lower())
    return TYPESCRIPT if ext in _TS_EXTENSIONS else TSX


@dataclass(frozen=True)
class Edit:
    """Replace bytes ``[start, end)`` with ``text`` (``start == end`` inserts)."""

    start: int
    end: int
    text: str


@dataclass
class ImportInfo:
    """Decoded view of one ``import`` statement."""

    node: Node
    source: str
    type_only: bool
    default: Node | None
    namespace: Node | None
    named: Node | None

    @property
    def side_effect_only(self) -> bool:
        return self.default is None and self.namespace is None and self.named is None


class SourceModule:
    """A parsed JS/TS module that can be edited structurally."""

    def __init__(self, text: str, path: str = "module.ts") -> None:
        self.path = path
        self.parser = Parser(language_for(path))
        self._reparse(text)

    def _reparse(self, text: str) -> None:
        self.text = text
        self.source = text.encode("utf-8")
        self.tree = self.parser.parse(self.source)
        self.root = self.tree.root_node

    # ------------------------------------------------------------------
    # Basics
    # ------------------------------------------------------------------

    @property
    def has_errors(self) -> bool:
        return self.root.has_error

    def node_text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8")

    def statements(self) -> list[Node]:
        return [child for child in self.root.named_children if child.type != "comment"]

    def line_indent(self, byte_pos: int) -> str:
        """Leading whitespace of the line containing *byte_pos*."""
        line_start = self.source.rfind(b"\n", 0, byte_pos) + 1
        match = re.match(rb"[ \t]*", self.source[line_start:byte_pos])
        return match.group(0).decode("utf-8") if match else ""

    def apply(self, edits: list[Edit]) -> None:
        """Apply non-overlapping edits and re-parse."""
        if not edits:
            return
        data = self.source
        for edit in sorted(edits, key=lambda e: (e.start, e.end), reverse=True):
            data = data[: edit.start] + edit.text.encode("utf-8") + data[edit.end :]
        self._reparse(data.decode("utf-8"))

    def append_statement(self, statement: str) -> None:
        """Append a top-level statement, separated from the body by a blank line."""
        body = self.text.rstrip()
        block = statement.strip("\n")
        self._reparse(f"{body}\n\n{block}\n" if body else f"{block}\n")

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def imports(self) -> list[ImportInfo]:
        found: list[ImportInfo] = []
        for node in self.root.named_children:
            if node.type != "import_statement":
                continue
            source_node = node.child_by_field_name("source")
            if source_node is None:
                continue
            clause = next((c for c in node.named_children if c.type == "import_clause"), None)
            default = namespace = named = None
            if clause is not None:
                for part in clause.named_children:
                    if part.type == "identifier":
                        default = part
                    elif part.type == "namespace_import":
                        namespace = part
                    elif part.type == "named_imports":
                        named = part
            found.append(
                ImportInfo(
                    node=node,
                    source=string_value(self.node_text(source_node)),
                    type_only=any(c.type == "type" and not c.is_named for c in node.children),
                    default=default,
                    namespace=namespace,
                    named=named,
                )
            )
        return found

    def quote_char(self) -> str:
        """Quote style used by the module's existing imports (double by default)."""
        for info in self.imports():
            source_node = info.node.child_by_field_name("source")
            if source_node is not None:
                return self.node_text(source_node)[0]
        return '"'

    def uses_semicolons(self) -> bool:
        imports = self.imports()
        if imports:
            return self.node_text(imports[0].node).rstrip().endswith(";")
        return True

    def import_insertion_point(self) -> tuple[int, str]:
        """Byte offset and prefix for a new top-level import.

        New imports go after the last existing import, or after leading
        directives such as ``"use client"`` when there are none.
        """
        imports = [n for n in self.root.named_children if n.type == "import_statement"]
        if imports:
            return imports[-1].end_byte, "\n"
        last_directive: Node | None = None
        for node in self.root.named_children:
            if node.type == "comment" or node.type == "hash_bang_line":
                continue
            if is_directive(node):
                last_directive = node
                continue
            break
        if last_directive is not None:
            return last_directive.end_byte, "\n\n"
        return 0, ""

    def insert_top_level(self, statement: str) -> None:
        """Insert a statement where imports belong."""
        offset, prefix = self.import_insertion_point()
        if offset == 0:
            suffix = "\n\n" if self.text.strip() else "\n"
            self.apply([Edit(0, 0, statement + suffix)])
        else:
            self.apply([Edit(offset, offset, prefix + statement)])

    # ------------------------------------------------------------------
    # Declarations and exports
    # ------------------------------------------------------------------

    def _declaration_nodes(self) -> Iterator[tuple[Node, bool]]:
        """Yield ``(declaration, exported)`` for every top-level declaration."""
        for node in self.root.named_children:
            if node.type == "export_statement":
                decl = node.child_by_field_name("declaration")
                if decl is not None:
                    yield decl, True
            elif node.type == "ambient_declaration":
                for child in node.named_children:
                    yield child, False
            else:
                yield node, False

    def declared_names(self) -> set[str]:
        """Names bound by top-level declarations (exported or not)."""
        names: set[str] = set()
        for decl, _ in self._declaration_nodes():
            names.update(self._names_of(decl))
        return names

    def exported_names(self) -> set[str]:
        names: set[str] = set()
        for decl, exported in self._declaration_nodes():
            if exported:
                names.update(self._names_of(decl))
        for node in self.root.named_children:
            if node.type != "export_statement":
                continue
            if any(c.type == "default" and not c.is_named for c in node.children):
                names.add("default")
            for clause in node.named_children:
                if clause.type != "export_clause":
                    continue
                for spec in clause.named_children:
                    target = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                    if target is not None:
                        names.add(string_value(self.node_text(target)))
        return names

    def _names_of(self, decl: Node) -> list[str]:
        if decl.type in ("lexical_declaration", "variable_declaration"):
            result = []
            for declarator in decl.named_children:
                if declarator.type == "variable_declarator":
                    name = declarator.child_by_field_name("name")
                    if name is not None and name.type == "identifier":
                        result.append(self.node_text(name))
            return result
        if decl.type in _DECLARATIONS:
            name = decl.child_by_field_name("name")
            if name is not None:
                return [self.node_text(name)]
        return []

    def find_variable(self, name: str) -> Node | None:
        """Initializer expression of a top-level ``const``/``let``/``var``."""
        for decl, _ in self._declaration_nodes():
            if decl.type not in ("lexical_declaration", "variable_declaration"):
                continue
            for declarator in decl.named_children:
                if declarator.type != "variable_declarator":
                    continue
                ident = declarator.child_by_field_name("name")
                if ident is not None and self.node_text(ident) == name:
                    return declarator.child_by_field_name("value")
        return None

    def is_commonjs(self) -> bool:
        return self._commonjs_export() is not None

    def _commonjs_export(self) -> Node | None:
        for node in self.root.named_children:
            if node.type != "expression_statement" or not node.named_children:
                continue
            expr = node.named_children[0]
            if expr.type != "assignment_expression":
                continue
            left = expr.child_by_field_name("left")
            if left is not None and self.node_text(left).replace(" ", "") == "module.exports":
                return expr.child_by_field_name("right")
        return None

    def export_value(self, export_name: str = "default") -> Node | None:
        """Expression bound to an export.

        ``default`` resolves ``export default <expr>`` and falls back to
        ``module.exports = <expr>``; other names resolve ``export const``.
        """
        for node in self.root.named_children:
            if node.type != "export_statement":
                continue
            is_default = any(c.type == "default" and not c.is_named for c in node.children)
            if export_name == "default" and is_default:
                return node.child_by_field_name("value")
            if export_name != "default" and not is_default:
                decl = node.child_by_field_name("declaration")
                if decl is None or decl.type not in ("lexical_declaration", "variable_declaration"):
                    continue
                for declarator in decl.named_children:
                    ident = declarator.child_by_field_name("name")
                    if ident is not None and self.node_text(ident) == export_name:
                        return declarator.child_by_field_name("value")
        if export_name == "default":
            return self._commonjs_export()
        return None

    def resolve_object(self, node: Node | None, _depth: int = 0) -> Node | None:
        """Follow wrappers, config helpers and identifiers down to an object literal.

        Handles ``{...}``, ``({...})``, ``{...} satisfies T``, ``defineConfig({...})``
        and ``export default config`` where ``config`` is a top-level const.
        """
        if node is None or _depth > 8:
            return None
        if node.type == "object":
            return node
        if node.type in _TRANSPARENT and node.named_children:
            return self.resolve_object(node.named_children[0], _depth + 1)
        if node.type == "call_expression":
            args = node.child_by_field_name("arguments")
            if args is None:
                return None
            for arg in args.named_children:
                found = self.resolve_object(arg, _depth + 1)
                if found is not None:
                    return found
            return None
        if node.type == "identifier":
            return self.resolve_object(self.find_variable(self.node_text(node)), _depth + 1)
        return None

    # ------------------------------------------------------------------
    # Object literals
    # ------------------------------------------------------------------

    def object_properties(self, obj: Node) -> dict[str, Node]:
        """Map of property key -> property node (``pair``/shorthand/method)."""
        props: dict[str, Node] = {}
        for child in obj.named_children:
            if child.type == "pair":
                key = child.child_by_field_name("key")
                if key is not None and key.type != "computed_property_name":
                    props[string_value(self.node_text(key))] = child
            elif child.type == "shorthand_property_identifier":
                props[self.node_text(child)] = child
            elif child.type == "method_definition":
                name = child.child_by_field_name("name")
                if name is not None:
                    props[string_value(self.node_text(name))] = child
        return props


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def string_value(text: str) -> str:
    """Strip matching quotes from a string literal's source text."""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"`":
        return text[1:-1]
    return text


def is_directive(node: Node) -> bool:
    return (
        node.type == "expression_statement"
        and len(node.named_children) == 1
        and node.named_children[0].type == "string"
    )


def quote(value: str, quote_char: str = '"') -> str:
    if quote_char == "'":
        return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"
    return json.dumps(value, ensure_ascii=False)


def format_key(key: str) -> str:
    return key if _IDENTIFIER_RE.match(key) else json.dumps(key, ensure_ascii=False)


def is_expression(value: object) -> bool:
    """``{"$expr": "..."}`` marks a raw JS expression printed verbatim."""
    return isinstance(value, dict) and set(value) == {"$expr"} and isinstance(value["$expr"], str)


def render_value(value: object, indent: str = "") -> str:
    """Print a Python value as a JS expression.

    Nested objects are laid out one property per line, indented relative to
    *indent* (the indentation of the line the value starts on).
    """
    if is_expression(value):
        return value["$expr"]  # type: ignore[index]
    if isinstance(value, dict):
        if not value:
            return "{}"
        inner = indent + INDENT
        lines = [f"{inner}{format_key(str(k))}: {render_value(v, inner)}," for k, v in value.items()]
        return "{\n" + "\n".join(lines) + f"\n{indent}}}"
    if isinstance(value, (list, tuple)):
        items = [render_value(v, indent + INDENT) for v in value]
        flat = "[" + ", ".join(items) + "]"
        if "\n" not in flat and len(flat) <= 80:
            return flat
        inner = indent + INDENT
        return "[\n" + "\n".join(f"{inner}{item}," for item in items) + f"\n{indent}]"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    return json.dumps(str(value), ensure_ascii=False)
