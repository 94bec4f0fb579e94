"""Import injection.

Adds default, named and namespace imports to a JS/TS module.  An existing
``import ... from "<source>"`` is extended in place (named imports are never
duplicated); otherwise a new statement is inserted after the last import.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

from .source import Edit, ImportInfo, SourceModule, quote


class ImportSpec(BaseModel):
    """One import to guarantee.

    Accepts the canonical ``{names, module_source, kind}`` shape as well as
    ``{moduleSpecifier, namedImports, defaultImport, namespaceImport}`` and
    ``{name, from, type: "import" | "import type" | "import * as"}``.
    """

    module_source: str = Field(..., min_length=1)
    names: list[str] = Field(default_factory=list)
    default: str | None = None
    namespace: str | None = None
    type_only: bool = False

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for alias in ("moduleSource", "moduleSpecifier", "from", "source"):
            if alias in data and "module_source" not in data:
                data["module_source"] = data.pop(alias)
        if "namedImports" in data:
            data.setdefault("names", data.pop("namedImports"))
        if "defaultImport" in data:
            data.setdefault("default", data.pop("defaultImport"))
        if "namespaceImport" in data:
            data.setdefault("namespace", data.pop("namespaceImport"))
        if "typeOnly" in data:
            data.setdefault("type_only", data.pop("typeOnly"))

        names = data.pop("name", None)
        if names is not None:
            data.setdefault("names", names)
        if isinstance(data.get("names"), str):
            data["names"] = [data["names"]]

        style = data.pop("type", None)
        kind = data.pop("kind", None)
        if style == "import type":
            data["type_only"] = True
        elif style == "import * as":
            kind = "namespace"

        if kind in ("default", "namespace"):
            listed = data.get("names") or []
            if listed and not data.get(kind):
                data[kind] = listed[0]
                data["names"] = listed[1:]
        return data

    @model_validator(mode="after")
    def _require_something(self) -> "ImportSpec":
        if not (self.names or self.default or self.namespace):
            raise ValueError("an import needs at least one of names, default or namespace")
        return self


class ImportInjectorParams(BaseModel):
    imports: list[ImportSpec] = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _single(cls, data: Any) -> Any:
        # A bare spec or a list of specs is accepted in place of {imports: [...]}.
        if isinstance(data, list):
            return {"imports": data}
        if isinstance(data, dict) and "imports" not in data:
            if "importsToAdd" in data:
                return {"imports": data["importsToAdd"]}
            return {"imports": [data]}
        return data


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


def inject_import(module: SourceModule, spec: ImportSpec) -> None:
    """Guarantee *spec* is imported by *module* (mutates and re-parses it)."""
    names = list(dict.fromkeys(spec.names))
    default = spec.default
    namespace = spec.namespace

    for info in _matching(module, spec):
        if default and info.default is not None and module.node_text(info.default) == default:
            default = None
        if namespace and _namespace_name(module, info) == namespace:
            namespace = None
        present = _named_texts(module, info)
        names = [n for n in names if _normalise_specifier(n) not in present]
    if spec.type_only:
        # A value import of the same module also provides its types.
        for info in module.imports():
            if info.source == spec.module_source and not info.type_only:
                present = _named_texts(module, info)
                names = [n for n in names if _normalise_specifier(n) not in present]

    if names:
        matching = _matching(module, spec)
        with_named = next((i for i in matching if i.named is not None), None)
        default_only = next(
            (i for i in matching if i.default is not None and i.named is None and i.namespace is None),
            None,
        )
        if with_named is not None:
            module.apply([_append_named(module, with_named, names)])
            names = []
        elif default_only is not None:
            anchor = default_only.default.end_byte  # type: ignore[union-attr]
            module.apply([Edit(anchor, anchor, ", { " + ", ".join(names) + " }")])
            names = []

    if default:
        target = next(
            (i for i in _matching(module, spec) if i.default is None and (i.named or i.namespace)),
            None,
        )
        if target is not None:
            anchor = (target.namespace or target.named).start_byte  # type: ignore[union-attr]
            module.apply([Edit(anchor, anchor, f"{default}, ")])
            default = None

    if names or default or namespace:
        module.insert_top_level(
            _build_statement(module, spec.module_source, names, default, namespace, spec.type_only)
        )


def _matching(module: SourceModule, spec: ImportSpec) -> list[ImportInfo]:
    return [
        info for info in module.imports()
        if info.source == spec.module_source and info.type_only == spec.type_only
    ]


def _named_texts(module: SourceModule, info: ImportInfo) -> set[str]:
    present: set[str] = set()
    if info.named is None:
        return present
    for spec in info.named.named_children:
        if spec.type == "import_specifier":
            present.add(_normalise_specifier(module.node_text(spec)))
    return present


def _namespace_name(module: SourceModule, info: ImportInfo) -> str | None:
    if info.namespace is None:
        return None
    idents = [c for c in info.namespace.named_children if c.type == "identifier"]
    return module.node_text(idents[-1]) if idents else None


def _normalise_specifier(text: str) -> str:
    """Collapse whitespace and drop an inline ``type`` modifier."""
    words = text.split()
    if len(words) > 1 and words[0] == "type" and words[1] != "as":
        words = words[1:]
    return " ".join(words)


def _append_named(module: SourceModule, info: ImportInfo, names: list[str]) -> Edit:
    named = info.named
    assert named is not None
    specifiers = [c for c in named.named_children if c.type == "import_specifier"]
    if not specifiers:
        return Edit(named.start_byte, named.end_byte, "{ " + ", ".join(names) + " }")

    last = specifiers[-1]
    comma = next((c for c in named.children if c.type == "," and c.start_byte >= last.end_byte), None)
    if "\n" in module.node_text(named):
        indent = module.line_indent(last.start_byte)
        lines = "".join(f"\n{indent}{n}," for n in names)
        if comma is not None:
            return Edit(comma.end_byte, comma.end_byte, lines)
        return Edit(last.end_byte, last.end_byte, "," + lines[:-1])
    if comma is not None:
        return Edit(comma.end_byte, comma.end_byte, " " + ", ".join(names) + ",")
    return Edit(last.end_byte, last.end_byte, "".join(f", {n}" for n in names))


def _build_statement(
    module: SourceModule,
    source: str,
    names: list[str],
    default: str | None,
    namespace: str | None,
    type_only: bool,
) -> str:
    keyword = "import type" if type_only else "import"
    tail = f" from {quote(source, module.quote_char())}" + (";" if module.uses_semicolons() else "")
    named = "{ " + ", ".join(names) + " }" if names else ""

    if namespace:
        head = f"{keyword} {default}, * as {namespace}" if default else f"{keyword} * as {namespace}"
        lines = [head + tail]
        if named:
            # Namespace and named imports cannot share a statement.
            lines.append(f"{keyword} {named}{tail}")
        return "\n".join(lines)

    clause = ", ".join(part for part in (default, named) if part)
    return f"{keyword} {clause}{tail}"


def inject_imports(content: str, params: ImportInjectorParams, path: str) -> str:
    module = SourceModule(content, path)
    for spec in params.imports:
        inject_import(module, spec)
    return module.text
