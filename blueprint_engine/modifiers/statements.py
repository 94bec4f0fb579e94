"""Top-level statement and export appenders.

Statements are appended to the end of a module.  Each one is parsed on its
own first, and a statement whose declared name already exists in the module
is skipped, so re-running a blueprint does not duplicate declarations.
"""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from ..errors import ModifierError
from .imports import ImportSpec, inject_import
from .source import SourceModule

StatementKind = Literal["interface", "type", "const", "function", "class", "enum", "raw"]

_DECLARATION_KEYWORDS = re.compile(
    r"^\s*(?:export\s+)?(?:default\s+)?(?:declare\s+)?(?:async\s+)?"
    r"(?:const|let|var|function\*?|class|abstract\s+class|interface|type|enum|namespace)\b"
)


class Statement(BaseModel):
    type: StatementKind = "raw"
    content: str = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"type": "raw", "content": data}
        return data

    @field_validator("content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("statement content is blank")
        return value


class StatementAppenderParams(BaseModel):
    statements: list[Statement] = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _aliases(cls, data: Any) -> Any:
        if isinstance(data, dict) and "statements" not in data and "statementsToAppend" in data:
            return {"statements": data["statementsToAppend"]}
        return data


class ExportSpec(BaseModel):
    """An export built from a name and an expression or declaration body."""

    name: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    type_only: bool = False


class ExportAppenderParams(BaseModel):
    exports: list[ExportSpec] = Field(..., min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _aliases(cls, data: Any) -> Any:
        if isinstance(data, dict) and "exports" not in data and "exportsToAdd" in data:
            return {"exports": data["exportsToAdd"]}
        return data


class ModuleEnhancerParams(BaseModel):
    """Imports, statements and exports applied in one pass."""

    imports: list[ImportSpec] = Field(default_factory=list)
    statements: list[Statement] = Field(default_factory=list)
    exports: list[ExportSpec] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for alias, key in (
            ("importsToAdd", "imports"),
            ("statementsToAppend", "statements"),
            ("exportsToAdd", "exports"),
        ):
            if alias in data:
                data.setdefault(key, data.pop(alias))
        return data

    @model_validator(mode="after")
    def _not_empty(self) -> "ModuleEnhancerParams":
        if not (self.imports or self.statements or self.exports):
            raise ValueError("nothing to add: imports, statements and exports are all empty")
        return self


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


def append_statement(module: SourceModule, content: str) -> bool:
    """Append *content* unless it is already present; returns whether it was added.

    Raises:
        ModifierError: If *content* does not parse as a module body.
    """
    fragment = SourceModule(content, module.path)
    if fragment.has_errors:
        raise ModifierError(f"Statement does not parse: {content.strip()[:80]}", path=module.path)

    declared = fragment.declared_names()
    if declared and declared <= module.declared_names():
        return False
    if content.strip() in module.text:
        return False
    module.append_statement(content)
    return True


def build_export(spec: ExportSpec) -> str:
    body = spec.content.strip().rstrip(";")
    if _DECLARATION_KEYWORDS.match(body):
        statement = body if body.startswith("export") else f"export {body}"
    elif spec.type_only:
        statement = f"export type {spec.name} = {body}"
    else:
        statement = f"export const {spec.name} = {body}"
    if re.match(r"^export\s+(?:const|let|var|type)\b", statement):
        statement += ";"
    return statement


def append_export(module: SourceModule, spec: ExportSpec) -> bool:
    if spec.name in module.exported_names():
        return False
    return append_statement(module, build_export(spec))


def append_statements(content: str, params: StatementAppenderParams, path: str) -> str:
    module = SourceModule(content, path)
    for statement in params.statements:
        append_statement(module, statement.content)
    return module.text


def append_exports(content: str, params: ExportAppenderParams, path: str) -> str:
    module = SourceModule(content, path)
    for spec in params.exports:
        append_export(module, spec)
    return module.text


def enhance_module(content: str, params: ModuleEnhancerParams, path: str) -> str:
    module = SourceModule(content, path)
    for spec in params.imports:
        inject_import(module, spec)
    for statement in params.statements:
        append_statement(module, statement.content)
    for export in params.exports:
        append_export(module, export)
    return module.text
