"""Schema definition appender.

Appends table definitions (for example Drizzle ``pgTable`` declarations) to a
schema module and adds the builder imports they need.  Tables whose name is
already declared in the module are left alone.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

from .imports import ImportSpec, inject_import
from .source import SourceModule
from .statements import ExportSpec, append_statement, build_export

DEFAULT_IMPORT_SOURCE = "drizzle-orm/pg-core"


class SchemaTable(BaseModel):
    name: str = Field(..., min_length=1)
    definition: str = Field(..., min_length=1)


class SchemaAdderParams(BaseModel):
    """Parameters for ``schema-definition-adder``.

    ``additional_imports`` entries are either bare names imported from
    ``import_source`` or complete ``import ...`` statements.
    """

    tables: list[SchemaTable] = Field(..., min_length=1)
    additional_imports: list[str] = Field(default_factory=list)
    import_source: str = DEFAULT_IMPORT_SOURCE

    @model_validator(mode="before")
    @classmethod
    def _aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for alias, key in (
            ("additionalImports", "additional_imports"),
            ("imports", "additional_imports"),
            ("importSource", "import_source"),
        ):
            if alias in data:
                data.setdefault(key, data.pop(alias))
        definitions = data.pop("schemaDefinitions", None)
        if definitions and "tables" not in data:
            data["tables"] = [{"name": f"table{i}", "definition": d} for i, d in enumerate(definitions)]
        return data


def existing_tables(content: str, names: list[str], path: str) -> list[str]:
    """Subset of *names* already declared in *content*."""
    declared = SourceModule(content, path).declared_names()
    return [name for name in names if name in declared]


def add_imports(module: SourceModule, entries: list[str], import_source: str) -> None:
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        if entry.startswith("import "):
            if entry not in module.text:
                module.insert_top_level(entry)
        else:
            inject_import(module, ImportSpec(module_source=import_source, names=[entry]))


def add_schema_definitions(content: str, params: SchemaAdderParams, path: str) -> str:
    module = SourceModule(content, path)
    add_imports(module, params.additional_imports, params.import_source)
    declared = module.declared_names()
    for table in params.tables:
        if table.name in declared:
            continue
        append_statement(module, build_export(ExportSpec(name=table.name, content=table.definition)))
    return module.text
