"""Structural modifiers and their registry.

Quick usage::

    from blueprint_engine.modifiers import default_registry

    registry = default_registry()
    content = registry.apply(
        "ts-import-injector",
        "export const a = 1;\\n",
        {"imports": [{"names": ["z"], "module_source": "zod"}]},
        "src/schema.ts",
    )
"""

from blueprint_engine.modifiers.dictionaries import (
    JsonMergerParams,
    PackageJsonMergerParams,
    merge_json_object,
    merge_package_json,
)
from blueprint_engine.modifiers.imports import ImportInjectorParams, ImportSpec, inject_imports
from blueprint_engine.modifiers.jsx import JsxWrapperParams, wrap_jsx
from blueprint_engine.modifiers.objects import EMPTY_CONFIG, ObjectMergerParams, merge_config_object
from blueprint_engine.modifiers.registry import (
    DICT_FILE_TYPES,
    ModifierDefinition,
    ModifierRegistry,
)
from blueprint_engine.modifiers.schema import SchemaAdderParams, add_schema_definitions
from blueprint_engine.modifiers.source import SourceModule
from blueprint_engine.modifiers.statements import (
    ExportAppenderParams,
    ModuleEnhancerParams,
    StatementAppenderParams,
    append_exports,
    append_statements,
    enhance_module,
)
from blueprint_engine.modifiers.wrapper import WrapperParams, wrap_export

IMPORT_INJECTOR = "ts-import-injector"
STATEMENT_APPENDER = "ts-statement-appender"
EXPORT_APPENDER = "ts-export-appender"
MODULE_ENHANCER = "ts-module-enhancer"
OBJECT_MERGER = "js-config-merger"
WRAPPER_INJECTOR = "js-export-wrapper"
JSX_WRAPPER = "jsx-wrapper"
JSON_MERGER = "json-object-merger"
PACKAGE_JSON_MERGER = "package-json-merger"
SCHEMA_ADDER = "schema-definition-adder"

BUILTIN_MODIFIERS: tuple[ModifierDefinition, ...] = (
    ModifierDefinition(
        name=IMPORT_INJECTOR,
        description="Adds or extends import statements, never duplicating a named import",
        transform=inject_imports,
        params_model=ImportInjectorParams,
        can_synthesize=True,
    ),
    ModifierDefinition(
        name=STATEMENT_APPENDER,
        description="Appends top-level declarations or raw source blocks",
        transform=append_statements,
        params_model=StatementAppenderParams,
        can_synthesize=True,
    ),
    ModifierDefinition(
        name=EXPORT_APPENDER,
        description="Appends export statements built from a name and a body",
        transform=append_exports,
        params_model=ExportAppenderParams,
        can_synthesize=True,
    ),
    ModifierDefinition(
        name=MODULE_ENHANCER,
        description="Adds imports, statements and exports in one pass",
        transform=enhance_module,
        params_model=ModuleEnhancerParams,
        can_synthesize=True,
    ),
    ModifierDefinition(
        name=OBJECT_MERGER,
        description="Merges a partial tree into the exported config object",
        transform=merge_config_object,
        params_model=ObjectMergerParams,
        can_synthesize=True,
        empty_content=EMPTY_CONFIG,
        aliases=("object-tree-merger",),
    ),
    ModifierDefinition(
        name=WRAPPER_INJECTOR,
        description="Wraps an exported config in a higher-order function call",
        transform=wrap_export,
        params_model=WrapperParams,
        aliases=("wrapper-injector",),
    ),
    ModifierDefinition(
        name=JSX_WRAPPER,
        description="Wraps JSX elements in a provider component",
        transform=wrap_jsx,
        params_model=JsxWrapperParams,
        file_types=("tsx", "jsx", "js", "mjs"),
    ),
    ModifierDefinition(
        name=JSON_MERGER,
        description="Merges properties at a key path of a JSON/YAML file",
        transform=merge_json_object,
        params_model=JsonMergerParams,
        file_types=DICT_FILE_TYPES,
        can_synthesize=True,
    ),
    ModifierDefinition(
        name=PACKAGE_JSON_MERGER,
        description="Merges dependencies, scripts and engines into package.json",
        transform=merge_package_json,
        params_model=PackageJsonMergerParams,
        file_types=("json",),
        can_synthesize=True,
    ),
    ModifierDefinition(
        name=SCHEMA_ADDER,
        description="Appends schema table definitions and their builder imports",
        transform=add_schema_definitions,
        params_model=SchemaAdderParams,
        can_synthesize=True,
        aliases=("drizzle-schema-adder",),
    ),
)


def default_registry() -> ModifierRegistry:
    """A fresh registry holding every built-in modifier."""
    registry = ModifierRegistry()
    for definition in BUILTIN_MODIFIERS:
        registry.register(definition)
    return registry


__all__ = [
    "BUILTIN_MODIFIERS",
    "EXPORT_APPENDER",
    "IMPORT_INJECTOR",
    "JSON_MERGER",
    "JSX_WRAPPER",
    "MODULE_ENHANCER",
    "OBJECT_MERGER",
    "PACKAGE_JSON_MERGER",
    "SCHEMA_ADDER",
    "STATEMENT_APPENDER",
    "WRAPPER_INJECTOR",
    "ImportSpec",
    "JsonMergerParams",
    "JsxWrapperParams",
    "ModifierDefinition",
    "ModifierRegistry",
    "ObjectMergerParams",
    "PackageJsonMergerParams",
    "SchemaAdderParams",
    "SourceModule",
    "WrapperParams",
    "default_registry",
]
