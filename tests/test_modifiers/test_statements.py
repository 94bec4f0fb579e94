"""Tests for the statement, export and module-enhancer modifiers."""

from __future__ import annotations

import pytest

from blueprint_engine.errors import ModifierError
from blueprint_engine.modifiers import (
    EXPORT_APPENDER,
    MODULE_ENHANCER,
    STATEMENT_APPENDER,
    default_registry,
)
from blueprint_engine.modifiers.statements import ExportSpec, build_export

pytestmark = pytest.mark.unit


@pytest.fixture
def registry():
    return default_registry()


class TestStatementAppender:
    def test_appends_after_blank_line(self, registry):
        out = registry.apply(
            STATEMENT_APPENDER,
            "const a = 1;\n",
            {"statements": ["const b = 2;"]},
            "src/a.ts",
        )
        assert out == "const a = 1;\n\nconst b = 2;\n"

    def test_into_empty_file(self, registry):
        out = registry.apply(STATEMENT_APPENDER, "", {"statements": ["export {};"]}, "a.ts")
        assert out == "export {};\n"

    def test_typed_statements(self, registry):
        out = registry.apply(
            STATEMENT_APPENDER,
            "",
            {
                "statementsToAppend": [
                    {"type": "interface", "content": "interface User {\n  id: string;\n}"},
                    {"type": "function", "content": "function hello() {}"},
                ]
            },
            "types.ts",
        )
        assert out == "interface User {\n  id: string;\n}\n\nfunction hello() {}\n"

    def test_existing_declaration_skipped(self, registry):
        content = "export const db = drizzle(pool);\n"
        out = registry.apply(STATEMENT_APPENDER, content, {"statements": ["const db = other();"]}, "db.ts")
        assert out == content

    def test_identical_text_skipped(self, registry):
        content = 'console.log("ready");\n'
        out = registry.apply(STATEMENT_APPENDER, content, {"statements": ['console.log("ready");']}, "a.ts")
        assert out == content

    def test_unparseable_statement_rejected(self, registry):
        with pytest.raises(ModifierError, match="does not parse"):
            registry.apply(STATEMENT_APPENDER, "", {"statements": ["const = ;"]}, "a.ts")

    def test_blank_statement_rejected(self, registry):
        with pytest.raises(ModifierError, match="Invalid params"):
            registry.apply(STATEMENT_APPENDER, "", {"statements": ["   "]}, "a.ts")

    def test_non_source_file_rejected(self, registry):
        with pytest.raises(ModifierError, match="does not support"):
            registry.apply(STATEMENT_APPENDER, "", {"statements": ["x"]}, "README.md")


class TestBuildExport:
    @pytest.mark.parametrize(
        "spec, expected",
        [
            (ExportSpec(name="a", content="1"), "export const a = 1;"),
            (ExportSpec(name="a", content="1;"), "export const a = 1;"),
            (ExportSpec(name="T", content="{ id: string }", type_only=True), "export type T = { id: string };"),
            (ExportSpec(name="f", content="function f() {}"), "export function f() {}"),
            (ExportSpec(name="C", content="export class C {}"), "export class C {}"),
            (ExportSpec(name="x", content="const x = 2"), "export const x = 2;"),
        ],
    )
    def test_build_export(self, spec, expected):
        assert build_export(spec) == expected


class TestExportAppender:
    def test_appends_exports(self, registry):
        out = registry.apply(
            EXPORT_APPENDER,
            "const a = 1;\n",
            {"exports": [{"name": "config", "content": "{ runtime: 'edge' }"}]},
            "a.ts",
        )
        assert out == "const a = 1;\n\nexport const config = { runtime: 'edge' };\n"

    def test_existing_export_skipped(self, registry):
        content = "export const config = {};\n"
        out = registry.apply(EXPORT_APPENDER, content, {"exportsToAdd": [{"name": "config", "content": "1"}]}, "a.ts")
        assert out == content

    def test_reexported_name_skipped(self, registry):
        content = 'export { handler as GET } from "./auth";\n'
        out = registry.apply(EXPORT_APPENDER, content, {"exports": [{"name": "GET", "content": "1"}]}, "route.ts")
        assert out == content


class TestModuleEnhancer:
    def test_imports_statements_and_exports(self, registry):
        out = registry.apply(
            MODULE_ENHANCER,
            "",
            {
                "importsToAdd": [{"module_source": "drizzle-orm/node-postgres", "names": ["drizzle"]}],
                "statements": ["const pool = createPool();"],
                "exports": [{"name": "db", "content": "drizzle(pool)"}],
            },
            "src/db.ts",
        )
        assert out == (
            'import { drizzle } from "drizzle-orm/node-postgres";\n'
            "\n"
            "const pool = createPool();\n"
            "\n"
            "export const db = drizzle(pool);\n"
        )

    def test_idempotent(self, registry):
        params = {
            "imports": [{"module_source": "zod", "names": ["z"]}],
            "exports": [{"name": "schema", "content": "z.object({})"}],
        }
        once = registry.apply(MODULE_ENHANCER, "", params, "a.ts")
        assert registry.apply(MODULE_ENHANCER, once, params, "a.ts") == once

    def test_empty_params_rejected(self, registry):
        with pytest.raises(ModifierError):
            registry.apply(MODULE_ENHANCER, "", {}, "a.ts")

    def test_synthesize(self, registry):
        out = registry.synthesize(MODULE_ENHANCER, {"statements": ["export const x = 1;"]}, "x.ts")
        assert out == "export const x = 1;\n"
