"""End-to-end blueprint runs against a real project directory.

Exercises the whole stack (blueprint loading, templates, modifiers, VFS and
flush) the way the CLI does, with only external commands left out.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from blueprint_engine.actions import Blueprint
from blueprint_engine.cli import main
from blueprint_engine.config import EngineConfig
from blueprint_engine.context import ProjectContext
from blueprint_engine.orchestrator import BlueprintOrchestrator
from blueprint_engine.vfs import VirtualFileSystem


AUTH_BLUEPRINT = {
    "id": "auth-nextauth",
    "name": "NextAuth.js",
    "contextualFiles": ["src/app/layout.tsx"],
    "actions": [
        {"type": "INSTALL_PACKAGES", "packages": ["next-auth@^5.0.0"]},
        {
            "type": "CREATE_FILE",
            "path": "src/auth.ts",
            "content": (
                'import NextAuth from "next-auth";\n'
                "\n"
                "export const { handlers, auth } = NextAuth({ providers: [] });\n"
            ),
        },
        {
            "type": "ADD_TS_IMPORT",
            "path": "src/app/layout.tsx",
            "imports": [{"from": "@/auth", "names": ["auth"]}],
        },
        {"type": "ADD_ENV_VAR", "key": "AUTH_SECRET", "value": "", "description": "Run npx auth secret"},
        {
            "type": "WRAP_CONFIG",
            "path": "next.config.mjs",
            "wrapper": "withAuth",
            "importFrom": "./auth-config.mjs",
        },
        {"type": "ADD_SCRIPT", "name": "auth:secret", "command": "npx auth secret"},
    ],
}


@pytest.fixture
def nextjs_project(write_project) -> Path:
    return write_project(
        {
            "package.json": {"name": "my-app", "dependencies": {"next": "15.0.0"}},
            "src/app/layout.tsx": (
                'import "./globals.css";\n'
                "\n"
                "export default function RootLayout({ children }) {\n"
                "  return children;\n"
                "}\n"
            ),
            "next.config.mjs": "const nextConfig = {};\n\nexport default nextConfig;\n",
        }
    )


@pytest.mark.integration
class TestBlueprintEndToEnd:
    async def test_manifest_scenario(self, project_root, context):
        config = EngineConfig(project_root=project_root, manifest_path="pkg.json")
        orchestrator = BlueprintOrchestrator(config=config)
        blueprint = {
            "id": "pkg",
            "actions": [
                {"type": "CREATE_FILE", "path": "pkg.json", "content": '{"name":"x"}'},
                {"type": "INSTALL_PACKAGES", "packages": ["left-pad@1.0.0"]},
                {"type": "ADD_SCRIPT", "name": "build", "command": "tsc"},
            ],
        }

        report = await orchestrator.execute_blueprints([blueprint], context)

        assert report.success, report.errors
        manifest = json.loads((project_root / "pkg.json").read_text(encoding="utf-8"))
        assert manifest == {
            "name": "x",
            "dependencies": {"left-pad": "1.0.0"},
            "scripts": {"build": "tsc"},
        }

    async def test_auth_blueprint(self, nextjs_project, context):
        orchestrator = BlueprintOrchestrator(config=EngineConfig(project_root=nextjs_project))
        report = await orchestrator.execute_blueprints([AUTH_BLUEPRINT], context)

        assert report.success, report.errors
        assert sorted(report.written) == sorted(
            ["package.json", "src/auth.ts", "src/app/layout.tsx", ".env.example", "next.config.mjs"]
        )

        manifest = json.loads((nextjs_project / "package.json").read_text())
        assert manifest["dependencies"] == {"next": "15.0.0", "next-auth": "^5.0.0"}
        assert manifest["scripts"] == {"auth:secret": "npx auth secret"}

        layout = (nextjs_project / "src/app/layout.tsx").read_text()
        assert 'import { auth } from "@/auth";' in layout
        assert layout.index('import "./globals.css";') < layout.index('from "@/auth"')

        config = (nextjs_project / "next.config.mjs").read_text()
        assert "export default withAuth(nextConfig);" in config
        assert (nextjs_project / ".env.example").read_text() == "# Run npx auth secret\nAUTH_SECRET=\n"

    async def test_rerun_is_idempotent_for_imports_and_env(self, nextjs_project, context):
        blueprint = {
            "id": "imports",
            "actions": [
                {"type": "ADD_TS_IMPORT", "path": "src/app/layout.tsx", "imports": [{"from": "@/auth", "names": ["auth"]}]},
                {"type": "ADD_ENV_VAR", "key": "AUTH_SECRET", "value": "x"},
            ],
        }
        for _ in range(2):
            orchestrator = BlueprintOrchestrator(config=EngineConfig(project_root=nextjs_project))
            report = await orchestrator.execute_blueprints([blueprint], context)
            assert report.success, report.errors

        layout = (nextjs_project / "src/app/layout.tsx").read_text()
        assert layout.count('from "@/auth"') == 1
        assert (nextjs_project / ".env.example").read_text().count("AUTH_SECRET=") == 1

    async def test_each_file_read_from_disk_once(self, nextjs_project, context):
        vfs = VirtualFileSystem(config=EngineConfig(project_root=nextjs_project))
        orchestrator = BlueprintOrchestrator(vfs)
        blueprint = {
            "id": "deps",
            "actions": [
                {"type": "INSTALL_PACKAGES", "packages": ["zod"]},
                {"type": "INSTALL_PACKAGES", "packages": ["drizzle-kit"], "isDev": True},
                {"type": "ADD_SCRIPT", "name": "db:push", "command": "drizzle-kit push"},
            ],
        }
        report = await orchestrator.execute_blueprints([blueprint], context, flush=False)

        assert report.success
        assert vfs.disk_reads == 1

    async def test_flush_creates_parent_directories(self, project_root, context):
        orchestrator = BlueprintOrchestrator(config=EngineConfig(project_root=project_root))
        paths = [f"src/features/f{i}/index.ts" for i in range(5)]
        blueprint = {
            "id": "features",
            "actions": [
                {"type": "CREATE_FILE", "path": path, "content": f"export const id = {i};\n"}
                for i, path in enumerate(paths)
            ],
        }

        report = await orchestrator.execute_blueprints([blueprint], context)

        assert report.written == paths
        for i, path in enumerate(paths):
            assert (project_root / path).read_text() == f"export const id = {i};\n"

    async def test_failure_leaves_disk_untouched(self, nextjs_project, context):
        before = (nextjs_project / "package.json").read_text()
        blueprint = {
            "id": "broken",
            "actions": [
                {"type": "INSTALL_PACKAGES", "packages": ["zod"]},
                {"type": "ADD_TS_IMPORT", "path": "src/missing.ts", "imports": [{"from": "zod", "name": "z"}]},
            ],
        }
        orchestrator = BlueprintOrchestrator(config=EngineConfig(project_root=nextjs_project))
        report = await orchestrator.execute_blueprints([blueprint], context)

        assert not report.success
        assert report.results[0].files == ["package.json"]
        assert (nextjs_project / "package.json").read_text() == before


@pytest.mark.integration
class TestCli:
    def _write_blueprint(self, tmp_path: Path, data: dict, name: str = "bp.yaml") -> str:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return str(path)

    def test_run(self, tmp_path, project_root):
        bp = self._write_blueprint(
            tmp_path,
            {"id": "cli", "actions": [{"type": "CREATE_FILE", "path": "hello.txt", "content": "Hi {{name}}"}]},
        )
        main(["run", bp, "-C", str(project_root), "--var", "name=Ada"])
        assert (project_root / "hello.txt").read_text() == "Hi Ada"

    def test_dry_run_writes_nothing(self, tmp_path, project_root):
        bp = self._write_blueprint(
            tmp_path,
            {"id": "cli", "actions": [{"type": "CREATE_FILE", "path": "hello.txt", "content": "Hi"}]},
        )
        main(["run", bp, "-C", str(project_root), "--dry-run"])
        assert not (project_root / "hello.txt").exists()

    def test_failure_exits_nonzero(self, tmp_path, project_root):
        bp = self._write_blueprint(
            tmp_path,
            {"id": "cli", "actions": [{"type": "WRAP_CONFIG", "path": "next.config.js", "wrapper": "withX"}]},
        )
        with pytest.raises(SystemExit) as exc_info:
            main(["run", bp, "-C", str(project_root)])
        assert exc_info.value.code == 1

    def test_unknown_action_in_file(self, tmp_path, project_root):
        bp = tmp_path / "bp.json"
        bp.write_text(json.dumps({"id": "cli", "actions": [{"type": "NOPE"}]}), encoding="utf-8")
        with pytest.raises(SystemExit):
            main(["run", str(bp), "-C", str(project_root)])

    def test_validate_reports_bad_templates(self, tmp_path):
        good = self._write_blueprint(
            tmp_path,
            {"id": "ok", "actions": [{"type": "CREATE_FILE", "path": "a.txt", "content": "{{#if x}}y{{/if}}"}]},
            name="ok.yaml",
        )
        main(["validate", good])

        bad = self._write_blueprint(
            tmp_path,
            {"id": "bad", "actions": [{"type": "CREATE_FILE", "path": "a.txt", "content": "{{#if x}}never closed"}]},
            name="bad.yaml",
        )
        with pytest.raises(SystemExit):
            main(["validate", bad])

    def test_blueprint_load_roundtrip(self, tmp_path):
        path = self._write_blueprint(tmp_path, AUTH_BLUEPRINT)
        blueprint = Blueprint.load(path)
        assert blueprint.id == "auth-nextauth"
        assert [a.type for a in blueprint.actions][:2] == ["INSTALL_PACKAGES", "CREATE_FILE"]
        assert ProjectContext.for_project("demo").project.name == "demo"
