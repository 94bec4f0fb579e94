"""Shared pytest fixtures for the blueprint engine test suite.

Provides reusable fixtures for:
- Temporary project roots with helper writers
- Engine configuration, VFS and orchestrator instances
- A sample ``ProjectContext``
- A mocked ``CommandRunner``
"""

from __future__ import annotations

import json
import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from blueprint_engine.commands import CommandResult, CommandRunner
from blueprint_engine.config import EngineConfig
from blueprint_engine.context import ModuleInfo, ProjectContext, ProjectInfo
from blueprint_engine.orchestrator import BlueprintOrchestrator
from blueprint_engine.vfs import VirtualFileSystem


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Empty project directory (auto-cleanup)."""
    root = tmp_path / "my-app"
    root.mkdir()
    yield root


@pytest.fixture
def write_project(project_root: Path) -> Callable[..., Path]:
    """Write files under the project root.

    Usage::

        def test_something(write_project):
            write_project({"package.json": {"name": "x"}, "src/a.ts": "export {};"})
    """

    def factory(files: dict[str, Any]) -> Path:
        for rel, content in files.items():
            target = project_root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, (dict, list)):
                content = json.dumps(content, indent=2) + "\n"
            else:
                content = textwrap.dedent(content)
            target.write_text(content, encoding="utf-8")
        return project_root

    return factory


# ---------------------------------------------------------------------------
# Engine objects
# ---------------------------------------------------------------------------

@pytest.fixture
def engine_config(project_root: Path) -> EngineConfig:
    return EngineConfig(project_root=project_root, case_insensitive_paths=False)


@pytest.fixture
def vfs(engine_config: EngineConfig) -> VirtualFileSystem:
    return VirtualFileSystem(config=engine_config)


@pytest.fixture
def mock_runner() -> AsyncMock:
    """``CommandRunner`` whose ``run`` succeeds without spawning anything.

    Override the return value per test::

        mock_runner.run.return_value = CommandResult("false", 1, stderr="boom")
    """
    runner = AsyncMock(spec=CommandRunner)
    runner.run.return_value = CommandResult(command="true", exit_code=0)
    return runner


@pytest.fixture
def orchestrator(vfs: VirtualFileSystem, mock_runner: AsyncMock) -> BlueprintOrchestrator:
    return BlueprintOrchestrator(vfs, command_runner=mock_runner)


@pytest.fixture
def context() -> ProjectContext:
    """Context for a Next.js project with an auth module selected."""
    return ProjectContext(
        project=ProjectInfo(name="my-app", framework="nextjs", description="Demo app"),
        module=ModuleInfo(
            id="auth",
            category="authentication",
            version="1.0.0",
            parameters={"useAuth": True, "provider": "github", "useEmail": False},
        ),
        variables={"db": {"dialect": "postgres"}, "alias": "@/"},
    )
