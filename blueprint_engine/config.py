"""Blueprint engine configuration.

Centralised, typed configuration for a blueprint execution run. All settings
use Pydantic v2 models so they can be validated at construction time and
serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


_TRUE_VALUES = {"1", "true", "yes", "on"}


class EngineConfig(BaseModel):
    """Configuration shared by the VFS, the primitives and the orchestrator.

    Instances are typically created once by the caller (or by the CLI entry
    point) and then passed to ``BlueprintOrchestrator``.
    """

    project_root: Path = Field(default=Path("."))
    manifest_path: str = Field(
        default="package.json",
        description="Dependency manifest that INSTALL_PACKAGES and ADD_SCRIPT merge into",
    )
    env_example_path: str = Field(default=".env.example")
    env_path: str = Field(default=".env")
    strict_merge: bool = Field(
        default=False,
        description="Treat unparseable dictionary files as fatal instead of overwriting them",
    )
    json_indent: int = Field(default=2, ge=0)
    case_insensitive_paths: bool | None = Field(
        default=None,
        description="Fold path case for VFS lookups; None detects from the platform",
    )
    command_timeout: int = Field(default=600, ge=1, description="RUN_COMMAND timeout in seconds")
    verbose: bool = Field(default=False)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def fold_path_case(self) -> bool:
        """Whether VFS lookups should ignore path case."""
        if self.case_insensitive_paths is not None:
            return self.case_insensitive_paths
        return sys.platform.startswith(("win", "darwin"))

    @property
    def resolved_root(self) -> Path:
        """Absolute project root."""
        return self.project_root.expanduser().resolve()

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "EngineConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build an ``EngineConfig`` from environment variables.

        Recognised variables (all optional):
            BLUEPRINT_PROJECT_ROOT, BLUEPRINT_MANIFEST, BLUEPRINT_STRICT_MERGE,
            BLUEPRINT_JSON_INDENT, BLUEPRINT_COMMAND_TIMEOUT, BLUEPRINT_VERBOSE.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("BLUEPRINT_PROJECT_ROOT"):
            kwargs["project_root"] = Path(os.environ["BLUEPRINT_PROJECT_ROOT"])
        if os.environ.get("BLUEPRINT_MANIFEST"):
            kwargs["manifest_path"] = os.environ["BLUEPRINT_MANIFEST"]
        if os.environ.get("BLUEPRINT_STRICT_MERGE"):
            kwargs["strict_merge"] = _env_flag("BLUEPRINT_STRICT_MERGE")
        if os.environ.get("BLUEPRINT_JSON_INDENT"):
            kwargs["json_indent"] = int(os.environ["BLUEPRINT_JSON_INDENT"])
        if os.environ.get("BLUEPRINT_COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = int(os.environ["BLUEPRINT_COMMAND_TIMEOUT"])
        if os.environ.get("BLUEPRINT_VERBOSE"):
            kwargs["verbose"] = _env_flag("BLUEPRINT_VERBOSE")
        return cls(**kwargs)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE_VALUES
