"""Read-only template context supplied by the caller.

The engine never mutates a ``ProjectContext``; it only flattens it into the
variable mapping the template processor renders against.
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProjectInfo(BaseModel):
    """Metadata about the project being scaffolded."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Project name (used in filenames/package names)")
    path: str = Field(default=".", description="Project root as seen by generators")
    framework: str = Field(default="")
    description: str = Field(default="")
    author: str = Field(default="")
    version: str = Field(default="0.1.0")
    license: str = Field(default="MIT")


class ModuleInfo(BaseModel):
    """The generator module whose blueprint is being executed."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: str = Field(default="")
    version: str = Field(default="")
    parameters: dict[str, Any] = Field(default_factory=dict)


class ProjectContext(BaseModel):
    """Template variables available while a blueprint runs.

    ``variables`` holds any additional top-level names (chosen options,
    other modules' parameters, path aliases); they are exposed next to
    ``project``, ``module`` and ``env`` in templates.
    """

    model_config = ConfigDict(frozen=True)

    project: ProjectInfo
    module: ModuleInfo | None = None
    variables: dict[str, Any] = Field(default_factory=dict)

    def as_template_vars(self) -> dict[str, Any]:
        """Flatten the context into the mapping templates are rendered with."""
        data: dict[str, Any] = dict(self.variables)
        data["project"] = self.project.model_dump()
        if self.module is not None:
            data["module"] = self.module.model_dump()
        data.setdefault(
            "env",
            {
                "NODE_ENV": os.environ.get("NODE_ENV", "development"),
                "USER": os.environ.get("USER", "user"),
            },
        )
        return data

    @classmethod
    def for_project(cls, name: str, **variables: Any) -> "ProjectContext":
        """Shortcut for a context that only knows the project name."""
        return cls(project=ProjectInfo(name=name), variables=variables)
