"""Blueprint engine -- executes declarative project blueprints.

A blueprint is an ordered list of semantic actions (create a file, install a
package, merge a config object, wrap an export ...).  The orchestrator turns
each action into file primitives and structural modifiers applied to an
in-memory file tree, and writes the tree to disk only when every blueprint of
the run has succeeded.

Quick usage::

    from blueprint_engine import BlueprintOrchestrator, EngineConfig, ProjectContext

    orchestrator = BlueprintOrchestrator(config=EngineConfig(project_root="./my-app"))
    report = await orchestrator.execute_blueprints(
        [blueprint], ProjectContext.for_project("my-app")
    )
"""

from blueprint_engine.actions import ActionType, Blueprint, FallbackPolicy, parse_action
from blueprint_engine.commands import CommandResult, CommandRunner
from blueprint_engine.config import EngineConfig
from blueprint_engine.context import ModuleInfo, ProjectContext, ProjectInfo
from blueprint_engine.errors import (
    BlueprintError,
    ExternalCommandError,
    FileNotFoundInProjectError,
    FlushError,
    ModifierError,
    PreconditionError,
    StructuralError,
    TemplateError,
    UnknownActionError,
)
from blueprint_engine.file_engine import FileModificationEngine, FileModificationResult
from blueprint_engine.merge import MergeStrategy
from blueprint_engine.modifiers import ModifierRegistry, default_registry
from blueprint_engine.orchestrator import (
    ActionResult,
    BlueprintExecutionResult,
    BlueprintOrchestrator,
    ExecutionReport,
)
from blueprint_engine.templates import TemplateProcessor
from blueprint_engine.vfs import VirtualFileSystem

__version__ = "0.1.0"

__all__ = [
    "ActionResult",
    "ActionType",
    "Blueprint",
    "BlueprintError",
    "BlueprintExecutionResult",
    "BlueprintOrchestrator",
    "CommandResult",
    "CommandRunner",
    "EngineConfig",
    "ExecutionReport",
    "ExternalCommandError",
    "FallbackPolicy",
    "FileModificationEngine",
    "FileModificationResult",
    "FileNotFoundInProjectError",
    "FlushError",
    "MergeStrategy",
    "ModifierError",
    "ModifierRegistry",
    "ModuleInfo",
    "PreconditionError",
    "ProjectContext",
    "ProjectInfo",
    "StructuralError",
    "TemplateError",
    "TemplateProcessor",
    "UnknownActionError",
    "VirtualFileSystem",
    "default_registry",
    "parse_action",
]
