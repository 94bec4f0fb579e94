"""Blueprint orchestrator.

Translates each semantic action of a blueprint into file primitives and
modifier calls against a shared ``VirtualFileSystem``.  Actions run strictly
in order; the first fatal error aborts the rest of the blueprint and is
reported in the returned ``BlueprintExecutionResult`` instead of being
raised.  Nothing reaches the disk until ``flush()``.

Usage::

    orchestrator = BlueprintOrchestrator(config=EngineConfig(project_root=root))
    report = await orchestrator.execute_blueprints([blueprint], context)
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Any

from .actions import (
    ActionType,
    AddEnvVarAction,
    AddScriptAction,
    AddTsImportAction,
    AppendToFileAction,
    Blueprint,
    CreateFileAction,
    EnhanceFileAction,
    ExtendSchemaAction,
    FallbackPolicy,
    InstallPackagesAction,
    MergeConfigAction,
    MergeJsonAction,
    PrependToFileAction,
    RunCommandAction,
    WrapConfigAction,
    parse_action,
    parse_package_spec,
)
from .commands import CommandRunner
from .config import EngineConfig
from .context import ProjectContext
from .errors import (
    BlueprintError,
    ExternalCommandError,
    FileNotFoundInProjectError,
    FlushError,
    ModifierError,
    PreconditionError,
    StructuralError,
    UnknownActionError,
)
from .file_engine import FileModificationEngine, FileModificationResult
from .formats import dump_tree, format_for
from .merge import MergeStrategy, merge_at_path, split_key_path
from .modifiers import (
    IMPORT_INJECTOR,
    OBJECT_MERGER,
    SCHEMA_ADDER,
    WRAPPER_INJECTOR,
    ModifierRegistry,
    default_registry,
)
from .modifiers.schema import existing_tables
from .templates import TemplateProcessor
from .utils import format_duration, print_error, print_step, print_warning
from .vfs import VirtualFileSystem

# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class ActionResult:
    """Paths touched and warnings raised by one action."""

    files: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped: bool = False


@dataclass
class FailedAction:
    """The action that aborted a blueprint."""

    index: int
    type: str
    path: str | None
    error: str
    kind: str


@dataclass
class BlueprintExecutionResult:
    """Aggregated outcome of one blueprint."""

    blueprint_id: str
    success: bool = True
    files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed_action: FailedAction | None = None
    duration: float = 0.0

    def add(self, index: int, result: ActionResult) -> None:
        for path in result.files:
            if path not in self.files:
                self.files.append(path)
        self.warnings.extend(result.warnings)
        if result.skipped:
            self.skipped.append(index)

    def fail(self, failed: FailedAction) -> None:
        self.success = False
        self.failed_action = failed
        location = f" on {failed.path}" if failed.path else ""
        self.errors.append(f"Action {failed.index} ({failed.type}){location} failed: {failed.error}")

    def summary(self) -> str:
        status = "ok" if self.success else "FAILED"
        return (
            f"{self.blueprint_id}: {status}, {len(self.files)} file(s), "
            f"{len(self.warnings)} warning(s), {len(self.errors)} error(s) "
            f"in {format_duration(self.duration)}"
        )


@dataclass
class ExecutionReport:
    """Outcome of ``execute_blueprints``."""

    results: list[BlueprintExecutionResult] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    flushed: bool = False
    flush_error: str | None = None

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results) and self.flush_error is None

    @property
    def files(self) -> list[str]:
        seen: dict[str, None] = {}
        for result in self.results:
            for path in result.files:
                seen.setdefault(path, None)
        return list(seen)

    @property
    def warnings(self) -> list[str]:
        return [w for r in self.results for w in r.warnings]

    @property
    def errors(self) -> list[str]:
        errors = [e for r in self.results for e in r.errors]
        if self.flush_error:
            errors.append(self.flush_error)
        return errors


_ENV_KEY_RE = r"^\s*(?:export\s+)?{key}\s*="


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class BlueprintOrchestrator:
    """Executes blueprints against one VFS.

    Args:
        vfs: File tree shared by every blueprint of the run.  Created from
            ``config`` when omitted.
        config: Engine configuration.  Defaults to the VFS's configuration.
        registry: Modifier registry (the built-ins when omitted).
        command_runner: External command primitive for RUN_COMMAND.
        templates: Template processor used for every templated field.
    """

    _HANDLERS: dict[str, str] = {
        ActionType.CREATE_FILE.value: "_create_file",
        ActionType.INSTALL_PACKAGES.value: "_install_packages",
        ActionType.ADD_SCRIPT.value: "_add_script",
        ActionType.ADD_ENV_VAR.value: "_add_env_var",
        ActionType.ADD_TS_IMPORT.value: "_add_ts_import",
        ActionType.MERGE_JSON.value: "_merge_json",
        ActionType.APPEND_TO_FILE.value: "_append_to_file",
        ActionType.PREPEND_TO_FILE.value: "_prepend_to_file",
        ActionType.ENHANCE_FILE.value: "_enhance_file",
        ActionType.RUN_COMMAND.value: "_run_command",
        ActionType.MERGE_CONFIG.value: "_merge_config",
        ActionType.WRAP_CONFIG.value: "_wrap_config",
        ActionType.EXTEND_SCHEMA.value: "_extend_schema",
    }

    def __init__(
        self,
        vfs: VirtualFileSystem | None = None,
        *,
        config: EngineConfig | None = None,
        registry: ModifierRegistry | None = None,
        command_runner: CommandRunner | None = None,
        templates: TemplateProcessor | None = None,
    ) -> None:
        # VirtualFileSystem defines __len__, so an empty one is falsy.
        if config is None:
            config = vfs.config if vfs is not None else EngineConfig()
        self.config = config
        self.vfs = vfs if vfs is not None else VirtualFileSystem(config=self.config)
        self.engine = FileModificationEngine(self.vfs)
        self.registry = registry if registry is not None else default_registry()
        if command_runner is None:
            command_runner = CommandRunner(
                timeout=self.config.command_timeout,
                verbose=self.config.verbose,
            )
        self.commands = command_runner
        self.templates = templates if templates is not None else TemplateProcessor()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute_action(self, action: Any, context: ProjectContext) -> ActionResult:
        """Execute one action.

        Raises:
            BlueprintError: On any fatal condition for this action.
        """
        action = parse_action(action)
        if action.condition and not self.templates.evaluate_condition(action.condition, context):
            return ActionResult(skipped=True)

        method_name = self._HANDLERS.get(action.type)
        if method_name is None:
            raise UnknownActionError(f"Unknown action type {action.type!r}", action_type=action.type)

        self.vfs.drain_warnings()
        result: ActionResult = await getattr(self, method_name)(action, context)
        result.warnings.extend(self.vfs.drain_warnings())
        if self.config.verbose:
            for warning in result.warnings:
                print_warning(f"    {warning}")
        return result

    async def execute_blueprint(
        self,
        blueprint: Blueprint | dict[str, Any],
        context: ProjectContext,
    ) -> BlueprintExecutionResult:
        """Execute every action of *blueprint* in order.

        Never raises for engine errors: a fatal condition stops the remaining
        actions and is described by ``failed_action``/``errors``.  Files and
        warnings recorded before the failure are kept.
        """
        start = time.monotonic()
        raw_id = blueprint.id if isinstance(blueprint, Blueprint) else str(blueprint.get("id", "?"))
        result = BlueprintExecutionResult(blueprint_id=raw_id)

        try:
            parsed = Blueprint.from_data(blueprint)
        except BlueprintError as exc:
            result.fail(
                FailedAction(
                    index=_first_unknown_index(blueprint) if isinstance(exc, UnknownActionError) else -1,
                    type=exc.action_type or "BLUEPRINT",
                    path=exc.path,
                    error=exc.message,
                    kind=exc.kind,
                )
            )
            result.duration = time.monotonic() - start
            return result

        for contextual in parsed.contextual_files:
            try:
                found = self.vfs.load_file(self.templates.render(contextual, context))
            except BlueprintError as exc:
                result.warnings.append(f"Contextual file {contextual!r} not loaded: {exc.message}")
                continue
            if not found:
                result.warnings.append(f"Contextual file not found: {contextual}")

        total = len(parsed.actions)
        for index, action in enumerate(parsed.actions):
            if self.config.verbose:
                target = getattr(action, "path", None) or getattr(action, "command", "") or ""
                print_step(index + 1, total, f"{action.type} {target}".rstrip())
            try:
                action_result = await self.execute_action(action, context)
            except BlueprintError as exc:
                result.warnings.extend(self.vfs.drain_warnings())
                result.fail(self._failure(index, action, exc, context))
                if self.config.verbose:
                    print_error(f"    {result.errors[-1]}")
                break
            except OSError as exc:
                result.fail(
                    FailedAction(
                        index=index,
                        type=action.type,
                        path=getattr(action, "path", None),
                        error=f"I/O error: {exc}",
                        kind="io",
                    )
                )
                break
            result.add(index, action_result)

        result.duration = time.monotonic() - start
        return result

    async def execute_blueprints(
        self,
        blueprints: list[Blueprint | dict[str, Any]],
        context: ProjectContext,
        *,
        flush: bool = True,
    ) -> ExecutionReport:
        """Execute several blueprints sequentially against the shared VFS.

        Stops at the first failed blueprint.  When *flush* is true the VFS is
        written to disk only if every blueprint succeeded.
        """
        report = ExecutionReport()
        for blueprint in blueprints:
            result = await self.execute_blueprint(blueprint, context)
            report.results.append(result)
            if not result.success:
                return report

        if flush:
            try:
                report.written = await self.flush()
                report.flushed = True
            except FlushError as exc:
                report.written = exc.written
                report.flush_error = exc.message
        return report

    async def flush(self) -> list[str]:
        """Write the VFS to disk; returns the paths written."""
        return await self.engine.flush()

    def get_all_files(self) -> dict[str, str]:
        return self.vfs.get_all_files()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _render(self, text: str, context: ProjectContext) -> str:
        return self.templates.render(text, context)

    def _render_path(self, path: str, context: ProjectContext) -> str:
        return self.vfs.normalize(self._render(path, context))

    def _failure(
        self, index: int, action: Any, exc: BlueprintError, context: ProjectContext
    ) -> FailedAction:
        path = exc.path
        raw_path = getattr(action, "path", None)
        if path is None and raw_path:
            try:
                path = self._render_path(raw_path, context)
            except BlueprintError:
                path = raw_path
        return FailedAction(
            index=index,
            type=action.type,
            path=path,
            error=exc.message,
            kind=exc.kind,
        )

    def _exists(self, path: str) -> bool:
        return self.engine.file_exists(path)

    def _require(self, path: str, action_type: str) -> None:
        if not self._exists(path):
            raise FileNotFoundInProjectError(
                f"{action_type} requires an existing file: {path}",
                path=path,
                action_type=action_type,
            )

    def _modify(self, path: str, modifier: str, params: dict[str, Any]) -> FileModificationResult:
        result = self.engine.modify_file(path, lambda content: self.registry.apply(modifier, content, params, path))
        result.raise_for_error()
        return result

    def _merge_dict_file(
        self,
        path: str,
        partial: dict[str, Any],
        *,
        key_path: list[str] | str | None,
        strategy: MergeStrategy,
        strict: bool,
        result: ActionResult,
    ) -> None:
        """Deep/shallow/replace merge into a JSON/YAML file.

        A structural error is fatal in strict mode; otherwise the file is
        rebuilt from *partial* alone and a warning is recorded.
        """
        merged = self.engine.merge_object_file(path, partial, key_path=key_path, strategy=strategy)
        if not merged.success:
            if merged.error_kind != "structural" or strict:
                merged.raise_for_error()
            fmt = format_for(path) or "json"
            rebuilt = merge_at_path({}, split_key_path(key_path), partial, strategy)
            result.warnings.append(f"{merged.error}; overwriting {path}")
            merged = self.engine.overwrite_file(path, dump_tree(rebuilt, fmt, self.config.json_indent))
            merged.raise_for_error()
        result.files.append(merged.file_path)

    def _merge_manifest(self, manifest: str | None, partial: dict[str, Any], context: ProjectContext) -> str:
        path = self._render_path(manifest or self.config.manifest_path, context)
        merged = self.engine.merge_object_file(path, partial)
        merged.raise_for_error()
        return merged.file_path

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _create_file(self, action: CreateFileAction, context: ProjectContext) -> ActionResult:
        path = self._render_path(action.path, context)
        if action.content is not None:
            content = self._render(action.content, context)
        elif action.modifier:
            params = self.templates.render_value(action.params, context)
            content = self.registry.synthesize(action.modifier, params, path)
        else:
            content = ""

        if action.overwrite:
            created = self.engine.overwrite_file(path, content)
        else:
            created = self.engine.create_file(path, content)
        created.raise_for_error()
        return ActionResult(files=[created.file_path])

    async def _install_packages(self, action: InstallPackagesAction, context: ProjectContext) -> ActionResult:
        packages: dict[str, str] = {}
        for spec in action.packages:
            name, version = parse_package_spec(self._render(spec, context))
            packages[name] = version
        section = "devDependencies" if action.is_dev else "dependencies"
        return ActionResult(files=[self._merge_manifest(action.manifest, {section: packages}, context)])

    async def _add_script(self, action: AddScriptAction, context: ProjectContext) -> ActionResult:
        name = self._render(action.name, context)
        command = self._render(action.command, context)
        return ActionResult(files=[self._merge_manifest(action.manifest, {"scripts": {name: command}}, context)])

    async def _add_env_var(self, action: AddEnvVarAction, context: ProjectContext) -> ActionResult:
        value = self._render(action.value, context)
        description = self._render(action.description, context) if action.description else None
        entry = (f"# {description}\n" if description else "") + f"{action.key}={value}\n"

        targets = [self._render_path(action.path or self.config.env_example_path, context)]
        env_path = self.vfs.normalize(self.config.env_path)
        if env_path not in targets and self._exists(env_path):
            targets.append(env_path)

        result = ActionResult()
        pattern = re.compile(_ENV_KEY_RE.format(key=re.escape(action.key)), re.MULTILINE)
        for target in targets:
            existing = self.vfs.read_file(target) if self._exists(target) else ""
            if pattern.search(existing):
                result.warnings.append(f"{action.key} is already defined in {target}; skipped")
                continue
            block = entry if not existing or existing.endswith("\n") else "\n" + entry
            appended = self.engine.append(target, block)
            appended.raise_for_error()
            result.files.append(appended.file_path)
        return result

    async def _add_ts_import(self, action: AddTsImportAction, context: ProjectContext) -> ActionResult:
        path = self._render_path(action.path, context)
        self._require(path, action.type)
        imports = [self.templates.render_value(spec.model_dump(), context) for spec in action.imports]
        modified = self._modify(path, IMPORT_INJECTOR, {"imports": imports})
        return ActionResult(files=[modified.file_path])

    async def _merge_json(self, action: MergeJsonAction, context: ProjectContext) -> ActionResult:
        path = self._render_path(action.path, context)
        if format_for(path) is None:
            raise StructuralError(f"MERGE_JSON target is not a JSON/YAML file: {path}", path=path)
        result = ActionResult()
        self._merge_dict_file(
            path,
            self.templates.render_value(action.content, context),
            key_path=action.key_path,
            strategy=MergeStrategy.DEEP,
            strict=self.config.strict_merge if action.strict is None else action.strict,
            result=result,
        )
        return result

    async def _append_to_file(self, action: AppendToFileAction, context: ProjectContext) -> ActionResult:
        appended = self.engine.append(self._render_path(action.path, context), self._render(action.content, context))
        appended.raise_for_error()
        return ActionResult(files=[appended.file_path])

    async def _prepend_to_file(self, action: PrependToFileAction, context: ProjectContext) -> ActionResult:
        prepended = self.engine.prepend(self._render_path(action.path, context), self._render(action.content, context))
        prepended.raise_for_error()
        return ActionResult(files=[prepended.file_path])

    async def _enhance_file(self, action: EnhanceFileAction, context: ProjectContext) -> ActionResult:
        path = self._render_path(action.path, context)
        if not self.registry.has(action.modifier):
            raise ModifierError(f"Unknown modifier: {action.modifier}", path=path)
        params = self.templates.render_value(action.params, context)

        if self._exists(path):
            return ActionResult(files=[self._modify(path, action.modifier, params).file_path])

        if action.fallback is FallbackPolicy.SKIP:
            return ActionResult(warnings=[f"{path} not found; skipped {action.modifier}"])

        if action.fallback is FallbackPolicy.CREATE:
            if not self.registry.can_synthesize(action.modifier):
                raise PreconditionError(
                    f"{path} not found and {action.modifier} cannot create it from its parameters",
                    path=path,
                )
            created = self.engine.create_file(path, self.registry.synthesize(action.modifier, params, path))
            created.raise_for_error()
            return ActionResult(
                files=[created.file_path],
                warnings=[f"{path} not found; created it with {action.modifier}"],
            )

        raise FileNotFoundInProjectError(f"Cannot enhance missing file: {path}", path=path)

    async def _run_command(self, action: RunCommandAction, context: ProjectContext) -> ActionResult:
        command = self._render(action.command, context)
        args = [self._render(arg, context) for arg in action.args]
        answers = [self._render(answer, context) for answer in action.answers]
        cwd = self.vfs.root
        if action.working_dir and action.working_dir.strip() not in (".", "./"):
            cwd = self.vfs.root / self._render_path(action.working_dir, context)

        outcome = await self.commands.run(
            command,
            args,
            cwd=cwd,
            answers=answers,
            env=action.env,
            timeout=action.timeout,
        )
        if not outcome.success:
            detail = outcome.stderr or outcome.stdout
            raise ExternalCommandError(
                f"Command exited with code {outcome.exit_code}: {outcome.command}"
                + (f"\n{detail[-2000:]}" if detail else ""),
                exit_code=outcome.exit_code,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
            )
        return ActionResult()

    async def _merge_config(self, action: MergeConfigAction, context: ProjectContext) -> ActionResult:
        path = self._render_path(action.path, context)
        partial = self.templates.render_value(action.config, context)
        result = ActionResult()

        if format_for(path) is not None:
            self._merge_dict_file(
                path,
                partial,
                key_path=action.key_path,
                strategy=action.strategy,
                strict=self.config.strict_merge if action.strict is None else action.strict,
                result=result,
            )
            return result

        params = {
            "export_name": action.export_name,
            "key_path": split_key_path(action.key_path),
            "properties": partial,
            "strategy": action.strategy.value,
        }
        if self._exists(path):
            result.files.append(self._modify(path, OBJECT_MERGER, params).file_path)
        else:
            created = self.engine.create_file(path, self.registry.synthesize(OBJECT_MERGER, params, path))
            created.raise_for_error()
            result.files.append(created.file_path)
        return result

    async def _wrap_config(self, action: WrapConfigAction, context: ProjectContext) -> ActionResult:
        path = self._render_path(action.path, context)
        self._require(path, action.type)
        before = self.vfs.read_file(path)
        params = {
            "wrapper": self._render(action.wrapper, context),
            "options": self.templates.render_value(action.options, context),
            "import_from": self._render(action.import_from, context) if action.import_from else None,
            "default_import": action.default_import,
        }
        modified = self._modify(path, WRAPPER_INJECTOR, params)
        result = ActionResult(files=[modified.file_path])
        if self.vfs.read_file(path) == before:
            result.warnings.append(f"{path} is already wrapped with {params['wrapper']}")
        return result

    async def _extend_schema(self, action: ExtendSchemaAction, context: ProjectContext) -> ActionResult:
        path = self._render_path(action.path, context)
        self._require(path, action.type)
        tables = [
            {"name": self._render(t.name, context), "definition": self._render(t.definition, context)}
            for t in action.tables
        ]
        result = ActionResult()
        for name in existing_tables(self.vfs.read_file(path), [t["name"] for t in tables], path):
            result.warnings.append(f"Table {name} is already defined in {path}; skipped")

        params = {
            "tables": tables,
            "additional_imports": [self._render(i, context) for i in action.additional_imports],
            "import_source": self._render(action.import_source, context),
        }
        result.files.append(self._modify(path, SCHEMA_ADDER, params).file_path)
        return result


def _first_unknown_index(blueprint: Blueprint | dict[str, Any]) -> int:
    if isinstance(blueprint, dict):
        for index, action in enumerate(blueprint.get("actions") or []):
            if not isinstance(action, dict) or action.get("type") not in BlueprintOrchestrator._HANDLERS:
                return index
    return -1
