"""Blueprint and action models.

A blueprint is data: an id, a name and an ordered list of actions.  Actions
form a closed tagged union discriminated on ``type``; an unknown type is
rejected with ``UnknownActionError`` before any field validation happens, so
a generator/engine version mismatch is reported as such rather than as a
generic schema error.

Field names are snake_case; the camelCase spellings generators emit
(``isDev``, ``workingDir``, ``contextualFiles`` ...) are accepted as aliases.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from .errors import StructuralError, UnknownActionError
from .formats import format_for, parse_tree
from .merge import MergeStrategy
from .modifiers.imports import ImportSpec
from .modifiers.schema import DEFAULT_IMPORT_SOURCE, SchemaTable


class ActionType(str, Enum):
    CREATE_FILE = "CREATE_FILE"
    INSTALL_PACKAGES = "INSTALL_PACKAGES"
    ADD_SCRIPT = "ADD_SCRIPT"
    ADD_ENV_VAR = "ADD_ENV_VAR"
    ADD_TS_IMPORT = "ADD_TS_IMPORT"
    MERGE_JSON = "MERGE_JSON"
    APPEND_TO_FILE = "APPEND_TO_FILE"
    PREPEND_TO_FILE = "PREPEND_TO_FILE"
    ENHANCE_FILE = "ENHANCE_FILE"
    RUN_COMMAND = "RUN_COMMAND"
    MERGE_CONFIG = "MERGE_CONFIG"
    WRAP_CONFIG = "WRAP_CONFIG"
    EXTEND_SCHEMA = "EXTEND_SCHEMA"


class FallbackPolicy(str, Enum):
    """What ENHANCE_FILE does when its target file is absent."""

    ERROR = "error"
    CREATE = "create"
    SKIP = "skip"


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class _Action(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    condition: str | None = Field(
        default=None,
        description="Context path (optionally prefixed with '!') that must be truthy",
    )


class CreateFileAction(_Action):
    type: Literal["CREATE_FILE"] = "CREATE_FILE"
    path: str
    content: str | None = None
    overwrite: bool = False
    modifier: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class InstallPackagesAction(_Action):
    type: Literal["INSTALL_PACKAGES"] = "INSTALL_PACKAGES"
    packages: list[str] = Field(..., min_length=1)
    is_dev: bool = Field(default=False, alias="isDev")
    manifest: str | None = None


class AddScriptAction(_Action):
    type: Literal["ADD_SCRIPT"] = "ADD_SCRIPT"
    name: str = Field(..., min_length=1)
    command: str
    manifest: str | None = None


class AddEnvVarAction(_Action):
    type: Literal["ADD_ENV_VAR"] = "ADD_ENV_VAR"
    key: str = Field(..., pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    value: str = ""
    description: str | None = None
    path: str | None = Field(default=None, description="Overrides the example env file")


class AddTsImportAction(_Action):
    type: Literal["ADD_TS_IMPORT"] = "ADD_TS_IMPORT"
    path: str
    imports: list[ImportSpec] = Field(..., min_length=1)


class MergeJsonAction(_Action):
    type: Literal["MERGE_JSON"] = "MERGE_JSON"
    path: str
    content: dict[str, Any]
    key_path: list[str] | str | None = Field(default=None, alias="keyPath")
    strict: bool | None = None


class AppendToFileAction(_Action):
    type: Literal["APPEND_TO_FILE"] = "APPEND_TO_FILE"
    path: str
    content: str


class PrependToFileAction(_Action):
    type: Literal["PREPEND_TO_FILE"] = "PREPEND_TO_FILE"
    path: str
    content: str


class EnhanceFileAction(_Action):
    type: Literal["ENHANCE_FILE"] = "ENHANCE_FILE"
    path: str
    modifier: str
    params: dict[str, Any] = Field(default_factory=dict)
    fallback: FallbackPolicy = FallbackPolicy.ERROR


class RunCommandAction(_Action):
    type: Literal["RUN_COMMAND"] = "RUN_COMMAND"
    command: str = Field(..., min_length=1)
    args: list[str] = Field(default_factory=list)
    answers: list[str] = Field(default_factory=list, description="Scripted answers fed to prompts")
    working_dir: str | None = Field(default=None, alias="workingDir")
    env: dict[str, str] = Field(default_factory=dict)
    timeout: int | None = Field(default=None, ge=1)


class MergeConfigAction(_Action):
    type: Literal["MERGE_CONFIG"] = "MERGE_CONFIG"
    path: str
    config: dict[str, Any]
    strategy: MergeStrategy = MergeStrategy.DEEP
    key_path: list[str] | str | None = Field(default=None, alias="keyPath")
    export_name: str = Field(default="default", alias="exportName")
    strict: bool | None = None


class WrapConfigAction(_Action):
    type: Literal["WRAP_CONFIG"] = "WRAP_CONFIG"
    path: str
    wrapper: str = Field(..., min_length=1)
    options: dict[str, Any] = Field(default_factory=dict)
    import_from: str | None = Field(default=None, alias="importFrom")
    default_import: bool = Field(default=False, alias="defaultImport")


class ExtendSchemaAction(_Action):
    type: Literal["EXTEND_SCHEMA"] = "EXTEND_SCHEMA"
    path: str
    tables: list[SchemaTable] = Field(..., min_length=1)
    additional_imports: list[str] = Field(default_factory=list, alias="additionalImports")
    import_source: str = Field(default=DEFAULT_IMPORT_SOURCE, alias="importSource")


Action = Annotated[
    Union[
        CreateFileAction,
        InstallPackagesAction,
        AddScriptAction,
        AddEnvVarAction,
        AddTsImportAction,
        MergeJsonAction,
        AppendToFileAction,
        PrependToFileAction,
        EnhanceFileAction,
        RunCommandAction,
        MergeConfigAction,
        WrapConfigAction,
        ExtendSchemaAction,
    ],
    Field(discriminator="type"),
]

ACTION_TYPES: frozenset[str] = frozenset(member.value for member in ActionType)

_ACTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(Action)


def parse_action(data: Any) -> Any:
    """Validate a single raw action.

    Raises:
        UnknownActionError: If ``type`` is not a known action type.
        StructuralError: If the action's fields are invalid.
    """
    if isinstance(data, BaseModel):
        return data
    if not isinstance(data, dict) or data.get("type") not in ACTION_TYPES:
        action_type = data.get("type") if isinstance(data, dict) else None
        raise UnknownActionError(f"Unknown action type {action_type!r}", action_type=str(action_type))
    try:
        return _ACTION_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise StructuralError(
            f"Invalid {data['type']} action: {_describe(exc)}",
            action_type=data["type"],
            path=data.get("path"),
        ) from exc


def _describe(exc: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())


# ---------------------------------------------------------------------------
# Blueprint
# ---------------------------------------------------------------------------


class Blueprint(BaseModel):
    """An ordered, immutable list of actions produced by one generator."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    description: str = ""
    version: str | None = None
    actions: list[Action] = Field(default_factory=list)
    contextual_files: list[str] = Field(default_factory=list, alias="contextualFiles")

    @model_validator(mode="before")
    @classmethod
    def _reject_unknown_actions(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for index, action in enumerate(data.get("actions") or []):
                if isinstance(action, dict):
                    action_type = action.get("type")
                    if action_type not in ACTION_TYPES:
                        raise UnknownActionError(
                            f"Unknown action type {action_type!r} at index {index} "
                            f"of blueprint {data.get('id', '?')!r}",
                            action_type=str(action_type),
                            path=action.get("path"),
                        )
        return data

    @classmethod
    def from_data(cls, data: "Blueprint | dict[str, Any]") -> "Blueprint":
        """Validate raw blueprint data.

        Raises:
            UnknownActionError: If an action carries an unknown ``type``.
            StructuralError: If the blueprint is otherwise malformed.
        """
        if isinstance(data, Blueprint):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            blueprint_id = data.get("id", "?") if isinstance(data, dict) else "?"
            raise StructuralError(f"Invalid blueprint {blueprint_id!r}: {_describe(exc)}") from exc

    @classmethod
    def load(cls, path: str | Path) -> "Blueprint":
        """Load a blueprint from a JSON or YAML file."""
        source = Path(path)
        fmt = format_for(source.name) or "json"
        return cls.from_data(parse_tree(source.read_text(encoding="utf-8"), fmt, str(source)))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PACKAGE_RE = re.compile(r"^(?P<name>@[^/@\s]+/[^@\s]+|[^@\s]+)(?:@(?P<version>\S+))?$")


def parse_package_spec(spec: str) -> tuple[str, str]:
    """Split ``name@version`` into its parts.

    Scoped names are supported (``@scope/pkg@^1.2.0``); a missing version
    means ``latest``.

    Raises:
        StructuralError: If *spec* is not a package specifier.
    """
    match = _PACKAGE_RE.match(spec.strip())
    if not match:
        raise StructuralError(f"Invalid package specifier: {spec!r}")
    return match.group("name"), match.group("version") or "latest"
