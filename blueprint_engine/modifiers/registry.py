"""Modifier registry.

A modifier is a named, stateless transformation ``(content, params, path) ->
new content``.  Each one declares a pydantic model for its parameters and the
file types it accepts; the registry validates both before running the
transform and refuses to return source that no longer parses.
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from ..errors import BlueprintError, ModifierError
from .source import SourceModule

Transform = Callable[[str, Any, str], str]

JS_TS_FILE_TYPES = ("ts", "tsx", "js", "jsx", "mjs", "cjs", "mts", "cts")
DICT_FILE_TYPES = ("json", "yaml", "yml")


@dataclass(frozen=True)
class ModifierDefinition:
    """A registered modifier.

    Attributes:
        name: Registry key used by blueprint actions.
        transform: ``(content, params, path) -> content``; *params* is an
            instance of ``params_model``.
        params_model: Pydantic model validating the raw parameter bag.
        file_types: Accepted file extensions (without the dot).
        can_synthesize: Whether applying the modifier to ``empty_content``
            yields a meaningful new file (used by fallback ``create``).
    """

    name: str
    description: str
    transform: Transform
    params_model: type[BaseModel]
    file_types: tuple[str, ...] = JS_TS_FILE_TYPES
    can_synthesize: bool = False
    empty_content: str = ""
    validate_output: bool = True
    aliases: tuple[str, ...] = field(default=())

    def supports(self, path: str) -> bool:
        _, ext = posixpath.splitext(path.lower())
        return ext.lstrip(".") in self.file_types


class ModifierRegistry:
    """Name -> ``ModifierDefinition`` lookup."""

    def __init__(self) -> None:
        self._modifiers: dict[str, ModifierDefinition] = {}

    def register(self, definition: ModifierDefinition) -> None:
        """Register *definition* under its name and aliases.

        Raises:
            ModifierError: If a name is already taken.
        """
        for key in (definition.name, *definition.aliases):
            if key in self._modifiers:
                raise ModifierError(f"Modifier already registered: {key}")
        for key in (definition.name, *definition.aliases):
            self._modifiers[key] = definition

    def get(self, name: str) -> ModifierDefinition:
        try:
            return self._modifiers[name]
        except KeyError:
            raise ModifierError(f"Unknown modifier: {name}") from None

    def has(self, name: str) -> bool:
        return name in self._modifiers

    def names(self) -> list[str]:
        return sorted({definition.name for definition in self._modifiers.values()})

    def __contains__(self, name: object) -> bool:
        return name in self._modifiers

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def validate_params(self, name: str, params: dict[str, Any] | None) -> BaseModel:
        """Validate a raw parameter bag against the modifier's params model.

        Raises:
            ModifierError: If the modifier is unknown or the params are invalid.
        """
        definition = self.get(name)
        try:
            return definition.params_model.model_validate(params or {})
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}" for err in exc.errors()
            )
            raise ModifierError(f"Invalid params for {name}: {problems}") from exc

    def apply(self, name: str, content: str, params: dict[str, Any] | None, path: str) -> str:
        """Run modifier *name* over *content* and return the new content.

        Raises:
            ModifierError: On unknown modifier, bad params, unsupported file
                type, or a transform failure.
        """
        definition = self.get(name)
        if not definition.supports(path):
            raise ModifierError(
                f"Modifier {name} does not support {path} "
                f"(supported: {', '.join(definition.file_types)})",
                path=path,
            )
        validated = self.validate_params(name, params)
        try:
            result = definition.transform(content, validated, path)
        except ModifierError:
            raise
        except BlueprintError as exc:
            raise ModifierError(f"{name} failed on {path}: {exc.message}", path=path) from exc

        if definition.validate_output and set(definition.file_types) <= set(JS_TS_FILE_TYPES):
            _check_parses(name, content, result, path)
        return result

    def synthesize(self, name: str, params: dict[str, Any] | None, path: str) -> str:
        """Create new file content by applying *name* to an empty file.

        Raises:
            ModifierError: If the modifier cannot synthesize content.
        """
        definition = self.get(name)
        if not definition.can_synthesize:
            raise ModifierError(f"Modifier {name} cannot create {path} from parameters", path=path)
        return self.apply(name, definition.empty_content, params, path)

    def can_synthesize(self, name: str) -> bool:
        return self.has(name) and self.get(name).can_synthesize


def _check_parses(name: str, before: str, after: str, path: str) -> None:
    if SourceModule(after, path).has_errors and not SourceModule(before, path).has_errors:
        raise ModifierError(f"{name} produced source that no longer parses: {path}", path=path)
