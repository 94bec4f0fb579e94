"""Tests for the modifier registry."""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from blueprint_engine.errors import ModifierError, StructuralError
from blueprint_engine.modifiers import (
    BUILTIN_MODIFIERS,
    IMPORT_INJECTOR,
    OBJECT_MERGER,
    WRAPPER_INJECTOR,
    ModifierDefinition,
    ModifierRegistry,
    default_registry,
)

pytestmark = pytest.mark.unit


class _EchoParams(BaseModel):
    text: str


def _append(content: str, params: _EchoParams, path: str) -> str:
    return content + params.text


class TestRegistration:
    def test_builtins_registered(self):
        registry = default_registry()
        assert registry.names() == sorted(d.name for d in BUILTIN_MODIFIERS)
        assert IMPORT_INJECTOR in registry

    def test_aliases_resolve_to_same_definition(self):
        registry = default_registry()
        assert registry.get("object-tree-merger") is registry.get(OBJECT_MERGER)
        assert registry.get("wrapper-injector") is registry.get(WRAPPER_INJECTOR)

    def test_duplicate_rejected(self):
        registry = ModifierRegistry()
        definition = ModifierDefinition(
            name="echo", description="", transform=_append, params_model=_EchoParams, file_types=("txt",)
        )
        registry.register(definition)
        with pytest.raises(ModifierError, match="already registered"):
            registry.register(definition)

    def test_unknown_modifier(self):
        with pytest.raises(ModifierError, match="Unknown modifier"):
            default_registry().get("does-not-exist")
        assert default_registry().has("does-not-exist") is False

    def test_registries_are_independent(self):
        first = default_registry()
        first.register(
            ModifierDefinition(name="echo", description="", transform=_append, params_model=_EchoParams)
        )
        assert "echo" not in default_registry()


class TestApply:
    @pytest.fixture
    def registry(self) -> ModifierRegistry:
        registry = ModifierRegistry()
        registry.register(
            ModifierDefinition(
                name="echo",
                description="Appends text",
                transform=_append,
                params_model=_EchoParams,
                file_types=("txt",),
                can_synthesize=True,
            )
        )
        return registry

    def test_custom_modifier(self, registry):
        assert registry.apply("echo", "a", {"text": "b"}, "notes.txt") == "ab"

    def test_invalid_params(self, registry):
        with pytest.raises(ModifierError, match="Invalid params for echo"):
            registry.apply("echo", "a", {}, "notes.txt")

    def test_unsupported_file_type(self, registry):
        with pytest.raises(ModifierError, match="does not support"):
            registry.apply("echo", "a", {"text": "b"}, "notes.md")

    def test_engine_errors_wrapped(self):
        def explode(content: str, params: _EchoParams, path: str) -> str:
            raise StructuralError("cannot parse")

        registry = ModifierRegistry()
        registry.register(
            ModifierDefinition(name="boom", description="", transform=explode, params_model=_EchoParams, file_types=("txt",))
        )
        with pytest.raises(ModifierError, match="boom failed on a.txt: cannot parse"):
            registry.apply("boom", "", {"text": "x"}, "a.txt")

    def test_broken_output_rejected(self):
        def corrupt(content: str, params: _EchoParams, path: str) -> str:
            return content + "\nconst = ;\n"

        registry = ModifierRegistry()
        registry.register(
            ModifierDefinition(name="corrupt", description="", transform=corrupt, params_model=_EchoParams)
        )
        with pytest.raises(ModifierError, match="no longer parses"):
            registry.apply("corrupt", "const a = 1;\n", {"text": "x"}, "a.ts")

    def test_synthesize(self, registry):
        assert registry.synthesize("echo", {"text": "new"}, "a.txt") == "new"
        assert registry.can_synthesize("echo") is True
        assert registry.can_synthesize("missing") is False

    def test_wrapper_cannot_synthesize(self):
        registry = default_registry()
        assert registry.can_synthesize(WRAPPER_INJECTOR) is False
        with pytest.raises(ModifierError, match="cannot create"):
            registry.synthesize(WRAPPER_INJECTOR, {"wrapper": "withX"}, "next.config.js")
