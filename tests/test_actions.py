"""Unit tests for blueprint and action models (blueprint_engine.actions)."""

from __future__ import annotations

import json

import pytest
import yaml

from blueprint_engine.actions import (
    ACTION_TYPES,
    ActionType,
    AddTsImportAction,
    Blueprint,
    EnhanceFileAction,
    FallbackPolicy,
    InstallPackagesAction,
    MergeConfigAction,
    RunCommandAction,
    parse_action,
    parse_package_spec,
)
from blueprint_engine.errors import StructuralError, UnknownActionError
from blueprint_engine.merge import MergeStrategy

pytestmark = pytest.mark.unit


class TestParseAction:
    def test_every_action_type_is_known(self):
        assert ACTION_TYPES == {member.value for member in ActionType}
        assert len(ACTION_TYPES) == 13

    def test_discriminates_on_type(self):
        action = parse_action({"type": "INSTALL_PACKAGES", "packages": ["zod"], "isDev": True})
        assert isinstance(action, InstallPackagesAction)
        assert action.is_dev is True

    def test_snake_case_fields_accepted(self):
        action = parse_action({"type": "RUN_COMMAND", "command": "npx x", "working_dir": "apps/web"})
        assert isinstance(action, RunCommandAction)
        assert action.working_dir == "apps/web"

    def test_model_passes_through(self):
        action = EnhanceFileAction(path="a.ts", modifier="ts-import-injector")
        assert parse_action(action) is action
        assert action.fallback is FallbackPolicy.ERROR

    def test_unknown_type(self):
        with pytest.raises(UnknownActionError) as exc_info:
            parse_action({"type": "DEPLOY_TO_MARS"})
        assert exc_info.value.action_type == "DEPLOY_TO_MARS"
        assert exc_info.value.kind == "unknown_action"

    def test_missing_type(self):
        with pytest.raises(UnknownActionError):
            parse_action({"path": "a.ts"})

    def test_invalid_fields(self):
        with pytest.raises(StructuralError, match="INSTALL_PACKAGES") as exc_info:
            parse_action({"type": "INSTALL_PACKAGES", "packages": []})
        assert exc_info.value.action_type == "INSTALL_PACKAGES"

    def test_env_key_pattern(self):
        with pytest.raises(StructuralError):
            parse_action({"type": "ADD_ENV_VAR", "key": "NOT VALID", "value": "x"})

    def test_import_specs_normalised(self):
        action = parse_action(
            {
                "type": "ADD_TS_IMPORT",
                "path": "src/a.ts",
                "imports": [{"moduleSource": "zod", "namedImports": ["z"]}],
            }
        )
        assert isinstance(action, AddTsImportAction)
        assert action.imports[0].module_source == "zod"
        assert action.imports[0].names == ["z"]

    def test_merge_config_strategy_alias(self):
        action = parse_action(
            {"type": "MERGE_CONFIG", "path": "next.config.js", "config": {}, "strategy": "shallow"}
        )
        assert isinstance(action, MergeConfigAction)
        assert action.strategy is MergeStrategy.SHALLOW

    def test_actions_are_immutable(self):
        action = parse_action({"type": "ADD_SCRIPT", "name": "lint", "command": "eslint ."})
        with pytest.raises(Exception):
            action.name = "other"


class TestBlueprint:
    def test_from_data(self):
        blueprint = Blueprint.from_data(
            {
                "id": "auth",
                "name": "Auth",
                "contextualFiles": ["src/middleware.ts"],
                "actions": [
                    {"type": "CREATE_FILE", "path": "a.ts", "content": "x"},
                    {"type": "ADD_SCRIPT", "name": "lint", "command": "eslint ."},
                ],
            }
        )
        assert blueprint.id == "auth"
        assert blueprint.contextual_files == ["src/middleware.ts"]
        assert [a.type for a in blueprint.actions] == ["CREATE_FILE", "ADD_SCRIPT"]

    def test_unknown_action_reports_index(self):
        with pytest.raises(UnknownActionError, match="index 1 of blueprint 'bp'"):
            Blueprint.from_data(
                {
                    "id": "bp",
                    "actions": [
                        {"type": "CREATE_FILE", "path": "a.ts", "content": ""},
                        {"type": "TELEPORT", "path": "b.ts"},
                    ],
                }
            )

    def test_missing_id(self):
        with pytest.raises(StructuralError, match="Invalid blueprint"):
            Blueprint.from_data({"actions": []})

    def test_invalid_action_fields(self):
        with pytest.raises(StructuralError):
            Blueprint.from_data({"id": "bp", "actions": [{"type": "CREATE_FILE"}]})

    def test_load_json(self, tmp_path):
        path = tmp_path / "bp.json"
        path.write_text(json.dumps({"id": "bp", "actions": []}), encoding="utf-8")
        assert Blueprint.load(path).id == "bp"

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "bp.yaml"
        path.write_text(
            yaml.safe_dump(
                {"id": "bp", "actions": [{"type": "APPEND_TO_FILE", "path": ".gitignore", "content": "x\n"}]}
            ),
            encoding="utf-8",
        )
        assert Blueprint.load(path).actions[0].type == "APPEND_TO_FILE"

    def test_load_malformed(self, tmp_path):
        path = tmp_path / "bp.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(StructuralError):
            Blueprint.load(path)


class TestParsePackageSpec:
    @pytest.mark.parametrize(
        "spec, expected",
        [
            ("zod", ("zod", "latest")),
            ("zod@^3.22.0", ("zod", "^3.22.0")),
            ("@auth/core", ("@auth/core", "latest")),
            ("@auth/drizzle-adapter@1.0.0", ("@auth/drizzle-adapter", "1.0.0")),
            ("  next@15  ", ("next", "15")),
        ],
    )
    def test_valid(self, spec, expected):
        assert parse_package_spec(spec) == expected

    @pytest.mark.parametrize("spec", ["", "two words", "@scope"])
    def test_invalid(self, spec):
        with pytest.raises(StructuralError):
            parse_package_spec(spec)
