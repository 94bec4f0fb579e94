"""Unit tests for the template processor (blueprint_engine.templates).

Tests cover:
- Variable interpolation and filters
- Conditional blocks ({{#if}}, {{#unless}}, {{else}})
- Pass-through of literal braces in source code
- Unresolved variables and malformed blocks
- Condition evaluation for actions
- Introspection (extract_variables, validate)
"""

from __future__ import annotations

import pytest

from blueprint_engine.context import ProjectContext
from blueprint_engine.errors import TemplateError
from blueprint_engine.templates import TemplateProcessor, is_truthy

pytestmark = pytest.mark.unit


@pytest.fixture
def processor() -> TemplateProcessor:
    return TemplateProcessor()


# ---------------------------------------------------------------------------
# Interpolation
# ---------------------------------------------------------------------------


class TestRender:
    def test_plain_string_returned_unchanged(self, processor, context):
        assert processor.render("no variables here", context) == "no variables here"

    def test_project_variables(self, processor, context):
        assert processor.render("# {{project.name}}", context) == "# my-app"
        assert processor.render("{{ project.framework }}", context) == "nextjs"

    def test_module_parameters(self, processor, context):
        assert processor.render("provider={{module.parameters.provider}}", context) == "provider=github"

    def test_extra_variables(self, processor, context):
        assert processor.render("{{db.dialect}}", context) == "postgres"

    def test_filters(self, processor, context):
        assert processor.render("{{project.name | pascal_case}}", context) == "MyApp"
        assert processor.render("{{project.name | snake_case}}", context) == "my_app"
        assert processor.render("{{project.name|camel_case}}", context) == "myApp"

    def test_plain_mapping_context(self, processor):
        assert processor.render("{{name}}!", {"name": "x"}) == "x!"

    def test_trailing_newline_preserved(self, processor, context):
        assert processor.render("{{project.name}}\n", context) == "my-app\n"

    def test_jsx_braces_survive(self, processor, context):
        source = 'export const A = () => <div style={{ color: "red" }}>{{project.name}}</div>;\n'
        assert processor.render(source, context) == (
            'export const A = () => <div style={{ color: "red" }}>my-app</div>;\n'
        )

    def test_jinja_syntax_in_literal_text_survives(self, processor, context):
        source = "{% if x %} {# note #} {{project.name}}"
        assert processor.render(source, context) == "{% if x %} {# note #} my-app"

    def test_unresolved_variable_raises(self, processor, context):
        with pytest.raises(TemplateError, match="Unresolved"):
            processor.render("{{project.missing}}", context)

    def test_unresolved_nested_variable_raises(self, processor, context):
        with pytest.raises(TemplateError):
            processor.render("{{nothing.here.at.all}}", context)

    def test_env_defaults(self, processor, context, monkeypatch):
        monkeypatch.setenv("NODE_ENV", "production")
        assert processor.render("{{env.NODE_ENV}}", context) == "production"


# ---------------------------------------------------------------------------
# Conditional blocks
# ---------------------------------------------------------------------------


class TestConditionalBlocks:
    def test_if_true(self, processor, context):
        template = "a{{#if module.parameters.useAuth}}-auth{{/if}}"
        assert processor.render(template, context) == "a-auth"

    def test_if_false(self, processor, context):
        template = "a{{#if module.parameters.useEmail}}-email{{/if}}"
        assert processor.render(template, context) == "a"

    def test_if_missing_is_false(self, processor, context):
        template = "a{{#if module.parameters.nope}}-x{{else}}-y{{/if}}"
        assert processor.render(template, context) == "a-y"

    def test_unless(self, processor, context):
        template = "{{#unless module.parameters.useEmail}}no email{{/unless}}"
        assert processor.render(template, context) == "no email"

    def test_nested_blocks(self, processor, context):
        template = (
            "{{#if module.parameters.useAuth}}"
            "auth{{#if module.parameters.useEmail}}+email{{else}}+{{module.parameters.provider}}{{/if}}"
            "{{/if}}"
        )
        assert processor.render(template, context) == "auth+github"

    def test_string_false_is_falsy(self, processor):
        assert processor.render("{{#if flag}}yes{{else}}no{{/if}}", {"flag": "false"}) == "no"

    def test_unclosed_block_raises(self, processor, context):
        with pytest.raises(TemplateError, match="Unclosed"):
            processor.render("{{#if project.name}}open", context)

    def test_mismatched_close_raises(self, processor, context):
        with pytest.raises(TemplateError, match="Unbalanced"):
            processor.render("{{#if project.name}}x{{/unless}}", context)

    def test_stray_else_raises(self, processor, context):
        with pytest.raises(TemplateError):
            processor.render("x{{else}}y", context)


# ---------------------------------------------------------------------------
# render_value
# ---------------------------------------------------------------------------


class TestRenderValue:
    def test_nested_structures(self, processor, context):
        value = {
            "{{project.name}}": ["{{module.id}}", 1, True],
            "nested": {"provider": "{{module.parameters.provider}}"},
        }
        assert processor.render_value(value, context) == {
            "my-app": ["auth", 1, True],
            "nested": {"provider": "github"},
        }

    def test_non_strings_untouched(self, processor, context):
        assert processor.render_value(None, context) is None
        assert processor.render_value(3.5, context) == 3.5


# ---------------------------------------------------------------------------
# evaluate_condition
# ---------------------------------------------------------------------------


class TestEvaluateCondition:
    @pytest.mark.parametrize(
        "condition, expected",
        [
            ("module.parameters.useAuth", True),
            ("module.parameters.useEmail", False),
            ("!module.parameters.useEmail", True),
            ("! module.parameters.useAuth", False),
            ("{{module.parameters.useAuth}}", True),
            ("module.parameters.missing", False),
            ("!module.parameters.missing", True),
            ("true", True),
            ("FALSE", False),
            ("module.parameters.provider == 'github'", True),
        ],
    )
    def test_conditions(self, processor, context, condition, expected):
        assert processor.evaluate_condition(condition, context) is expected

    def test_malformed_condition_raises(self, processor, context):
        with pytest.raises(TemplateError, match="Malformed"):
            processor.evaluate_condition("module.(", context)

    def test_context_without_module(self, processor):
        ctx = ProjectContext.for_project("x")
        assert processor.evaluate_condition("module.parameters.useAuth", ctx) is False


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


class TestIntrospection:
    def test_extract_variables(self, processor):
        template = "{{project.name}} {{#if module.parameters.x}}{{db.dialect | pascal_case}}{{/if}} {{project.name}}"
        assert processor.extract_variables(template) == ["project.name", "db.dialect"]

    def test_validate_ok(self, processor):
        assert processor.validate("{{#if a}}{{b}}{{/if}}") == []

    def test_validate_reports_problems(self, processor):
        problems = processor.validate("{{#if a}}open")
        assert len(problems) == 1
        assert "Unclosed" in problems[0]


class TestIsTruthy:
    @pytest.mark.parametrize("value", [None, "", "false", "0", 0, 0.0, [], {}, False])
    def test_falsy(self, value):
        assert is_truthy(value) is False

    @pytest.mark.parametrize("value", ["yes", "true", 1, [0], {"a": 1}, True])
    def test_truthy(self, value):
        assert is_truthy(value) is True
