"""Tests for output field validation."""

import json

import pytest
from structlog.testing import capture_logs

from recipe_engine.exceptions import StepFailure
from recipe_engine.recipes.fields import (
    FieldSchema,
    default_field_schema,
    load_field_schema,
    strip_index_suffix,
    validate_field,
    validate_recipe_fields,
)
from recipe_engine.recipes.models import Recipe, Step, StepType


@pytest.fixture
def schema() -> FieldSchema:
    return FieldSchema(
        autocomplete_fields={"TITLE": {}, "URL": {}, "COVER": {}},
        url_fields={"TITLE": {}, "YEAR": {}, "GENRE": {}},
    )


def make_step(name: str, show: bool | None) -> Step:
    output = {"name": name}
    if show is not None:
        output["show"] = show
    return Step.model_validate({"command": "store_text", "locator": "h1", "output": output})


class TestLoadFieldSchema:
    def test_loads_file(self, tmp_path):
        path = tmp_path / "fields.json"
        path.write_text(json.dumps({"autocomplete_fields": {"TITLE": {}}, "url_fields": {"YEAR": {}}}))
        schema = load_field_schema(path)
        assert "TITLE" in schema.autocomplete_fields
        assert "YEAR" in schema.fields_for(StepType.URL)

    def test_missing_file_degrades_to_empty(self, tmp_path):
        with capture_logs() as logs:
            schema = load_field_schema(tmp_path / "nope.json")
        assert schema == FieldSchema.empty()
        assert logs[0]["event"] == "field_schema_load_failed"

    def test_invalid_json_degrades_to_empty(self, tmp_path):
        path = tmp_path / "fields.json"
        path.write_text("{not json")
        assert load_field_schema(path) == FieldSchema.empty()

    def test_packaged_schema(self):
        schema = default_field_schema()
        assert {"TITLE", "SUBTITLE", "COVER", "URL"} <= set(schema.autocomplete_fields)
        assert {"TITLE", "RATING", "GENRE", "INGREDIENTS"} <= set(schema.url_fields)


class TestStripIndexSuffix:
    @pytest.mark.parametrize(
        "name,expected",
        [("TITLE$i", "TITLE"), ("URL$idx", "URL"), ("EPISODE$i_$j", "EPISODE_"), ("YEAR", "YEAR")],
    )
    def test_strip(self, name, expected):
        assert strip_index_suffix(name) == expected


class TestValidateField:
    def test_show_false_accepts_any_name(self, schema):
        assert validate_field(make_step("AUX_ANYTHING", False), StepType.URL, schema).valid

    def test_show_true_known_field(self, schema):
        assert validate_field(make_step("YEAR", True), StepType.URL, schema).valid

    def test_indexed_name_validated_without_suffix(self, schema):
        assert validate_field(make_step("TITLE$i", True), StepType.AUTOCOMPLETE, schema).valid

    def test_missing_show(self, schema):
        result = validate_field(make_step("YEAR", None), StepType.URL, schema)
        assert not result.valid
        assert result.failure is StepFailure.SHOW_FLAG_MISSING
        assert result.reason == 'Field "YEAR": "show" is required (must be true or false)'

    def test_unknown_field(self, schema):
        result = validate_field(make_step("COVER", True), "url_steps", schema)
        assert not result.valid
        assert result.failure is StepFailure.SCHEMA_VIOLATION
        assert result.reason == 'Field "COVER": unknown output key for url_steps (show: true). Ignoring value.'

    def test_step_without_output(self, schema):
        step = Step.model_validate({"command": "load", "url": "https://example.com"})
        assert validate_field(step, StepType.URL, schema).valid


class TestValidateRecipeFields:
    def test_collects_problems(self, schema):
        recipe = Recipe.model_validate(
            {
                "url_steps": [
                    {"command": "store_text", "locator": "h1", "output": {"name": "TITLE", "show": True}},
                    {"command": "store_text", "locator": "h2", "output": {"name": "YEAR"}},
                    {"command": "store_text", "locator": ".x", "output": {"name": "BUDGET$i", "show": True}},
                    {"command": "store", "input": "x", "output": {"name": "TMP", "show": False}},
                ]
            }
        )
        with capture_logs() as logs:
            report = validate_recipe_fields(recipe, StepType.URL, schema)

        assert report.missing_show == ["YEAR"]
        assert report.ignored_fields == {"BUDGET"}
        assert report.has_errors
        events = {(log["event"], log["log_level"]) for log in logs}
        assert ("show_flag_missing", "error") in events
        assert ("unknown_output_key", "warning") in events

    def test_clean_recipe(self, schema):
        recipe = Recipe.model_validate(
            {"autocomplete_steps": [{"command": "store_text", "locator": "a", "output": {"name": "URL$i", "show": True}}]}
        )
        report = validate_recipe_fields(recipe, "autocomplete", schema)
        assert not report.has_errors
        assert report.ignored_fields == set()
