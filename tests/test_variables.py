"""Tests for the variable store and template substitution."""

import pytest
from structlog.testing import capture_logs

from recipe_engine.recipes.variables import (
    ValueKind,
    VariableStore,
    clean_variable_value,
    kind_of,
    render_value,
)


class TestCleanVariableValue:
    def test_removes_control_whitespace(self):
        assert clean_variable_value("line one\n\tline two\r\n") == "line oneline two"

    def test_collapses_space_runs(self):
        assert clean_variable_value("  The   Matrix  ") == "The Matrix"

    def test_non_strings_pass_through(self):
        data = {"a": [1, 2]}
        assert clean_variable_value(data) is data
        assert clean_variable_value(5) == 5


class TestValueKinds:
    def test_kind_of(self):
        assert kind_of("x") is ValueKind.TEXT
        assert kind_of(["a", "b"]) is ValueKind.LIST
        assert kind_of({"a": 1}) is ValueKind.JSON
        assert kind_of([1, 2]) is ValueKind.JSON

    def test_render_value(self):
        assert render_value("x") == "x"
        assert render_value(["Drama", "Crime"]) == "Drama,Crime"
        assert render_value({"id": 7}) == '{"id":7}'
        assert render_value(1991) == "1991"
        assert render_value(8.0) == "8"
        assert render_value(8.7) == "8.7"
        assert render_value(True) == "true"
        assert render_value(None) == ""


class TestVariableStore:
    def test_set_cleans_text(self, variables):
        variables.set("TITLE", "  Pulp\n Fiction ")
        assert variables.get("TITLE") == "Pulp Fiction"

    def test_get_accepts_dollar_prefix(self, variables):
        variables.set("YEAR", "1994")
        assert variables.get("$YEAR") == "1994"

    def test_get_default(self, variables):
        assert variables.get("MISSING") == ""
        assert variables.get("MISSING", None) is None

    def test_stored_none_falls_back_to_environment(self):
        store = VariableStore(environment={"API_KEY": "secret"})
        store.set("API_KEY", None)
        assert store.get("API_KEY") == "secret"

    def test_store_shadows_environment(self):
        store = VariableStore(environment={"REGION": "ES"})
        store.set("REGION", "US")
        assert store.get("REGION") == "US"

    def test_push_appends(self, variables):
        variables.push("GENRE", "Drama")
        variables.push("GENRE", " Crime ")
        assert variables.get("GENRE") == ["Drama", "Crime"]
        assert variables.kind("GENRE") is ValueKind.LIST

    def test_push_replaces_non_list(self, variables):
        variables.set("GENRE", "Drama")
        variables.push("GENRE", "Crime")
        assert variables.get("GENRE") == ["Crime"]

    def test_snapshot_is_a_copy(self, variables):
        variables.push("TAGS", "a")
        snapshot = variables.snapshot()
        snapshot["TAGS"].append("b")
        assert variables.get("TAGS") == ["a"]

    def test_contains_and_len(self, variables):
        variables.set("A", "1")
        assert "A" in variables
        assert "B" not in variables
        assert len(variables) == 1

    def test_kind_of_missing_key(self, variables):
        assert variables.kind("NOPE") is None


class TestReplaceVariablesInString:
    def test_simple_substitution(self, variables):
        variables.set("INPUT", "matrix")
        assert variables.replace_variables_in_string("https://example.com/search?q=$INPUT") == (
            "https://example.com/search?q=matrix"
        )

    def test_longest_name_first(self, variables):
        variables.set("URL1", "one")
        variables.set("URL10", "ten")
        assert variables.replace_variables_in_string("$URL10 $URL1") == "ten one"

    def test_two_pass_indirection(self, variables):
        variables.set("i", 0)
        variables.set("YEAR0", "1991")
        assert variables.replace_variables_in_string("$YEAR$i") == "1991"

    def test_third_level_left_unresolved(self, variables):
        variables.set("j", 2)
        variables.set("k", "$j")
        variables.set("NAME2", "deep")
        # $NAME$k -> $NAME$j -> $NAME2, one level short of NAME2's value
        with capture_logs() as logs:
            assert variables.replace_variables_in_string("$NAME$k") == "$NAME2"
        assert any(log["event"] == "unresolved_reference" for log in logs)

    def test_list_values_join_with_commas(self, variables):
        variables.push("TAGS", "a")
        variables.push("TAGS", "b")
        assert variables.replace_variables_in_string("tags=$TAGS") == "tags=a,b"

    def test_environment_fallback(self):
        store = VariableStore(environment={"API_TOKEN": "tok"})
        assert store.replace_variables_in_string("Bearer $API_TOKEN") == "Bearer tok"

    @pytest.mark.parametrize("template", ["$HOMEPAGE", "$PATHNAME", "$USERNAME"])
    def test_environment_name_is_not_a_prefix(self, template):
        store = VariableStore(environment={"HOME": "/root", "PATH": "/usr/bin", "USER": "root"})
        assert store.replace_variables_in_string(template) == template

    def test_environment_name_before_punctuation(self):
        store = VariableStore(environment={"HOME": "/root"})
        assert store.replace_variables_in_string("$HOME/cache $HOME") == "/root/cache /root"

    def test_stored_name_still_matches_as_prefix(self, variables):
        variables.set("URL", "/movie/603")
        assert variables.replace_variables_in_string("$URLS") == "/movie/603S"

    def test_unknown_reference_kept(self, variables):
        assert variables.replace_variables_in_string("price in $CURRENCY") == "price in $CURRENCY"

    @pytest.mark.parametrize("value", [None, "", 5, {"a": 1}])
    def test_non_string_or_empty_unchanged(self, variables, value):
        assert variables.replace_variables_in_string(value) == value
