import pytest
import logging
import math
from core.columns import collect_columns
from core.hierarchy import decompose
from core.models import NormalizationResult, Table
from core.table_view import (
    FilterPredicate,
    SortSpec,
    build_view,
    filter_rows,
    format_cell_value,
    search_rows,
    sort_rows,
    to_number,
    to_text,
    toggle_sort
)


@pytest.fixture
def people():
    return [
        {"name": "Alice", "age": 25, "city": "Paris", "active": True},
        {"name": "bob", "age": 35, "city": "Lyon", "active": False},
        {"name": "Carol", "age": "x", "city": None},
        {"name": "Dan", "age": 41.0, "city": ""},
    ]


@pytest.fixture
def hierarchical_result():
    document = {"users": [
        {"id": 1, "name": "Alice", "tags": ["x", "y"], "roles": ["admin"]},
        {"id": 2, "name": "Bob", "tags": ["z"], "roles": ["viewer"]},
    ]}
    return decompose(document)


def names(rows):
    return [row["name"] for row in rows]


class TestCoercion:

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        (True, "true"),
        (False, "false"),
        (3.0, "3"),
        (2.5, "2.5"),
        (7, "7"),
        ("Text", "Text"),
    ])
    def test_to_text(self, value, expected):
        assert to_text(value) == expected

    def test_to_number(self):
        assert to_number(3) == 3.0
        assert to_number(" 4.5 ") == 4.5
        assert to_number(True) == 1.0
        assert math.isnan(to_number("x"))
        assert math.isnan(to_number(None))


class TestFilterRows:

    def test_gt_skips_non_numeric(self):
        rows = [{"age": 25}, {"age": 35}, {"age": "x"}]

        assert filter_rows(rows, [FilterPredicate("age", "gt", "30")]) == [{"age": 35}]

    def test_numeric_operators(self, people):
        assert names(filter_rows(people, [FilterPredicate("age", "gte", "35")])) == ["bob", "Dan"]
        assert names(filter_rows(people, [FilterPredicate("age", "lt", "35")])) == ["Alice"]
        assert names(filter_rows(people, [FilterPredicate("age", "lte", "25")])) == ["Alice"]

    def test_string_operators_case_insensitive(self, people):
        assert names(filter_rows(people, [FilterPredicate("name", "equals", "BOB")])) == ["bob"]
        assert names(filter_rows(people, [FilterPredicate("name", "contains", "AR")])) == ["Carol"]
        assert names(filter_rows(people, [FilterPredicate("name", "starts", "a")])) == ["Alice"]
        assert names(filter_rows(people, [FilterPredicate("name", "ends", "N")])) == ["Dan"]
        assert names(filter_rows(people, [FilterPredicate("name", "notequals", "alice")])) == [
            "bob", "Carol", "Dan"
        ]

    def test_equals_on_coerced_values(self, people):
        assert names(filter_rows(people, [FilterPredicate("active", "equals", "true")])) == ["Alice"]
        assert names(filter_rows(people, [FilterPredicate("age", "equals", "41")])) == ["Dan"]

    def test_null_operators(self, people):
        # null, missing and empty string all count as null
        assert names(filter_rows(people, [FilterPredicate("city", "isnull")])) == ["Carol", "Dan"]
        assert names(filter_rows(people, [FilterPredicate("active", "isnull")])) == ["Carol", "Dan"]
        assert names(filter_rows(people, [FilterPredicate("city", "isnotnull")])) == ["Alice", "bob"]

    def test_regex(self, people):
        assert names(filter_rows(people, [FilterPredicate("name", "regex", "^(a|b)")])) == ["Alice", "bob"]

    def test_invalid_regex_is_noop(self, people, caplog):
        with caplog.at_level(logging.WARNING, logger="core.table_view"):
            rows = filter_rows(people, [FilterPredicate("name", "regex", "[unterminated")])

        assert rows == people
        assert "Invalid regex" in caplog.text

    def test_empty_value_is_vacuous(self, people):
        assert filter_rows(people, [FilterPredicate("age", "gt", "")]) == people
        assert filter_rows(people, [FilterPredicate("name", "equals", "")]) == people

    def test_incomplete_predicate_is_vacuous(self, people):
        assert filter_rows(people, [FilterPredicate("", "equals", "bob")]) == people
        assert filter_rows(people, [FilterPredicate("name", "", "bob")]) == people

    def test_predicates_combine_with_and(self, people):
        filters = [FilterPredicate("age", "gt", "20"), FilterPredicate("city", "contains", "y")]

        assert names(filter_rows(people, filters)) == ["bob"]

    def test_rows_not_modified(self, people):
        snapshot = [dict(row) for row in people]

        filter_rows(people, [FilterPredicate("age", "gt", "30")])
        sort_rows(people, SortSpec("name", "desc"))

        assert people == snapshot


class TestSearchRows:

    def test_search_selected_columns(self, people):
        assert names(search_rows(people, "LY", ["name", "city"])) == ["bob"]

    def test_search_ignores_unselected_columns(self, people):
        assert search_rows(people, "paris", ["name"]) == []

    def test_empty_term_keeps_rows(self, people):
        assert search_rows(people, "", ["name"]) == people


class TestSortRows:

    def test_case_insensitive(self):
        rows = [{"v": "b"}, {"v": "A"}, {"v": "c"}]

        assert [row["v"] for row in sort_rows(rows, SortSpec("v"))] == ["A", "b", "c"]
        assert [row["v"] for row in sort_rows(rows, SortSpec("v", "desc"))] == ["c", "b", "A"]

    def test_numbers_before_text_and_nulls_last(self):
        rows = [{"v": None}, {"v": "a"}, {"v": 10}, {}, {"v": 2}]

        result = sort_rows(rows, SortSpec("v"))

        assert [row.get("v") for row in result[:3]] == [2, 10, "a"]
        assert [row.get("v") for row in result[3:]] == [None, None]

    def test_ties_keep_order(self):
        rows = [{"v": "a", "i": 1}, {"v": "A", "i": 2}, {"v": "a", "i": 3}]

        assert [row["i"] for row in sort_rows(rows, SortSpec("v"))] == [1, 2, 3]

    def test_no_sort(self, people):
        assert sort_rows(people, None) == people

    def test_toggle_sort(self):
        first = toggle_sort(None, "name")
        second = toggle_sort(first, "name")
        third = toggle_sort(second, "age")

        assert first == SortSpec("name", "asc")
        assert second == SortSpec("name", "desc")
        assert third == SortSpec("age", "asc")


class TestColumns:

    def test_union_and_order(self):
        rows = [{"b": 1, "Key2": 1, "a_Index": 0}, {"Key10": 1, "A": 2, "Key1": 3}]

        assert collect_columns(rows) == ["a_Index", "Key1", "Key2", "Key10", "A", "b"]

    def test_union_covers_every_row(self):
        assert collect_columns([{"a": 1}, {"b": 2}, {"c": 3}]) == ["a", "b", "c"]


class TestBuildView:

    def test_simple_view(self, people):
        result = NormalizationResult(parent=Table(name="json_data", rows=people))

        view = build_view(
            result,
            filters=[FilterPredicate("age", "gt", "20")],
            sort=SortSpec("name", "desc"),
        )

        assert view.columns == ["active", "age", "city", "name"]
        assert names(view.rows) == ["Dan", "bob", "Alice"]

    def test_selected_columns_limit_search(self, people):
        result = NormalizationResult(parent=Table(name="json_data", rows=people))

        view = build_view(result, search="lyon", columns=["name"])

        assert view.columns == ["name"]
        assert view.rows == []

    def test_filter_propagates_from_children(self, hierarchical_result):
        view = build_view(hierarchical_result, filters=[FilterPredicate("value", "equals", "z")])

        assert names(view.rows) == ["Bob"]

    def test_search_propagates_from_children(self, hierarchical_result):
        view = build_view(hierarchical_result, search="ADMIN")

        assert names(view.rows) == ["Alice"]

    def test_parent_match_without_children(self, hierarchical_result):
        view = build_view(hierarchical_result, filters=[FilterPredicate("name", "equals", "alice")])

        assert names(view.rows) == ["Alice"]


class TestFormatCellValue:

    def test_values(self):
        assert format_cell_value(None) == ""
        assert format_cell_value(True) == "true"
        assert format_cell_value({"a": 1}) == '{"a": 1}...'
        assert format_cell_value("x" * 300) == "x" * 200

    def test_long_object_truncated(self):
        formatted = format_cell_value({"key": "v" * 100})

        assert len(formatted) == 53
        assert formatted.endswith("...")
