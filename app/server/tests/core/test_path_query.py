import pytest
from core.errors import PathQueryError
from core.path_query import evaluate_path_query, normalize_path_query_result


DOCUMENT = {
    "count": 2,
    "users": [
        {"id": 1, "name": "Alice", "tags": ["x", "y"]},
        {"id": 2, "name": "Bob", "tags": ["z"]},
    ],
}


class TestEvaluatePathQuery:

    def test_objects_returned_as_rows(self):
        assert evaluate_path_query(DOCUMENT, "$.users[*]") == DOCUMENT["users"]

    def test_single_object(self):
        assert evaluate_path_query(DOCUMENT, "$.users[0]") == [DOCUMENT["users"][0]]

    def test_scalars_become_index_value_rows(self):
        assert evaluate_path_query(DOCUMENT, "$.users[*].name") == [
            {"index": 0, "value": "Alice"},
            {"index": 1, "value": "Bob"},
        ]

    def test_single_scalar(self):
        assert evaluate_path_query(DOCUMENT, "$.count") == [{"index": 0, "value": 2}]

    def test_recursive_descent(self):
        rows = evaluate_path_query(DOCUMENT, "$..name")

        assert sorted(row["value"] for row in rows) == ["Alice", "Bob"]

    def test_no_matches(self):
        assert evaluate_path_query(DOCUMENT, "$.missing") == []

    def test_invalid_expression(self):
        with pytest.raises(PathQueryError) as exc_info:
            evaluate_path_query(DOCUMENT, "$.users[")

        assert "JSONPath query error" in str(exc_info.value)

    def test_empty_expression(self):
        with pytest.raises(PathQueryError) as exc_info:
            evaluate_path_query(DOCUMENT, "  ")

        assert "Please enter a JSONPath query" in str(exc_info.value)

    def test_no_document(self):
        with pytest.raises(PathQueryError):
            evaluate_path_query(None, "$")


class TestNormalizePathQueryResult:

    @pytest.mark.parametrize("result,expected", [
        ([], []),
        ([{"a": 1}, 5], [{"a": 1}, 5]),
        ({"a": 1}, [{"a": 1}]),
        (["x", {"a": 1}, None], [{"index": 0, "value": "x"}, {"a": 1}, {"index": 2, "value": None}]),
        ([[1, 2]], [{"index": 0, "value": [1, 2]}]),
        (5, [{"value": 5}]),
        (None, [{"value": None}]),
    ])
    def test_normalize(self, result, expected):
        assert normalize_path_query_result(result) == expected
