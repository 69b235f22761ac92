"""
JSONPath queries over the raw parsed document.

Matches are returned as table rows so they can be shown through the same
view and export helpers as normalized tables.
"""
import logging
from typing import Any, Dict, List

from jsonpath_ng.ext import parse as parse_jsonpath

from .document import NodeKind, kind_of
from .errors import PathQueryError

logger = logging.getLogger(__name__)


def evaluate_path_query(document: Any, expression: str) -> List[Dict[str, Any]]:
    """
    Evaluate a JSONPath expression and return its matches as rows.

    Args:
        document: The parsed document
        expression: A JSONPath expression such as ``$.users[*].name``

    Returns:
        Matches normalized by ``normalize_path_query_result``

    Raises:
        PathQueryError: if the expression is empty, malformed or cannot be
            evaluated against the document
    """
    if document is None:
        raise PathQueryError("No document loaded")

    expression = (expression or '').strip()
    if not expression:
        raise PathQueryError("Please enter a JSONPath query")

    try:
        matches = [match.value for match in parse_jsonpath(expression).find(document)]
    except Exception as e:
        raise PathQueryError(f"JSONPath query error: {str(e)}") from e

    logger.debug("Path query %r matched %d values", expression, len(matches))
    return normalize_path_query_result(matches)


def normalize_path_query_result(result: Any) -> List[Dict[str, Any]]:
    """
    Shape raw query matches into a list of row dictionaries.

    Examples:
        >>> normalize_path_query_result([])
        []

        >>> normalize_path_query_result({"id": 1})
        [{"id": 1}]

        >>> normalize_path_query_result(["a", {"id": 1}])
        [{"index": 0, "value": "a"}, {"id": 1}]

        >>> normalize_path_query_result(5)
        [{"value": 5}]
    """
    kind = kind_of(result)

    if kind is NodeKind.COLLECTION:
        if not result:
            return []
        if kind_of(result[0]) is NodeKind.OBJECT:
            return list(result)
        return [
            item if kind_of(item) is NodeKind.OBJECT else {'index': index, 'value': item}
            for index, item in enumerate(result)
        ]

    if kind is NodeKind.OBJECT:
        return [result]

    return [{'value': result}]
