"""
Table view engine: filtering, free-text search and sorting over normalized rows.

Views never modify stored rows; every call returns a new ordered list. For
hierarchical results a parent row is also kept when one of its child rows
matches, so filters and search propagate from children up to their parent.
"""
import json
import logging
import math
import re
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .columns import collect_columns
from .constants import MAX_CELL_LENGTH, MAX_OBJECT_PREVIEW_LENGTH, PARENT_ID_COLUMN
from .models import NormalizationResult, parent_id_of

logger = logging.getLogger(__name__)

OP_EQUALS = "equals"
OP_NOT_EQUALS = "notequals"
OP_CONTAINS = "contains"
OP_STARTS = "starts"
OP_ENDS = "ends"
OP_REGEX = "regex"
OP_IS_NULL = "isnull"
OP_IS_NOT_NULL = "isnotnull"
OP_GT = "gt"
OP_LT = "lt"
OP_GTE = "gte"
OP_LTE = "lte"

OPERATORS = (
    OP_EQUALS, OP_NOT_EQUALS, OP_CONTAINS, OP_STARTS, OP_ENDS, OP_REGEX,
    OP_IS_NULL, OP_IS_NOT_NULL, OP_GT, OP_LT, OP_GTE, OP_LTE,
)

# Operators that are skipped while their value is still empty
OPERATORS_NEEDING_VALUE = frozenset(OPERATORS) - {OP_IS_NULL, OP_IS_NOT_NULL}

SORT_ASC = "asc"
SORT_DESC = "desc"

_MISSING = object()


@dataclass(frozen=True)
class FilterPredicate:
    column: str = ''
    operator: str = ''
    value: str = ''


@dataclass(frozen=True)
class SortSpec:
    column: Optional[str] = None
    direction: str = SORT_ASC


@dataclass
class TableView:
    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)


def to_text(value: Any) -> str:
    """
    String coercion used by the string operators and search.

    Null and missing values become '', booleans 'true'/'false', integral
    floats drop their '.0'.
    """
    if value is None or value is _MISSING:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def to_number(value: Any) -> float:
    """Numeric coercion; anything without a numeric reading becomes NaN."""
    if value is None or value is _MISSING:
        return math.nan
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def is_null(value: Any) -> bool:
    return value is None or value is _MISSING or value == ''


def compile_predicate(predicate: FilterPredicate) -> Callable[[Any], bool]:
    """
    Build a value matcher for one filter predicate.

    Predicates without a column or operator, value-requiring operators with
    an empty value, unknown operators and invalid regex patterns all match
    every value.
    """
    operator = predicate.operator
    filter_value = '' if predicate.value is None else str(predicate.value)

    if not predicate.column or not operator:
        return lambda value: True
    if operator in OPERATORS_NEEDING_VALUE and filter_value == '':
        return lambda value: True

    needle = filter_value.lower()

    if operator == OP_EQUALS:
        return lambda value: to_text(value).lower() == needle
    if operator == OP_NOT_EQUALS:
        return lambda value: to_text(value).lower() != needle
    if operator == OP_CONTAINS:
        return lambda value: needle in to_text(value).lower()
    if operator == OP_STARTS:
        return lambda value: to_text(value).lower().startswith(needle)
    if operator == OP_ENDS:
        return lambda value: to_text(value).lower().endswith(needle)
    if operator == OP_REGEX:
        try:
            pattern = re.compile(filter_value, re.IGNORECASE)
        except re.error as e:
            logger.warning("Invalid regex pattern %r ignored: %s", filter_value, e)
            return lambda value: True
        return lambda value: pattern.search(to_text(value)) is not None
    if operator == OP_IS_NULL:
        return is_null
    if operator == OP_IS_NOT_NULL:
        return lambda value: not is_null(value)

    threshold = to_number(filter_value)
    if operator == OP_GT:
        return lambda value: to_number(value) > threshold
    if operator == OP_LT:
        return lambda value: to_number(value) < threshold
    if operator == OP_GTE:
        return lambda value: to_number(value) >= threshold
    if operator == OP_LTE:
        return lambda value: to_number(value) <= threshold

    logger.debug("Unknown filter operator %r ignored", operator)
    return lambda value: True


def _children_by_parent(result: Optional[NormalizationResult]) -> Dict[Any, List[Dict[str, Any]]]:
    index: Dict[Any, List[Dict[str, Any]]] = {}
    if result is None:
        return index
    for child in result.children:
        for row in child.rows:
            index.setdefault(row.get(PARENT_ID_COLUMN), []).append(row)
    return index


def filter_rows(
    rows: Sequence[Dict[str, Any]],
    filters: Iterable[FilterPredicate],
    children: Optional[Dict[Any, List[Dict[str, Any]]]] = None,
) -> List[Dict[str, Any]]:
    """
    Keep rows satisfying every predicate (logical AND).

    With ``children`` (parent id -> linked child rows), a row also satisfies a
    predicate when any linked child row has the column and matches it.
    """
    compiled = [(predicate.column, compile_predicate(predicate)) for predicate in filters]
    if not compiled:
        return list(rows)

    kept = []
    for position, row in enumerate(rows):
        linked = children.get(parent_id_of(row, position), []) if children else []
        if all(_matches_with_children(row, linked, column, matcher) for column, matcher in compiled):
            kept.append(row)
    return kept


def _matches_with_children(row, linked, column, matcher) -> bool:
    if matcher(row.get(column, _MISSING)):
        return True
    return any(column in child_row and matcher(child_row[column]) for child_row in linked)


def search_rows(
    rows: Sequence[Dict[str, Any]],
    term: str,
    columns: Sequence[str],
    children: Optional[Dict[Any, List[Dict[str, Any]]]] = None,
) -> List[Dict[str, Any]]:
    """
    Case-insensitive substring search over the selected columns.

    For hierarchical results a parent row also matches when any non-synthetic
    column of a linked child row contains the term.
    """
    if not term:
        return list(rows)
    needle = term.lower()

    kept = []
    for position, row in enumerate(rows):
        if any(needle in to_text(row.get(column, _MISSING)).lower() for column in columns):
            kept.append(row)
            continue
        linked = children.get(parent_id_of(row, position), []) if children else []
        if any(
            needle in to_text(value).lower()
            for child_row in linked
            for key, value in child_row.items()
            if not str(key).startswith('_')
        ):
            kept.append(row)
    return kept


def _compare_values(a: Any, b: Any) -> int:
    a_rank, a_value = _sort_rank(a)
    b_rank, b_value = _sort_rank(b)
    if a_rank != b_rank:
        return -1 if a_rank < b_rank else 1
    if a_value < b_value:
        return -1
    if a_value > b_value:
        return 1
    return 0


def _sort_rank(value: Any):
    if isinstance(value, bool):
        return 0, float(value)
    if isinstance(value, (int, float)) and not (isinstance(value, float) and math.isnan(value)):
        return 0, float(value)
    if isinstance(value, str):
        return 1, value.lower()
    if value is None or value is _MISSING or isinstance(value, float):
        return 3, 0
    return 2, to_text(value).lower()


def sort_rows(rows: Sequence[Dict[str, Any]], sort: Optional[SortSpec]) -> List[Dict[str, Any]]:
    """
    Sort rows by one column.

    Numbers order before text, text compares lowercased, null and missing
    values go last in ascending order. Ties keep their relative order.
    """
    if sort is None or not sort.column:
        return list(rows)
    column = sort.column
    key = cmp_to_key(lambda a, b: _compare_values(a.get(column, _MISSING), b.get(column, _MISSING)))
    return sorted(rows, key=key, reverse=sort.direction == SORT_DESC)


def toggle_sort(current: Optional[SortSpec], column: str) -> SortSpec:
    """Clicking the active column flips its direction; a new column starts ascending."""
    if current is not None and current.column == column:
        direction = SORT_DESC if current.direction == SORT_ASC else SORT_ASC
        return SortSpec(column, direction)
    return SortSpec(column, SORT_ASC)


def build_view(
    result: NormalizationResult,
    filters: Iterable[FilterPredicate] = (),
    search: str = '',
    sort: Optional[SortSpec] = None,
    columns: Optional[Sequence[str]] = None,
) -> TableView:
    """
    Filtered, searched and sorted view of a result's parent table.

    ``columns`` is the current column selection and order; it defaults to the
    union of all parent-row keys in the default order.
    """
    rows = result.parent.rows
    selected = list(columns) if columns is not None else collect_columns(rows)
    children = _children_by_parent(result) if result.is_hierarchical else None

    visible = filter_rows(rows, filters, children)
    visible = search_rows(visible, search, selected, children)
    visible = sort_rows(visible, sort)
    return TableView(columns=selected, rows=visible)


def format_cell_value(value: Any) -> str:
    """Display text for a cell: objects as truncated JSON, long text truncated."""
    if value is None:
        return ''
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)[:MAX_OBJECT_PREVIEW_LENGTH] + '...'
    return to_text(value)[:MAX_CELL_LENGTH]
