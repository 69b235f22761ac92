import re
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    FALLBACK_VALUE_COLUMN,
    INDEX_CLOSE,
    INDEX_OPEN,
    KEY_COLUMN_PREFIX,
    PATH_DELIMITER,
)
from .document import NodeKind, kind_of, remove_plural_suffix

_SEGMENT_SPLIT = re.compile(r"\.|\[")
_INDEX_SEGMENT = re.compile(r"^\[\d+\]$")


def flatten_to_leaf_paths(obj: Any, parent_key: str = '') -> Dict[str, Any]:
    """
    Recursively flatten a document into a mapping of leaf paths to scalar values.

    Object keys are joined with '.', array elements are addressed with '[index]'.
    Null values are leaves and are kept; empty objects and arrays contribute
    nothing.

    Args:
        obj: The document to flatten (dict, list, or scalar)
        parent_key: The path of ``obj`` inside the root document (used in recursion)

    Returns:
        An ordered mapping of leaf path to scalar value

    Examples:
        >>> flatten_to_leaf_paths({"user": {"name": "John"}})
        {"user.name": "John"}

        >>> flatten_to_leaf_paths({"tags": ["a", "b"]})
        {"tags[0]": "a", "tags[1]": "b"}

        >>> flatten_to_leaf_paths(5)
        {"": 5}
    """
    kind = kind_of(obj)

    if kind is NodeKind.SCALAR:
        return {parent_key: obj}

    items: Dict[str, Any] = {}

    if kind is NodeKind.COLLECTION:
        for i, item in enumerate(obj):
            new_key = f"{parent_key}{INDEX_OPEN}{i}{INDEX_CLOSE}"
            items.update(flatten_to_leaf_paths(item, new_key))
        return items

    for key, value in obj.items():
        new_key = f"{parent_key}{PATH_DELIMITER}{key}" if parent_key else str(key)
        items.update(flatten_to_leaf_paths(value, new_key))
    return items


def split_leaf_path(path: str) -> List[str]:
    """
    Split a leaf path on '.' and '[' boundaries.

    Array indices are kept as their own bracketed segment.

    Examples:
        >>> split_leaf_path("Profile[0].Meters.Meter[1].ID")
        ['Profile', '[0]', 'Meters', 'Meter', '[1]', 'ID']
    """
    parts = []
    for part in _SEGMENT_SPLIT.split(path):
        if part.endswith(INDEX_CLOSE):
            part = f"{INDEX_OPEN}{part[:-1]}{INDEX_CLOSE}"
        if part:
            parts.append(part)
    return parts


def is_index_segment(segment: str) -> bool:
    return bool(_INDEX_SEGMENT.match(segment))


def _split_metric(path: str) -> Tuple[Tuple[str, ...], str]:
    parts = split_leaf_path(path)
    if not parts:
        return (), FALLBACK_VALUE_COLUMN
    return tuple(parts[:-1]), parts[-1]


def tabulate_paths(flat_paths: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Group leaf paths into rows and derive readable column names.

    Each path is split into a prefix and a final metric segment.

    - Array-free leaf sets become a single row keyed by the full dotted path.
    - Otherwise paths sharing a prefix form one row. When every path starts
      with the same root segment, the root and all '[n]' segments are dropped
      from the column name (``Profiles.Profile[0].Meters.Meter[1].Service``
      becomes ``Profile.Meters.Meter.Service``). With several roots the column
      is the bare metric and ``Key1..KeyN`` columns hold the raw prefix.

    Column names are not guaranteed unique per path: when two paths map to the
    same column in the same row the later value wins.

    Args:
        flat_paths: Mapping produced by ``flatten_to_leaf_paths``

    Returns:
        A list of row dictionaries in first-seen order
    """
    if not flat_paths:
        return []

    split_rows = [(_split_metric(path), value) for path, value in flat_paths.items()]

    indexed = any(
        is_index_segment(segment)
        for (prefix, metric), _ in split_rows
        for segment in prefix + (metric,)
    )
    if not indexed:
        row: Dict[str, Any] = {}
        for (prefix, metric), value in split_rows:
            row[PATH_DELIMITER.join(prefix + (metric,))] = value
        return [row]

    root_keys = {prefix[0] for (prefix, _), _ in split_rows if prefix}
    single_root = len(root_keys) == 1

    grouped: Dict[Tuple[str, ...], Dict[str, Any]] = {}
    for (prefix, metric), value in split_rows:
        if prefix not in grouped:
            grouped[prefix] = {}
            if not single_root:
                for i, segment in enumerate(prefix):
                    grouped[prefix][f"{KEY_COLUMN_PREFIX}{i + 1}"] = segment

        if single_root:
            meaningful = [segment for segment in prefix[1:] if not is_index_segment(segment)]
            meaningful.append(metric)
            column_name = PATH_DELIMITER.join(meaningful)
        else:
            column_name = metric

        grouped[prefix][column_name] = value

    return list(grouped.values())


def flatten_object_properties(
    obj: Dict[str, Any],
    prefix: str = '',
    row: Optional[Dict[str, Any]] = None,
    array_name: str = '',
) -> Dict[str, Any]:
    """
    Flatten the non-collection members of an object into ``row``.

    Nested objects are descended with dotted names; collections are skipped.
    Top-level members of an element of a named collection are namespaced
    under the singular collection name (``items`` -> ``item.id``).

    Examples:
        >>> flatten_object_properties({"a": 1, "b": {"c": 2}, "d": [3]})
        {"a": 1, "b.c": 2}

        >>> flatten_object_properties({"id": 7}, array_name="items")
        {"item.id": 7}
    """
    if row is None:
        row = {}

    for key, value in obj.items():
        if prefix:
            column_name = f"{prefix}{PATH_DELIMITER}{key}"
        elif array_name:
            column_name = f"{remove_plural_suffix(array_name)}{PATH_DELIMITER}{key}"
        else:
            column_name = str(key)

        kind = kind_of(value)
        if kind is NodeKind.OBJECT:
            flatten_object_properties(value, column_name, row, array_name)
        elif kind is NodeKind.SCALAR:
            row[column_name] = value

    return row
