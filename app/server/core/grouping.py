"""
Grouped normalization: one row per element of the deepest collection.

Used for documents with a single chain of collections. Every row carries the
positional index of each ancestor collection (``<name>_Index``) plus the
flattened properties of its ancestors.
"""
import logging
from typing import Any, Dict, List

from .constants import FALLBACK_VALUE_COLUMN, INDEX_COLUMN_SUFFIX, VALUE_COLUMN_SUFFIX
from .document import NodeKind, contains_collections, kind_of, unwrap_document
from .flattening import flatten_object_properties
from .structure import is_sibling_collection

logger = logging.getLogger(__name__)


def group_by_deepest_array(document: Any) -> List[Dict[str, Any]]:
    """
    Produce one row per element of the deepest collection in ``document``.

    A single-key envelope around a collection is skipped, so the unwrapped
    collection is nameless and its index column is plain ``_Index``.
    Collection-free content of objects along the way is carried into every
    row below it. A document yielding no rows becomes one row holding the
    whole document under ``Value``.

    Examples:
        >>> group_by_deepest_array({"users": [{"id": 1}, {"id": 2}]})
        [{"_Index": 0, "id": 1}, {"_Index": 1, "id": 2}]

        >>> group_by_deepest_array({"orders": [{"id": 1, "lines": [{"sku": "a"}]}]})
        [{"_Index": 0, "id": 1, "lines_Index": 0, "line.sku": "a"}]
    """
    _, target = unwrap_document(document)
    rows = _group(target, '', {})
    if not rows:
        return [{FALLBACK_VALUE_COLUMN: document}]
    return rows


def _group(value: Any, array_name: str, context: Dict[str, Any]) -> List[Dict[str, Any]]:
    kind = kind_of(value)
    if kind is NodeKind.COLLECTION:
        return _group_collection(value, array_name, context)
    if kind is NodeKind.OBJECT:
        return _group_object(value, context)
    return []


def _group_collection(items: list, array_name: str, parent_context: Dict[str, Any]) -> List[Dict[str, Any]]:
    results = []
    index_column = f"{array_name}{INDEX_COLUMN_SUFFIX}"

    for index, item in enumerate(items):
        context = {**parent_context, index_column: index}
        kind = kind_of(item)

        if kind is NodeKind.OBJECT:
            row = dict(context)
            flatten_object_properties(item, '', row, array_name)
            nested = find_and_process_nested_arrays(item, row)
            if nested:
                results.extend(nested)
            else:
                results.append(row)

        elif kind is NodeKind.COLLECTION:
            results.extend(_group_collection(item, array_name, context))

        else:
            context[f"{array_name}{VALUE_COLUMN_SUFFIX}"] = item
            results.append(context)

    return results


def _group_object(obj: Dict[str, Any], parent_context: Dict[str, Any]) -> List[Dict[str, Any]]:
    if not contains_collections(obj):
        row = dict(parent_context)
        flatten_object_properties(obj, '', row)
        return [row]

    context = dict(parent_context)
    for key, value in obj.items():
        kind = kind_of(value)
        if kind is NodeKind.SCALAR:
            context[key] = value
        elif kind is NodeKind.OBJECT and not contains_collections(value):
            flatten_object_properties(value, str(key), context)

    results = []
    for key, value in obj.items():
        kind = kind_of(value)
        if kind is NodeKind.COLLECTION:
            results.extend(_group_collection(value, str(key), context))
        elif kind is NodeKind.OBJECT and contains_collections(value):
            results.extend(_group_object(value, context))
    return results


def find_and_process_nested_arrays(obj: Dict[str, Any], context: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Fan out the collections nested anywhere inside a collection element.

    Several unrelated collections inside one element are expanded one after
    the other, each row carrying the element's context; such documents are
    normally routed to the hierarchical decomposer instead.
    """
    siblings = [key for key, value in obj.items() if is_sibling_collection(value)]
    if len(siblings) > 1:
        logger.warning(
            "Element has %d sibling collections (%s); expanding each independently",
            len(siblings), ", ".join(str(key) for key in siblings),
        )

    results = []
    for key, value in obj.items():
        kind = kind_of(value)
        if kind is NodeKind.COLLECTION:
            results.extend(_group_collection(value, str(key), context))
        elif kind is NodeKind.OBJECT:
            results.extend(find_and_process_nested_arrays(value, context))
    return results
