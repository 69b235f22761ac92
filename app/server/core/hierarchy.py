"""
Hierarchical decomposition.

Turns a root collection whose records carry several sibling collections into
one parent table plus one child table per collection key. Rows are linked by
small integer keys: ``_id`` on every row and ``_parent_id`` on child rows.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from .constants import (
    BARE_ARRAY_CHILD_KEY,
    CHILD_VALUE_COLUMN,
    DEFAULT_PARENT_TABLE,
    ID_COLUMN,
    PARENT_ID_COLUMN,
)
from .document import NodeKind, collection_wrapper_member, kind_of, to_snake_case, unwrap_document
from .flattening import flatten_object_properties
from .models import TABLE_KIND_CHILD, TABLE_KIND_PARENT, NormalizationResult, Table
from .structure import StructureAnalysis

logger = logging.getLogger(__name__)


def find_root_collection(document: Any) -> Tuple[Optional[str], Optional[list], Any]:
    """
    Locate the collection that becomes the parent table.

    After unwrapping a single-key envelope, the root is the value itself when
    it is a collection, else the first collection-valued member, else the first
    collection found one level inside an object member.

    Returns:
        ``(key, collection, unwrapped_value)``; key and collection are None
        when no root collection exists.
    """
    wrapper_key, target = unwrap_document(document)
    kind = kind_of(target)

    if kind is NodeKind.COLLECTION:
        return wrapper_key, target, target

    if kind is NodeKind.OBJECT:
        for key, value in target.items():
            value_kind = kind_of(value)
            if value_kind is NodeKind.COLLECTION:
                return key, value, target
            if value_kind is NodeKind.OBJECT:
                for sub_key, sub_value in value.items():
                    if kind_of(sub_value) is NodeKind.COLLECTION:
                        return sub_key, sub_value, target

    return None, None, target


def split_record(record: Dict[str, Any], parent_row: Dict[str, Any]) -> Dict[str, list]:
    """
    Partition a record's properties into parent columns and child collections.

    Scalars are copied into ``parent_row``; collection-free sub-objects are
    flattened into it under the property name. Collections, single-key
    wrappers around collections and collection members of a sub-object are
    returned keyed by the name their child table is derived from.
    """
    child_collections: Dict[str, list] = {}

    for key, value in record.items():
        kind = kind_of(value)

        if kind is NodeKind.COLLECTION:
            _add_child_collection(child_collections, key, value)

        elif kind is NodeKind.OBJECT:
            wrapped = collection_wrapper_member(value)
            if wrapped is not None:
                _add_child_collection(child_collections, *wrapped)
                continue

            remaining = {}
            for sub_key, sub_value in value.items():
                if kind_of(sub_value) is NodeKind.COLLECTION:
                    _add_child_collection(child_collections, sub_key, sub_value)
                else:
                    remaining[sub_key] = sub_value
            if remaining:
                flatten_object_properties(remaining, str(key), parent_row)

        else:
            parent_row[key] = value

    return child_collections


def _add_child_collection(child_collections: Dict[str, list], key: str, items: list) -> None:
    if key in child_collections:
        child_collections[key] = list(child_collections[key]) + list(items)
    else:
        child_collections[key] = items


def build_child_row(child_id: int, parent_id: int, item: Any) -> Dict[str, Any]:
    """Child rows keep only the element's scalar top-level properties."""
    row = {ID_COLUMN: child_id, PARENT_ID_COLUMN: parent_id}
    kind = kind_of(item)
    if kind is NodeKind.OBJECT:
        for key, value in item.items():
            if kind_of(value) is NodeKind.SCALAR:
                row[key] = value
    elif kind is NodeKind.SCALAR:
        row[CHILD_VALUE_COLUMN] = item
    # synthetic keys win over same-named source properties
    row[ID_COLUMN] = child_id
    row[PARENT_ID_COLUMN] = parent_id
    return row


def decompose(document: Any, analysis: Optional[StructureAnalysis] = None) -> NormalizationResult:
    """
    Build one parent table and N child tables from a multi-collection document.

    Each element of the root collection becomes one parent row with the next
    sequential ``_id``. Its child collections are appended to child tables
    created on the first non-empty encounter and named after the snake-cased
    collection key; child ``_id`` values are sequential per child table.

    A document without a root collection degrades to a single parent row
    holding the whole (unwrapped) document and no children.
    """
    root_key, root_collection, unwrapped = find_root_collection(document)

    if not root_collection:
        logger.debug("No root collection found; using single-row parent table")
        row = dict(unwrapped) if kind_of(unwrapped) is NodeKind.OBJECT else {CHILD_VALUE_COLUMN: unwrapped}
        parent = Table(name=DEFAULT_PARENT_TABLE, rows=[row], kind=TABLE_KIND_PARENT)
        return NormalizationResult(parent=parent, analysis=analysis)

    parent_name = to_snake_case(root_key) if root_key else DEFAULT_PARENT_TABLE
    parent_rows: List[Dict[str, Any]] = []
    children: Dict[str, Table] = {}

    for parent_id, item in enumerate(root_collection):
        parent_row: Dict[str, Any] = {ID_COLUMN: parent_id}
        kind = kind_of(item)

        if kind is NodeKind.OBJECT:
            child_collections = split_record(item, parent_row)
        elif kind is NodeKind.COLLECTION:
            child_collections = {BARE_ARRAY_CHILD_KEY: item}
        else:
            parent_row[CHILD_VALUE_COLUMN] = item
            child_collections = {}

        parent_row[ID_COLUMN] = parent_id
        parent_rows.append(parent_row)

        for collection_key, items in child_collections.items():
            if not items:
                continue
            # keys that snake-case alike share one table
            child_name = to_snake_case(collection_key)
            child = children.get(child_name)
            if child is None:
                child = Table(
                    name=child_name,
                    kind=TABLE_KIND_CHILD,
                    source_key=collection_key,
                    parent_table=parent_name,
                )
                children[child_name] = child
            for child_item in items:
                child.rows.append(build_child_row(len(child.rows), parent_id, child_item))

    logger.debug(
        "Decomposed %d parent rows into %d child tables", len(parent_rows), len(children)
    )
    parent = Table(name=parent_name, rows=parent_rows, kind=TABLE_KIND_PARENT, source_key=root_key)
    return NormalizationResult(parent=parent, children=list(children.values()), analysis=analysis)
