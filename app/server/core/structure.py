"""
Structure classification.

Decides how a document is converted into tables: array-free documents are
tabulated from their leaf paths, documents whose records expose more than one
sibling collection are decomposed into parent/child tables, and everything
else goes through the grouped normalizer.
"""
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .document import (
    NodeKind,
    collection_wrapper_member,
    has_collection_member,
    join_path,
    kind_of,
    unwrap_document,
)

ROOT_PATH = "root"


@dataclass(frozen=True)
class NestedCollection:
    path: str
    parent_path: str
    name: str
    depth: int


@dataclass
class StructureAnalysis:
    has_multiple_nested_arrays: bool = False
    root_array: Optional[str] = None
    nested_collections: List[NestedCollection] = field(default_factory=list)


def is_sibling_collection(value: Any) -> bool:
    """
    Check whether a record property counts as a sibling collection.

    A collection, a single-key wrapper around a collection, or an object with
    at least one collection-valued member all qualify.
    """
    kind = kind_of(value)
    if kind is NodeKind.COLLECTION:
        return True
    if kind is NodeKind.OBJECT:
        return collection_wrapper_member(value) is not None or has_collection_member(value)
    return False


def classify(document: Any) -> StructureAnalysis:
    """
    Analyze a document's nesting.

    A single-key envelope around a collection is skipped first. For a root
    collection the first element is inspected; more than one sibling
    collection on it marks the document as multi-collection. For a root object
    more than one collection-valued member does the same, at any depth.

    The call is pure: repeated calls on the same document return equal results.
    """
    wrapper_key, target = unwrap_document(document)
    return _analyze(target, '', 0, root_label=wrapper_key)


def _analyze(value: Any, path: str, depth: int, root_label: Optional[str] = None) -> StructureAnalysis:
    result = StructureAnalysis()
    kind = kind_of(value)

    if kind is NodeKind.COLLECTION:
        result.root_array = root_label or path or ROOT_PATH

        if not value or kind_of(value[0]) is not NodeKind.OBJECT:
            return result

        first = value[0]
        siblings = [key for key, member in first.items() if is_sibling_collection(member)]
        if len(siblings) > 1:
            result.has_multiple_nested_arrays = True

        for key, member in first.items():
            member_kind = kind_of(member)
            if member_kind is NodeKind.SCALAR:
                continue
            member_path = join_path(path, key)
            child = _analyze(member, member_path, depth + 1)
            result.nested_collections.extend(child.nested_collections)
            if member_kind is NodeKind.COLLECTION:
                result.nested_collections.append(
                    NestedCollection(member_path, path or ROOT_PATH, key, depth + 1)
                )

    elif kind is NodeKind.OBJECT:
        collection_members = [key for key, member in value.items() if kind_of(member) is NodeKind.COLLECTION]
        if len(collection_members) > 1:
            result.has_multiple_nested_arrays = True

        for key, member in value.items():
            if kind_of(member) is NodeKind.SCALAR:
                continue
            member_path = join_path(path, key)
            child = _analyze(member, member_path, depth + 1)
            if child.has_multiple_nested_arrays:
                result.has_multiple_nested_arrays = True
            result.nested_collections.extend(child.nested_collections)
            if child.root_array:
                result.nested_collections.append(
                    NestedCollection(member_path, path or ROOT_PATH, key, depth + 1)
                )

    return result


def detect_complex_structure(document: Any) -> bool:
    """Report whether the grouped route would decompose into parent/child tables."""
    return classify(document).has_multiple_nested_arrays
