"""
Document model helpers.

A parsed document is plain Python data: scalars (str, int, float, bool, None),
lists and dicts. Every recursive walk in the core dispatches on ``kind_of``
instead of chaining isinstance checks.
"""
import re
from enum import Enum
from typing import Any, Optional, Tuple


class NodeKind(Enum):
    SCALAR = "scalar"
    COLLECTION = "collection"
    OBJECT = "object"


def kind_of(value: Any) -> NodeKind:
    """Classify a document node as a scalar, a collection or an object."""
    if isinstance(value, dict):
        return NodeKind.OBJECT
    if isinstance(value, (list, tuple)):
        return NodeKind.COLLECTION
    return NodeKind.SCALAR


def contains_collections(value: Any) -> bool:
    """
    Check whether a node is, or transitively contains, a collection.

    Collections nested inside collections are not inspected: the first list
    found anywhere under an object answers the question.

    Examples:
        >>> contains_collections({"a": {"b": [1]}})
        True

        >>> contains_collections({"a": {"b": 1}})
        False
    """
    kind = kind_of(value)
    if kind is NodeKind.COLLECTION:
        return True
    if kind is NodeKind.SCALAR:
        return False

    for member in value.values():
        member_kind = kind_of(member)
        if member_kind is NodeKind.COLLECTION:
            return True
        if member_kind is NodeKind.OBJECT and contains_collections(member):
            return True
    return False


def collection_wrapper_member(value: Any) -> Optional[Tuple[str, list]]:
    """
    Return ``(key, collection)`` when ``value`` is a single-key object whose
    only member is a collection, e.g. ``{"Meter": [...]}``.
    """
    if kind_of(value) is not NodeKind.OBJECT or len(value) != 1:
        return None
    key, member = next(iter(value.items()))
    if kind_of(member) is NodeKind.COLLECTION:
        return key, member
    return None


def has_collection_member(value: Any) -> bool:
    """Check whether an object has at least one collection-valued member."""
    if kind_of(value) is not NodeKind.OBJECT:
        return False
    return any(kind_of(member) is NodeKind.COLLECTION for member in value.values())


def unwrap_document(document: Any) -> Tuple[Optional[str], Any]:
    """
    Skip a single-key envelope object around a collection.

    The envelope is only removed when its value is a collection or contains
    one, so ``{"config": {"debug": true}}`` is left as is.

    Returns:
        ``(wrapper_key, inner_value)`` when unwrapped, ``(None, document)`` otherwise.
    """
    if kind_of(document) is not NodeKind.OBJECT or len(document) != 1:
        return None, document

    key, value = next(iter(document.items()))
    kind = kind_of(value)
    if kind is NodeKind.COLLECTION:
        return key, value
    if kind is NodeKind.OBJECT and contains_collections(value):
        return key, value
    return None, document


def to_snake_case(name: str) -> str:
    """
    Convert a camelCase or PascalCase key into a snake_case table name.

    Every capital letter starts a new word, so acronyms split per letter.

    Examples:
        >>> to_snake_case("MeterReading")
        'meter_reading'

        >>> to_snake_case("userID")
        'user_i_d'
    """
    snake = re.sub(r"([A-Z])", r"_\1", str(name)).lower()
    snake = re.sub(r"^_", "", snake)
    return re.sub(r"\s+", "_", snake)


def remove_plural_suffix(name: str) -> str:
    """Drop a trailing plural 's' (Meters -> Meter) from names longer than two characters."""
    if name.endswith("s") and len(name) > 2:
        return name[:-1]
    return name


def join_path(parent: str, key: str) -> str:
    return f"{parent}.{key}" if parent else key
