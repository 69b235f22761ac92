import re
from typing import Any, Dict, Iterable, List, Tuple

from .constants import INDEX_COLUMN_SUFFIX, KEY_COLUMN_PREFIX

_KEY_COLUMN = re.compile(rf"^{KEY_COLUMN_PREFIX}(\d+)$")


def column_sort_key(column: str) -> Tuple[int, int, str, str]:
    """
    Sort key for the default column order.

    '_Index' columns come first, then 'KeyN' columns by number, then every
    other column alphabetically (case-insensitive).
    """
    if column.endswith(INDEX_COLUMN_SUFFIX):
        return 0, 0, column.casefold(), column
    key_match = _KEY_COLUMN.match(column)
    if key_match:
        return 1, int(key_match.group(1)), '', column
    return 2, 0, column.casefold(), column


def collect_columns(rows: Iterable[Dict[str, Any]]) -> List[str]:
    """
    Union the keys of all rows into the table's ordered column list.

    Rows of one table routinely have different key sets, so every row is
    scanned, not just the first one.
    """
    seen = set()
    for row in rows:
        if isinstance(row, dict):
            seen.update(row.keys())
    return sorted(seen, key=column_sort_key)
