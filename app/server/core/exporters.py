"""
Text renderers for table views: CSV, JSON and GitHub-flavored Markdown.
"""
import csv
import json
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from .columns import collect_columns
from .table_view import to_text


def _resolve_columns(rows: Sequence[Dict[str, Any]], columns: Optional[Sequence[str]]):
    return list(columns) if columns is not None else collect_columns(rows)


def rows_to_csv(rows: Sequence[Dict[str, Any]], columns: Optional[Sequence[str]] = None) -> str:
    """
    Render rows as CSV with every field quoted.

    The header is the selected columns; missing and null cells are empty.

    Examples:
        >>> rows_to_csv([{"a": 1, "b": "x"}], ["a", "b"])
        '"a","b"\\n"1","x"\\n'
    """
    columns = _resolve_columns(rows, columns)
    records = [[to_text(row.get(column)) for column in columns] for row in rows]
    df = pd.DataFrame(records, columns=columns)
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator='\n')


def rows_to_json(rows: Sequence[Dict[str, Any]]) -> str:
    """Render rows as a 2-space indented JSON array."""
    return json.dumps(list(rows), indent=2, ensure_ascii=False)


def _markdown_cell(value: Any) -> str:
    if value is None:
        return ''
    return to_text(value).replace('|', '\\|').replace('\n', ' ')


def rows_to_markdown(rows: Sequence[Dict[str, Any]], columns: Optional[Sequence[str]] = None) -> str:
    """
    Render rows as a GitHub-flavored Markdown table.

    Pipes inside cells are escaped and newlines become spaces.
    """
    columns = _resolve_columns(rows, columns)
    lines = [
        '| ' + ' | '.join(columns) + ' |',
        '| ' + ' | '.join('---' for _ in columns) + ' |',
    ]
    for row in rows:
        lines.append('| ' + ' | '.join(_markdown_cell(row.get(column)) for column in columns) + ' |')
    return '\n'.join(lines) + '\n'
