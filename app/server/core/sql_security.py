"""
Identifier validation and safe statement execution for the SQLite query engine.

Table names are validated against a strict identifier pattern; column names
derived from document paths (``item.id``, ``Profile.Meters.Meter.Service``)
are always double-quoted instead.
"""
import re
import sqlite3
from typing import Any, Dict, Optional, Sequence

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
MAX_IDENTIFIER_LENGTH = 128

SQLITE_KEYWORDS = frozenset({
    'select', 'insert', 'update', 'delete', 'drop', 'create', 'alter', 'table',
    'from', 'where', 'join', 'union', 'order', 'group', 'by', 'index', 'into',
    'values', 'pragma', 'attach', 'detach', 'vacuum', 'trigger', 'view',
})


class SQLSecurityError(Exception):
    """An identifier or statement failed validation."""


def validate_identifier(name: str, kind: str = "identifier") -> str:
    """
    Validate a table identifier.

    Raises:
        SQLSecurityError: if the name is empty, too long, contains characters
            outside [A-Za-z0-9_], starts with a digit or is a SQL keyword
    """
    if not name:
        raise SQLSecurityError(f"Empty {kind} name")
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise SQLSecurityError(f"{kind.capitalize()} name too long: {name[:20]}...")
    if not _IDENTIFIER.match(name):
        raise SQLSecurityError(f"Invalid {kind} name: {name}")
    if name.lower() in SQLITE_KEYWORDS:
        raise SQLSecurityError(f"{kind.capitalize()} name is a reserved keyword: {name}")
    return name


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling embedded quotes."""
    escaped = str(name).replace('"', '""')
    return f'"{escaped}"'


def execute_query_safely(
    conn: sqlite3.Connection,
    query: str,
    params: Optional[Sequence[Any]] = None,
    identifier_params: Optional[Dict[str, str]] = None,
) -> sqlite3.Cursor:
    """
    Execute a statement whose ``{placeholders}`` are validated table identifiers.

    Examples:
        >>> execute_query_safely(conn, "SELECT COUNT(*) FROM {table}", identifier_params={'table': 'users'})
    """
    if identifier_params:
        quoted = {
            key: quote_identifier(validate_identifier(value, key))
            for key, value in identifier_params.items()
        }
        query = query.format(**quoted)
    return conn.execute(query, tuple(params or ()))
