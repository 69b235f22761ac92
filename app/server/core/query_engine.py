"""
SQL access to normalized tables.

Loads every table of a NormalizationResult into SQLite with a storage type
inferred per column, then runs arbitrary queries against them. Query failures
are reported as QueryExecutionError and leave the loaded tables intact.
"""
import json
import logging
import re
import sqlite3
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .constants import (
    DB_PATH,
    ID_COLUMN,
    PARENT_ID_COLUMN,
    SAMPLE_ROWS,
    SIMPLE_TABLE_NAME,
    SQL_TYPE_BOOLEAN,
    SQL_TYPE_NUMERIC,
    SQL_TYPE_TEXT,
    STAGING_PREFIX,
    TYPE_SAMPLE_SIZE,
)
from .errors import QueryExecutionError
from .models import NormalizationResult, Table
from .sql_security import (
    SQLSecurityError,
    execute_query_safely,
    quote_identifier,
    validate_identifier,
)

logger = logging.getLogger(__name__)


def sanitize_table_name(table_name: str) -> str:
    """
    Sanitize table name for SQLite by removing/replacing bad characters
    and validating against SQL injection
    """
    # Replace bad characters with underscores
    sanitized = re.sub(r'[^a-zA-Z0-9_]', '_', str(table_name))

    # Ensure it starts with a letter or underscore
    if sanitized and not sanitized[0].isalpha() and sanitized[0] != '_':
        sanitized = '_' + sanitized

    # Ensure it's not empty
    if not sanitized:
        sanitized = 'data'

    # Validate the sanitized name
    try:
        validate_identifier(sanitized, "table")
    except SQLSecurityError:
        # Reserved words and oversized names get a safe variant
        sanitized = f"{sanitized[:100]}_table"

    return sanitized


def infer_sql_type(values: Iterable[Any]) -> str:
    """
    Infer a column's storage type from a sample of its values.

    NUMERIC if any sampled value is a number, else BOOLEAN if any is a
    boolean, else TEXT. Nulls are not sampled.
    """
    sample = []
    for value in values:
        if value is None:
            continue
        sample.append(value)
        if len(sample) >= TYPE_SAMPLE_SIZE:
            break

    if any(isinstance(v, (int, float)) and not isinstance(v, bool) for v in sample):
        return SQL_TYPE_NUMERIC
    if any(isinstance(v, bool) for v in sample):
        return SQL_TYPE_BOOLEAN
    return SQL_TYPE_TEXT


def sql_column_names(columns: Iterable[str]) -> List[str]:
    """
    SQLite column names for ``columns``, in order.

    SQLite compares column names case-insensitively, so a name equal to an
    earlier one ignoring case gets a numeric suffix (``id``, ``ID`` ->
    ``id``, ``ID_2``).
    """
    seen = set()
    names = []
    for column in columns:
        column = str(column)
        candidate = column
        suffix = 2
        while candidate.lower() in seen:
            candidate = f"{column}_{suffix}"
            suffix += 1
        seen.add(candidate.lower())
        names.append(candidate)
    return names


def infer_column_types(table: Table) -> Dict[str, str]:
    """Storage type per SQLite column name of ``table``."""
    columns = table.columns
    return {
        name: infer_sql_type(row.get(column) for row in table.rows)
        for column, name in zip(columns, sql_column_names(columns))
    }


def build_create_table_sql(table: Table, table_name: Optional[str] = None) -> str:
    """CREATE TABLE statement with one typed, quoted column per table column."""
    name = table_name or sanitize_table_name(table.name)
    column_types = infer_column_types(table)
    columns = ", ".join(
        f"{quote_identifier(column)} {sql_type}" for column, sql_type in column_types.items()
    )
    return f"CREATE TABLE {quote_identifier(name)} ({columns})"


def build_insert_sql(table: Table, table_name: Optional[str] = None) -> str:
    """Parameterized INSERT statement covering every table column."""
    name = table_name or sanitize_table_name(table.name)
    columns = sql_column_names(table.columns)
    column_list = ", ".join(quote_identifier(column) for column in columns)
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {quote_identifier(name)} ({column_list}) VALUES ({placeholders})"


def _storable(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


def table_to_dataframe(table: Table) -> pd.DataFrame:
    columns = table.columns
    records = [[_storable(row.get(column)) for column in columns] for row in table.rows]
    return pd.DataFrame(records, columns=sql_column_names(columns))


def _unique_name(name: str, used: set) -> str:
    candidate = name
    suffix = 2
    while candidate in used:
        candidate = f"{name}_{suffix}"
        suffix += 1
    return candidate


def sql_tables(result: NormalizationResult) -> List[Tuple[Table, str]]:
    """
    The tables of ``result`` that are stored in SQLite, with their SQL names.

    A non-hierarchical result is stored as ``json_data``; a hierarchical one
    as its parent table plus every child table. Tables without rows are not
    stored, and names clashing after sanitizing get ``_2``, ``_3``, ...
    """
    if not result.is_hierarchical:
        return [(result.parent, SIMPLE_TABLE_NAME)] if result.parent.rows else []

    stored = []
    used = set()
    for table in result.tables:
        if not table.rows:
            continue
        name = _unique_name(sanitize_table_name(table.name), used)
        used.add(name)
        stored.append((table, name))
    return stored


def suggest_join_queries(result: NormalizationResult) -> List[str]:
    """Example joins between the parent table and its first stored child tables."""
    if not result.is_hierarchical:
        return []

    names = {id(table): name for table, name in sql_tables(result)}
    parent = names.get(id(result.parent))
    children = [names[id(child)] for child in result.children if id(child) in names]
    if parent is None or not children:
        return []

    link = f"p.{ID_COLUMN} = c{{n}}.{PARENT_ID_COLUMN}"
    queries = [f"SELECT * FROM {parent} p JOIN {children[0]} c1 ON {link.format(n=1)}"]
    if len(children) > 1:
        queries.append(
            f"SELECT p.*, c1.*, c2.* FROM {parent} p "
            f"JOIN {children[0]} c1 ON {link.format(n=1)} "
            f"JOIN {children[1]} c2 ON {link.format(n=2)}"
        )
    return queries


class QueryEngine:
    """
    SQLite database holding the tables of the most recent normalization.

    Each ``load`` replaces the previously loaded tables, so the database
    always mirrors exactly one NormalizationResult. A load that fails leaves
    the previous tables in place.
    """

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.loaded_tables: List[str] = []

    def close(self) -> None:
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def load(self, result: NormalizationResult) -> List[Dict[str, Any]]:
        """
        Replace the database contents with the tables of ``result``.

        The new tables are first written under staging names; the previous
        tables are dropped only once every new table has been written.

        Returns:
            One summary per loaded table: table_name, schema, row_count,
            sample_data and the CREATE TABLE statement (ddl)

        Raises:
            QueryExecutionError: if a table cannot be written; the previously
                loaded tables are kept
        """
        stored = sql_tables(result)
        staged = []
        try:
            for position, (table, _) in enumerate(stored):
                staging_name = f"{STAGING_PREFIX}{position}"
                staged.append(staging_name)
                self._write_table(table, staging_name)
        except (sqlite3.Error, ValueError, pd.errors.DatabaseError) as e:
            self._drop_tables(staged)
            raise QueryExecutionError(f"Load error: {str(e)}") from e

        self.drop_loaded_tables()
        summaries = []
        for (table, name), staging_name in zip(stored, staged):
            self._drop_tables([name])
            execute_query_safely(
                self.conn,
                "ALTER TABLE {staging} RENAME TO {table}",
                identifier_params={'staging': staging_name, 'table': name}
            )
            self.loaded_tables.append(name)
            summary = self.describe_table(name)
            summary['ddl'] = build_create_table_sql(table, name)
            summary['type'] = table.kind
            summaries.append(summary)
        self.conn.commit()

        logger.debug("Loaded %d tables into %s", len(summaries), self.db_path)
        return summaries

    def _write_table(self, table: Table, table_name: str) -> None:
        df = table_to_dataframe(table)
        df.to_sql(
            table_name, self.conn, if_exists='replace', index=False, dtype=infer_column_types(table)
        )

    def _drop_tables(self, table_names: Iterable[str]) -> None:
        for table_name in table_names:
            execute_query_safely(
                self.conn,
                "DROP TABLE IF EXISTS {table}",
                identifier_params={'table': table_name}
            )
        self.conn.commit()

    def drop_loaded_tables(self) -> None:
        self._drop_tables(self.loaded_tables)
        self.loaded_tables = []

    def describe_table(self, table_name: str) -> Dict[str, Any]:
        # Get schema information using safe query execution
        cursor_info = execute_query_safely(
            self.conn,
            "PRAGMA table_info({table})",
            identifier_params={'table': table_name}
        )
        columns_info = cursor_info.fetchall()

        schema = {}
        for col in columns_info:
            schema[col[1]] = col[2]  # column_name: data_type

        # Get sample data using safe query execution
        cursor_sample = execute_query_safely(
            self.conn,
            "SELECT * FROM {table} LIMIT ?",
            params=(SAMPLE_ROWS,),
            identifier_params={'table': table_name}
        )
        sample_rows = cursor_sample.fetchall()
        column_names = [col[1] for col in columns_info]
        sample_data = [dict(zip(column_names, row)) for row in sample_rows]

        # Get row count using safe query execution
        cursor_count = execute_query_safely(
            self.conn,
            "SELECT COUNT(*) FROM {table}",
            identifier_params={'table': table_name}
        )
        row_count = cursor_count.fetchone()[0]

        return {
            'table_name': table_name,
            'schema': schema,
            'row_count': row_count,
            'sample_data': sample_data
        }

    def execute(self, query: str) -> List[Dict[str, Any]]:
        """
        Run an arbitrary SQL statement and return its rows as dictionaries.

        Raises:
            QueryExecutionError: if the statement is empty or the database rejects it
        """
        if not query or not query.strip():
            raise QueryExecutionError("Please enter a SQL query")

        try:
            cursor = self.conn.execute(query)
            if cursor.description is None:
                self.conn.commit()
                return []
            columns = [description[0] for description in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except (sqlite3.Error, sqlite3.Warning) as e:
            raise QueryExecutionError(f"Query error: {e}") from e
