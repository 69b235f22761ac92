"""
Constants configuration for document normalization.

This module defines configuration constants used across the normalization
pipeline, the table view engine and the SQL query engine.

Usage Patterns:
    - Leaf paths: {"Profile": [{"Meters": {"Meter": [...]}}]}
      → Profile[0].Meters.Meter[1].Service
    - Single-root column names: Profiles.Profile[0].Meters.Meter[1].Service
      → Profile.Meters.Meter.Service
    - Grouped rows: {"items": [{"id": 1}]} → {"items_Index": 0, "item.id": 1}
"""
import os

# Delimiter used between object keys in leaf paths and column names
# Example: {"user": {"name": "John"}} becomes "user.name"
PATH_DELIMITER = "."

# Array index notation used in leaf paths
# Example: {"tags": ["a", "b"]} becomes "tags[0]", "tags[1]"
INDEX_OPEN = "["
INDEX_CLOSE = "]"

# Suffixes appended to a collection name by the grouped normalizer
# Example: {"items": ["a"]} becomes {"items_Index": 0, "items_Value": "a"}
INDEX_COLUMN_SUFFIX = "_Index"
VALUE_COLUMN_SUFFIX = "_Value"

# Column holding the whole document when nothing else could be tabulated
FALLBACK_VALUE_COLUMN = "Value"

# Prefix of the disambiguating columns emitted for multi-root leaf sets
# Example: Key1, Key2, ...
KEY_COLUMN_PREFIX = "Key"

# Synthetic identifiers of the hierarchical decomposition
ID_COLUMN = "_id"
PARENT_ID_COLUMN = "_parent_id"

# Column used for scalar elements of a child collection
CHILD_VALUE_COLUMN = "value"

# Table names
DEFAULT_PARENT_TABLE = "parent"
SIMPLE_TABLE_NAME = "json_data"
BARE_ARRAY_CHILD_KEY = "items"

# Prefix of the temporary tables a load writes before replacing the loaded ones
STAGING_PREFIX = "_loading_"

# Display modes
DISPLAY_MODE_GROUPED = "grouped"
DISPLAY_MODE_FLATTENED = "flattened"
DISPLAY_MODES = (DISPLAY_MODE_GROUPED, DISPLAY_MODE_FLATTENED)

# Delimiters tried on the header line of delimited text, in order of preference
CSV_DELIMITERS = (",", "\t", ";")

# Key of the collection produced from delimited text
CSV_DATA_KEY = "data"

# SQL storage types inferred per column
SQL_TYPE_NUMERIC = "NUMERIC"
SQL_TYPE_BOOLEAN = "BOOLEAN"
SQL_TYPE_TEXT = "TEXT"

# Number of non-null values inspected per column when inferring a SQL type
TYPE_SAMPLE_SIZE = 100

# Number of rows returned as sample data when a table is loaded
SAMPLE_ROWS = 5

# Cell formatting limits
MAX_CELL_LENGTH = 200
MAX_OBJECT_PREVIEW_LENGTH = 50

# SQLite location for the query engine; ":memory:" keeps every load private
DB_PATH = os.environ.get("QUERYJSON_DB_PATH", ":memory:")
