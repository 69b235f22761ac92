from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .columns import collect_columns
from .constants import DISPLAY_MODE_GROUPED, ID_COLUMN, PARENT_ID_COLUMN
from .structure import StructureAnalysis

TABLE_KIND_SIMPLE = "simple"
TABLE_KIND_PARENT = "parent"
TABLE_KIND_CHILD = "child"


@dataclass
class Table:
    name: str
    rows: List[Dict[str, Any]] = field(default_factory=list)
    kind: str = TABLE_KIND_SIMPLE
    source_key: Optional[str] = None
    parent_table: Optional[str] = None

    @property
    def columns(self) -> List[str]:
        return collect_columns(self.rows)

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class NormalizationResult:
    """
    Every table derived from one document.

    The value is built once at the end of a normalization pass and replaced
    wholesale by the next one; views over it never modify its rows.
    """
    parent: Table
    children: List[Table] = field(default_factory=list)
    analysis: Optional[StructureAnalysis] = None
    display_mode: str = DISPLAY_MODE_GROUPED

    @property
    def rows(self) -> List[Dict[str, Any]]:
        return self.parent.rows

    @property
    def tables(self) -> List[Table]:
        return [self.parent] + list(self.children)

    @property
    def is_hierarchical(self) -> bool:
        return bool(self.children)

    def child_rows_for(self, parent_id: Any) -> Dict[str, List[Dict[str, Any]]]:
        """Child rows linked to one parent row, keyed by child table name."""
        linked = {}
        for child in self.children:
            rows = [row for row in child.rows if row.get(PARENT_ID_COLUMN) == parent_id]
            if rows:
                linked[child.name] = rows
        return linked

    def table_metadata(self) -> List[Dict[str, Any]]:
        metadata = []
        for table in self.tables:
            entry = {'name': table.name, 'rowCount': table.row_count, 'type': table.kind}
            if table.parent_table:
                entry['parentTable'] = table.parent_table
            metadata.append(entry)
        return metadata


def parent_id_of(row: Dict[str, Any], position: int) -> Any:
    """Row identifier used for child lookups; falls back to the row position."""
    return row.get(ID_COLUMN, position)
