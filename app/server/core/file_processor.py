import csv
import io
import json
import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Generator, List, Tuple, Union

import pandas as pd

from .constants import (
    CHILD_VALUE_COLUMN,
    CSV_DATA_KEY,
    CSV_DELIMITERS,
    DISPLAY_MODE_FLATTENED,
    DISPLAY_MODE_GROUPED,
    DISPLAY_MODES,
    FALLBACK_VALUE_COLUMN,
    SIMPLE_TABLE_NAME,
)
from .document import contains_collections
from .errors import DocumentParseError
from .flattening import flatten_to_leaf_paths, tabulate_paths
from .grouping import group_by_deepest_array
from .hierarchy import decompose
from .models import NormalizationResult, Table
from .structure import classify

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
_INTEGER = re.compile(r'^[+-]?\d+$')

PHASE_CLASSIFY = "classify"
PHASE_TABULATE = "tabulate"
PHASE_DECOMPOSE = "decompose"
PHASE_GROUP = "group"
PHASE_DONE = "done"


def parse_document(content: Union[str, bytes]) -> Any:
    """
    Parse raw input text into a document.

    The format is detected from the trimmed text: a leading '<' means XML,
    text not starting with '{' or '[' that contains a comma or a tab is
    delimited data, anything else is JSON.

    Args:
        content: The raw input, as text or UTF-8 bytes

    Returns:
        The parsed document (dicts, lists and scalars)

    Raises:
        DocumentParseError: if the input is empty or cannot be parsed in the
            detected format; the message names the format

    Examples:
        >>> parse_document('{"a": 1}')
        {"a": 1}

        >>> parse_document("name,age\\nAnn,31")
        {"data": [{"name": "Ann", "age": 31}]}

        >>> parse_document('<users><user id="1">Ann</user></users>')
        {"users": {"user": {"id": "1", "value": "Ann"}}}
    """
    if isinstance(content, bytes):
        try:
            content = content.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DocumentParseError(f"Invalid encoding: {str(e)}") from e

    text = content.strip()
    if not text:
        raise DocumentParseError("Input is empty")

    if text.startswith('<'):
        return parse_xml(text)

    if not text.startswith(('{', '[')) and (',' in text or '\t' in text):
        return parse_delimited(text)

    return parse_json(text)


def parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentParseError(f"Invalid JSON: {str(e)}") from e


def _local_name(tag: str) -> str:
    # "{namespace}name" -> "name"
    return tag.rsplit('}', 1)[-1] if tag.startswith('{') else tag


def _element_to_document(element: ET.Element) -> Any:
    """
    Convert one XML element into document form.

    Attributes become keys of the element's object. An element whose first
    content is text and that has no attributes becomes that text; otherwise
    non-blank text is stored under 'value'. Repeated child names collapse
    into a collection.
    """
    obj: Dict[str, Any] = {_local_name(name): value for name, value in element.attrib.items()}

    text = (element.text or '').strip()
    if text:
        if not obj:
            return text
        obj[CHILD_VALUE_COLUMN] = text

    for child in element:
        name = _local_name(child.tag)
        converted = _element_to_document(child)
        if name not in obj:
            obj[name] = converted
        else:
            if not isinstance(obj[name], list):
                obj[name] = [obj[name]]
            obj[name].append(converted)

        tail = (child.tail or '').strip()
        if tail:
            obj[CHILD_VALUE_COLUMN] = tail

    return obj


def parse_xml(text: str) -> Dict[str, Any]:
    """Parse XML text; the root element becomes the document's single key."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise DocumentParseError(f"Invalid XML: {str(e)}") from e
    return {_local_name(root.tag): _element_to_document(root)}


def detect_delimiter(header_line: str) -> str:
    """
    Pick the delimiter yielding the most fields on the header line.

    Ties go to the earlier entry of CSV_DELIMITERS (comma, tab, semicolon).
    """
    best, best_count = CSV_DELIMITERS[0], 0
    for delimiter in CSV_DELIMITERS:
        fields = next(csv.reader([header_line], delimiter=delimiter), [])
        if len(fields) > best_count:
            best, best_count = delimiter, len(fields)
    return best


def _coerce_number(value: str) -> Any:
    if not _NUMBER.match(value):
        return value
    if _INTEGER.match(value):
        return int(value)
    return float(value)


def parse_delimited(text: str) -> Dict[str, List[Dict[str, Any]]]:
    """
    Parse comma, tab or semicolon separated text into ``{"data": [rows]}``.

    Quoted fields with doubled quotes are honored, fields are trimmed, rows
    longer than the header are truncated, short rows are padded with empty
    strings, blank lines are skipped and numeric-looking fields become numbers.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise DocumentParseError("Invalid CSV: CSV data is empty")

    delimiter = detect_delimiter(lines[0])
    width = len(next(csv.reader([lines[0]], delimiter=delimiter)))

    try:
        df = pd.read_csv(
            io.StringIO('\n'.join(lines)),
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            engine='python',
            on_bad_lines=lambda bad_line: bad_line[:width],
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise DocumentParseError(f"Invalid CSV: {str(e)}") from e

    df.columns = [str(column).strip() for column in df.columns]
    df = df.fillna('').apply(lambda column: column.str.strip())
    df = df[(df != '').any(axis=1)]

    records = [
        {column: _coerce_number(value) for column, value in record.items()}
        for record in df.to_dict(orient='records')
    ]
    logger.debug("Parsed %d delimited rows using %r", len(records), delimiter)
    return {CSV_DATA_KEY: records}


def iter_normalization(
    document: Any,
    display_mode: str = DISPLAY_MODE_GROUPED,
) -> Generator[Tuple[str, Any], None, None]:
    """
    Normalize a document step by step.

    Yields ``(phase, payload)`` tuples so a host can interleave other work
    between the structural analysis and the table building:

    - ``("classify", StructureAnalysis)``
    - one of ``("tabulate", rows)``, ``("group", rows)`` or
      ``("decompose", tables)``
    - ``("done", NormalizationResult)``

    Documents without collections, and every document in flattened mode,
    are tabulated from their leaf paths. Documents with several sibling
    collections are decomposed into parent and child tables; the rest go
    through the grouped normalizer. The result is only built in the last step.

    Raises:
        ValueError: if ``display_mode`` is not a known display mode
    """
    if display_mode not in DISPLAY_MODES:
        raise ValueError(f"Unknown display mode: {display_mode}")

    analysis = classify(document)
    yield PHASE_CLASSIFY, analysis

    if display_mode == DISPLAY_MODE_FLATTENED or not contains_collections(document):
        logger.debug("Tabulating leaf paths (display mode %s)", display_mode)
        rows = tabulate_paths(flatten_to_leaf_paths(document))
        if not rows:
            rows = [{FALLBACK_VALUE_COLUMN: document}]
        yield PHASE_TABULATE, rows
        result = NormalizationResult(
            parent=Table(name=SIMPLE_TABLE_NAME, rows=rows),
            analysis=analysis,
            display_mode=display_mode,
        )

    elif analysis.has_multiple_nested_arrays:
        logger.debug("Multiple sibling collections found; decomposing into parent/child tables")
        decomposed = decompose(document, analysis)
        yield PHASE_DECOMPOSE, decomposed.tables
        result = NormalizationResult(
            parent=decomposed.parent,
            children=decomposed.children,
            analysis=analysis,
            display_mode=display_mode,
        )

    else:
        logger.debug("Single collection path; grouping by deepest collection")
        rows = group_by_deepest_array(document)
        yield PHASE_GROUP, rows
        result = NormalizationResult(
            parent=Table(name=SIMPLE_TABLE_NAME, rows=rows),
            analysis=analysis,
            display_mode=display_mode,
        )

    yield PHASE_DONE, result


def normalize_document(document: Any, display_mode: str = DISPLAY_MODE_GROUPED) -> NormalizationResult:
    """Run every normalization step and return the final result."""
    result = None
    for phase, payload in iter_normalization(document, display_mode):
        if phase == PHASE_DONE:
            result = payload
    return result


def process_text(content: Union[str, bytes], display_mode: str = DISPLAY_MODE_GROUPED) -> Tuple[Any, NormalizationResult]:
    """
    Parse raw input and normalize it.

    Returns:
        ``(document, result)``; the document is kept for path queries
    """
    document = parse_document(content)
    return document, normalize_document(document, display_mode)
