"""Exception types raised by the normalization core.

Structural ambiguity and invalid regex filters are not errors; they degrade to
fallback rows and no-op filters respectively.
"""


class DocumentParseError(ValueError):
    """Input text could not be parsed as JSON, XML or delimited data."""


class QueryExecutionError(Exception):
    """A SQL query against the loaded tables failed."""


class PathQueryError(Exception):
    """A path expression could not be evaluated against the document."""
