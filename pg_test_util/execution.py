"""
Statement execution helpers shared by the control session and database handles.
"""

import re
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Connection, CursorResult

# SQLSTATE codes, see https://www.postgresql.org/docs/current/errcodes-appendix.html
DUPLICATE_OBJECT = '42710'

PASSWORD_PATTERN = re.compile(r"(PASSWORD\s+)'(?:[^']|'')*'", re.IGNORECASE)


def rows_of(result: CursorResult) -> List[Dict[str, Any]]:
    """Return result rows as plain dicts, or [] for statements without rows."""
    if not result.returns_rows:
        return []
    return [dict(row) for row in result.mappings()]


def execute_sql(connection: Connection, sql: str, params: Optional[Any] = None) -> List[Dict[str, Any]]:
    """Execute raw SQL through the driver and return its rows.

    Without params the statement is passed to the driver untouched, so
    literal percent signs in fixture files need no escaping.
    """
    if params is None:
        result = connection.exec_driver_sql(sql, execution_options={'no_parameters': True})
    else:
        result = connection.exec_driver_sql(sql, params)
    return rows_of(result)


def redact_sql(sql: str) -> str:
    """Mask password literals so SQL text can be logged.

    Example:
        >>> redact_sql("CREATE ROLE app LOGIN PASSWORD 'secret';")
        "CREATE ROLE app LOGIN PASSWORD '***';"
    """
    return PASSWORD_PATTERN.sub(r"\1'***'", sql)


def sqlstate_of(error: BaseException) -> Optional[str]:
    """SQLSTATE of a wrapped driver error (psycopg2 ``pgcode``, psycopg ``sqlstate``)."""
    original = getattr(error, 'orig', None) or error
    return getattr(original, 'pgcode', None) or getattr(original, 'sqlstate', None)


def describe_error(error: BaseException) -> str:
    """Driver message without SQLAlchemy's statement/background noise."""
    original = getattr(error, 'orig', None) or error
    return str(original).strip()
