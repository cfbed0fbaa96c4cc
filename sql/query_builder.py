"""
============================
SQL Query Builder Utilities.
============================

Quoting helpers and catalog queries used by the control session and the
per-database handles. All functions are pure and return SQL text; they
never touch a connection.

Quoting:
- quote_identifier: Quote a schema/table/database/role name
- quote_qualified: Quote a schema-qualified name
- quote_literal: Quote a string literal
- split_qualified_name: Split "schema"."name" text back into parts

Catalog queries:
- list_databases_sql: All databases on the server
- list_users_sql: All login roles on the server
- get_entities_sql: Tables, views, materialized views and partitioned tables
- get_sequences_sql: Columns whose default draws from a sequence
- parse_sequence_reference: Extract the sequence name from a column default

Catalog queries taking a schema list are written for pyformat parameters
(%(schemas)s), so literal percent signs inside them are doubled.

Usage:
    from sql.query_builder import get_entities_sql, quote_identifier

    sql = get_entities_sql()
    rows = connection.exec_driver_sql(sql, {'schemas': ['public']})
"""

import re
from typing import List, Optional, Tuple

NEXTVAL_PATTERN = re.compile(r"^nextval\('(?P<reference>(?:[^']|'')+)'::regclass\)$")
NAME_PART_PATTERN = re.compile(r'"(?:[^"]|"")*"|[^."]+')

# pg_class.relkind values
TABLE_KIND = 'r'
VIEW_KIND = 'v'
MATERIALIZED_VIEW_KIND = 'm'
PARTITIONED_TABLE_KIND = 'p'


def quote_identifier(name: str) -> str:
    """Quote an identifier, doubling embedded double quotes.

    Example:
        >>> quote_identifier('test-db')
        '"test-db"'
    """
    return '"' + name.replace('"', '""') + '"'


def quote_qualified(schema: Optional[str], name: str) -> str:
    """Quote a possibly schema-qualified name."""
    if schema:
        return f"{quote_identifier(schema)}.{quote_identifier(name)}"
    return quote_identifier(name)


def quote_literal(value: str) -> str:
    """Quote a string literal, doubling embedded single quotes.

    Example:
        >>> quote_literal("it's")
        "'it''s'"
    """
    return "'" + value.replace("'", "''") + "'"


def split_qualified_name(text: str) -> List[str]:
    """Split regclass-style text such as ``"My Schema".seq`` into unquoted parts."""
    parts = []
    for token in NAME_PART_PATTERN.findall(text):
        if token.startswith('"'):
            parts.append(token[1:-1].replace('""', '"'))
        else:
            parts.append(token)
    return parts


def parse_sequence_reference(column_default: Optional[str]) -> Optional[Tuple[Optional[str], str]]:
    """Extract the sequence referenced by a serial column default.

    Args:
        column_default: Column default such as ``nextval('member_id_seq'::regclass)``

    Returns:
        Tuple of (schema or None, sequence name), or None when the default
        does not draw from a sequence

    Example:
        >>> parse_sequence_reference("nextval('audit.member_id_seq'::regclass)")
        ('audit', 'member_id_seq')
    """
    if not column_default:
        return None

    match = NEXTVAL_PATTERN.match(column_default.strip())
    if not match:
        return None

    parts = split_qualified_name(match.group('reference').replace("''", "'"))
    if len(parts) == 1:
        return None, parts[0]
    if len(parts) == 2:
        return parts[0], parts[1]
    return None


def list_databases_sql() -> str:
    """SQL listing every database on the server."""
    return 'SELECT datname AS "name" FROM pg_catalog.pg_database ORDER BY datname;'


def list_users_sql() -> str:
    """SQL listing every login role on the server."""
    return 'SELECT u.usename AS "name" FROM pg_catalog.pg_user u ORDER BY u.usename;'


def get_entities_sql() -> str:
    """
    SQL returning tables, views, materialized views and partitioned tables.

    Expects a ``schemas`` parameter (list of schema names). Rows are ordered
    by schema, then name, and carry the pg_class relkind in ``kind``.
    """
    return f"""
SELECT n.nspname AS "schema", c.relname AS "name", c.relkind AS "kind"
FROM pg_catalog.pg_class c
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
WHERE c.relkind IN ('{TABLE_KIND}', '{VIEW_KIND}', '{MATERIALIZED_VIEW_KIND}', '{PARTITIONED_TABLE_KIND}')
  AND n.nspname::text = ANY(%(schemas)s)
ORDER BY n.nspname, c.relname;
"""


def get_sequences_sql() -> str:
    """
    SQL returning columns whose default calls nextval().

    Expects a ``schemas`` parameter. The raw default is returned in
    ``column_default`` and parsed with parse_sequence_reference().
    """
    return """
SELECT table_schema AS "schema", table_name AS "table",
       column_name AS "column", column_default AS "column_default"
FROM information_schema.columns
WHERE column_default LIKE 'nextval(%%'
  AND table_schema::text = ANY(%(schemas)s)
ORDER BY table_schema, table_name, column_name;
"""
