"""
=======================================================================
Administrative SQL for test database lifecycle management.
=======================================================================

Pure functions generating the PostgreSQL statements issued by the control
session (database and role lifecycle) and by database handles (truncation
and sequence synchronization).

Functions:
    create_database_sql: Generate CREATE DATABASE (optionally from a template)
    copy_database_sql: Generate CREATE DATABASE ... TEMPLATE <source>
    drop_database_sql: Generate DROP DATABASE
    terminate_connections_sql: Terminate other sessions on a database
    create_role_sql: Generate CREATE ROLE ... LOGIN PASSWORD
    drop_role_sql: Generate DROP ROLE
    truncate_tables_sql: Generate one TRUNCATE covering several tables
    set_sequence_value_sql: Reset a sequence to MAX(column) + 1

Note:
    CREATE/DROP DATABASE cannot run inside a transaction block; callers
    execute these statements on AUTOCOMMIT connections.

Example:
    >>> from sql.ddl import create_database_sql, truncate_tables_sql
    >>>
    >>> create_database_sql('test-db-1', template='template0')
    'CREATE DATABASE "test-db-1" WITH ENCODING = \\'UTF8\\' TEMPLATE = "template0";'
    >>> truncate_tables_sql([('public', 'member'), ('public', 'organization')])
    'TRUNCATE "public"."member", "public"."organization" RESTART IDENTITY;'
"""

from typing import Iterable, Optional, Tuple

from sql.query_builder import quote_identifier, quote_literal, quote_qualified


def create_database_sql(
    database_name: str,
    template: Optional[str] = 'template0',
    encoding: Optional[str] = 'UTF8',
    lc_collate: Optional[str] = None,
    lc_ctype: Optional[str] = None,
    owner: Optional[str] = None
) -> str:
    """
    Generate CREATE DATABASE statement.

    Args:
        database_name: Name of the database to create
        template: Template database to copy (None for server default)
        encoding: Character encoding (None for template's encoding)
        lc_collate: Optional collation order
        lc_ctype: Optional character classification
        owner: Optional database owner

    Returns:
        SQL CREATE DATABASE statement
    """
    options = []

    if encoding:
        options.append(f"ENCODING = {quote_literal(encoding)}")
    if template:
        options.append(f"TEMPLATE = {quote_identifier(template)}")
    if lc_collate:
        options.append(f"LC_COLLATE = {quote_literal(lc_collate)}")
    if lc_ctype:
        options.append(f"LC_CTYPE = {quote_literal(lc_ctype)}")
    if owner:
        options.append(f"OWNER = {quote_identifier(owner)}")

    sql = f"CREATE DATABASE {quote_identifier(database_name)}"
    if options:
        sql += " WITH " + " ".join(options)

    return sql + ";"


def copy_database_sql(source: str, target: str) -> str:
    """
    Generate CREATE DATABASE statement copying an existing database.

    The source database must have no active connections while this runs.
    """
    return create_database_sql(target, template=source, encoding=None)


def drop_database_sql(
    database_name: str,
    if_exists: bool = True,
    force: bool = False
) -> str:
    """
    Generate DROP DATABASE statement.

    Args:
        database_name: Name of the database to drop
        if_exists: Add IF EXISTS clause
        force: Add WITH (FORCE) clause (PostgreSQL 13+)

    Returns:
        SQL DROP DATABASE statement
    """
    sql_parts = ["DROP DATABASE"]

    if if_exists:
        sql_parts.append("IF EXISTS")

    sql_parts.append(quote_identifier(database_name))

    if force:
        sql_parts.append("WITH (FORCE)")

    return " ".join(sql_parts) + ";"


def terminate_connections_sql(database_name: str) -> str:
    """
    Generate SQL to terminate all other sessions connected to a database.

    Args:
        database_name: Name of the database

    Returns:
        SQL calling pg_terminate_backend for every other backend
    """
    return f"""
SELECT pg_terminate_backend(pid)
FROM pg_stat_activity
WHERE datname = {quote_literal(database_name)}
  AND pid <> pg_backend_pid();
"""


def create_role_sql(role_name: str, password: str, login: bool = True) -> str:
    """
    Generate CREATE ROLE statement.

    Args:
        role_name: Name of the role
        password: Password assigned to the role
        login: Grant LOGIN

    Returns:
        SQL CREATE ROLE statement
    """
    login_clause = "LOGIN" if login else "NOLOGIN"
    return f"CREATE ROLE {quote_identifier(role_name)} {login_clause} PASSWORD {quote_literal(password)};"


def drop_role_sql(role_name: str, if_exists: bool = True) -> str:
    """Generate DROP ROLE statement."""
    sql = "DROP ROLE"
    if if_exists:
        sql += " IF EXISTS"
    return f"{sql} {quote_identifier(role_name)};"


def truncate_tables_sql(
    tables: Iterable[Tuple[str, str]],
    restart_identity: bool = True,
    cascade: bool = False
) -> str:
    """
    Generate a single TRUNCATE statement for several tables.

    All tables are truncated in one statement so that foreign keys between
    them are satisfied simultaneously.

    Args:
        tables: (schema, table) pairs
        restart_identity: Reset owned sequences
        cascade: Also truncate tables referencing the listed ones

    Returns:
        SQL TRUNCATE statement

    Raises:
        ValueError: If no table is given
    """
    table_list = ", ".join(quote_qualified(schema, table) for schema, table in tables)
    if not table_list:
        raise ValueError("At least one table is required for TRUNCATE")

    sql = f"TRUNCATE {table_list}"

    if restart_identity:
        sql += " RESTART IDENTITY"
    if cascade:
        sql += " CASCADE"

    return sql + ";"


def set_sequence_value_sql(
    sequence_schema: str,
    sequence: str,
    schema: str,
    table: str,
    column: str
) -> str:
    """
    Generate SQL resetting a sequence to MAX(column) + 1, or 1 for empty tables.

    The value is set with is_called = false, so the next nextval() returns it.

    Args:
        sequence_schema: Schema of the sequence
        sequence: Sequence name
        schema: Schema of the owning table
        table: Owning table
        column: Owning column

    Returns:
        SQL SELECT setval(...) statement
    """
    sequence_ref = quote_literal(quote_qualified(sequence_schema, sequence))
    column_ref = quote_identifier(column)
    table_ref = quote_qualified(schema, table)

    return (
        f"SELECT setval({sequence_ref}, "
        f"COALESCE((SELECT MAX({column_ref}) + 1 FROM {table_ref}), 1), false);"
    )
