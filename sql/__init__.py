"""
====================================================
SQL utilities package for pg-test-util.
====================================================

Pure SQL text construction, organized by statement type:
    - ddl.py: Database, role, truncate and sequence statements
    - query_builder.py: Quoting helpers and catalog queries

Example:
    >>> from sql.ddl import drop_database_sql
    >>> from sql.query_builder import list_databases_sql
    >>>
    >>> drop_database_sql('test-db-1')
    'DROP DATABASE IF EXISTS "test-db-1";'
"""

__version__ = "0.1.0"
__all__ = [
    # DDL functions
    'create_database_sql', 'copy_database_sql', 'drop_database_sql',
    'terminate_connections_sql', 'create_role_sql', 'drop_role_sql',
    'truncate_tables_sql', 'set_sequence_value_sql',
    # Query builders
    'quote_identifier', 'quote_literal', 'quote_qualified',
    'list_databases_sql', 'list_users_sql', 'get_entities_sql',
    'get_sequences_sql', 'parse_sequence_reference'
]

from .ddl import (
    copy_database_sql,
    create_database_sql,
    create_role_sql,
    drop_database_sql,
    drop_role_sql,
    set_sequence_value_sql,
    terminate_connections_sql,
    truncate_tables_sql,
)
from .query_builder import (
    get_entities_sql,
    get_sequences_sql,
    list_databases_sql,
    list_users_sql,
    parse_sequence_reference,
    quote_identifier,
    quote_literal,
    quote_qualified,
)
