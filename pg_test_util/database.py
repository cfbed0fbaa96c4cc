"""
==================================================
Per-database handle for test databases.
==================================================

A Database wraps one target database: it runs queries and SQL fixture
files against it, caches its table and sequence inventory, truncates
tables between tests, and resets serial sequences after fixtures insert
rows with explicit ids.

Each handle owns its own SQLAlchemy engine (AUTOCOMMIT, pooled),
independent of the administrative control session. Once a handle has been
disconnected explicitly, every query operation fails fast with
DisconnectedError without touching the network.

Key Features:
    - Single statements or strictly sequential statement lists
    - SQL fixture files executed as one query
    - Cached inventory of tables, views, materialized and partitioned tables
    - One TRUNCATE ... RESTART IDENTITY for all tables (foreign-key safe)
    - Concurrent sequence synchronization

Example:
    >>> db = util.create_database(file='fixtures/schema.sql')
    >>> db.query("INSERT INTO member (name) VALUES ('Lisa')")
    []
    >>> db.truncate(ignore=['country'])
    >>> db.query('SELECT count(*) AS count FROM member')
    [{'count': 0}]
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.connection import ConnectionDescriptor
from core.exceptions import (
    DatabaseConnectionError,
    DisconnectedError,
    FileError,
    PgTestUtilError,
    QueryError,
)
from core.logger import get_logger
from pg_test_util.execution import describe_error, execute_sql, redact_sql
from sql.ddl import set_sequence_value_sql, truncate_tables_sql
from sql.query_builder import (
    MATERIALIZED_VIEW_KIND,
    PARTITIONED_TABLE_KIND,
    TABLE_KIND,
    VIEW_KIND,
    get_entities_sql,
    get_sequences_sql,
    parse_sequence_reference,
)

logger = get_logger(__name__)

DEFAULT_SCHEMA = 'public'
MAX_SEQUENCE_WORKERS = 8

Rows = List[Dict[str, Any]]


class ConnectionState(Enum):
    """Connection state of a Database handle."""

    DISCONNECTED = 'disconnected'
    CONNECTED = 'connected'
    EXPLICITLY_DISCONNECTED = 'explicitly-disconnected'


@dataclass(frozen=True)
class EntityInfo:
    """A table, view, materialized view or partitioned table."""

    schema: str
    name: str

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"


@dataclass(frozen=True)
class SequenceInfo:
    """A sequence feeding a serial column.

    Attributes:
        schema: Schema of the owning table
        table: Owning table
        column: Owning column
        name: Sequence name
        sequence_schema: Schema of the sequence (usually the table's schema)
    """

    schema: str
    table: str
    column: str
    name: str
    sequence_schema: str


@dataclass(frozen=True)
class _Inventory:
    tables: Tuple[EntityInfo, ...]
    views: Tuple[EntityInfo, ...]
    materialized_views: Tuple[EntityInfo, ...]
    partitioned_tables: Tuple[EntityInfo, ...]
    sequences: Tuple[SequenceInfo, ...]


class Database:
    """Handle for one database.

    Attributes:
        schemas: Schemas considered by inventory, truncate and sequence operations
    """

    def __init__(
        self,
        connection: ConnectionDescriptor,
        schemas: Sequence[str] = (DEFAULT_SCHEMA,),
        pre_error: Optional[Callable[[], None]] = None,
        drop: Optional[Callable[[], None]] = None
    ):
        """Initialize the handle without connecting.

        Args:
            connection: Descriptor of the target database
            schemas: Schemas to inspect (default: public only)
            pre_error: Callback run before any error is raised
            drop: Callback dropping this database (supplied by PgTestUtil)
        """
        self._connection = connection
        self.schemas = tuple(schemas)
        self._pre_error = pre_error or (lambda: None)
        self._drop = drop
        self._engine: Optional[Engine] = None
        self._state = ConnectionState.DISCONNECTED
        self._inventory: Optional[_Inventory] = None
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"<Database {self.name} {self._state.value}>"

    @property
    def name(self) -> str:
        """Database name."""
        return self._connection.database

    @property
    def connection(self) -> ConnectionDescriptor:
        """Connection descriptor of this database."""
        return self._connection

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def _fail(self, error: PgTestUtilError) -> PgTestUtilError:
        """Run the pre-failure hook and hand the error back for raising."""
        self._pre_error()
        return error

    # ---------- Connection ----------

    def connect(self) -> None:
        """Create the engine for this database. No-op if already connected.

        Connections are opened on demand, so this never touches the network.
        An explicit connect() is the only way to reuse a handle after
        disconnect().
        """
        with self._lock:
            if self._engine is None:
                self._engine = create_engine(
                    self._connection.url,
                    isolation_level='AUTOCOMMIT',
                    echo=False
                )
            self._state = ConnectionState.CONNECTED

    def disconnect(self) -> None:
        """Dispose the engine and mark the handle as explicitly disconnected.

        Safe to call repeatedly, including on a handle that never connected.

        Raises:
            DatabaseConnectionError: If closing pooled connections fails
        """
        with self._lock:
            engine, self._engine = self._engine, None
            self._state = ConnectionState.EXPLICITLY_DISCONNECTED

        if engine is None:
            return

        try:
            engine.dispose()
        except SQLAlchemyError as e:
            raise self._fail(DatabaseConnectionError(
                f"Cannot disconnect from '{self.name}' database",
                resource=self.name,
                operation='disconnect'
            )) from e
        logger.debug(f"Disconnected from {self.name}")

    def drop(self) -> None:
        """Drop this database through the PgTestUtil instance that created the handle."""
        if self._drop is None:
            raise self._fail(PgTestUtilError(
                f"'{self.name}' database handle has no owner to drop it",
                resource=self.name,
                operation='drop database'
            ))
        self._drop()

    def _ensure_usable(self) -> None:
        if self._state is ConnectionState.EXPLICITLY_DISCONNECTED:
            raise self._fail(DisconnectedError(
                "Database is explicitly disconnected by this library.",
                resource=self.name,
                operation='query'
            ))

    def _execute(self, sql: str, params: Optional[Any] = None) -> Rows:
        """Run one statement on a pooled connection.

        Raises:
            DatabaseConnectionError: If no connection can be opened
            SQLAlchemyError: If the statement fails
        """
        with self._lock:
            if self._state is ConnectionState.EXPLICITLY_DISCONNECTED:
                raise DisconnectedError(
                    "Database is explicitly disconnected by this library.",
                    resource=self.name,
                    operation='query'
                )
            if self._engine is None:
                self.connect()
            engine = self._engine

        try:
            connection = engine.connect()
        except SQLAlchemyError as e:
            raise DatabaseConnectionError(
                f"Cannot connect to '{self.name}' database: {describe_error(e)}",
                resource=self.name,
                operation='connect'
            ) from e

        with connection:
            logger.debug(f"[{self.name}] {redact_sql(sql)}")
            return execute_sql(connection, sql, params)

    def _run(self, sql: str, description: str, params: Optional[Any] = None) -> Rows:
        """Run one statement, converting failures to library errors."""
        self._ensure_usable()
        try:
            return self._execute(sql, params)
        except (DatabaseConnectionError, DisconnectedError) as e:
            raise self._fail(e)
        except SQLAlchemyError as e:
            raise self._fail(QueryError(
                f"Cannot {description} for '{self.name}' database: {describe_error(e)}",
                resource=self.name,
                operation=description
            )) from e

    # ---------- Queries ----------

    def query(
        self,
        sql: Union[str, Sequence[str]],
        params: Optional[Any] = None
    ) -> Union[Rows, List[Rows]]:
        """Execute SQL and return result rows.

        Args:
            sql: A statement, or a list of statements executed one after another
            params: Driver parameters for a single statement

        Returns:
            Rows as dicts; for a list, one row list per statement in input order

        Raises:
            DisconnectedError: If the handle was disconnected explicitly
            QueryError: If a statement fails; the first failing statement of a
                list stops the remaining ones
        """
        self._ensure_usable()

        if not sql:
            raise self._fail(QueryError(
                "Either 'sql' or 'file' parameter must be present.",
                resource=self.name,
                operation='query'
            ))

        if isinstance(sql, str):
            return self._run(sql, 'execute given query', params)

        if params is not None:
            raise TypeError("params are only supported for a single statement")

        results = []
        for statement in sql:
            # Later statements may depend on earlier ones; never run these concurrently
            results.append(self._run(statement, 'execute given query array'))
        return results

    def query_file(self, path: Union[str, Path]) -> Rows:
        """Read a SQL file and execute its whole content as one query.

        Raises:
            FileError: If the file cannot be found or read
            QueryError: If the SQL fails
        """
        try:
            sql = Path(path).read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise self._fail(FileError(
                f"Cannot execute given SQL file '{path}' for '{self.name}' database: {e}",
                resource=str(path),
                operation='read file'
            )) from e

        logger.debug(f"Executing SQL file {path} on {self.name}")
        return self.query(sql)

    # ---------- Inventory ----------

    def refresh(self) -> None:
        """Reload table, view and sequence inventory.

        The cached inventory is replaced only after the new one is complete.
        """
        params = {'schemas': list(self.schemas)}
        entity_rows = self._run(get_entities_sql(), 'get tables', params)
        sequence_rows = self._run(get_sequences_sql(), 'get sequences', params)

        by_kind = {TABLE_KIND: [], VIEW_KIND: [], MATERIALIZED_VIEW_KIND: [], PARTITIONED_TABLE_KIND: []}
        for row in entity_rows:
            by_kind[row['kind']].append(EntityInfo(schema=row['schema'], name=row['name']))

        sequences = []
        for row in sequence_rows:
            reference = parse_sequence_reference(row['column_default'])
            if reference is None:
                continue
            sequence_schema, sequence_name = reference
            sequences.append(SequenceInfo(
                schema=row['schema'],
                table=row['table'],
                column=row['column'],
                name=sequence_name,
                sequence_schema=sequence_schema or row['schema']
            ))

        inventory = _Inventory(
            tables=tuple(by_kind[TABLE_KIND]),
            views=tuple(by_kind[VIEW_KIND]),
            materialized_views=tuple(by_kind[MATERIALIZED_VIEW_KIND]),
            partitioned_tables=tuple(by_kind[PARTITIONED_TABLE_KIND]),
            sequences=tuple(sequences)
        )
        with self._lock:
            self._inventory = inventory

    def _get_inventory(self) -> _Inventory:
        if self._inventory is None:
            self.refresh()
        return self._inventory

    def get_tables(self) -> Tuple[EntityInfo, ...]:
        """Tables ordered by schema and name. Cached until refresh()."""
        return self._get_inventory().tables

    def get_views(self) -> Tuple[EntityInfo, ...]:
        """Views ordered by schema and name. Cached until refresh()."""
        return self._get_inventory().views

    def get_materialized_views(self) -> Tuple[EntityInfo, ...]:
        """Materialized views ordered by schema and name. Cached until refresh()."""
        return self._get_inventory().materialized_views

    def get_partitioned_tables(self) -> Tuple[EntityInfo, ...]:
        """Partitioned (parent) tables ordered by schema and name. Cached until refresh()."""
        return self._get_inventory().partitioned_tables

    def get_sequences(self) -> Tuple[SequenceInfo, ...]:
        """Sequences behind serial columns. Cached until refresh()."""
        return self._get_inventory().sequences

    # ---------- State reset ----------

    def sync_sequences(self) -> None:
        """Set every sequence to MAX(column) + 1, or 1 for empty tables.

        Use after fixtures insert rows with explicit ids. Sequences are
        updated concurrently.

        Raises:
            QueryError: If any update fails
        """
        sequences = self.get_sequences()
        self._ensure_usable()
        if not sequences:
            return

        statements = [
            set_sequence_value_sql(seq.sequence_schema, seq.name, seq.schema, seq.table, seq.column)
            for seq in sequences
        ]

        errors = []
        with ThreadPoolExecutor(max_workers=min(len(statements), MAX_SEQUENCE_WORKERS)) as executor:
            futures = [executor.submit(self._execute, statement) for statement in statements]
            for future in as_completed(futures):
                try:
                    future.result()
                except (SQLAlchemyError, DatabaseConnectionError, DisconnectedError) as e:
                    errors.append(e)

        if errors:
            raise self._fail(QueryError(
                f"Cannot update sequences from '{self.name}' database: {describe_error(errors[0])}",
                resource=self.name,
                operation='update sequences'
            )) from errors[0]

        logger.debug(f"Synchronized {len(sequences)} sequences in {self.name}")

    def truncate(self, ignore: Iterable[str] = ()) -> None:
        """Truncate all tables and restart their identity sequences.

        Args:
            ignore: Tables to keep, either 'table' (public schema) or 'schema.table'

        Raises:
            QueryError: If the TRUNCATE statement fails
        """
        if isinstance(ignore, str):
            ignore = [ignore]
        ignored = {name if '.' in name else f"{DEFAULT_SCHEMA}.{name}" for name in ignore}

        tables = [
            (table.schema, table.name)
            for table in self.get_tables()
            if table.qualified_name not in ignored
        ]
        if not tables:
            return

        self._run(truncate_tables_sql(tables), 'truncate tables')
        logger.debug(f"Truncated {len(tables)} tables in {self.name}")
