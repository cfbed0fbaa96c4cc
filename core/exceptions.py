"""
===========================================
Exception hierarchy for pg-test-util.
===========================================

Every error raised by the library derives from PgTestUtilError and carries
the name of the resource involved and the operation that was attempted.
The underlying driver error is always chained as ``__cause__``.

Classes:
    PgTestUtilError: Base class with resource/operation annotations
    ConfigurationError: Connection info cannot be resolved
    DatabaseConnectionError: Connect or disconnect failed (alias ConnectionError)
    QueryError: A statement or a statement sequence failed
    DisconnectedError: Query attempted on an explicitly disconnected handle
    FileError: SQL fixture file cannot be read
    OwnershipError: Drop of a resource this instance did not create
    AmbiguousDefaultError: Default database cannot be determined
    CopyError: Template copy failed at any step
    BatchError: One or more operations of a batch failed

Example:
    >>> from core.exceptions import OwnershipError
    >>> try:
    ...     util.drop_database('postgres')
    ... except OwnershipError as e:
    ...     print(e.resource, e.operation)
    postgres drop database
"""

from typing import List, Optional


class PgTestUtilError(Exception):
    """Base exception for all pg-test-util errors.

    Attributes:
        resource: Name of the database, role or file involved
        operation: Short description of the attempted operation
    """

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        operation: Optional[str] = None
    ):
        super().__init__(message)
        self.resource = resource
        self.operation = operation


class ConfigurationError(PgTestUtilError):
    """Raised when connection information is missing or unusable."""
    pass


class DatabaseConnectionError(PgTestUtilError):
    """Raised when connecting to or disconnecting from a database fails."""
    pass


# Public name used throughout the docs; the builtin is left untouched for importers
ConnectionError = DatabaseConnectionError


class QueryError(PgTestUtilError):
    """Raised when a SQL statement or a statement sequence fails."""
    pass


class DisconnectedError(QueryError):
    """Raised when a handle is queried after an explicit disconnect."""
    pass


class FileError(PgTestUtilError):
    """Raised when a SQL fixture file cannot be found or read."""
    pass


class OwnershipError(PgTestUtilError):
    """Raised when dropping a resource that was not created by this instance."""
    pass


class AmbiguousDefaultError(PgTestUtilError):
    """Raised when no default database can be determined."""
    pass


class CopyError(PgTestUtilError):
    """Raised when copying a database from a template fails."""
    pass


class BatchError(PgTestUtilError):
    """Raised when one or more operations of a batch failed.

    All operations of the batch were attempted before this is raised.

    Attributes:
        errors: Exceptions raised by the failed operations, in completion order
    """

    def __init__(
        self,
        message: str,
        errors: List[BaseException],
        operation: Optional[str] = None
    ):
        super().__init__(message, operation=operation)
        self.errors = list(errors)
