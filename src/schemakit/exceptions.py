"""
Schema engine exception classes.
"""
import re
import sqlite3

import psycopg

RETRYABLE_PATTERNS = [
    # SSL/TLS errors
    r'ssl',
    r'tls',
    # Connection drops
    r'connection.*(closed|reset|refused|lost|terminated|broken)',
    r'server closed',
    r'broken pipe',
    # Timeouts
    r'timeout',
    r'timed out',
    # Network issues
    r'could not connect',
    r'no route to host',
    r'network.*(unreachable|error)',
    # Database unavailable
    r'database.*unavailable',
    r'too many connections',
]

ALREADY_EXISTS_PATTERNS = [
    r'already exists',
    r'there is already an object named',
    r'already has a primary key',
    r'duplicate column name',
    r'duplicate key name',
    r'multiple primary key defined',
    r'column names in each table must be unique',
    r'duplicate foreign key constraint name',
]

NOT_FOUND_PATTERNS = [
    r'does not exist',
    r'no such (table|index|view|column)',
    r'cannot drop the .* because it does not exist',
    r"can't drop .*; check that .* exists",
    r'is not a constraint',
    r'unknown table',
]

_RETRYABLE_REGEX = re.compile('|'.join(RETRYABLE_PATTERNS), re.IGNORECASE)
_ALREADY_EXISTS_REGEX = re.compile('|'.join(ALREADY_EXISTS_PATTERNS), re.IGNORECASE)
_NOT_FOUND_REGEX = re.compile('|'.join(NOT_FOUND_PATTERNS), re.IGNORECASE)


def _driver_message(exc: BaseException) -> str:
    """Return the message of the driver error behind a wrapped exception."""
    while isinstance(exc, DDLExecutionError) and exc.__cause__ is not None:
        exc = exc.__cause__
    return str(exc)


def is_retryable_error(exc: BaseException) -> bool:
    """Check if an exception represents a transient error worth retrying.

    :param exc: The exception to check.
    :returns: True if the error is likely transient and worth retrying.
    """
    return bool(_RETRYABLE_REGEX.search(_driver_message(exc)))


def is_already_exists_error(exc: BaseException) -> bool:
    """Check if a DDL failure reports that the object is already present.
    """
    return bool(_ALREADY_EXISTS_REGEX.search(_driver_message(exc)))


def is_not_found_error(exc: BaseException) -> bool:
    """Check if a DDL failure reports that the object is already gone.
    """
    return bool(_NOT_FOUND_REGEX.search(_driver_message(exc)))


class DatabaseError(Exception):
    """Base class for all schemakit errors.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining database connection.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class AmbiguousConnectionString(DatabaseError):
    """No client library could be selected for a connection string.
    """

    def __init__(self, provider_key: str, reason: str) -> None:
        self.provider_key = provider_key
        self.reason = reason
        super().__init__(f'Cannot resolve a client library for provider {provider_key!r}: {reason}')


class UnsupportedType(DatabaseError):
    """No conversion rule matched a type descriptor.
    """

    def __init__(self, dialect: str, descriptor: object) -> None:
        self.dialect = dialect
        self.descriptor = descriptor
        super().__init__(f'Type {descriptor} is not supported by dialect {dialect}')


class SchemaValidationError(ValidationError):
    """A schema model is structurally invalid.
    """


class DialectUnsupportedOperation(DatabaseError):
    """The dialect cannot express the requested operation.
    """

    def __init__(self, dialect: str, operation: str) -> None:
        self.dialect = dialect
        self.operation = operation
        super().__init__(f'{operation} is not supported by dialect {dialect}')


class DDLExecutionError(DatabaseError):
    """A statement failed on the server.

    The driver exception is chained as ``__cause__``.
    """

    def __init__(self, dialect: str, sql: str, message: str) -> None:
        self.dialect = dialect
        self.sql = sql
        super().__init__(f'[{dialect}] {message}\nSQL: {sql.strip()}')


class RebuildError(DatabaseError):
    """A SQLite table rebuild failed in the named phase.

    Phases: create, copy, drop, rename, index, verify.
    """

    def __init__(self, table: str, phase: str, message: str) -> None:
        self.table = table
        self.phase = phase
        super().__init__(f'Rebuild of {table} failed during {phase}: {message}')


class OperationCancelled(DatabaseError):
    """The caller cancelled the operation between statements.
    """


class NotAuthorized(DatabaseError):
    """The authorization hook denied an operation.
    """

    def __init__(self, operation: str, identity: object = None) -> None:
        self.operation = operation
        self.identity = identity
        super().__init__(f'Operation {operation!r} not authorized for {identity!r}')


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.InterfaceError,
    ConnectionFailure,
    )
