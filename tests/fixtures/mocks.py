"""
Mock connection utilities for schema engine tests.

Provides connections that need no database server:

- simple objects whose class module makes dialect detection work
- MagicMock connection wrappers for engine dispatch tests
- a recording connection that keeps every statement a strategy runs

Usage:
    def test_connection_detection(create_simple_mock_connection):
        pg_conn = create_simple_mock_connection('postgresql')

    def test_statements(recording_connection):
        cn = recording_connection('postgresql', failures={'ALTER': 'boom'})
"""
from contextlib import contextmanager

import pytest
from schemakit.connection import ConnectionWrapper


def _create_simple_mock_connection(connection_type='postgresql'):
    """
    Create a simple mock database connection with the specified connection type.

    Args:
        connection_type: Database type ('postgresql', 'sqlite', 'mssql', 'mysql', 'unknown')

    Returns
        Simple mock connection object that will pass type detection
    """
    class MockConn:
        def __init__(self):
            pass

    modules = {
        'postgresql': 'psycopg',
        'sqlite': 'sqlite3',
        'mssql': 'pyodbc',
        'mysql': 'pymysql.connections',
        'unknown': 'unknown_db',
    }

    conn = MockConn()
    conn.__class__.__module__ = modules[connection_type]
    conn.__class__.__qualname__ = 'Connection'
    conn.__class__.__name__ = 'Connection'
    return conn


@pytest.fixture
def create_simple_mock_connection():
    """
    Fixture that provides a factory function to create simple mock connections.

    Returns
        Factory function that creates mock connections of specified type
    """
    def factory(connection_type='postgresql'):
        return _create_simple_mock_connection(connection_type)

    return factory


@pytest.fixture
def mock_connection(mocker):
    """Factory for MagicMock connection wrappers of a given dialect."""
    def factory(dialect='sqlite'):
        cn = mocker.MagicMock(spec=ConnectionWrapper)
        cn.dialect = dialect
        cn.cancel_token = None
        cn.in_transaction = False
        return cn

    return factory


class _RecordingCursor:
    rowcount = 0
    description = None

    def fetchall(self):
        return []


class RecordingConnection:
    """Stand-in connection wrapper that records statements instead of running them.

    `failures` maps a statement prefix to the message of the error raised
    when a matching statement runs. `on_execute` is called with every
    statement after it is recorded.
    """

    def __init__(self, dialect='postgresql', failures=None, on_execute=None):
        self.dialect = dialect
        self.paramstyle = 'format'
        self.in_transaction = False
        self.cancel_token = None
        self.executed = []
        self.failures = failures or {}
        self.on_execute = on_execute

    @contextmanager
    def cursor(self, sql, params=None):
        self.executed.append(sql)
        if self.on_execute is not None:
            self.on_execute(sql)
        for prefix, message in self.failures.items():
            if sql.startswith(prefix):
                raise RuntimeError(message)
        yield _RecordingCursor()


@pytest.fixture
def recording_connection():
    """Factory for RecordingConnection objects."""
    def factory(dialect='postgresql', failures=None, on_execute=None):
        return RecordingConnection(dialect, failures, on_execute)

    return factory
