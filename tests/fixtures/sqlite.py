"""
SQLite connection fixtures.

Every test gets its own in-memory database; `sqlite_file_options` points at
a database file under the test's tmp_path for tests that open several
connections.
"""
import logging

import pytest
import schemakit

logger = logging.getLogger(__name__)


@pytest.fixture
def sqlite_conn():
    """In-memory SQLite connection with foreign keys enforced."""
    cn = schemakit.connect({'drivername': 'sqlite', 'database': ':memory:'})
    try:
        yield cn
    finally:
        cn.close()


@pytest.fixture
def sqlite_file_options(tmp_path):
    """Options of a file-based SQLite database removed with tmp_path."""
    db_file = tmp_path / 'schemakit_test.db'
    logger.debug(f'SQLite test database at {db_file}')
    return schemakit.DatabaseOptions(drivername='sqlite', database=str(db_file))
