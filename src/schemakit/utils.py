"""Low-level connection utilities with no internal dependencies.

These utilities work with any database connection type (ConnectionWrapper,
SQLAlchemy connections, raw DBAPI connections) and import nothing from other
schemakit modules, making them safe to import anywhere.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)

DIALECT_ALIASES = {
    'postgres': 'postgresql',
    'sqlserver': 'mssql',
    }


def get_dialect_name(obj: Any) -> str:
    """Get dialect name for a database connection or engine.

    A MariaDB server reached through a mysql:// URL reports 'mariadb'.
    """
    if hasattr(obj, 'dialect'):
        dialect = obj.dialect
        if isinstance(dialect, str):
            name = dialect.lower()
        else:
            name = str(dialect.name).lower()
            if name == 'mysql' and getattr(dialect, 'is_mariadb', False) is True:
                name = 'mariadb'
        return DIALECT_ALIASES.get(name, name)

    if hasattr(obj, 'engine') and hasattr(obj.engine, 'dialect'):
        return get_dialect_name(obj.engine)

    type_name = f'{type(obj).__module__}.{type(obj).__name__}'
    if 'psycopg' in type_name:
        return 'postgresql'
    if 'sqlite3' in type_name:
        return 'sqlite'
    if 'pyodbc' in type_name or 'pymssql' in type_name:
        return 'mssql'
    if 'pymysql' in type_name or 'mysql.connector' in type_name:
        return 'mysql'

    raise AttributeError(f'Cannot determine dialect for {type(obj)}')


def get_raw_connection(connection: Any) -> Any:
    """Extract the raw DBAPI connection from a wrapper."""
    raw_conn = connection
    if hasattr(connection, 'driver_connection'):
        raw_conn = connection.driver_connection
    return raw_conn


def set_autocommit(raw_conn: Any, enabled: bool) -> None:
    """Switch driver-level autocommit.

    Drivers expose autocommit either as an attribute (psycopg, pyodbc,
    mysql-connector) or as a method (pymysql, pymssql).
    """
    current = getattr(raw_conn, 'autocommit', None)
    if callable(current):
        current(enabled)
    else:
        raw_conn.autocommit = enabled
